from pydantic import BaseModel, Field

class SendMessageRequest(BaseModel):
    receiver_id: int
    listing_id: int
    content: str = Field(min_length=1, max_length=5000)
