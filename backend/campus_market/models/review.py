from pydantic import BaseModel, Field
from typing import Optional

class ReviewCreate(BaseModel):
    seller_id: int
    listing_id: int
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)
