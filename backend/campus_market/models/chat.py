from pydantic import BaseModel, Field
from typing import List, Literal

class ChatSupportRequest(BaseModel):
    content: str = Field(min_length=1, max_length=2000)

class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str

class ChatbotRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    history: List[ChatTurn] = []
