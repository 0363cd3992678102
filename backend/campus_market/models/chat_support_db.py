from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime, timezone

class ChatSupportMessage(SQLModel, table=True):
    __tablename__ = "chat_support_messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    is_from_user: bool
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
