from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime, timezone

class Listing(SQLModel, table=True):
    __tablename__ = "listings"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str
    price: float
    condition: str
    location: str
    # JSON-encoded lists of /uploads paths
    images: str = Field(default="[]")
    attachments: str = Field(default="[]")
    is_urgent: bool = Field(default=False)
    is_sold: bool = Field(default=False)
    category_id: int = Field(foreign_key="categories.id", index=True)
    seller_id: int = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
