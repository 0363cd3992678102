from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field
from typing import Optional

class Favorite(SQLModel, table=True):
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_id", "listing_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    listing_id: int = Field(foreign_key="listings.id", index=True)
