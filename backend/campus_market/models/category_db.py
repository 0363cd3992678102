from sqlmodel import SQLModel, Field
from typing import Optional

class Category(SQLModel, table=True):
    __tablename__ = "categories"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    slug: str = Field(index=True, unique=True)
    item_count: int = Field(default=0)
