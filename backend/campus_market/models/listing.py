from pydantic import BaseModel, Field
from typing import List, Literal, Optional

Condition = Literal["new", "like-new", "good", "fair", "poor"]

class ListingCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    price: float = Field(gt=0)
    condition: Condition
    location: str = Field(min_length=1)
    category_id: int
    is_urgent: bool = False

class ListingUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1)
    price: Optional[float] = Field(default=None, gt=0)
    condition: Optional[Condition] = None
    location: Optional[str] = Field(default=None, min_length=1)
    category_id: Optional[int] = None
    is_urgent: Optional[bool] = None
    # A list keeps those paths, null drops all existing files
    images: Optional[List[str]] = None
    attachments: Optional[List[str]] = None

class ListingFilters(BaseModel):
    """Query filters for the listings endpoint."""
    category_id: Optional[int] = None
    search: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    condition: Optional[str] = None
    location: Optional[str] = None
    seller_id: Optional[int] = None

class FavoriteToggle(BaseModel):
    listing_id: int
