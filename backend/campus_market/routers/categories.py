from fastapi import APIRouter, HTTPException

from campus_market import storage
from campus_market.db import get_session

router = APIRouter(prefix="/api/categories", tags=["Categories"])


@router.get("")
def get_categories():
    with get_session() as session:
        return [c.model_dump() for c in storage.get_categories(session)]


@router.get("/{slug}")
def get_category(slug: str):
    with get_session() as session:
        category = storage.get_category_by_slug(session, slug)
        if not category:
            raise HTTPException(status_code=404, detail="Category not found")
        return category.model_dump()
