from fastapi import APIRouter, Depends, HTTPException

from campus_market import storage
from campus_market.auth.dependencies import get_current_user
from campus_market.db import get_session
from campus_market.models.listing import FavoriteToggle
from campus_market.models.user_db import User as DBUser

router = APIRouter(prefix="/api/favorites", tags=["Favorites"])


@router.get("")
def get_favorites(user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        listings = storage.get_user_favorites(session, user.id)
        return [storage.enrich_listing(session, l, favorite=True) for l in listings]


@router.post("/toggle")
def toggle_favorite(data: FavoriteToggle, user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        if not storage.get_listing(session, data.listing_id):
            raise HTTPException(status_code=404, detail="Listing not found")
        return {"status": storage.toggle_favorite(session, user.id, data.listing_id)}


@router.post("/{listing_id}", status_code=201)
def add_favorite(listing_id: int, user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        if not storage.get_listing(session, listing_id):
            raise HTTPException(status_code=404, detail="Listing not found")
        favorite = storage.add_favorite(session, user.id, listing_id)
        return favorite.model_dump()


@router.delete("/{listing_id}")
def remove_favorite(listing_id: int, user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        if not storage.remove_favorite(session, user.id, listing_id):
            raise HTTPException(status_code=404, detail="Favorite not found")
        return {"message": "Removed from favorites successfully"}
