from fastapi import APIRouter, Depends

from campus_market import storage
from campus_market.auth.dependencies import get_admin_user
from campus_market.db import get_session

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/users")
def get_all_users(admin=Depends(get_admin_user)):
    with get_session() as session:
        users = storage.get_all_users(session)
        return [{"id": u.id, "username": u.username, "email": u.email, "is_admin": u.is_admin} for u in users]


@router.get("/listings")
def get_all_listings(admin=Depends(get_admin_user)):
    with get_session() as session:
        listings = storage.get_all_listings(session)
        return [{"id": l.id, "title": l.title, "seller_id": l.seller_id, "is_sold": l.is_sold} for l in listings]


@router.get("/stats")
def get_stats(admin=Depends(get_admin_user)):
    with get_session() as session:
        return storage.get_stats(session)
