from fastapi import APIRouter, Depends, HTTPException

from campus_market import storage
from campus_market.auth.dependencies import get_current_user
from campus_market.db import get_session
from campus_market.models.review import ReviewCreate
from campus_market.models.user_db import User as DBUser

router = APIRouter(prefix="/api/reviews", tags=["Reviews"])


@router.get("/seller/{seller_id}")
def get_seller_reviews(seller_id: int):
    with get_session() as session:
        if not storage.get_user(session, seller_id):
            raise HTTPException(status_code=404, detail="Seller not found")
        result = []
        for review in storage.get_reviews_for_seller(session, seller_id):
            reviewer = storage.get_user(session, review.reviewer_id)
            data = review.model_dump(mode="json")
            data["reviewer"] = storage.public_user(reviewer) if reviewer else None
            result.append(data)
        return result


@router.post("", status_code=201)
def create_review(data: ReviewCreate, user: DBUser = Depends(get_current_user)):
    if data.seller_id == user.id:
        raise HTTPException(status_code=400, detail="You cannot review yourself")
    with get_session() as session:
        if not storage.get_user(session, data.seller_id):
            raise HTTPException(status_code=404, detail="Seller not found")
        listing = storage.get_listing(session, data.listing_id)
        if not listing:
            raise HTTPException(status_code=404, detail="Listing not found")
        if listing.seller_id != data.seller_id:
            raise HTTPException(status_code=400, detail="Listing does not belong to this seller")
        review = storage.create_review(
            session, user.id, data.seller_id, data.listing_id, data.rating, data.comment
        )
        return review.model_dump(mode="json")
