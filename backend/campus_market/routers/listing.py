import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from campus_market import storage
from campus_market.auth.dependencies import get_current_user, get_optional_user
from campus_market.config import config
from campus_market.db import get_session
from campus_market.models.listing import ListingCreate, ListingFilters, ListingUpdate
from campus_market.models.user_db import User as DBUser
from campus_market.utils.uploads import discard_uploads, store_listing_files

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/listings", tags=["Listing"])

RELATED_LIMIT = 3

SortOption = Literal["newest", "oldest", "price_asc", "price_desc"]


def get_listing_filters(
    category: Optional[str] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    condition: Optional[str] = None,
    location: Optional[str] = None,
    seller_id: Optional[int] = None,
) -> ListingFilters:
    """Dependency collecting listing filters; the category is given as a slug."""
    category_id = None
    if category:
        with get_session() as session:
            found = storage.get_category_by_slug(session, category)
            if found:
                category_id = found.id
    return ListingFilters(
        category_id=category_id,
        search=search,
        min_price=min_price,
        max_price=max_price,
        condition=condition,
        location=location,
        seller_id=seller_id,
    )


@router.get("")
def get_listings(
    filters: ListingFilters = Depends(get_listing_filters),
    sort: SortOption = "newest",
    limit: int = Query(config.DEFAULT_LISTING_LIMIT, ge=1, le=config.MAX_LISTING_LIMIT),
    offset: int = Query(0, ge=0),
    viewer: Optional[DBUser] = Depends(get_optional_user),
):
    viewer_id = viewer.id if viewer else None
    with get_session() as session:
        listings = storage.get_listings(session, filters, sort, limit, offset)
        return [storage.enrich_listing(session, l, viewer_id) for l in listings]


@router.get("/featured")
def get_featured_listings(limit: int = Query(4, ge=1, le=50),
                          viewer: Optional[DBUser] = Depends(get_optional_user)):
    viewer_id = viewer.id if viewer else None
    with get_session() as session:
        listings = storage.get_featured_listings(session, limit)
        return [storage.enrich_listing(session, l, viewer_id) for l in listings]


@router.get("/recent")
def get_recent_listings(limit: int = Query(4, ge=1, le=50),
                        viewer: Optional[DBUser] = Depends(get_optional_user)):
    viewer_id = viewer.id if viewer else None
    with get_session() as session:
        listings = storage.get_recent_listings(session, limit)
        return [storage.enrich_listing(session, l, viewer_id) for l in listings]


@router.get("/{listing_id}")
def get_listing(listing_id: int, viewer: Optional[DBUser] = Depends(get_optional_user)):
    viewer_id = viewer.id if viewer else None
    with get_session() as session:
        listing = storage.get_listing(session, listing_id)
        if not listing:
            raise HTTPException(status_code=404, detail="Listing not found")
        if not storage.get_user(session, listing.seller_id):
            raise HTTPException(status_code=404, detail="Seller not found")

        related = storage.get_listings(
            session, ListingFilters(category_id=listing.category_id), limit=RELATED_LIMIT + 1
        )
        data = storage.enrich_listing(session, listing, viewer_id)
        data["related_listings"] = [
            storage.serialize_listing(item) for item in related if item.id != listing.id
        ][:RELATED_LIMIT]
        return data


@router.post("", status_code=201)
async def create_listing(
    data: str = Form(...),
    images: Optional[List[UploadFile]] = File(None),
    user: DBUser = Depends(get_current_user),
):
    try:
        payload = ListingCreate.model_validate_json(data)
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    with get_session() as session:
        if not storage.get_category(session, payload.category_id):
            raise HTTPException(status_code=400, detail="Category not found")

    image_paths, attachment_paths = await store_listing_files(images or [])

    with get_session() as session:
        listing = storage.create_listing(
            session, payload.model_dump(), user.id, image_paths, attachment_paths
        )
        return storage.serialize_listing(listing)


def _merge_files(fields: dict, key: str, current: List[str], uploaded: List[str]) -> List[str]:
    # A list keeps those of the current paths, null drops every existing file, absent keeps all
    if key in fields:
        kept = fields[key] or []
        return [path for path in current if path in kept] + uploaded
    return current + uploaded


@router.put("/{listing_id}")
async def update_listing(
    listing_id: int,
    data: str = Form("{}"),
    images: Optional[List[UploadFile]] = File(None),
    user: DBUser = Depends(get_current_user),
):
    try:
        payload = ListingUpdate.model_validate_json(data)
    except ValidationError as e:
        raise RequestValidationError(e.errors())
    fields = payload.model_dump(exclude_unset=True)

    with get_session() as session:
        listing = storage.get_listing(session, listing_id)
        if not listing:
            raise HTTPException(status_code=404, detail="Listing not found")
        if listing.seller_id != user.id:
            raise HTTPException(status_code=403, detail="You don't have permission to update this listing")
        if fields.get("category_id") is not None and not storage.get_category(session, fields["category_id"]):
            raise HTTPException(status_code=400, detail="Category not found")
        current_images, current_attachments = storage.listing_files(listing)

    new_images, new_attachments = await store_listing_files(images or [])

    changes = {key: value for key, value in fields.items()
               if key not in ("images", "attachments") and value is not None}
    changes["images"] = _merge_files(fields, "images", current_images, new_images)
    changes["attachments"] = _merge_files(fields, "attachments", current_attachments, new_attachments)

    with get_session() as session:
        listing = storage.get_listing(session, listing_id)
        if not listing:
            discard_uploads(new_images + new_attachments)
            raise HTTPException(status_code=404, detail="Listing not found")
        listing = storage.update_listing(session, listing, changes)
        return storage.serialize_listing(listing)


@router.delete("/{listing_id}")
def delete_listing(listing_id: int, user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        listing = storage.get_listing(session, listing_id)
        if not listing:
            raise HTTPException(status_code=404, detail="Listing not found")
        if listing.seller_id != user.id and not user.is_admin:
            raise HTTPException(status_code=403, detail="You don't have permission to delete this listing")
        storage.delete_listing(session, listing)
        return {"message": "Listing deleted successfully"}
