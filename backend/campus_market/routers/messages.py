from fastapi import APIRouter, Depends, HTTPException

from campus_market import storage
from campus_market.auth.dependencies import get_current_user
from campus_market.db import get_session
from campus_market.models.message import SendMessageRequest
from campus_market.models.user_db import User as DBUser

router = APIRouter(prefix="/api/messages", tags=["Messages"])


@router.get("")
def get_conversations(user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        return storage.get_conversations(session, user.id)


@router.get("/unread-count")
def get_unread_count(user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        return {"unread_count": storage.unread_count(session, user.id)}


@router.get("/{user_id}/{listing_id}")
def get_thread(user_id: int, listing_id: int, user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        # Snapshot before marking so the caller sees what was unread
        thread = [m.model_dump(mode="json") for m in storage.get_thread(session, user.id, user_id, listing_id)]
        storage.mark_thread_read(session, user.id, user_id, listing_id)
        return thread


@router.post("", status_code=201)
def send_message(data: SendMessageRequest, user: DBUser = Depends(get_current_user)):
    if data.receiver_id == user.id:
        raise HTTPException(status_code=400, detail="You cannot message yourself")
    with get_session() as session:
        if not storage.get_user(session, data.receiver_id):
            raise HTTPException(status_code=404, detail="Receiver not found")
        if not storage.get_listing(session, data.listing_id):
            raise HTTPException(status_code=404, detail="Listing not found")
        message = storage.create_message(
            session, user.id, data.receiver_id, data.listing_id, data.content
        )
        return message.model_dump(mode="json")
