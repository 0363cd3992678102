from fastapi import APIRouter, Depends

from campus_market import storage
from campus_market.auth.dependencies import get_current_user
from campus_market.db import get_session
from campus_market.models.chat import ChatSupportRequest
from campus_market.models.user_db import User as DBUser

router = APIRouter(prefix="/api/chat-support", tags=["Chat Support"])


@router.get("")
def get_chat_support(user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        return [m.model_dump(mode="json") for m in storage.get_chat_support(session, user.id)]


@router.post("")
def send_chat_support(data: ChatSupportRequest, user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        question, answer = storage.add_chat_support_exchange(session, user.id, data.content)
        return [question.model_dump(mode="json"), answer.model_dump(mode="json")]
