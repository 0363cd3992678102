"""
FastAPI dependencies resolving the bearer token to a user row.
"""
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from campus_market.auth.auth_handler import decode_token
from campus_market.db import get_session
from campus_market.models.user_db import User as DBUser

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def _user_id_from_token(token: str) -> int:
    try:
        payload = decode_token(token)
        return int(payload["sub"])
    except (JWTError, KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")


def get_current_user(token: str = Depends(oauth2_scheme)) -> DBUser:
    user_id = _user_id_from_token(token)
    with get_session() as session:
        user = session.get(DBUser, user_id)
        if not user:
            raise HTTPException(status_code=401, detail="User not found")
        return user


def get_optional_user(token: Optional[str] = Depends(optional_oauth2_scheme)) -> Optional[DBUser]:
    """Like get_current_user, but anonymous callers get None instead of a 401."""
    if not token:
        return None
    try:
        return get_current_user(token)
    except HTTPException:
        return None


def get_admin_user(user: DBUser = Depends(get_current_user)) -> DBUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Not authorized")
    return user
