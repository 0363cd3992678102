from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordRequestForm

from campus_market.auth.auth_handler import hash_password, verify_password, create_access_token
from campus_market.auth.dependencies import get_current_user
from campus_market.models.auth import RegisterRequest, ProfileUpdate, Token
from campus_market.db import get_session
from campus_market.models.user_db import User as DBUser
from campus_market import storage

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/register", status_code=201)
def register(user: RegisterRequest):
    with get_session() as session:
        if storage.get_user_by_username(session, user.username):
            raise HTTPException(status_code=400, detail="Username already taken")
        if storage.get_user_by_email(session, user.email):
            raise HTTPException(status_code=400, detail="Email already registered")

        db_user = storage.create_user(
            session,
            username=user.username,
            email=user.email,
            hashed_password=hash_password(user.password),
            display_name=user.display_name,
            avatar=user.avatar,
            bio=user.bio,
            campus=user.campus,
        )
        access_token = create_access_token({"sub": str(db_user.id)})
        return {
            "user": storage.public_user(db_user, private=True),
            "access_token": access_token,
            "token_type": "bearer",
        }


@router.post("/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends()):
    with get_session() as session:
        db_user = storage.get_user_by_username(session, form_data.username)
        if not db_user or not verify_password(form_data.password, db_user.hashed_password):
            raise HTTPException(status_code=401, detail="Invalid credentials")
        user_id = db_user.id

    access_token = create_access_token({"sub": str(user_id)})
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/logout")
def logout(user: DBUser = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy
    return {"message": "Logged out successfully"}


@router.get("/me")
def get_current_user_info(user: DBUser = Depends(get_current_user)):
    return storage.public_user(user, private=True)


@router.put("/update")
def update_user_profile(data: ProfileUpdate, user: DBUser = Depends(get_current_user)):
    changes = data.model_dump(exclude_unset=True)
    # Required columns cannot be cleared
    for field in ("display_name", "email", "password"):
        if changes.get(field) is None:
            changes.pop(field, None)

    with get_session() as session:
        db_user = storage.get_user(session, user.id)
        if not db_user:
            raise HTTPException(status_code=404, detail="User not found")

        if "email" in changes:
            other = storage.get_user_by_email(session, changes["email"])
            if other and other.id != db_user.id:
                raise HTTPException(status_code=400, detail="Email already registered")
        if "password" in changes:
            changes["hashed_password"] = hash_password(changes.pop("password"))

        db_user = storage.update_user(session, db_user, changes)
        return storage.public_user(db_user, private=True)
