from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional

class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)
    confirm_password: str
    display_name: str = Field(min_length=1, max_length=100)
    avatar: Optional[str] = None
    bio: Optional[str] = None
    campus: Optional[str] = None

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self

class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    campus: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)

class Token(BaseModel):
    access_token: str
    token_type: str
