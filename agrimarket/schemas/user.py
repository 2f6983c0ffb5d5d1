from typing import Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr
from agrimarket.schemas.base import BaseSchema, StatusSchema, TimestampSchema

class Identity(BaseModel):
    """Authenticated principal carried by the session token."""

    id: int
    email: str
    name: str = ""
    role: str

class UserSummary(BaseSchema):
    id: int
    name: str

class UserContact(UserSummary):
    email: str

class FarmerDetail(UserContact):
    phone: Optional[str] = None

class User(StatusSchema, TimestampSchema):
    """Sanitized user: never carries password or reset-token fields."""

    id: int
    email: str
    name: str
    phone: Optional[str] = None
    role: str
    last_login_at: Optional[datetime] = None

class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str
    role: str = "buyer"
    phone: Optional[str] = None

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class UserEnvelope(BaseModel):
    message: Optional[str] = None
    user: User

class LoginResponse(BaseModel):
    message: str
    user: User
    access_token: str
    token_type: str
