import logging
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from agrimarket.core.config import settings
from agrimarket.core.errors import Unauthenticated, ValidationError
from agrimarket.db.session import get_db
from agrimarket.gateway.activity import log_activity
from agrimarket.models.activity import USER_LOGIN, USER_REGISTERED
from agrimarket.schemas.user import (
    Identity,
    LoginRequest,
    LoginResponse,
    User as UserSchema,
    UserCreate,
    UserEnvelope,
)
from agrimarket.auth.credentials import authenticate_user, create_user, identity_for, record_login
from agrimarket.auth.security import create_access_token, get_current_identity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.session_max_age,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def clear_session_cookie(response: Response) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


# LOGIN: sets the session cookie, returns user + token
@router.post("/login", response_model=LoginResponse)
def login(
    credentials: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db)
):
    if not credentials.email or not credentials.password:
        raise ValidationError("Email and password are required")

    user = authenticate_user(db, credentials.email, credentials.password)
    if not user:
        logger.info("Login failed for %s", credentials.email.strip().lower())
        raise Unauthenticated("Invalid credentials")

    user = record_login(db, user)
    identity = identity_for(user)
    access_token = create_access_token(identity)
    user_view = UserSchema.model_validate(user)

    log_activity(
        db,
        user_id=identity.id,
        type=USER_LOGIN,
        description="User logged in",
        metadata={"userAgent": request.headers.get("user-agent", "unknown")},
    )
    logger.info("Login succeeded user_id=%s role=%s", identity.id, identity.role)

    set_session_cookie(response, access_token)
    return LoginResponse(
        message="Login successful",
        user=user_view,
        access_token=access_token,
        token_type="bearer",
    )


# LOGOUT: clears the session cookie
@router.api_route("/logout", methods=["GET", "POST"])
def logout(response: Response):
    clear_session_cookie(response)
    return {"message": "Logged out successfully"}


# REGISTER: farmers and buyers only; admins come from bootstrap
@router.post("/register", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
def register_user(
    user_data: UserCreate,
    db: Session = Depends(get_db)
):
    db_user = create_user(
        db,
        name=user_data.name,
        email=user_data.email,
        password=user_data.password,
        role=user_data.role,
        phone=user_data.phone,
    )
    user_view = UserSchema.model_validate(db_user)
    log_activity(db, user_id=db_user.id, type=USER_REGISTERED, description="User registered")
    logger.info("User registered user_id=%s role=%s", user_view.id, user_view.role)
    return UserEnvelope(message="Registration successful", user=user_view)


@router.get("/me", response_model=Identity)
def read_me(current_user: Identity = Depends(get_current_identity)):
    return current_user
