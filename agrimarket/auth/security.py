import logging
from passlib.context import CryptContext
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from typing import Optional
from fastapi.security import OAuth2PasswordBearer
from fastapi import Depends, Request
from pydantic import ValidationError as SchemaError

from agrimarket.core.config import settings
from agrimarket.models.enums import ROLES, role_to_wire
from agrimarket.schemas.user import Identity
from agrimarket.auth.guards import ensure_authorized

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
# Browsers send the session cookie; API clients may send a bearer token instead
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(identity: Identity, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = {
        "id": identity.id,
        "email": identity.email,
        "name": identity.name,
        "role": role_to_wire(identity.role),
    }
    if expires_delta is None:
        expires_delta = timedelta(days=settings.SESSION_TTL_DAYS)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def resolve_identity(token: Optional[str]) -> Optional[Identity]:
    """Decode a session token into an Identity.

    Returns None for a missing, malformed, expired or badly signed token and for
    payloads without id/email/role or with an unknown role. Never raises.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        logger.debug("Rejected session token: %s", exc)
        return None

    user_id = payload.get("id")
    email = payload.get("email")
    role = payload.get("role")
    if user_id is None or not email or not role:
        return None

    role = str(role).lower()
    if role not in ROLES:
        return None

    try:
        return Identity(id=int(user_id), email=str(email), name=str(payload.get("name") or ""), role=role)
    except (TypeError, ValueError, SchemaError):
        return None


def get_identity(request: Request, bearer: Optional[str] = Depends(oauth2_scheme)) -> Optional[Identity]:
    # valid cookie first, then the bearer token
    identity = resolve_identity(request.cookies.get(settings.SESSION_COOKIE_NAME))
    if identity is None and bearer:
        identity = resolve_identity(bearer)
    return identity


def get_current_identity(identity: Optional[Identity] = Depends(get_identity)) -> Identity:
    return ensure_authorized(identity)


def require_role(role: str, detail: Optional[str] = None):
    def dependency(identity: Optional[Identity] = Depends(get_identity)) -> Identity:
        return ensure_authorized(identity, required_role=role, forbidden_detail=detail)

    return dependency


is_admin = require_role("admin", "Admin access required")
