import logging
from typing import Optional
from sqlalchemy.orm import Session

from agrimarket.core.config import settings
from agrimarket.core.errors import ValidationError
from agrimarket.models.base import utcnow
from agrimarket.models.enums import ADMIN, role_to_storage, role_to_wire
from agrimarket.models.user import User
from agrimarket.schemas.user import Identity
from agrimarket.auth.security import get_password_hash, verify_password

logger = logging.getLogger(__name__)

SELF_SERVICE_ROLES = ("farmer", "buyer")


def identity_for(user: User) -> Identity:
    return Identity(id=user.id, email=user.email, name=user.name, role=role_to_wire(user.role))


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not verify_password(password, user.password):
        return None
    return user


def record_login(db: Session, user: User) -> User:
    user.last_login_at = utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_user(db: Session, name: str, email: str, password: str, role: str, phone: Optional[str] = None) -> User:
    if not isinstance(role, str) or role.strip().lower() not in SELF_SERVICE_ROLES:
        raise ValidationError("Role must be one of: farmer, buyer")
    if not name or not name.strip():
        raise ValidationError("Name is required")
    if not password:
        raise ValidationError("Password is required")

    email = email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise ValidationError("Email already registered")

    db_user = User(
        email=email,
        name=name.strip(),
        phone=phone,
        role=role_to_storage(role),
        password=get_password_hash(password),
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def ensure_admin_user(db: Session) -> Optional[User]:
    """Create the configured admin, or re-hash its password when it changed."""
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.warning("ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin bootstrap")
        return None

    email = settings.ADMIN_EMAIL.strip().lower()
    admin = db.query(User).filter(User.email == email).first()

    if admin:
        if not verify_password(settings.ADMIN_PASSWORD, admin.password):
            admin.password = get_password_hash(settings.ADMIN_PASSWORD)
            db.add(admin)
            db.commit()
            db.refresh(admin)
            logger.info("Admin password rotated for %s", email)
        return admin

    admin = User(
        email=email,
        name=settings.ADMIN_NAME,
        role=ADMIN,
        password=get_password_hash(settings.ADMIN_PASSWORD),
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Admin user created for %s", email)
    return admin
