"""Admin-only listings and moderation mutations."""
import logging
from typing import Any, List, Optional
from sqlalchemy.orm import Session, selectinload

from agrimarket.auth.guards import ensure_authorized
from agrimarket.core.errors import NotFound, ValidationError
from agrimarket.gateway.activity import log_activity
from agrimarket.models.activity import PRODUCT_STATUS_UPDATED, USER_ROLE_UPDATED
from agrimarket.models.enums import PRODUCT_STATUSES, role_to_storage, to_storage
from agrimarket.models.order import Order
from agrimarket.models.product import Product
from agrimarket.models.user import User
from agrimarket.schemas.admin import AdminProduct
from agrimarket.schemas.order import AdminOrder
from agrimarket.schemas.user import Identity, User as UserView

logger = logging.getLogger(__name__)

ADMIN_ONLY = "Admin access required"


def _require_admin(identity: Optional[Identity]) -> Identity:
    return ensure_authorized(identity, required_role="admin", forbidden_detail=ADMIN_ONLY)


def _coerce_id(value: Any, field: str) -> int:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}")


def list_users(db: Session, identity: Optional[Identity]) -> List[UserView]:
    _require_admin(identity)
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return [UserView.model_validate(user) for user in users]


def list_all_products(db: Session, identity: Optional[Identity]) -> List[AdminProduct]:
    _require_admin(identity)
    products = (
        db.query(Product)
        .options(selectinload(Product.farmer), selectinload(Product.images))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )
    return [AdminProduct.model_validate(product) for product in products]


def list_all_orders(db: Session, identity: Optional[Identity]) -> List[AdminOrder]:
    _require_admin(identity)
    orders = (
        db.query(Order)
        .options(
            selectinload(Order.product).selectinload(Product.farmer),
            selectinload(Order.buyer),
        )
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return [AdminOrder.model_validate(order) for order in orders]


def update_user_role(db: Session, identity: Optional[Identity], user_id: Any, new_role: Any) -> UserView:
    """Set a user's role. Any transition inside the role enum is allowed."""
    admin = _require_admin(identity)
    user_id = _coerce_id(user_id, "userId")
    try:
        role = role_to_storage(new_role)
    except ValueError as exc:
        raise ValidationError(str(exc))

    db_user = db.query(User).filter(User.id == user_id).first()
    if db_user is None:
        raise NotFound("User not found")

    previous = db_user.role
    db_user.role = role
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    updated = UserView.model_validate(db_user)

    logger.info("User role updated user_id=%s %s -> %s by admin_id=%s", user_id, previous, role, admin.id)
    log_activity(
        db,
        user_id=admin.id,
        type=USER_ROLE_UPDATED,
        description=f"Role of user {user_id} set to {updated.role}",
        metadata={"targetUserId": user_id, "from": previous.lower(), "to": updated.role},
    )
    return updated


def update_product_status(db: Session, identity: Optional[Identity], product_id: Any, new_status: Any) -> AdminProduct:
    admin = _require_admin(identity)
    product_id = _coerce_id(product_id, "productId")
    try:
        product_status = to_storage(new_status, PRODUCT_STATUSES)
    except ValueError as exc:
        raise ValidationError(str(exc))

    db_product = db.query(Product).filter(Product.id == product_id).first()
    if db_product is None:
        raise NotFound("Product not found")

    previous = db_product.status
    db_product.status = product_status
    db.add(db_product)
    db.commit()
    db.refresh(db_product)
    updated = AdminProduct.model_validate(db_product)

    logger.info("Product status updated product_id=%s %s -> %s by admin_id=%s",
                product_id, previous, product_status, admin.id)
    log_activity(
        db,
        user_id=admin.id,
        type=PRODUCT_STATUS_UPDATED,
        description=f"Status of product {product_id} set to {updated.status}",
        metadata={"from": previous.lower(), "to": updated.status},
        product_id=product_id,
    )
    return updated
