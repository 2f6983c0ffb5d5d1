from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from agrimarket.db.session import get_db
from agrimarket.auth.security import is_admin
from agrimarket.core.errors import ValidationError
from agrimarket.gateway import admin as admin_gateway
from agrimarket.schemas.admin import AdminUpdate
from agrimarket.schemas.user import Identity

router = APIRouter()

# "user-status" is what the dashboard sends for role changes
USER_ROLE_ENDPOINTS = ("user-role", "user-status")
PRODUCT_STATUS_ENDPOINTS = ("product-status",)


# --------------------------------------------------------------------
# Listings (admin only) -> GET /admin?endpoint=users|products|orders
# --------------------------------------------------------------------
@router.get("", response_model=None)
def read_admin(
    endpoint: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(is_admin)
):
    if endpoint == "users":
        return {"users": admin_gateway.list_users(db, current_user)}
    if endpoint == "products":
        return {"products": admin_gateway.list_all_products(db, current_user)}
    if endpoint == "orders":
        return {"orders": admin_gateway.list_all_orders(db, current_user)}
    raise ValidationError("Invalid endpoint")


# --------------------------------------------------------------------
# Moderation (admin only) -> PUT /admin {endpoint, data}
# --------------------------------------------------------------------
@router.put("", response_model=None)
def update_admin(
    update: AdminUpdate,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(is_admin)
):
    data = update.data or {}
    if update.endpoint in USER_ROLE_ENDPOINTS:
        user = admin_gateway.update_user_role(db, current_user, data.get("userId"), data.get("role"))
        return {"user": user}
    if update.endpoint in PRODUCT_STATUS_ENDPOINTS:
        product = admin_gateway.update_product_status(db, current_user, data.get("productId"), data.get("status"))
        return {"product": product}
    raise ValidationError("Invalid endpoint")
