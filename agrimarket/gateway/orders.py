from typing import List, Optional
from sqlalchemy.orm import Session, selectinload

from agrimarket.auth.guards import ensure_authorized
from agrimarket.models.order import Order
from agrimarket.models.product import Product
from agrimarket.schemas.order import Order as OrderView
from agrimarket.schemas.user import Identity


def buyer_orders_query(db: Session, buyer_id: int):
    return (
        db.query(Order)
        .options(selectinload(Order.product).selectinload(Product.farmer))
        .filter(Order.buyer_id == buyer_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )


def list_my_orders(db: Session, identity: Optional[Identity]) -> List[OrderView]:
    identity = ensure_authorized(identity, required_role="buyer", forbidden_detail="Forbidden")
    orders = buyer_orders_query(db, identity.id).all()
    return [OrderView.model_validate(order) for order in orders]
