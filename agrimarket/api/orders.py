from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from agrimarket.db.session import get_db
from agrimarket.auth.security import get_identity
from agrimarket.gateway.orders import list_my_orders
from agrimarket.schemas.order import OrderList
from agrimarket.schemas.user import Identity

router = APIRouter()

@router.get("", response_model=OrderList)
def read_my_orders(
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity)
):
    return {"orders": list_my_orders(db, identity)}
