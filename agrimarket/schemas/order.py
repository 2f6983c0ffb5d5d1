from typing import List, Optional
from datetime import datetime
from agrimarket.schemas.base import BaseSchema, StatusSchema
from agrimarket.schemas.user import UserSummary

class OrderProduct(BaseSchema):
    id: int
    title: str
    unit: str
    price: float
    farmer: Optional[UserSummary] = None

class Order(StatusSchema):
    id: int
    product_id: int
    buyer_id: int
    quantity: float
    total_price: float
    status: str
    created_at: datetime
    product: Optional[OrderProduct] = None

class AdminOrder(Order):
    buyer: Optional[UserSummary] = None

class OrderList(BaseSchema):
    orders: List[Order]
