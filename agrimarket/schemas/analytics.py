from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field
from agrimarket.schemas.base import BaseSchema, StatusSchema
from agrimarket.schemas.order import Order
from agrimarket.schemas.product import CoverImage
from agrimarket.schemas.user import UserSummary

class MonthlySales(BaseSchema):
    month: str
    revenue: float

class TopProduct(StatusSchema):
    id: int
    title: str
    category: str
    price: float
    unit: str
    status: str
    revenue: float
    delivered_orders: int

class RecommendedProduct(BaseSchema):
    id: int
    title: str
    category: str
    price: float
    unit: str
    farmer: Optional[UserSummary] = None
    cover_image: Optional[CoverImage] = None

class AdminAnalytics(BaseSchema):
    role: Literal["admin"] = "admin"
    total_revenue: float
    total_orders: int
    total_users: int
    total_products: int
    sales_by_month: List[MonthlySales]

class FarmerAnalytics(BaseSchema):
    role: Literal["farmer"] = "farmer"
    total_revenue: float
    total_orders: int
    total_products: int
    top_products: List[TopProduct]

class BuyerAnalytics(BaseSchema):
    role: Literal["buyer"] = "buyer"
    total_spent: float
    total_orders: int
    average_order_value: float
    recent_orders: List[Order]
    recommended_products: List[RecommendedProduct]

class AnalyticsEnvelope(BaseModel):
    analytics: Union[AdminAnalytics, FarmerAnalytics, BuyerAnalytics] = Field(discriminator="role")
