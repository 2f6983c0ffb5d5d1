from typing import List, Optional
from datetime import datetime
from agrimarket.schemas.base import BaseSchema, StatusSchema, TimestampSchema
from agrimarket.schemas.user import UserSummary, UserContact, FarmerDetail

class ProductImage(BaseSchema):
    id: int
    url: str
    created_at: datetime

class CoverImage(BaseSchema):
    id: int
    url: str

class ProductOrder(StatusSchema):
    """Order as seen from one of its product's views."""

    id: int
    status: str
    total_price: float
    created_at: datetime
    buyer: Optional[UserContact] = None

class ProductDetailOrder(ProductOrder):
    quantity: float

class ProductBase(StatusSchema, TimestampSchema):
    id: int
    title: str
    description: Optional[str] = None
    category: str
    price: float
    quantity: float
    unit: str
    minimum_order: Optional[float] = None
    status: str
    farmer_id: int

class Product(ProductBase):
    """Market view: farmer summary without contact details."""

    farmer: Optional[UserSummary] = None
    images: List[ProductImage] = []

class ProductWithContact(ProductBase):
    farmer: Optional[UserContact] = None
    images: List[ProductImage] = []

class FarmerProduct(ProductWithContact):
    orders: List[ProductOrder] = []

class ProductWithFarmerDetail(ProductBase):
    farmer: Optional[FarmerDetail] = None
    images: List[ProductImage] = []

class ProductDetail(ProductWithFarmerDetail):
    """Public detail view; includes recent order history."""

    orders: List[ProductDetailOrder] = []

class CreatedProduct(ProductBase):
    images: List[ProductImage] = []

class ProductCreate(BaseSchema):
    """Validated creation payload, after lenient coercion of form/JSON input."""

    title: str
    description: Optional[str] = None
    category: str
    price: float
    quantity: float
    unit: str
    minimum_order: Optional[float] = None
    image_urls: List[str] = []

class ProductFilter(BaseSchema):
    category: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    scope: Optional[str] = None

class ProductEnvelope(BaseSchema):
    product: ProductDetail

class CreatedProductEnvelope(BaseSchema):
    message: str
    product: CreatedProduct
