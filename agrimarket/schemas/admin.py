from typing import Any, Dict, List, Optional
from pydantic import BaseModel
from agrimarket.schemas.product import ProductBase, ProductImage
from agrimarket.schemas.user import UserSummary

class AdminProduct(ProductBase):
    farmer: Optional[UserSummary] = None
    images: List[ProductImage] = []

class AdminUpdate(BaseModel):
    endpoint: Optional[str] = None
    data: Dict[str, Any] = {}
