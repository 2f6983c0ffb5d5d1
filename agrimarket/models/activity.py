from sqlalchemy import Column, String, Integer, ForeignKey, JSON
from agrimarket.models.base import BaseModel

USER_LOGIN = "USER_LOGIN"
USER_REGISTERED = "USER_REGISTERED"
PRODUCT_CREATED = "PRODUCT_CREATED"
USER_ROLE_UPDATED = "USER_ROLE_UPDATED"
PRODUCT_STATUS_UPDATED = "PRODUCT_STATUS_UPDATED"

class ActivityLog(BaseModel):
    __tablename__ = "activity_logs"
    
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    description = Column(String(255), nullable=False)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='SET NULL'))
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='SET NULL'))
