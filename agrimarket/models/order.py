from sqlalchemy import Column, Enum, Numeric, ForeignKey, Integer
from sqlalchemy.orm import relationship
from agrimarket.models.base import BaseModel
from agrimarket.models.enums import PENDING, CONFIRMED, SHIPPED, DELIVERED, CANCELLED

class Order(BaseModel):
    __tablename__ = "orders"
    
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False, index=True)
    buyer_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    quantity = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    status = Column(
        Enum(PENDING, CONFIRMED, SHIPPED, DELIVERED, CANCELLED, name='order_status'),
        nullable=False,
        default=PENDING,
    )
    
    product = relationship("Product", back_populates="orders")
    buyer = relationship("User", back_populates="orders")
