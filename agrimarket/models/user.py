from sqlalchemy import Column, String, Enum, DateTime
from sqlalchemy.orm import relationship
from agrimarket.models.base import BaseModel
from agrimarket.models.enums import ADMIN, FARMER, BUYER

class User(BaseModel):
    __tablename__ = "users"
    
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    phone = Column(String(20))
    role = Column(Enum(ADMIN, FARMER, BUYER, name='user_roles'), nullable=False)
    password = Column(String(255), nullable=False)
    last_login_at = Column(DateTime)
    reset_token = Column(String(255))
    reset_token_expiry = Column(DateTime)
    
    products = relationship("Product", back_populates="farmer")
    orders = relationship("Order", back_populates="buyer")
