from sqlalchemy import Column, String, Integer, Enum, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from agrimarket.models.base import BaseModel
from agrimarket.models.enums import AVAILABLE, SOLD, RESERVED

class ProductImage(BaseModel):
    __tablename__ = "product_images"
    
    url = Column(String(1024), nullable=False)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True)
    
    product = relationship("Product", back_populates="images")

class Product(BaseModel):
    __tablename__ = "products"
    
    title = Column(String(200), nullable=False)
    description = Column(String)
    category = Column(String(50), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Numeric(10, 2), nullable=False)
    unit = Column(String(20), nullable=False)
    minimum_order = Column(Numeric(10, 2))
    status = Column(
        Enum(AVAILABLE, SOLD, RESERVED, name='product_status'),
        nullable=False,
        default=AVAILABLE,
    )
    farmer_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    
    farmer = relationship("User", back_populates="products")
    # first image is the cover image
    images = relationship(
        "ProductImage",
        back_populates="product",
        order_by=[ProductImage.created_at, ProductImage.id],
        cascade="all, delete-orphan",
    )
    orders = relationship("Order", back_populates="product")
