"""
商品模型
价格为当前售价；订单明细下单时会快照名称/slug/单价
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from petshop.db.base import Base

FALLBACK_IMAGE = "/images/noimage.webp"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False, index=True, comment="品名")
    slug = Column(String(170), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"), comment="售价")
    image_url = Column(String(300), nullable=True)
    active = Column(Boolean, default=True, nullable=False, comment="是否上架")
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("Category", back_populates="products")

    def __repr__(self):
        return f"<Product {self.slug}: {self.price}>"

    @property
    def display_image(self) -> str:
        return self.image_url or FALLBACK_IMAGE
