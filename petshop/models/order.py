"""
订单 / 订单明细
subtotal、total 为下单时快照；明细冗余商品名称、slug、单价，商品后续修改不影响历史
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from petshop.db.base import Base

ORDER_STATUSES = ("PENDING", "PAID", "SHIPPED", "COMPLETED", "CANCELED")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # 收货信息
    customer = Column(String(120), nullable=False)
    email = Column(String(200), nullable=False)
    phone = Column(String(40), nullable=False)
    address = Column(String(300), nullable=False)

    status = Column(String(20), nullable=False, default="PENDING", index=True)
    subtotal = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", passive_deletes=True
    )
    user = relationship("User")

    def __repr__(self):
        return f"<Order {self.id} {self.status}: {self.total}>"

    @property
    def items_count(self) -> int:
        return sum(it.quantity for it in (self.items or []))


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    # 下单时快照
    name = Column(String(150), nullable=False)
    slug = Column(String(170), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.unit_price) * self.quantity
