"""
Order Module - Models
======================
Order with full item snapshot for audit trail, plus a status change log.
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Numeric, Text, JSON,
    ForeignKey, DateTime,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    UPI = "upi"    # prepaid through the payment gateway
    COD = "cod"    # paid on fulfillment, settled by admin


ORDER_STATUSES = [s.value for s in OrderStatus]

# Admin fulfillment decision → payment bookkeeping for pay-on-fulfillment orders
COD_PAYMENT_STATUS_MAP = {
    OrderStatus.PENDING.value: PaymentStatus.PENDING.value,
    OrderStatus.COMPLETED.value: PaymentStatus.COMPLETED.value,
    OrderStatus.CANCELLED.value: PaymentStatus.FAILED.value,
}


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String, default=OrderStatus.PENDING.value, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Payment
    payment_method = Column(String, default=PaymentMethod.UPI.value, nullable=False)
    payment_status = Column(String, default=PaymentStatus.PENDING.value, nullable=False, index=True)
    transaction_id = Column(String, unique=True, nullable=False, index=True)
    gateway_transaction_id = Column(String, nullable=True)
    payment_gateway = Column(String, nullable=True)
    payer_upi_id = Column(String, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    # Shipping
    shipping_address = Column(JSON, nullable=True)

    # Cancellation
    cancellation_reason = Column(String, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Refund
    refund_id = Column(String, nullable=True)
    refund_amount = Column(Numeric(12, 2), nullable=True)
    refund_reason = Column(Text, nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    items = relationship(
        "OrderItem", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderItem.id",
    )
    status_logs = relationship(
        "OrderStatusLog", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderStatusLog.id",
    )

    @property
    def is_cod(self) -> bool:
        return self.payment_method == PaymentMethod.COD.value


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    # Snapshot at time of checkout
    book_id = Column(String, nullable=False)
    title = Column(String, nullable=False)
    author = Column(String, default="", nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    image_url = Column(String, default="", nullable=False)

    order = relationship("Order", back_populates="items")


class OrderStatusLog(Base):
    __tablename__ = "order_status_logs"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    field = Column(String, nullable=False)           # status / payment_status
    old_value = Column(String, nullable=True)
    new_value = Column(String, nullable=True)
    changed_by = Column(String, nullable=False)      # user / admin:<id> / gateway / system
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="status_logs")
