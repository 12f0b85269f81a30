"""
Cart Module - Models
=====================
One row per (user, book) while unpurchased. Fields are copied from the
external catalog at "add to cart" time.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, Numeric, ForeignKey, DateTime,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = Column(String, nullable=False)          # external catalog volume id
    title = Column(String, nullable=False)
    author = Column(String, default="", nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    image_url = Column(String, default="", nullable=False)
    purchased = Column(Boolean, default=False, server_default="false", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("user_id", "book_id", "purchased", name="uq_cart_user_book"),
        CheckConstraint("price >= 0", name="ck_cart_price"),
    )
