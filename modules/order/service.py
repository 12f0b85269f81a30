"""
Order Module - Service Layer
===============================
Order creation from a cart snapshot, conditional status transitions,
status audit log, queries, expiration cleanup.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional, Dict, Any

from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc

from common.helpers import now_utc, money, isoformat
from config.settings import PENDING_ORDER_EXPIRE_MINUTES
from modules.cart.models import CartItem
from modules.order.models import (
    Order, OrderItem, OrderStatusLog, OrderStatus, PaymentStatus, PaymentMethod,
)

logger = logging.getLogger("bookmart.order")


def build_order_item(item: CartItem) -> OrderItem:
    """Copy a cart row into an independent order line."""
    return OrderItem(
        book_id=item.book_id,
        title=item.title,
        author=item.author or "",
        price=item.price,
        image_url=item.image_url or "",
    )


def serialize_order(order: Order, include_user: bool = False) -> Dict[str, Any]:
    data = {
        "id": order.id,
        "userId": order.user_id,
        "items": [
            {
                "bookId": oi.book_id,
                "title": oi.title,
                "author": oi.author,
                "price": money(oi.price),
                "imageUrl": oi.image_url,
            }
            for oi in order.items
        ],
        "totalAmount": money(order.total_amount),
        "status": order.status,
        "paymentMethod": order.payment_method,
        "paymentStatus": order.payment_status,
        "transactionId": order.transaction_id,
        "gatewayTransactionId": order.gateway_transaction_id,
        "paymentDetails": {
            "upiId": order.payer_upi_id,
            "paymentGateway": order.payment_gateway,
            "paymentTime": isoformat(order.paid_at),
        },
        "address": order.shipping_address or {},
        "createdAt": isoformat(order.created_at),
    }
    if order.refund_id:
        data["refund"] = {
            "refundId": order.refund_id,
            "amount": money(order.refund_amount),
            "reason": order.refund_reason,
            "refundedAt": isoformat(order.refunded_at),
        }
    if include_user:
        data["user"] = order.user.to_public() if order.user else None
    return data


class OrderService:

    # ==========================================
    # Create
    # ==========================================

    def create_from_cart(
        self,
        db: Session,
        user_id: int,
        cart_items: List[CartItem],
        payment_method: str,
        transaction_id: str,
        shipping_address: Optional[dict] = None,
        payer_upi_id: Optional[str] = None,
    ) -> Order:
        """
        The only writer of Order.total_amount: snapshot every cart row into an
        OrderItem and sum the snapshot prices. Returns a Pending order.
        """
        order_items = [build_order_item(ci) for ci in cart_items]
        total = sum((oi.price for oi in order_items), Decimal("0.00"))

        order = Order(
            user_id=user_id,
            total_amount=total,
            status=OrderStatus.PENDING.value,
            payment_method=payment_method,
            payment_status=PaymentStatus.PENDING.value,
            transaction_id=transaction_id,
            payer_upi_id=payer_upi_id,
            shipping_address=shipping_address or None,
            items=order_items,
        )
        db.add(order)
        db.flush()

        logger.info(
            f"Order #{order.id} created for user #{user_id}: "
            f"{len(order_items)} items, total {total}, {payment_method}, txn {transaction_id}"
        )
        return order

    # ==========================================
    # Conditional transitions
    # ==========================================

    def transition_payment(
        self,
        db: Session,
        order: Order,
        values: Dict[str, Any],
        expected_payment_status: str = PaymentStatus.PENDING.value,
    ) -> bool:
        """
        Compare-and-swap: apply `values` only while the row still has the
        expected payment status. Returns False when another caller got there first.
        """
        rowcount = (
            db.query(Order)
            .filter(Order.id == order.id, Order.payment_status == expected_payment_status)
            .update(values, synchronize_session="fetch")
        )
        if rowcount == 0:
            return False
        db.flush()
        db.refresh(order)
        return True

    def log_status_change(
        self,
        db: Session,
        order_id: int,
        field: str,
        old_value: Optional[str],
        new_value: Optional[str],
        changed_by: str,
        description: str = "",
    ) -> None:
        if old_value == new_value:
            return
        db.add(OrderStatusLog(
            order_id=order_id,
            field=field,
            old_value=old_value,
            new_value=new_value,
            changed_by=changed_by,
            description=description or None,
        ))

    # ==========================================
    # Expiration Cleanup
    # ==========================================

    def expire_stale_orders(self, db: Session, minutes: int = PENDING_ORDER_EXPIRE_MINUTES) -> int:
        """Cancel prepaid orders that were never verified. Cart contents are left alone."""
        cutoff = now_utc() - timedelta(minutes=minutes)
        stale = (
            db.query(Order)
            .filter(
                Order.payment_method == PaymentMethod.UPI.value,
                Order.payment_status == PaymentStatus.PENDING.value,
                Order.created_at < cutoff,
            )
            .all()
        )

        count = 0
        reason = f"Payment not verified within {minutes} minutes"
        for order in stale:
            changed = self.transition_payment(db, order, {
                "payment_status": PaymentStatus.FAILED.value,
                "status": OrderStatus.CANCELLED.value,
                "cancellation_reason": reason,
                "cancelled_at": now_utc(),
            })
            if not changed:
                continue
            self.log_status_change(
                db, order.id, "payment_status",
                PaymentStatus.PENDING.value, PaymentStatus.FAILED.value,
                changed_by="system", description=reason,
            )
            count += 1

        if count:
            db.flush()
            logger.info(f"Expired {count} unverified orders")
        return count

    # ==========================================
    # Query
    # ==========================================

    def get_order_by_id(self, db: Session, order_id: int) -> Optional[Order]:
        return db.query(Order).filter(Order.id == order_id).first()

    def get_order_for_update(self, db: Session, order_id: int) -> Optional[Order]:
        """Load with a row lock held until the caller commits or rolls back."""
        return db.query(Order).filter(Order.id == order_id).with_for_update().first()

    def get_pending_by_transaction(
        self, db: Session, transaction_id: str, user_id: Optional[int] = None,
    ) -> Optional[Order]:
        """Pending gateway-paid order. Pay-on-delivery orders are settled by admin only."""
        q = db.query(Order).filter(
            Order.transaction_id == transaction_id,
            Order.payment_status == PaymentStatus.PENDING.value,
            Order.payment_method == PaymentMethod.UPI.value,
        )
        if user_id is not None:
            q = q.filter(Order.user_id == user_id)
        return q.first()

    def get_by_transaction(self, db: Session, transaction_id: str, user_id: int) -> Optional[Order]:
        return db.query(Order).filter(
            Order.transaction_id == transaction_id,
            Order.user_id == user_id,
        ).first()

    def get_user_orders(self, db: Session, user_id: int) -> List[Order]:
        return (
            db.query(Order)
            .options(joinedload(Order.user))
            .filter(Order.user_id == user_id)
            .order_by(desc(Order.created_at), desc(Order.id))
            .all()
        )

    def get_all_orders(self, db: Session, status: Optional[str] = None) -> List[Order]:
        q = db.query(Order).options(joinedload(Order.user)).order_by(desc(Order.created_at), desc(Order.id))
        if status:
            q = q.filter(Order.status == status)
        return q.all()


# Singleton
order_service = OrderService()
