"""
Checkout Service
=================
Coordinates the cart snapshot, order creation, the payment gateway
handshake and the purchase ledger. This is the one place where several
state changes must stay consistent:

    initiate_checkout → Order(pending) + payment request
    verify_payment / apply_callback → settle: Order completed → Purchases → cart cleared
                                           or Order cancelled/failed, cart intact

Settlement is a compare-and-swap on payment_status=pending, so a duplicate
verification finds nothing to settle. The settle steps share the caller's
database transaction; the route commits once.
"""

import logging
from typing import Dict, Any, Optional

from sqlalchemy.orm import Session

from config.settings import PAYMENT_GATEWAY
from common.exceptions import (
    ValidationError, EmptyCartError, NotFoundError, AlreadyProcessedError,
    AuthorizationError, PaymentError,
)
from common.helpers import now_utc, generate_transaction_id, to_decimal, money, isoformat
from modules.cart.service import cart_service
from modules.order.models import (
    Order, OrderStatus, PaymentStatus, PaymentMethod,
    ORDER_STATUSES, COD_PAYMENT_STATUS_MAP,
)
from modules.order.service import order_service
from modules.purchase.service import purchase_service

# Import gateway modules to trigger register_gateway() calls
from modules.payment.gateways import (  # noqa: F401
    BaseGateway, GatewayPaymentRequest, GatewayVerifyResult,
    get_gateway, get_all_gateway_names,
)
import modules.payment.gateways.simulated  # noqa: F401
import modules.payment.gateways.upi_http   # noqa: F401

logger = logging.getLogger("bookmart.checkout")


class CheckoutService:

    def __init__(self, gateway_name: str = PAYMENT_GATEWAY):
        self.gateway_name = gateway_name

    # ==========================================
    # 🔧 Gateway Selection
    # ==========================================

    def get_gateway(self) -> BaseGateway:
        gw = get_gateway(self.gateway_name)
        if not gw:
            raise PaymentError(
                f"Payment gateway '{self.gateway_name}' is not available "
                f"(registered: {', '.join(get_all_gateway_names())})"
            )
        return gw

    # ==========================================
    # 🛒 Initiate
    # ==========================================

    def initiate_checkout(
        self,
        db: Session,
        user,
        upi_id: Optional[str] = None,
        shipping_address: Optional[dict] = None,
    ) -> Dict[str, Any]:
        """
        Snapshot the cart into a pending UPI order and ask the gateway for a
        payable request. The cart is left as-is until payment is verified.

        Raises EmptyCartError, ValidationError (amount rejected by gateway).
        """
        cart_items = cart_service.list_items(db, user.id)
        if not cart_items:
            raise EmptyCartError()

        gw = self.get_gateway()
        order = order_service.create_from_cart(
            db, user.id, cart_items,
            payment_method=PaymentMethod.UPI.value,
            transaction_id=generate_transaction_id(),
            shipping_address=shipping_address,
            payer_upi_id=upi_id or None,
        )

        result = gw.create_payment(GatewayPaymentRequest(
            amount=order.total_amount,
            transaction_id=order.transaction_id,
            order_ref=str(order.id),
            note=f"Bookmart order #{order.id}",
            payer_name=user.username,
            payer_email=user.email,
            payer_upi_id=upi_id or "",
        ))
        if not result.success:
            logger.warning(f"Payment request rejected for order #{order.id}: {result.error_message}")
            raise ValidationError(result.error_message or "Invalid payment amount")

        order.payment_gateway = gw.label
        order_service.log_status_change(
            db, order.id, "status", None, OrderStatus.PENDING.value,
            changed_by=f"user:{user.id}", description="Checkout initiated",
        )
        db.flush()

        logger.info(f"Checkout initiated: order #{order.id}, txn {order.transaction_id}, amount {order.total_amount}")
        return {
            "success": True,
            "orderId": order.id,
            "transactionId": order.transaction_id,
            "paymentString": result.payment_string,
            "upiString": result.payment_string,
            "qrPayload": result.qr_payload,
            "amount": money(order.total_amount),
            "upiId": result.payee_id,
        }

    # ==========================================
    # ✅ Verify
    # ==========================================

    def verify_payment(self, db: Session, transaction_id: str, user_id: int) -> Dict[str, Any]:
        """
        Verify a pending payment with the gateway and settle the order.
        A declined payment is a normal return (success=False), not an error.

        Raises AlreadyProcessedError when there is no pending order for
        (transaction_id, user_id), including when a concurrent call settled it first.
        """
        if not transaction_id or not isinstance(transaction_id, str):
            raise ValidationError("Missing transactionId")

        order = order_service.get_pending_by_transaction(db, transaction_id, user_id)
        if not order:
            raise AlreadyProcessedError()

        outcome = self.get_gateway().verify_payment(transaction_id)
        if not self._settle(db, order, outcome, changed_by="gateway"):
            raise AlreadyProcessedError()

        if outcome.success:
            return {
                "success": True,
                "message": "Payment successful",
                "orderId": order.id,
                "transactionId": transaction_id,
                "gatewayTransactionId": outcome.gateway_transaction_id,
            }
        return {
            "success": False,
            "message": outcome.error_message or "Payment failed",
            "orderId": order.id,
            "transactionId": transaction_id,
        }

    def apply_callback(self, db: Session, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Gateway-initiated notification. Signature/shape problems raise
        GatewayError before any order is touched.
        """
        outcome = self.get_gateway().verify_callback(payload)

        order = order_service.get_pending_by_transaction(db, outcome.transaction_id)
        if not order or not self._settle(db, order, outcome, changed_by="gateway:callback"):
            logger.info(f"Callback for {outcome.transaction_id}: no pending order, ignored")
            return {"success": True, "processed": False, "transactionId": outcome.transaction_id}

        return {
            "success": True,
            "processed": True,
            "transactionId": outcome.transaction_id,
            "orderId": order.id,
            "paymentStatus": order.payment_status,
        }

    def _settle(self, db: Session, order: Order, outcome: GatewayVerifyResult, changed_by: str) -> bool:
        """
        Apply a settlement outcome to a pending order. Returns False if the
        order was no longer pending.

        Success: order completed → purchases recorded → cart cleared, in that order.
        Failure: order cancelled / payment failed; cart untouched.
        """
        if outcome.success:
            changed = order_service.transition_payment(db, order, {
                "payment_status": PaymentStatus.COMPLETED.value,
                "status": OrderStatus.COMPLETED.value,
                "gateway_transaction_id": outcome.gateway_transaction_id,
                "paid_at": outcome.payment_time or now_utc(),
            })
            if not changed:
                return False

            order_service.log_status_change(
                db, order.id, "payment_status",
                PaymentStatus.PENDING.value, PaymentStatus.COMPLETED.value,
                changed_by=changed_by, description=f"Gateway ref {outcome.gateway_transaction_id}",
            )
            purchase_service.record_order(db, order)
            cleared = cart_service.clear(db, order.user_id, book_ids=[oi.book_id for oi in order.items])
            logger.info(f"Order #{order.id} paid ({order.transaction_id}); {cleared} cart items cleared")
            return True

        changed = order_service.transition_payment(db, order, {
            "payment_status": PaymentStatus.FAILED.value,
            "status": OrderStatus.CANCELLED.value,
            "gateway_transaction_id": outcome.gateway_transaction_id,
            "cancellation_reason": outcome.error_message or "Payment failed",
            "cancelled_at": now_utc(),
        })
        if not changed:
            return False

        order_service.log_status_change(
            db, order.id, "payment_status",
            PaymentStatus.PENDING.value, PaymentStatus.FAILED.value,
            changed_by=changed_by, description=outcome.error_message,
        )
        logger.info(f"Order #{order.id} payment failed ({order.transaction_id}): {outcome.error_message}")
        return True

    # ==========================================
    # 🚚 Pay on delivery
    # ==========================================

    def place_cod_order(self, db: Session, user, shipping_address: Optional[dict] = None) -> Order:
        """Snapshot the cart into a pay-on-delivery order and empty the cart."""
        cart_items = cart_service.list_items(db, user.id)
        if not cart_items:
            raise EmptyCartError()

        order = order_service.create_from_cart(
            db, user.id, cart_items,
            payment_method=PaymentMethod.COD.value,
            transaction_id=generate_transaction_id(),
            shipping_address=shipping_address,
        )
        order_service.log_status_change(
            db, order.id, "status", None, OrderStatus.PENDING.value,
            changed_by=f"user:{user.id}", description="Pay-on-delivery order placed",
        )
        cart_service.clear(db, user.id)
        db.flush()
        return order

    # ==========================================
    # 🛠️ Admin: fulfillment status
    # ==========================================

    def update_order_status(self, db: Session, order_id: int, new_status: str, actor) -> Order:
        """
        Admin sets the fulfillment status. For pay-on-delivery orders the
        payment status follows it, and the first completed payment writes
        the purchase ledger. Prepaid orders keep their gateway payment status.
        """
        if not actor or not actor.is_admin:
            raise AuthorizationError("Access denied")
        if new_status not in ORDER_STATUSES:
            raise ValidationError("Invalid status")

        order = order_service.get_order_by_id(db, order_id)
        if not order:
            raise NotFoundError("Order not found")

        old_status = order.status
        old_payment = order.payment_status
        changed_by = f"admin:{actor.id}"

        order.status = new_status
        if order.is_cod:
            order.payment_status = COD_PAYMENT_STATUS_MAP[new_status]
            if order.payment_status == PaymentStatus.COMPLETED.value and not order.paid_at:
                order.paid_at = now_utc()
        if new_status == OrderStatus.CANCELLED.value and old_status != new_status:
            order.cancellation_reason = "Cancelled by admin"
            order.cancelled_at = now_utc()

        order_service.log_status_change(db, order.id, "status", old_status, new_status, changed_by)
        order_service.log_status_change(
            db, order.id, "payment_status", old_payment, order.payment_status, changed_by,
        )
        db.flush()

        if order.is_cod and order.payment_status == PaymentStatus.COMPLETED.value:
            purchase_service.record_order(db, order)

        logger.info(
            f"Order #{order.id} status {old_status} → {new_status} "
            f"(payment {old_payment} → {order.payment_status}) by admin #{actor.id}"
        )
        return order

    # ==========================================
    # 🔄 Refund
    # ==========================================

    def refund_order(
        self,
        db: Session,
        order_id,
        user,
        amount=None,
        reason: str = "",
    ) -> Dict[str, Any]:
        """
        Refund a paid UPI order through the gateway. Advisory only: the purchase
        ledger keeps its rows.

        The order row is locked and moved to refunded before the gateway is
        called, so a concurrent refund finds nothing eligible. A gateway
        rejection puts the order back as it was.
        """
        order = order_service.get_order_for_update(db, order_id) if order_id else None
        if (
            not order
            or order.is_cod
            or order.payment_status != PaymentStatus.COMPLETED.value
            or (order.user_id != user.id and not user.is_admin)
        ):
            raise NotFoundError("Order not found or not eligible for refund")

        if amount is None:
            refund_amount = order.total_amount
        else:
            refund_amount = to_decimal(amount)
            if refund_amount is None or refund_amount <= 0:
                raise ValidationError("Refund amount must be a positive number")
            if refund_amount > order.total_amount:
                raise ValidationError("Refund amount exceeds order total")

        old_status = order.status
        reserved = order_service.transition_payment(db, order, {
            "payment_status": PaymentStatus.REFUNDED.value,
            "status": OrderStatus.CANCELLED.value,
            "refund_amount": refund_amount,
            "refund_reason": reason or None,
            "refunded_at": now_utc(),
        }, expected_payment_status=PaymentStatus.COMPLETED.value)
        if not reserved:
            raise NotFoundError("Order not found or not eligible for refund")

        result = self.get_gateway().refund(order.transaction_id, refund_amount, reason)
        if not result.success:
            order_service.transition_payment(db, order, {
                "payment_status": PaymentStatus.COMPLETED.value,
                "status": old_status,
                "refund_amount": None,
                "refund_reason": None,
                "refunded_at": None,
            }, expected_payment_status=PaymentStatus.REFUNDED.value)
            logger.warning(f"Refund for order #{order.id} rejected: {result.error_message}")
            raise PaymentError(result.error_message or "Refund failed")

        order.refund_id = result.refund_id
        order.refund_amount = result.amount
        db.flush()

        order_service.log_status_change(
            db, order.id, "payment_status",
            PaymentStatus.COMPLETED.value, PaymentStatus.REFUNDED.value,
            changed_by=f"admin:{user.id}" if user.is_admin else f"user:{user.id}",
            description=reason or "Refund",
        )
        logger.info(f"Order #{order.id} refunded {result.amount} ({result.refund_id})")
        return {
            "success": True,
            "refundId": result.refund_id,
            "amount": money(result.amount),
            "status": result.status,
        }

    # ==========================================
    # 🔎 Status
    # ==========================================

    def get_payment_status(self, db: Session, transaction_id: str, user_id: int) -> Dict[str, Any]:
        order = order_service.get_by_transaction(db, transaction_id, user_id)
        if not order:
            raise NotFoundError("Order not found")
        return {
            "transactionId": transaction_id,
            "orderId": order.id,
            "paymentStatus": order.payment_status,
            "orderStatus": order.status,
            "amount": money(order.total_amount),
            "createdAt": isoformat(order.created_at),
        }


# Singleton
checkout_service = CheckoutService()
