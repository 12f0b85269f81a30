"""
Payment Gateway Abstraction
=============================
Each gateway implements create_payment(), verify_payment(), refund() and
verify_callback(). Registry pattern for gateway lookup by name; the active
gateway is chosen by the PAYMENT_GATEWAY setting.
"""

import logging
from decimal import Decimal
from typing import Dict, Any, Optional, List
from dataclasses import dataclass
from datetime import datetime, timezone

from common.exceptions import GatewayError
from common.helpers import to_decimal, safe_int
from common.security import verify_signature
from config.settings import UPI_CALLBACK_SECRET

logger = logging.getLogger("bookmart.gateway")

SETTLEMENT_COMPLETED = "completed"
SETTLEMENT_FAILED = "failed"

_CALLBACK_STATUS_MAP = {
    "completed": SETTLEMENT_COMPLETED,
    "success": SETTLEMENT_COMPLETED,
    "failed": SETTLEMENT_FAILED,
    "failure": SETTLEMENT_FAILED,
}


@dataclass
class GatewayPaymentRequest:
    """Input for creating a payment."""
    amount: Any
    transaction_id: str
    order_ref: str          # order id as string
    note: str = ""
    payer_name: str = ""
    payer_email: str = ""
    payer_upi_id: str = ""


@dataclass
class GatewayCreateResult:
    """Result of create_payment()."""
    success: bool
    transaction_id: Optional[str] = None
    payment_string: Optional[str] = None
    qr_payload: Optional[str] = None
    payee_id: Optional[str] = None
    amount: Optional[Decimal] = None
    error_message: Optional[str] = None


@dataclass
class GatewayVerifyResult:
    """Settlement outcome of verify_payment() / verify_callback()."""
    success: bool
    status: str = SETTLEMENT_FAILED
    transaction_id: Optional[str] = None
    gateway_transaction_id: Optional[str] = None
    payment_time: Optional[datetime] = None
    error_message: Optional[str] = None


@dataclass
class GatewayRefundResult:
    """Result of refund()."""
    success: bool
    refund_id: Optional[str] = None
    amount: Optional[Decimal] = None
    status: Optional[str] = None
    error_message: Optional[str] = None


class BaseGateway:
    """Abstract gateway interface."""
    name: str = ""
    label: str = ""

    def create_payment(self, req: GatewayPaymentRequest) -> GatewayCreateResult:
        raise NotImplementedError

    def verify_payment(self, transaction_id: str) -> GatewayVerifyResult:
        raise NotImplementedError

    def refund(self, transaction_id: str, amount: Decimal, reason: str = "") -> GatewayRefundResult:
        raise NotImplementedError

    def verify_callback(self, payload: Dict[str, Any]) -> GatewayVerifyResult:
        """
        Validate an asynchronous gateway notification.

        Expected payload: transactionId, status, gatewayTransactionId,
        signature (hex HMAC-SHA256 of "transactionId|status|gatewayTransactionId"),
        optional paymentTime (epoch seconds).

        Raises GatewayError on malformed payload or bad signature.
        """
        if not isinstance(payload, dict):
            raise GatewayError("Malformed callback payload")

        transaction_id = payload.get("transactionId")
        raw_status = payload.get("status")
        gateway_txn = payload.get("gatewayTransactionId") or ""
        signature = payload.get("signature")

        if not transaction_id or not isinstance(transaction_id, str) or not isinstance(raw_status, str):
            raise GatewayError("Malformed callback payload")
        if not isinstance(gateway_txn, str):
            raise GatewayError("Malformed callback payload")
        if not isinstance(signature, str):
            raise GatewayError("Invalid callback signature")

        status = _CALLBACK_STATUS_MAP.get(raw_status.lower())
        if not status:
            raise GatewayError(f"Unknown callback status: {raw_status}")

        message = f"{transaction_id}|{raw_status}|{gateway_txn}"
        if not verify_signature(UPI_CALLBACK_SECRET, message, signature):
            logger.warning(f"Rejected callback with bad signature [{transaction_id}]")
            raise GatewayError("Invalid callback signature")

        payment_time = None
        ts = safe_int(payload.get("paymentTime"))
        if ts:
            payment_time = datetime.fromtimestamp(ts, tz=timezone.utc)

        return GatewayVerifyResult(
            success=status == SETTLEMENT_COMPLETED,
            status=status,
            transaction_id=transaction_id,
            gateway_transaction_id=gateway_txn or None,
            payment_time=payment_time,
            error_message=None if status == SETTLEMENT_COMPLETED else "Payment failed",
        )


def validate_amount(amount) -> Optional[Decimal]:
    """Positive Decimal amount or None."""
    value = to_decimal(amount)
    if value is None or value <= 0:
        return None
    return value


# ── Registry ──

_GATEWAYS: Dict[str, BaseGateway] = {}


def register_gateway(gw: BaseGateway):
    _GATEWAYS[gw.name] = gw


def get_gateway(name: str) -> Optional[BaseGateway]:
    return _GATEWAYS.get(name)


def get_all_gateway_names() -> List[str]:
    return list(_GATEWAYS.keys())
