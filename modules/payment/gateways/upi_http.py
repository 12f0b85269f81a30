"""
UPI HTTP Gateway
=================
REST/JSON integration with a UPI aggregator. The intent string and QR are
built locally; verification and refunds call the aggregator's API.
Transport errors are reported as a failed settlement, never raised.
"""

import httpx
import logging
from decimal import Decimal
from datetime import datetime, timezone

from config.settings import (
    UPI_GATEWAY_URL, UPI_MERCHANT_ID, UPI_API_KEY, UPI_GATEWAY_TIMEOUT,
    UPI_PAYEE_ID, UPI_PAYEE_NAME,
)
from common.helpers import now_utc
from modules.payment.upi import build_upi_string, generate_qr_data_uri
from modules.payment.gateways import (
    BaseGateway, GatewayPaymentRequest, GatewayCreateResult,
    GatewayVerifyResult, GatewayRefundResult, register_gateway, validate_amount,
    SETTLEMENT_COMPLETED, SETTLEMENT_FAILED,
)

logger = logging.getLogger("bookmart.gateway.upi_http")

SUCCESS_STATUSES = {"SUCCESS", "COMPLETED"}


def _parse_time(value) -> datetime:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return now_utc()


class UpiHttpGateway(BaseGateway):
    name = "upi_http"
    label = "UPI"

    def __init__(
        self,
        base_url: str = UPI_GATEWAY_URL,
        merchant_id: str = UPI_MERCHANT_ID,
        api_key: str = UPI_API_KEY,
        timeout: float = UPI_GATEWAY_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.merchant_id = merchant_id
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}", "X-Merchant-Id": self.merchant_id}

    def create_payment(self, req: GatewayPaymentRequest) -> GatewayCreateResult:
        amount = validate_amount(req.amount)
        if amount is None:
            return GatewayCreateResult(success=False, error_message="Invalid payment amount")

        note = req.note or f"Bookmart order {req.order_ref}"
        upi_string = build_upi_string(UPI_PAYEE_ID, UPI_PAYEE_NAME, amount, req.transaction_id, note)
        return GatewayCreateResult(
            success=True,
            transaction_id=req.transaction_id,
            payment_string=upi_string,
            qr_payload=generate_qr_data_uri(upi_string),
            payee_id=UPI_PAYEE_ID,
            amount=amount,
        )

    def verify_payment(self, transaction_id: str) -> GatewayVerifyResult:
        try:
            resp = httpx.post(f"{self.base_url}/v1/transactions/verify", json={
                "merchantId": self.merchant_id,
                "transactionId": transaction_id,
            }, headers=self._headers(), timeout=self.timeout)
            data = resp.json()
            logger.info(f"UPI verify [{transaction_id}]: {data}")
        except httpx.TimeoutException:
            logger.warning(f"UPI verify timed out [{transaction_id}]")
            return GatewayVerifyResult(
                success=False, status=SETTLEMENT_FAILED, transaction_id=transaction_id,
                error_message="Gateway did not respond",
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"UPI verify failed [{transaction_id}]: {e}")
            return GatewayVerifyResult(
                success=False, status=SETTLEMENT_FAILED, transaction_id=transaction_id,
                error_message=f"Gateway error: {e}",
            )

        status = str(data.get("status", "")).upper()
        gateway_txn = data.get("gatewayTransactionId") or data.get("rrn")
        if status in SUCCESS_STATUSES:
            return GatewayVerifyResult(
                success=True,
                status=SETTLEMENT_COMPLETED,
                transaction_id=transaction_id,
                gateway_transaction_id=str(gateway_txn) if gateway_txn else None,
                payment_time=_parse_time(data.get("paymentTime")),
            )
        return GatewayVerifyResult(
            success=False,
            status=SETTLEMENT_FAILED,
            transaction_id=transaction_id,
            gateway_transaction_id=str(gateway_txn) if gateway_txn else None,
            error_message=data.get("message") or f"Transaction {status.lower() or 'failed'}",
        )

    def refund(self, transaction_id: str, amount: Decimal, reason: str = "") -> GatewayRefundResult:
        try:
            resp = httpx.post(f"{self.base_url}/v1/refunds", json={
                "merchantId": self.merchant_id,
                "transactionId": transaction_id,
                "amount": f"{amount:.2f}",
                "reason": reason or "",
            }, headers=self._headers(), timeout=self.timeout)
            data = resp.json()
            logger.info(f"UPI refund [{transaction_id}]: {data}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"UPI refund failed [{transaction_id}]: {e}")
            return GatewayRefundResult(success=False, error_message=f"Gateway error: {e}")

        refund_id = data.get("refundId")
        if not refund_id:
            return GatewayRefundResult(
                success=False,
                error_message=data.get("message") or "Refund rejected by gateway",
            )
        return GatewayRefundResult(
            success=True,
            refund_id=str(refund_id),
            amount=amount,
            status=str(data.get("status", "processing")).lower(),
        )


register_gateway(UpiHttpGateway())
