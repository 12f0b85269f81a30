"""
Simulated UPI Gateway
======================
Stand-in for a real UPI provider. Settles after a short delay with a
configurable success probability. Refunds are always accepted.
"""

import time
import random
import logging
from decimal import Decimal

from config.settings import (
    UPI_PAYEE_ID, UPI_PAYEE_NAME,
    UPI_SIMULATED_SUCCESS_RATE, UPI_SIMULATED_DELAY_SECONDS,
)
from common.helpers import now_utc, generate_reference
from modules.payment.upi import build_upi_string, generate_qr_data_uri
from modules.payment.gateways import (
    BaseGateway, GatewayPaymentRequest, GatewayCreateResult,
    GatewayVerifyResult, GatewayRefundResult, register_gateway, validate_amount,
    SETTLEMENT_COMPLETED, SETTLEMENT_FAILED,
)

logger = logging.getLogger("bookmart.gateway.simulated")


class SimulatedUpiGateway(BaseGateway):
    name = "simulated"
    label = "UPI (simulated)"

    def __init__(
        self,
        success_rate: float = UPI_SIMULATED_SUCCESS_RATE,
        delay_seconds: float = UPI_SIMULATED_DELAY_SECONDS,
        payee_id: str = UPI_PAYEE_ID,
        payee_name: str = UPI_PAYEE_NAME,
        rng: random.Random = None,
    ):
        self.success_rate = success_rate
        self.delay_seconds = delay_seconds
        self.payee_id = payee_id
        self.payee_name = payee_name
        self.rng = rng or random.Random()

    def create_payment(self, req: GatewayPaymentRequest) -> GatewayCreateResult:
        amount = validate_amount(req.amount)
        if amount is None:
            return GatewayCreateResult(success=False, error_message="Invalid payment amount")

        note = req.note or f"Bookmart order {req.order_ref}"
        upi_string = build_upi_string(self.payee_id, self.payee_name, amount, req.transaction_id, note)
        logger.info(f"Simulated create [{req.transaction_id}]: {amount} for order {req.order_ref}")

        return GatewayCreateResult(
            success=True,
            transaction_id=req.transaction_id,
            payment_string=upi_string,
            qr_payload=generate_qr_data_uri(upi_string),
            payee_id=self.payee_id,
            amount=amount,
        )

    def verify_payment(self, transaction_id: str) -> GatewayVerifyResult:
        if self.delay_seconds > 0:
            time.sleep(self.delay_seconds)

        succeeded = self.rng.random() < self.success_rate
        gateway_txn = generate_reference("UPI")
        logger.info(f"Simulated verify [{transaction_id}]: {'completed' if succeeded else 'failed'} ({gateway_txn})")

        if succeeded:
            return GatewayVerifyResult(
                success=True,
                status=SETTLEMENT_COMPLETED,
                transaction_id=transaction_id,
                gateway_transaction_id=gateway_txn,
                payment_time=now_utc(),
            )
        return GatewayVerifyResult(
            success=False,
            status=SETTLEMENT_FAILED,
            transaction_id=transaction_id,
            gateway_transaction_id=gateway_txn,
            payment_time=now_utc(),
            error_message="Payment declined",
        )

    def refund(self, transaction_id: str, amount: Decimal, reason: str = "") -> GatewayRefundResult:
        refund_id = generate_reference("REF")
        logger.info(f"Simulated refund [{transaction_id}]: {amount} → {refund_id} ({reason or 'no reason'})")
        return GatewayRefundResult(
            success=True,
            refund_id=refund_id,
            amount=amount,
            status="processed",
        )


register_gateway(SimulatedUpiGateway())
