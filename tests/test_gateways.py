import random
from decimal import Decimal
from urllib.parse import urlparse, parse_qs

import httpx
import pytest

from common.exceptions import GatewayError
from common.security import sign_message
from modules.payment.gateways import GatewayPaymentRequest, get_gateway, SETTLEMENT_COMPLETED
from modules.payment.gateways.simulated import SimulatedUpiGateway
from modules.payment.gateways.upi_http import UpiHttpGateway
from modules.payment.upi import build_upi_string


def _request(amount, txn="TXN1"):
    return GatewayPaymentRequest(amount=amount, transaction_id=txn, order_ref="7", note="Bookmart order #7")


def test_builtin_gateways_are_registered():
    assert isinstance(get_gateway("simulated"), SimulatedUpiGateway)
    assert isinstance(get_gateway("upi_http"), UpiHttpGateway)


def test_upi_string_fields():
    upi = build_upi_string("shop@upi", "Book Shop", Decimal("350"), "TXN42", "Order #7")
    parsed = urlparse(upi)
    query = parse_qs(parsed.query)

    assert parsed.scheme == "upi" and parsed.netloc == "pay"
    assert query == {
        "pa": ["shop@upi"], "pn": ["Book Shop"], "am": ["350.00"],
        "cu": ["INR"], "tr": ["TXN42"], "tn": ["Order #7"],
    }
    assert "pa=shop@upi" in upi
    assert "pn=Book%20Shop" in upi


# ==========================================
# Simulated
# ==========================================

def test_simulated_create_payment():
    gw = SimulatedUpiGateway(delay_seconds=0, payee_id="shop@upi")
    result = gw.create_payment(_request(350))

    assert result.success is True
    assert result.transaction_id == "TXN1"
    assert result.payee_id == "shop@upi"
    assert result.amount == Decimal("350.00")
    assert result.qr_payload.startswith("data:image/png;base64,")


@pytest.mark.parametrize("amount", [0, -5, "350", None, True])
def test_simulated_rejects_invalid_amount(amount):
    result = SimulatedUpiGateway(delay_seconds=0).create_payment(_request(amount))
    assert result.success is False
    assert result.error_message


def test_simulated_verify_follows_success_rate():
    gw = SimulatedUpiGateway(success_rate=0.5, delay_seconds=0, rng=random.Random(1))
    outcomes = [gw.verify_payment(f"TXN{n}").success for n in range(200)]

    assert 60 < sum(outcomes) < 140
    assert all(SimulatedUpiGateway(success_rate=1.0, delay_seconds=0).verify_payment("T").success for _ in range(5))
    assert not any(SimulatedUpiGateway(success_rate=0.0, delay_seconds=0).verify_payment("T").success for _ in range(5))


def test_simulated_refund():
    result = SimulatedUpiGateway(delay_seconds=0).refund("TXN1", Decimal("10.00"), "duplicate")
    assert result.success is True
    assert result.refund_id.startswith("REF")
    assert result.amount == Decimal("10.00")


# ==========================================
# Callback verification
# ==========================================

def _payload(status="SUCCESS", **overrides):
    data = {"transactionId": "TXN9", "status": status, "gatewayTransactionId": "GW9"}
    data["signature"] = sign_message("test-callback-secret", f"TXN9|{status}|GW9")
    data.update(overrides)
    return data


def test_callback_accepts_signed_payload():
    outcome = SimulatedUpiGateway().verify_callback(_payload(paymentTime=1700000000))

    assert outcome.success is True
    assert outcome.status == SETTLEMENT_COMPLETED
    assert outcome.transaction_id == "TXN9"
    assert outcome.gateway_transaction_id == "GW9"
    assert outcome.payment_time.year == 2023


@pytest.mark.parametrize("payload", [
    None,
    {},
    {"transactionId": "TXN9"},
    _payload(signature="deadbeef"),
    _payload(signature=12345),
    _payload(signature="\u00e9" * 64),
    _payload(signature=None),
    _payload(gatewayTransactionId="GW-other"),
    _payload(status="PENDING"),
])
def test_callback_rejects_bad_payload(payload):
    with pytest.raises(GatewayError):
        SimulatedUpiGateway().verify_callback(payload)


# ==========================================
# UPI over HTTP
# ==========================================

def _patch_post(monkeypatch, handler):
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append((url, json, headers))
        return handler(url, json)

    monkeypatch.setattr(httpx, "post", fake_post)
    return calls


def test_http_verify_success(monkeypatch):
    calls = _patch_post(monkeypatch, lambda url, body: httpx.Response(200, json={
        "status": "SUCCESS", "gatewayTransactionId": "RRN77", "paymentTime": "2024-05-01T10:00:00Z",
    }))
    gw = UpiHttpGateway(base_url="https://upi.example.test/", merchant_id="M1", api_key="k")

    outcome = gw.verify_payment("TXN1")

    assert outcome.success is True
    assert outcome.gateway_transaction_id == "RRN77"
    assert outcome.payment_time.month == 5
    url, body, headers = calls[0]
    assert url == "https://upi.example.test/v1/transactions/verify"
    assert body == {"merchantId": "M1", "transactionId": "TXN1"}
    assert headers["Authorization"] == "Bearer k"


def test_http_verify_declined(monkeypatch):
    _patch_post(monkeypatch, lambda url, body: httpx.Response(200, json={"status": "FAILED", "message": "Insufficient funds"}))

    outcome = UpiHttpGateway(base_url="https://upi.example.test").verify_payment("TXN1")

    assert outcome.success is False
    assert outcome.error_message == "Insufficient funds"


def test_http_verify_timeout_is_a_failed_settlement(monkeypatch):
    def boom(url, body):
        raise httpx.ReadTimeout("slow")

    _patch_post(monkeypatch, boom)

    outcome = UpiHttpGateway(base_url="https://upi.example.test").verify_payment("TXN1")

    assert outcome.success is False
    assert outcome.error_message == "Gateway did not respond"


def test_http_refund(monkeypatch):
    calls = _patch_post(monkeypatch, lambda url, body: httpx.Response(200, json={"refundId": "R1", "status": "PROCESSED"}))

    result = UpiHttpGateway(base_url="https://upi.example.test").refund("TXN1", Decimal("25.5"), "late")

    assert result.success is True
    assert result.refund_id == "R1"
    assert result.status == "processed"
    assert calls[0][1]["amount"] == "25.50"


def test_http_refund_rejected(monkeypatch):
    _patch_post(monkeypatch, lambda url, body: httpx.Response(400, json={"message": "Not refundable"}))

    result = UpiHttpGateway(base_url="https://upi.example.test").refund("TXN1", Decimal("1"))

    assert result.success is False
    assert result.error_message == "Not refundable"
