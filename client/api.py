"""
Bookmart API Client
=====================
Thin wrapper over httpx.Client for the cart, checkout, order and report
endpoints. Every call carries the bearer token from the AuthSession it
was given; a 401/403 from any call clears that session.
"""

import logging
from typing import Optional, Dict, Any, List

import httpx

from client.session import AuthSession, session as default_session

logger = logging.getLogger("bookmart.client")


class BookmartAPIError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


class SessionExpiredError(BookmartAPIError):
    """The server rejected the session's credentials; the session was cleared."""


class BookmartClient:

    def __init__(
        self,
        base_url: str,
        session: Optional[AuthSession] = None,
        timeout: float = 30,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.session = session or default_session
        self._http = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ==========================================
    # Transport
    # ==========================================

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = dict(kwargs.pop("headers", None) or {})
        headers.update(self.session.auth_headers())
        resp = self._http.request(method, path, headers=headers, **kwargs)

        if resp.status_code in (401, 403):
            detail = self._detail(resp)
            self.session.clear(reason=f"{resp.status_code} on {method} {path}")
            raise SessionExpiredError(resp.status_code, detail)
        if resp.status_code >= 400:
            raise BookmartAPIError(resp.status_code, self._detail(resp))
        return resp.json() if resp.content else None

    @staticmethod
    def _detail(resp: httpx.Response) -> str:
        try:
            return resp.json().get("detail") or resp.reason_phrase
        except (ValueError, AttributeError):
            return resp.text or resp.reason_phrase

    # ==========================================
    # Cart
    # ==========================================

    def add_to_cart(self, book_id: str, title: str, price, author: str = "", image_url: str = "") -> Dict[str, Any]:
        return self._request("POST", "/api/cart/add", json={
            "bookId": book_id, "title": title, "price": price,
            "author": author, "imageUrl": image_url,
        })["item"]

    def get_cart(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/cart")["items"]

    def remove_from_cart(self, item_id: int) -> None:
        self._request("DELETE", f"/api/cart/{item_id}")

    # ==========================================
    # Checkout
    # ==========================================

    def initiate_payment(self, upi_id: Optional[str] = None, address: Optional[dict] = None) -> Dict[str, Any]:
        return self._request("POST", "/api/payments/upi/initiate", json={"upiId": upi_id, "address": address})

    def verify_payment(self, transaction_id: str) -> Dict[str, Any]:
        return self._request("POST", "/api/payments/upi/verify", json={"transactionId": transaction_id})

    def payment_status(self, transaction_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/payments/status/{transaction_id}")

    def refund(self, order_id: int, amount=None, reason: str = "") -> Dict[str, Any]:
        return self._request("POST", "/api/payments/refund", json={
            "orderId": order_id, "amount": amount, "reason": reason,
        })

    def place_cod_order(self, address: Optional[dict] = None) -> Dict[str, Any]:
        return self._request("POST", "/api/orders", json={"address": address})["order"]

    # ==========================================
    # Orders & reports
    # ==========================================

    def user_orders(self, user_id: int) -> List[Dict[str, Any]]:
        return self._request("GET", f"/api/orders/user/{user_id}")

    def admin_orders(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"status": status} if status else None
        return self._request("GET", "/api/orders/admin", params=params)

    def update_order_status(self, order_id: int, status: str) -> Dict[str, Any]:
        return self._request("PUT", f"/api/orders/{order_id}/status", json={"status": status})["order"]

    def purchase_history(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/purchases/history")["history"]

    def purchase_stats(self) -> Dict[str, Any]:
        return self._request("GET", "/api/purchases/stats")["stats"]

    def top_selling(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/reports/top-selling", params={"limit": limit})["books"]
