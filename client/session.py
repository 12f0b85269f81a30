"""
Client Auth Session
=====================
The one object that owns the caller's token and user. Set at login,
cleared at logout or when any API call is rejected as unauthorized.
The token is read from here and passed explicitly on every request.
"""

import logging
import threading
from typing import Optional, Dict, Any

logger = logging.getLogger("bookmart.client.session")


class AuthSession:

    def __init__(self):
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._user: Optional[Dict[str, Any]] = None

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    def set(self, token: str, user: Optional[Dict[str, Any]] = None) -> None:
        if not token:
            raise ValueError("token is required")
        with self._lock:
            self._token = token
            self._user = dict(user) if user else None
        logger.info(f"Session started for {self._describe()}")

    def clear(self, reason: str = "logout") -> None:
        with self._lock:
            if not self._token:
                return
            who = self._describe()
            self._token = None
            self._user = None
        logger.info(f"Session cleared for {who} ({reason})")

    def auth_headers(self) -> Dict[str, str]:
        token = self._token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _describe(self) -> str:
        if self._user:
            return self._user.get("username") or f"user #{self._user.get('id')}"
        return "anonymous"


# Process-wide session
session = AuthSession()
