"""
Bookmart - Security Utilities
==============================
Bearer JWT tokens and HMAC signatures for gateway notifications.

NOTE: Tokens are issued by the external auth service; this module only
needs to decode them. create_token() is kept for tooling and tests.
"""

import hmac
import hashlib
import logging
from datetime import timedelta
from typing import Optional

from jose import jwt, JWTError

from config.settings import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from common.helpers import now_utc

logger = logging.getLogger("bookmart.security")


# ==========================================
# JWT Tokens
# ==========================================

def create_token(data: dict) -> str:
    """Create JWT token. Expected claims: userId, role."""
    to_encode = data.copy()
    to_encode["exp"] = now_utc() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode a JWT token. Returns payload or None."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an 'Authorization: Bearer <token>' header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


# ==========================================
# HMAC Signatures
# ==========================================

def sign_message(secret: str, message: str) -> str:
    """Hex HMAC-SHA256 of message."""
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(secret: str, message: str, signature: str) -> bool:
    if not secret or not signature or not isinstance(signature, str):
        return False
    return hmac.compare_digest(
        sign_message(secret, message).encode("utf-8"),
        signature.encode("utf-8"),
    )
