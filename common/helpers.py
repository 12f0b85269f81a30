"""
Bookmart - Shared Helpers
==========================
Pure utility functions with NO database or module dependencies.
"""

import secrets
import string
import time
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional


def now_utc() -> datetime:
    """Returns current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def safe_int(value) -> Optional[int]:
    """Safely convert a value to int. Returns None on failure."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        return None


def to_decimal(value) -> Optional[Decimal]:
    """Convert a JSON number to Decimal. Returns None for anything else (bools included)."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    return d.quantize(Decimal("0.01"))


def money(value) -> float:
    """Decimal → float for JSON responses."""
    if value is None:
        return 0.0
    return float(value)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    value = ensure_utc(value)
    return value.isoformat() if value else None


# ==========================================
# Reference Generators
# ==========================================

_REF_ALPHABET = string.ascii_uppercase + string.digits


def random_suffix(length: int = 5) -> str:
    return "".join(secrets.choice(_REF_ALPHABET) for _ in range(length))


def generate_reference(prefix: str, suffix_length: int = 5) -> str:
    """Time-ordered, collision-resistant reference: PREFIX + epoch millis + random suffix."""
    return f"{prefix}{int(time.time() * 1000)}{random_suffix(suffix_length)}"


def generate_transaction_id() -> str:
    """Transaction id reserved for an order at checkout."""
    return generate_reference("TXN", 6)
