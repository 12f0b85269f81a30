"""
Bookmart API client: explicit auth session + thin httpx wrapper.
"""

from client.session import AuthSession, session
from client.api import BookmartClient, BookmartAPIError, SessionExpiredError

__all__ = ["AuthSession", "session", "BookmartClient", "BookmartAPIError", "SessionExpiredError"]
