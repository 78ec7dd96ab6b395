"""Token extraction strategies from Flask requests.

Implementations:
- CookieExtractor: reads the cookie the sign-in widget writes (``gtoken``)
- BearerExtractor: reads ``Authorization: Bearer <token>`` (mobile/API clients)
"""

from __future__ import annotations

from flask import request

from .config import DEFAULT_COOKIE_NAME
from .errors import MissingToken


class CookieExtractor:
    """Extracts the Gitkit token from an HTTP cookie.

    Attributes:
        cookie_name: Name of the cookie containing the token.
    """

    def __init__(self, cookie_name: str = DEFAULT_COOKIE_NAME) -> None:
        if not cookie_name or not cookie_name.strip():
            raise ValueError("cookie_name cannot be empty")
        self.cookie_name = cookie_name

    def extract(self) -> str:
        token = request.cookies.get(self.cookie_name)
        if not token:
            raise MissingToken(f"Missing cookie '{self.cookie_name}'")
        return token


class BearerExtractor:
    """Extracts the Gitkit token from the Authorization header."""

    def extract(self) -> str:
        """Return the token of an ``Authorization: Bearer <token>`` header.

        Raises:
            MissingToken: If the header is missing or not a Bearer header.
        """
        auth_header = request.headers.get("Authorization", "").strip()
        if not auth_header:
            raise MissingToken("Missing Authorization header")

        parts = auth_header.split(" ", 1)
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise MissingToken("Invalid Authorization header format (expected 'Bearer <token>')")

        token = parts[1].strip()
        if not token:
            raise MissingToken("Bearer token is empty")
        return token
