"""Protocol definitions for the Identity Toolkit client.

This module defines structural interfaces using Protocol (PEP 544) for:
- Token verification
- Signing key resolution
- Token extraction from web requests
- HTTP sessions used for certificate and API calls

Using protocols keeps the components swappable in tests: any object with the
right methods satisfies the protocol without inheriting from it.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes
    from requests import Response

# ============================================================================
# Type Aliases
# ============================================================================

type Claims = Mapping[str, Any]
"""Decoded payload of a verified Gitkit token."""

type ViewFunc = Callable[..., Any]
"""Type alias for Flask view functions."""


# ============================================================================
# Core Protocols
# ============================================================================


class TokenVerifier(Protocol):
    """Verifies a Gitkit token and returns its claims.

    Implementations raise AuthError subclasses on failure.
    """

    def verify(self, token: str) -> Claims: ...


class KeyProvider(Protocol):
    """Resolves the public key a token was signed with.

    Implementations may fetch and cache certificates from the Identity
    Toolkit service, or return fixed keys in tests.
    """

    def get_key(self, kid: str) -> PublicKeyTypes:
        """Resolve a verification key by its ID.

        Raises:
            InvalidToken: If kid cannot be resolved.
        """
        ...


class Extractor(Protocol):
    """Extracts the raw Gitkit token from the current Flask request."""

    def extract(self) -> str:
        """Return the raw token.

        Raises:
            MissingToken: Token not found or improperly formatted.
        """
        ...


class HttpSession(Protocol):
    """Subset of ``requests.Session`` used by this package."""

    def get(self, url: str, **kwargs: Any) -> Response: ...

    def post(self, url: str, **kwargs: Any) -> Response: ...
