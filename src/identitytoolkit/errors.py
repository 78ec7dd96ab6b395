"""Identity Toolkit client errors.

This module defines the exception hierarchy for the client library. All
errors inherit from GitkitError so application code can catch a single type.

Every error carries an ``error_code`` (the HTTP status a web handler should
answer with) and a ``description`` (a short, client-safe message). The Flask
integration uses both when aborting a request.

Security Note:
    Token verification messages are kept short. Detailed failure reasons are
    logged server-side and chained via ``__cause__``.
"""

from __future__ import annotations


class GitkitError(Exception):
    """Base exception for all Identity Toolkit client failures.

    Attributes:
        error_code: HTTP status code associated with this error.
        description: Human readable message (same as ``str(error)``).
    """

    error_code: int = 500

    def __init__(self, description: str = "") -> None:
        super().__init__(description)
        self.description = description or self.__class__.__doc__.splitlines()[0]


class GitkitClientError(GitkitError):
    """Raised when a request cannot be served because of caller input.

    This occurs when:
    - The server configuration has neither a project id nor a client id
    - A required argument (token, email) is empty
    - An unsupported password hash algorithm is requested for upload
    - The remote API rejects the request as invalid (HTTP 400)
    """

    error_code = 400


class GitkitServerError(GitkitError):
    """Raised when the Identity Toolkit API fails or is unreachable.

    Attributes:
        status_code: Upstream HTTP status, or None for transport failures.
    """

    error_code = 502

    def __init__(self, description: str = "", status_code: int | None = None) -> None:
        super().__init__(description)
        self.status_code = status_code


class CertificateFetchError(GitkitServerError):  # noqa: N818
    """Raised when the public signing certificates cannot be retrieved."""


class AuthError(GitkitError):
    """Base exception for token authentication failures.

    This should typically result in an HTTP 401 Unauthorized response.
    """

    error_code = 401


class MissingToken(AuthError):  # noqa: N818
    """Raised when no Gitkit token is found in the request.

    This occurs when:
    - The token cookie is missing or empty
    - The Authorization header is missing or not "Bearer <token>"
    """


class InvalidToken(AuthError):  # noqa: N818
    """Raised when a token is present but cannot be verified.

    This occurs when:
    - Token is malformed (not a valid JWT structure)
    - Signature verification fails (wrong key or tampered token)
    - Issuer (iss) is not the Identity Toolkit issuer
    - Audience (aud) matches none of the configured audiences
    - The token lifetime exceeds the accepted maximum
    - Signing key (kid) cannot be resolved
    """


class ExpiredToken(AuthError):  # noqa: N818
    """Raised when a token's expiration time (exp claim) has passed.

    Treat identically to InvalidToken from a security perspective. The
    distinction helps with debugging.
    """
