"""Gitkit token verification using PyJWT.

The verifier:
- Extracts the key ID (kid) from the unverified token header
- Resolves the public key via an injected KeyProvider (the certificate cache)
- Validates signature, issuer, expiry window and audience with PyJWT
- Tries each configured audience in turn (project id, then client id)
- Rejects tokens whose lifetime exceeds the accepted maximum
- Maps PyJWT exceptions to the package's error types
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from typing import TYPE_CHECKING, Final

import jwt

from .errors import ExpiredToken, InvalidToken
from .protocols import Claims

if TYPE_CHECKING:
    from .protocols import KeyProvider

GITKIT_ISSUER: Final[str] = "https://identitytoolkit.google.com/"

MAX_TOKEN_LIFETIME: Final[int] = 86400 * 30
"""Longest accepted ``exp - iat`` span in seconds (30 days)."""

CLOCK_SKEW: Final[int] = 300
"""Leeway in seconds applied to ``exp`` and ``iat`` checks."""

_ALGORITHMS: Final[list[str]] = ["RS256"]


class GitkitTokenVerifier:
    """Verifies Gitkit ID tokens against the service's certificates.

    Implements the TokenVerifier protocol.

    Example:
        ```python
        verifier = GitkitTokenVerifier(
            CertificateCache(),
            audiences=["my-project", "1234.apps.googleusercontent.com"],
        )
        claims = verifier.verify(request.cookies["gtoken"])
        ```

    Attributes:
        _keys: KeyProvider resolving public keys by kid.
        _audiences: Accepted audiences, tried in order.
    """

    def __init__(
        self,
        key_provider: KeyProvider,
        audiences: Sequence[str],
        *,
        issuer: str = GITKIT_ISSUER,
        max_token_lifetime: int = MAX_TOKEN_LIFETIME,
        leeway: int = CLOCK_SKEW,
    ) -> None:
        if not audiences:
            raise ValueError("At least one audience is required")
        self._keys = key_provider
        self._audiences = tuple(audiences)
        self._issuer = issuer
        self._max_lifetime = max_token_lifetime
        self._leeway = leeway

    def verify(self, token: str) -> Claims:
        """Verify a Gitkit token and return its decoded claims.

        Returns:
            Mapping of verified claims. Common claims: ``sub`` (or
            ``user_id``), ``email``, ``verified``, ``iss``, ``aud``, ``exp``,
            ``iat``, ``provider_id``.

        Raises:
            InvalidToken: Malformed token, bad signature, wrong issuer, no
                matching audience, excessive lifetime, unknown kid.
            ExpiredToken: The ``exp`` claim has passed (beyond leeway).
            CertificateFetchError: The certificates could not be fetched.
        """
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            raise InvalidToken(f"Unable to verify the ID Token: {e}") from e

        kid = header.get("kid")
        if not kid or not isinstance(kid, str):
            raise InvalidToken("Unable to verify the ID Token: header has no 'kid'")

        key = self._keys.get_key(kid)

        for audience in self._audiences:
            try:
                claims = jwt.decode(
                    token,
                    key,
                    algorithms=_ALGORITHMS,
                    audience=audience,
                    issuer=self._issuer,
                    leeway=self._leeway,
                    options={"require": ["exp", "iat"]},
                )
            except jwt.InvalidAudienceError:
                # Wrong recipient: try the next configured audience
                continue
            except jwt.ExpiredSignatureError as e:
                raise ExpiredToken("Token has expired") from e
            except (jwt.PyJWTError, TypeError) as e:
                # TypeError: the published key does not fit RS256
                raise InvalidToken(f"Unable to verify the ID Token: {e}") from e

            self._check_times(claims)
            return claims

        raise InvalidToken("Unable to verify the ID Token")

    def _check_times(self, claims: Claims) -> None:
        try:
            issued_at = int(claims["iat"])
            lifetime = int(claims["exp"]) - issued_at
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidToken("Unable to verify the ID Token: bad exp/iat") from e
        if issued_at > time.time() + self._leeway:
            raise InvalidToken("Unable to verify the ID Token: token used too early")
        if lifetime > self._max_lifetime:
            raise InvalidToken("Unable to verify the ID Token: token lifetime too long")
