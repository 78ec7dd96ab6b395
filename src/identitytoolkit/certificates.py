"""Identity Toolkit public certificate cache.

The service publishes its token signing certificates as a JSON object
mapping key id to a PEM-encoded X.509 certificate. The response carries a
``Cache-Control: max-age=N`` header telling clients how long the set is good
for; CertificateCache honors it and refetches lazily once it lapses.

Resolution Strategy
-------------------
For each requested ``kid``:

1) Cached certificate set (fast path)
    - If the set has not expired and contains ``kid`` -> return its key.

2) Lazy refresh
    - If the set expired (or was never cached) it is refetched first.

3) Known-missing kids
    - A ``kid`` that was still absent after a forced refresh is remembered
      until the next fetch and rejected without any network traffic.

4) Forced refresh (throttled)
    - Otherwise the set is refetched once to pick up a freshly rotated key,
      at most once per ``min_refresh_interval``. Denied refreshes are
      counted and logged once they reach ``alert_threshold``.

5) Failure
    - Raises InvalidToken if the key cannot be resolved.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Final

import requests
from cryptography import x509
from cryptography.hazmat.primitives import serialization

from .errors import CertificateFetchError, InvalidToken

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

    from .protocols import HttpSession

logger = logging.getLogger(__name__)

GITKIT_CERT_URL: Final[str] = (
    "https://www.googleapis.com/identitytoolkit/v3/relyingparty/publicKeys"
)

MIN_REFRESH_INTERVAL: Final[float] = 60.0
"""Default minimum seconds between forced refreshes."""

ALERT_THRESHOLD: Final[int] = 40
"""Default number of throttled refreshes before a warning is logged."""

_MAX_AGE_RE: Final[re.Pattern[str]] = re.compile(r"max-age=([0-9]+)")


def parse_max_age(cache_control: str | None) -> int | None:
    """Return the ``max-age`` of a Cache-Control header in seconds, if any."""
    if not cache_control:
        return None
    match = _MAX_AGE_RE.search(cache_control)
    if not match:
        return None
    return int(match.group(1))


def load_public_key(pem: str) -> PublicKeyTypes:
    """Load the public key of a PEM certificate (or bare PEM public key)."""
    data = pem.encode("ascii")
    if b"BEGIN CERTIFICATE" in data:
        return x509.load_pem_x509_certificate(data).public_key()
    return serialization.load_pem_public_key(data)


class CertificateCache:
    """Fetches and time-caches the service's signing certificates.

    Implements the KeyProvider protocol.

    Parameters
    ----------
    url : str
        Certificate endpoint. Defaults to the Identity Toolkit endpoint.
    session : HttpSession | None
        HTTP session used for the fetch. A plain ``requests.Session`` is
        created when omitted.
    min_refresh_interval : float
        Minimum seconds between refreshes forced by unknown key ids.
    alert_threshold : int
        Throttled refreshes (since the last allowed one) at which a warning
        is logged.
    timeout : float
        Request timeout in seconds.
    server_api_key : str | None
        Optional API key sent as the ``key`` query parameter.

    Notes
    -----
    - The cache lives for the lifetime of the process; nothing is persisted.
    - A response without ``max-age`` is served once and not cached.
    """

    def __init__(
        self,
        url: str = GITKIT_CERT_URL,
        *,
        session: HttpSession | None = None,
        min_refresh_interval: float = MIN_REFRESH_INTERVAL,
        alert_threshold: int = ALERT_THRESHOLD,
        timeout: float = 10.0,
        server_api_key: str | None = None,
    ) -> None:
        if min_refresh_interval <= 0:
            raise ValueError(
                f"min_refresh_interval must be positive, got {min_refresh_interval}"
            )
        if alert_threshold < 1:
            raise ValueError(f"alert_threshold must be at least 1, got {alert_threshold}")

        self._url = url
        self._session = session or requests.Session()
        self._min_refresh_interval = min_refresh_interval
        self._alert_threshold = alert_threshold
        self._timeout = timeout
        self._params = {"key": server_api_key} if server_api_key else None

        self._lock = threading.Lock()
        self._certificates: dict[str, str] = {}
        self._keys: dict[str, PublicKeyTypes] = {}
        self._missing: set[str] = set()
        self._expires_at: float | None = None
        self._next_refresh_at: float = 0.0
        self._throttled: int = 0

    @property
    def expires_at(self) -> float | None:
        """Unix timestamp the cached set expires at, None if not cached."""
        return self._expires_at

    @property
    def throttled_refreshes(self) -> int:
        """Forced refreshes denied since the last allowed one."""
        return self._throttled

    def get_certificates(self) -> Mapping[str, str]:
        """Return the certificate set, refetching it if the cache lapsed.

        Raises:
            CertificateFetchError: If the certificates cannot be retrieved.
        """
        with self._lock:
            if self._expires_at is not None and time.time() < self._expires_at:
                return self._certificates
            return self._fetch()

    def refresh(self) -> Mapping[str, str]:
        """Refetch the certificate set regardless of its expiry."""
        with self._lock:
            return self._fetch()

    def get_key(self, kid: str) -> PublicKeyTypes:
        """Resolve the public key for ``kid``.

        Raises:
            InvalidToken: If ``kid`` is unknown, or the refresh is throttled.
            CertificateFetchError: If the certificates cannot be retrieved.
        """
        certificates = self.get_certificates()
        if kid not in certificates:
            certificates = self._refresh_for(kid)

        key = self._keys.get(kid)
        if key is None:
            try:
                key = load_public_key(certificates[kid])
            except ValueError as e:
                raise InvalidToken(f"Malformed certificate for key id {kid!r}") from e
            self._keys[kid] = key
        return key

    def _refresh_for(self, kid: str) -> Mapping[str, str]:
        """Force a refetch to pick up a rotated ``kid``."""
        with self._lock:
            if kid in self._certificates:
                return self._certificates
            if kid in self._missing:
                raise InvalidToken(f"Unknown signing key id {kid!r}")

            now = time.time()
            if now < self._next_refresh_at:
                self._throttled += 1
                if self._throttled >= self._alert_threshold:
                    logger.warning(
                        "Certificate refresh throttled: %d denials in the current interval",
                        self._throttled,
                    )
                raise InvalidToken("Certificate refresh throttled")

            self._next_refresh_at = now + self._min_refresh_interval
            self._throttled = 0
            logger.info("Unknown signing key id %r, refreshing certificates", kid)

            certificates = self._fetch()
            if kid not in certificates:
                self._missing.add(kid)
                raise InvalidToken(f"Unknown signing key id {kid!r}")
            return certificates

    def _fetch(self) -> dict[str, str]:
        """Fetch and store the certificate set. Caller holds the lock."""
        try:
            response = self._session.get(self._url, params=self._params, timeout=self._timeout)
        except requests.RequestException as e:
            raise CertificateFetchError(f"Unable to fetch certificates: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise CertificateFetchError(
                "Certificate response is not valid JSON", status_code=response.status_code
            ) from e

        if not isinstance(body, dict) or "error" in body or response.status_code >= 400:
            error = body.get("error") if isinstance(body, dict) else None
            if isinstance(error, dict):
                error = error.get("message")
            raise CertificateFetchError(
                f"Unable to fetch certificates: {error or response.status_code}",
                status_code=response.status_code,
            )

        certificates = {str(kid): str(pem) for kid, pem in body.items()}
        max_age = parse_max_age(response.headers.get("Cache-Control"))

        self._certificates = certificates
        self._keys = {}
        self._missing = set()
        self._expires_at = None if max_age is None else time.time() + max_age

        logger.debug(
            "Fetched %d signing certificates (max-age=%s)", len(certificates), max_age
        )
        return certificates
