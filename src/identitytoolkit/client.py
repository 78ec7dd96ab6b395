"""Identity Toolkit client.

GitkitClient ties the pieces together:

- token verification (CertificateCache + GitkitTokenVerifier)
- account operations forwarded to the ``relyingparty`` API (RpcHelper)
- out-of-band link building for password reset, email change and email
  verification

Example usage
-------------

.. code-block:: python

    from identitytoolkit import GitkitClient

    client = GitkitClient.from_config_file("gitkit-server-config.json")

    claims = client.verify_gitkit_token(request.cookies["gtoken"])
    account = client.get_account_by_email(claims["email"])

    for record in client.download_account(page_size=100):
        ...
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Final
from urllib.parse import urlencode

from .certificates import CertificateCache
from .config import GitkitConfig
from .errors import GitkitClientError, GitkitError
from .models import GitkitUser, OobResult, to_web_safe_base64
from .protocols import Claims, KeyProvider
from .rpc import RpcHelper
from .verifier import GitkitTokenVerifier

logger = logging.getLogger(__name__)

RESET_PASSWORD_ACTION: Final[str] = "resetPassword"
CHANGE_EMAIL_ACTION: Final[str] = "changeEmail"
VERIFY_EMAIL_ACTION: Final[str] = "verifyEmail"

HASH_ALGORITHMS: Final[frozenset[str]] = frozenset(
    {"HMAC_SHA256", "HMAC_SHA1", "HMAC_MD5", "PBKDF_SHA1", "MD5", "SHA1", "SCRYPT"}
)
"""Password hash algorithms accepted by ``uploadAccount``."""


def _encode_hash_field(value: bytes | bytearray | memoryview | str) -> str:
    # raw bytes are encoded; strings are assumed base64 already and only made web-safe
    if isinstance(value, (bytes, bytearray, memoryview)):
        return to_web_safe_base64(bytes(value))
    return value.replace("/", "_").replace("+", "-")


class GitkitClient:
    """Server-side client for the Identity Toolkit service.

    Parameters
    ----------
    config : GitkitConfig
        Widget URL, audiences and service account.
    rpc : RpcHelper | None
        API access. Built from ``config`` when omitted.
    certificates : KeyProvider | None
        Signing key source. A CertificateCache is built when omitted.
    """

    def __init__(
        self,
        config: GitkitConfig,
        *,
        rpc: RpcHelper | None = None,
        certificates: KeyProvider | None = None,
    ) -> None:
        self.config = config
        self.rpc = rpc or RpcHelper(config)
        self.certificates = certificates or CertificateCache(
            server_api_key=config.server_api_key
        )
        self.verifier = GitkitTokenVerifier(self.certificates, config.audiences)

    @classmethod
    def from_config_file(cls, path: str | os.PathLike[str], **kwargs: Any) -> GitkitClient:
        """Build a client from the JSON server-config file."""
        return cls(GitkitConfig.from_file(path), **kwargs)

    # ------------------------------------------------------------------
    # Token verification
    # ------------------------------------------------------------------

    def verify_gitkit_token(self, token: str) -> Claims:
        """Verify a Gitkit token and return its claims.

        Raises:
            GitkitClientError: If ``token`` is empty.
            InvalidToken, ExpiredToken: If verification fails.
            CertificateFetchError: If certificates cannot be fetched.
        """
        if not token:
            raise GitkitClientError("A token string is required")
        return self.verifier.verify(token)

    def get_user_by_token(self, token: str) -> GitkitUser:
        """Verify ``token`` and return the user it identifies."""
        return GitkitUser.from_token(self.verify_gitkit_token(token))

    # ------------------------------------------------------------------
    # Account operations
    # ------------------------------------------------------------------

    def get_account_by_email(self, email: str) -> dict[str, Any]:
        """Return the raw ``getAccountInfo`` response for ``email``."""
        return self.rpc.get_account_info({"email": [email]})

    def get_account_by_id(self, local_id: str) -> dict[str, Any]:
        """Return the raw ``getAccountInfo`` response for ``local_id``."""
        return self.rpc.get_account_info({"localId": [local_id]})

    def download_account(self, page_size: int | None = None) -> Iterator[dict[str, Any]]:
        """Yield every account record, following ``nextPageToken``.

        Args:
            page_size: Accounts requested per page. The service default is
                used when None.
        """
        next_page_token: str | None = None
        while True:
            response = self.rpc.download_account(next_page_token, page_size)
            yield from response.get("users") or []
            next_page_token = response.get("nextPageToken")
            if not next_page_token:
                return

    def get_all_users(self, page_size: int | None = None) -> Iterator[GitkitUser]:
        """Yield every account as a GitkitUser."""
        for record in self.download_account(page_size):
            yield GitkitUser.from_api_response(record)

    def upload_account(
        self,
        accounts: Iterable[Mapping[str, Any] | GitkitUser],
        hash_algorithm: str | None = None,
        hash_key: bytes | str | None = None,
        *,
        rounds: int | None = None,
        memory_cost: int | None = None,
        salt_separator: bytes | str | None = None,
    ) -> dict[str, Any]:
        """Upload existing accounts with their password hashes.

        Args:
            accounts: Account dicts in API shape (``localId``, ``email``,
                ``passwordHash``, ``salt``, ...) or GitkitUser objects.
                ``passwordHash`` and ``salt`` given as bytes are web-safe
                base64 encoded; the caller's objects are not modified.
            hash_algorithm: One of HASH_ALGORITHMS.
            hash_key: Signer key of the hash algorithm (HMAC / SCRYPT).
            rounds: Hash rounds (PBKDF_SHA1, SCRYPT).
            memory_cost: SCRYPT memory cost.
            salt_separator: SCRYPT salt separator.

        Raises:
            GitkitClientError: For an unsupported hash algorithm.
        """
        if hash_algorithm and hash_algorithm not in HASH_ALGORITHMS:
            raise GitkitClientError(f"Unsupported hash algorithm: {hash_algorithm}")

        users = []
        for account in accounts:
            if isinstance(account, GitkitUser):
                users.append(account.to_request())
                continue
            user = dict(account)
            for name in ("passwordHash", "salt"):
                if user.get(name) is not None:
                    user[name] = _encode_hash_field(user[name])
            users.append(user)

        request: dict[str, Any] = {"users": users}
        if hash_algorithm:
            request["hashAlgorithm"] = hash_algorithm
        if hash_key:
            request["signerKey"] = _encode_hash_field(hash_key)
        if rounds is not None:
            request["rounds"] = rounds
        if memory_cost is not None:
            request["memoryCost"] = memory_cost
        if salt_separator:
            request["saltSeparator"] = _encode_hash_field(salt_separator)
        return self.rpc.upload_account(request)

    def delete_account(self, local_id: str) -> dict[str, Any]:
        """Delete the account with ``local_id``."""
        return self.rpc.delete_account(local_id)

    # ------------------------------------------------------------------
    # Out-of-band links
    # ------------------------------------------------------------------

    def get_oob_result(
        self,
        param: Mapping[str, Any],
        user_ip: str | None,
        gitkit_token: str | None = None,
    ) -> OobResult:
        """Handle a sign-in widget's out-of-band request.

        Args:
            param: Request parameters posted by the widget (``action``,
                ``email``, ``challenge``, ``response``, ``oldEmail``,
                ``newEmail``).
            user_ip: End user's IP address, used by the captcha check.
            gitkit_token: Token of the signed-in user; required for
                ``changeEmail``.

        Returns:
            An OobResult. Failures are reported through
            ``OobResult.failure`` rather than raised.
        """
        action = param.get("action")
        if not action:
            return OobResult.failure("missing oob action")

        if action == RESET_PASSWORD_ACTION:
            request = {
                "email": param.get("email"),
                "userIp": user_ip,
                "challenge": param.get("challenge"),
                "captchaResp": param.get("response"),
                "requestType": "PASSWORD_RESET",
            }
        elif action == CHANGE_EMAIL_ACTION:
            if not gitkit_token:
                return OobResult.failure("login is required")
            request = {
                "email": param.get("oldEmail"),
                "newEmail": param.get("newEmail"),
                "userIp": user_ip,
                "idToken": gitkit_token,
                "requestType": "NEW_EMAIL_ACCEPT",
            }
        else:
            return OobResult.failure("unknown oob action")

        try:
            return self._build_oob_result(request, action)
        except GitkitError as e:
            logger.warning("Out-of-band request %s failed: %s", action, e.description)
            return OobResult.failure(e.description)

    def get_email_verification_link(self, email: str) -> str:
        """Return a link that verifies ``email`` when visited.

        Raises:
            GitkitClientError: If ``email`` is empty or rejected.
            GitkitServerError: If the API call fails.
        """
        if not email:
            raise GitkitClientError("missing email")
        request = {"email": email, "requestType": "VERIFY_EMAIL"}
        return self._build_oob_result(request, VERIFY_EMAIL_ACTION).oob_link

    def build_oob_link(self, oob_code: str, mode: str) -> str:
        """Append ``mode`` and ``oobCode`` to the widget URL."""
        if not self.config.widget_url:
            raise GitkitClientError("Missing widgetUrl in server configuration.")
        separator = "&" if "?" in self.config.widget_url else "?"
        query = urlencode({"mode": mode, "oobCode": oob_code})
        return f"{self.config.widget_url}{separator}{query}"

    def _build_oob_result(self, request: dict[str, Any], mode: str) -> OobResult:
        oob_code = self.rpc.get_oob_code(request)
        return OobResult(
            response_body=json.dumps({"success": True}),
            action=mode,
            email=request.get("email"),
            new_email=request.get("newEmail") if mode == CHANGE_EMAIL_ACTION else None,
            oob_code=oob_code,
            oob_link=self.build_oob_link(oob_code, mode),
        )
