"""Request-scoped data types.

- GitkitUser: an account as seen in a verified token, a downloaded account
  record, or an account about to be uploaded.
- OobResult: outcome of an out-of-band (password reset / email change /
  email verification) request, including the JSON body the sign-in widget
  expects back.

Nothing here is persisted; instances live for a single call.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import GitkitServerError


def to_web_safe_base64(data: bytes | str) -> str:
    """Encode ``data`` with the URL-safe base64 alphabet (padding kept)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.urlsafe_b64encode(data).decode("ascii")


def from_web_safe_base64(data: str) -> bytes:
    """Decode URL-safe base64, tolerating missing padding."""
    try:
        return base64.b64decode(data + "=" * (-len(data) % 4), altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid web-safe base64 value: {data!r}") from e


def _decode_field(value: str | None) -> bytes | None:
    return from_web_safe_base64(value) if value else None


@dataclass(slots=True)
class GitkitUser:
    """An Identity Toolkit account.

    Attributes:
        user_id: The account's local id (``sub`` in tokens, ``localId`` in
            API records).
        email: Primary email address.
        email_verified: Whether the email has been verified.
        display_name: Name shown to the user.
        photo_url: Profile picture URL.
        provider_id: Identity provider the user signed in with
            (e.g. ``google.com``); None for password accounts.
        password_hash: Raw password hash bytes (upload/download only).
        salt: Raw salt bytes (upload/download only).
    """

    user_id: str | None = None
    email: str | None = None
    email_verified: bool = False
    display_name: str | None = None
    photo_url: str | None = None
    provider_id: str | None = None
    password_hash: bytes | None = field(default=None, repr=False)
    salt: bytes | None = field(default=None, repr=False)

    @classmethod
    def from_token(cls, claims: Mapping[str, Any]) -> GitkitUser:
        """Build a user from verified token claims."""
        return cls(
            user_id=claims.get("user_id") or claims.get("sub"),
            email=claims.get("email"),
            email_verified=bool(claims.get("verified", claims.get("email_verified", False))),
            display_name=claims.get("display_name"),
            photo_url=claims.get("photo_url"),
            provider_id=claims.get("provider_id"),
        )

    @classmethod
    def from_api_response(cls, record: Mapping[str, Any]) -> GitkitUser:
        """Build a user from a ``getAccountInfo`` / ``downloadAccount`` record.

        ``passwordHash`` and ``salt`` arrive web-safe base64 encoded and are
        decoded to bytes.

        Raises:
            GitkitServerError: If ``passwordHash`` or ``salt`` is not valid
                web-safe base64.
        """
        providers = record.get("providerUserInfo") or []
        try:
            password_hash = _decode_field(record.get("passwordHash"))
            salt = _decode_field(record.get("salt"))
        except ValueError as e:
            local_id = record.get("localId")
            raise GitkitServerError(f"Malformed account record {local_id!r}: {e}") from e
        return cls(
            user_id=record.get("localId"),
            email=record.get("email"),
            email_verified=bool(record.get("emailVerified", False)),
            display_name=record.get("displayName"),
            photo_url=record.get("photoUrl"),
            provider_id=providers[0].get("providerId") if providers else None,
            password_hash=password_hash,
            salt=salt,
        )

    def to_request(self) -> dict[str, Any]:
        """Render the ``uploadAccount`` record for this user."""
        request: dict[str, Any] = {"localId": self.user_id, "email": self.email}
        if self.email_verified:
            request["emailVerified"] = True
        if self.display_name:
            request["displayName"] = self.display_name
        if self.photo_url:
            request["photoUrl"] = self.photo_url
        if self.password_hash is not None:
            request["passwordHash"] = to_web_safe_base64(self.password_hash)
        if self.salt is not None:
            request["salt"] = to_web_safe_base64(self.salt)
        return request


@dataclass(frozen=True, slots=True)
class OobResult:
    """Result of an out-of-band code request.

    ``response_body`` is the JSON string to hand back to the sign-in widget:
    ``{"success": true}`` on success, ``{"error": "<message>"}`` otherwise.
    On success the application emails ``oob_link`` to ``email`` (or to
    ``new_email`` for email changes).
    """

    response_body: str
    action: str | None = None
    email: str | None = None
    new_email: str | None = None
    oob_code: str | None = None
    oob_link: str | None = None

    @property
    def success(self) -> bool:
        return self.oob_link is not None

    @classmethod
    def failure(cls, message: str) -> OobResult:
        """Build the uniform failure envelope."""
        return cls(response_body=json.dumps({"error": message}))
