import datetime
import json
import time
from typing import Any

import jwt
import pytest
import requests
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from flask import Flask

from identitytoolkit import GITKIT_ISSUER, GitkitConfig, InvalidToken

WIDGET_URL = "http://localhost:8000/widget"
AUDIENCE = "testaudience"


@pytest.fixture()
def app():
    app = Flask(__name__)
    app.config["TESTING"] = True
    return app


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_key: rsa.RSAPrivateKey) -> str:
    return rsa_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")


def make_certificate_pem(key: rsa.RSAPrivateKey) -> str:
    """Self-signed certificate for ``key``, like the service publishes."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "identitytoolkit.test")])
    now = datetime.datetime.now(datetime.UTC)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


@pytest.fixture(scope="session")
def certificate_pem(rsa_key: rsa.RSAPrivateKey) -> str:
    return make_certificate_pem(rsa_key)


@pytest.fixture(scope="session")
def other_certificate_pem(other_rsa_key: rsa.RSAPrivateKey) -> str:
    return make_certificate_pem(other_rsa_key)


@pytest.fixture
def make_token(rsa_key: rsa.RSAPrivateKey):
    """
    Factory fixture that returns a function.

    Usage in tests:
        token = make_token(aud="other", kid="k2")
    """

    def _make(
        *,
        kid: str | None = "kid1",
        key: Any = None,
        lifetime: int = 3600,
        issued_at: int | None = None,
        **claims: Any,
    ) -> str:
        iat = int(time.time()) if issued_at is None else issued_at
        payload = {
            "iss": GITKIT_ISSUER,
            "aud": AUDIENCE,
            "sub": "1234567890",
            "user_id": "1234567890",
            "email": "test@test.com",
            "verified": True,
            "provider_id": "google.com",
            "iat": iat,
            "exp": iat + lifetime,
        }
        payload.update(claims)
        headers = {"kid": kid} if kid is not None else {}
        return jwt.encode(payload, key or rsa_key, algorithm="RS256", headers=headers)

    return _make


@pytest.fixture
def config() -> GitkitConfig:
    return GitkitConfig(
        widget_url=WIDGET_URL,
        client_id=AUDIENCE,
        service_account_email="SERVICE_ACCOUNT_EMAIL@developer.gserviceaccount.com",
        service_account_private_key="not-used-with-fake-session",
    )


class StaticKeys:
    """KeyProvider returning fixed public keys."""

    def __init__(self, keys: dict[str, Any]):
        self._keys = keys
        self.requested: list[str] = []

    def get_key(self, kid: str):
        self.requested.append(kid)
        if kid not in self._keys:
            raise InvalidToken(f"Unknown signing key id {kid!r}")
        return self._keys[kid]


@pytest.fixture
def static_keys(rsa_key: rsa.RSAPrivateKey) -> StaticKeys:
    return StaticKeys({"kid1": rsa_key.public_key()})


def _make_response(
    status_code: int = 200,
    body: Any = None,
    headers: dict[str, str] | None = None,
    raw: bytes | None = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.reason = "OK" if status_code < 400 else "Error"
    response._content = raw if raw is not None else json.dumps(body).encode("utf-8")
    response.headers.update(headers or {})
    return response


class FakeSession:
    """
    Minimal requests session stub.
    Returns queued responses (or raises queued exceptions) and records calls.
    """

    def __init__(self, *responses: requests.Response | Exception):
        self._responses = list(responses)
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def queue(self, *responses: requests.Response | Exception) -> None:
        self._responses.extend(responses)

    def _next(self, method: str, url: str, kwargs: dict[str, Any]) -> requests.Response:
        self.calls.append((method, url, kwargs))
        if not self._responses:
            raise AssertionError(f"unexpected {method} {url}")
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self._next("GET", url, kwargs)

    def post(self, url: str, **kwargs: Any) -> requests.Response:
        return self._next("POST", url, kwargs)

    def posted(self) -> list[tuple[str, Any]]:
        """(method name, json body) of every POST."""
        return [
            (url.rsplit("/", 1)[-1], kwargs.get("json"))
            for method, url, kwargs in self.calls
            if method == "POST"
        ]


@pytest.fixture
def make_response():
    """Factory for canned requests.Response objects."""
    return _make_response


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()
