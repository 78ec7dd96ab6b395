"""
Server-side client for the Identity Toolkit (Gitkit) service.

High-level flow
---------------
1. `GitkitClient.verify_gitkit_token(token)`:
   - Reads the unverified header to get `kid`
   - Resolves the public key from the (time-cached) service certificates
   - Runs `jwt.decode(...)` with issuer/audience/expiry checks, trying each
     configured audience in turn
2. Account calls (`get_account_by_email`, `download_account`,
   `upload_account`, `delete_account`, ...) are forwarded to the
   `relyingparty` API with a service-account bearer token.
3. `get_oob_result` / `get_email_verification_link` request a one-time code
   and turn it into a link on the configured widget URL.

Example usage
-------------

.. code-block:: python

    from flask import Flask, g

    from identitytoolkit import GitkitAuth

    app = Flask(__name__)
    app.config["GITKIT_SERVER_CONFIG"] = "gitkit-server-config.json"
    gitkit = GitkitAuth(app=app)

    @app.route("/profile")
    @gitkit.require()
    def profile():
        return {"email": g.gitkit_user.email}

    @app.post("/oob")
    def oob():
        result, response = gitkit.oob_response()
        if result.success:
            send_email(result.email, result.oob_link)
        return response
"""

# Certificates
from .certificates import GITKIT_CERT_URL, CertificateCache

# Client
from .client import (
    CHANGE_EMAIL_ACTION,
    HASH_ALGORITHMS,
    RESET_PASSWORD_ACTION,
    VERIFY_EMAIL_ACTION,
    GitkitClient,
)

# Configuration
from .config import GitkitConfig

# Errors
from .errors import (
    AuthError,
    CertificateFetchError,
    ExpiredToken,
    GitkitClientError,
    GitkitError,
    GitkitServerError,
    InvalidToken,
    MissingToken,
)

# Extractors
from .extractors import BearerExtractor, CookieExtractor

# Flask extension
from .flask_extension import GitkitAuth

# Models
from .models import GitkitUser, OobResult

# Protocols
from .protocols import Claims, Extractor, HttpSession, KeyProvider, TokenVerifier

# RPC
from .rpc import GITKIT_API_URL, GITKIT_SCOPE, RpcHelper

# Verifier
from .verifier import GITKIT_ISSUER, GitkitTokenVerifier

__all__ = [
    # Errors
    "AuthError",
    "CertificateFetchError",
    "ExpiredToken",
    "GitkitClientError",
    "GitkitError",
    "GitkitServerError",
    "InvalidToken",
    "MissingToken",
    # Protocols
    "Claims",
    "Extractor",
    "HttpSession",
    "KeyProvider",
    "TokenVerifier",
    # Configuration
    "GitkitConfig",
    # Certificates
    "CertificateCache",
    "GITKIT_CERT_URL",
    # Verifier
    "GitkitTokenVerifier",
    "GITKIT_ISSUER",
    # RPC
    "RpcHelper",
    "GITKIT_API_URL",
    "GITKIT_SCOPE",
    # Models
    "GitkitUser",
    "OobResult",
    # Client
    "GitkitClient",
    "CHANGE_EMAIL_ACTION",
    "HASH_ALGORITHMS",
    "RESET_PASSWORD_ACTION",
    "VERIFY_EMAIL_ACTION",
    # Extractors
    "BearerExtractor",
    "CookieExtractor",
    # Flask extension
    "GitkitAuth",
]
