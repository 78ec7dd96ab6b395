"""Flask integration for the Identity Toolkit client.

Key Components:
- GitkitAuth: extension object holding a GitkitClient, with a ``require``
  decorator for protected routes, ``current_user`` for optional sign-in and
  ``oob_response`` for the widget's out-of-band endpoint.

Request Model:
1. Extract the token from the request (the widget's cookie by default)
2. Verify it with the client (signature, issuer, audience, expiry)
3. Store claims in ``flask.g.gitkit_claims`` and the user in
   ``flask.g.gitkit_user``
4. Convert auth errors to 401 responses
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from functools import wraps
from typing import TYPE_CHECKING, Any, Final

from flask import Flask, Response, abort, current_app, g, request

from .client import GitkitClient
from .config import GitkitConfig
from .errors import AuthError, GitkitClientError, GitkitError, MissingToken
from .extractors import CookieExtractor
from .models import GitkitUser, OobResult

if TYPE_CHECKING:
    from .protocols import Extractor, ViewFunc

logger = logging.getLogger(__name__)

_EXT_KEY: Final[str] = "gitkit"
"""Flask extensions registry key for GitkitAuth."""

CONFIG_KEY: Final[str] = "GITKIT_SERVER_CONFIG"
"""App config key: path to the server-config JSON file, or a mapping."""


class GitkitAuth:
    """
    Flask glue for Gitkit sign-in.

    Pattern:
        gitkit = GitkitAuth()
        gitkit.init_app(app)  # reads app.config["GITKIT_SERVER_CONFIG"]

    Usage:
        @app.get("/profile")
        @gitkit.require()
        def profile():
            return {"email": g.gitkit_user.email}
    """

    def __init__(
        self,
        client: GitkitClient | None = None,
        extractor: Extractor | None = None,
        app: Flask | None = None,
    ) -> None:
        self._client = client
        self._extractor = extractor
        if app is not None:
            self.init_app(app)

    def init_app(
        self,
        app: Flask,
        *,
        client: GitkitClient | None = None,
        extractor: Extractor | None = None,
    ) -> None:
        """Register the extension on ``app``.

        When no client was given, one is built from
        ``app.config["GITKIT_SERVER_CONFIG"]``.

        Raises:
            GitkitClientError: If no client is given and the app config has
                no server configuration.
        """
        if client is not None:
            self._client = client
        if extractor is not None:
            self._extractor = extractor

        if self._client is None:
            server_config = app.config.get(CONFIG_KEY)
            if not server_config:
                raise GitkitClientError(f"{CONFIG_KEY} is not set")
            if isinstance(server_config, Mapping):
                config = GitkitConfig.from_dict(server_config)
            else:
                config = GitkitConfig.from_file(server_config)
            self._client = GitkitClient(config)

        if self._extractor is None:
            self._extractor = CookieExtractor(self._client.config.cookie_name)

        app.extensions[_EXT_KEY] = self

    @property
    def client(self) -> GitkitClient:
        if self._client is None:
            raise RuntimeError("GitkitAuth is not initialized; call init_app() first")
        return self._client

    @property
    def extractor(self) -> Extractor:
        if self._extractor is None:
            self._extractor = CookieExtractor(self.client.config.cookie_name)
        return self._extractor

    def require(self):
        """Decorator requiring a valid Gitkit token on the request.

        Error mapping:
        - ``MissingToken``, ``InvalidToken``, ``ExpiredToken`` -> HTTP 401
        - any other client failure -> HTTP 401 ("Authentication failed")

        Side Effects:
            Sets ``g.gitkit_claims`` and ``g.gitkit_user`` before calling the
            view. May end the request early via ``flask.abort``.
        """

        def decorator(view: ViewFunc) -> ViewFunc:
            @wraps(view)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    token = self.extractor.extract()
                    claims = self.client.verify_gitkit_token(token)
                except AuthError as e:
                    abort(e.error_code, description=e.description)
                except GitkitError as e:
                    logger.warning("Token verification failed: %s", e.description)
                    abort(401, description="Authentication failed")

                g.gitkit_claims = claims
                g.gitkit_user = GitkitUser.from_token(claims)
                return view(*args, **kwargs)

            return wrapper

        return decorator

    def current_user(self) -> GitkitUser | None:
        """Return the signed-in user of the current request, if any."""
        try:
            token = self.extractor.extract()
            return self.client.get_user_by_token(token)
        except MissingToken:
            return None
        except GitkitError as e:
            logger.info("Ignoring unverifiable token: %s", e.description)
            return None

    def oob_response(self) -> tuple[OobResult, Response]:
        """Handle the widget's out-of-band POST for the current request.

        Returns:
            The OobResult (send ``oob_link`` by email when it succeeded) and
            the JSON response to return to the widget.
        """
        try:
            token = self.extractor.extract()
        except MissingToken:
            token = None
        result = self.client.get_oob_result(request.form, request.remote_addr, token)
        response = current_app.response_class(
            result.response_body, mimetype="application/json"
        )
        return result, response
