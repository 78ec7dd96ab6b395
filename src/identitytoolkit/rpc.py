"""Service-account authorized access to the Identity Toolkit API.

Every account-management call is a JSON POST to
``https://www.googleapis.com/identitytoolkit/v3/relyingparty/<method>``
carrying a bearer token minted from the configured service account. Token
minting and refresh are handled by google-auth's ``AuthorizedSession``; this
module only shapes requests and maps failures.

Error mapping
-------------
- HTTP 400 from the API             -> GitkitClientError (caller's input)
- any other non-2xx / unusable body -> GitkitServerError
- transport or credential failures  -> GitkitServerError
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import google.auth.exceptions
import requests
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from .errors import GitkitClientError, GitkitServerError

if TYPE_CHECKING:
    from .config import GitkitConfig
    from .protocols import HttpSession

logger = logging.getLogger(__name__)

GITKIT_API_URL: Final[str] = "https://www.googleapis.com/identitytoolkit/v3/relyingparty/"
GITKIT_SCOPE: Final[str] = "https://www.googleapis.com/auth/identitytoolkit"
TOKEN_URI: Final[str] = "https://oauth2.googleapis.com/token"


def load_credentials(config: GitkitConfig) -> service_account.Credentials:
    """Build service-account credentials scoped to the Identity Toolkit API.

    The private key is taken from ``service_account_private_key`` (PEM text)
    or ``service_account_private_key_file``. A file ending in ``.json`` is
    read as a complete service-account key file; anything else as PEM.

    Raises:
        GitkitClientError: If no usable credentials are configured.
    """
    scopes = [GITKIT_SCOPE]
    key_file = config.service_account_private_key_file
    private_key = config.service_account_private_key

    try:
        if not private_key and key_file and key_file.endswith(".json"):
            return service_account.Credentials.from_service_account_file(key_file, scopes=scopes)

        if not private_key and key_file:
            private_key = Path(key_file).read_text(encoding="utf-8")

        if not private_key or not config.service_account_email:
            raise GitkitClientError(
                "Missing service account email or private key in server configuration."
            )

        info = {
            "client_email": config.service_account_email,
            "private_key": private_key,
            "token_uri": TOKEN_URI,
        }
        return service_account.Credentials.from_service_account_info(info, scopes=scopes)
    except (OSError, ValueError) as e:
        raise GitkitClientError(f"Invalid service account credentials: {e}") from e


class RpcHelper:
    """Thin wrapper over the ``relyingparty`` REST methods.

    Parameters
    ----------
    config : GitkitConfig
        Supplies the service account and optional API key.
    session : HttpSession | None
        Authorized HTTP session. When omitted an ``AuthorizedSession`` is
        created on first use from the configured service account.
    api_url : str
        Base URL of the ``relyingparty`` API (trailing slash).
    timeout : float
        Request timeout in seconds.
    """

    def __init__(
        self,
        config: GitkitConfig,
        *,
        session: HttpSession | None = None,
        api_url: str = GITKIT_API_URL,
        timeout: float = 30.0,
    ) -> None:
        self._config = config
        self._session = session
        self._api_url = api_url
        self._timeout = timeout
        self._params = {"key": config.server_api_key} if config.server_api_key else None

    @property
    def session(self) -> HttpSession:
        if self._session is None:
            self._session = AuthorizedSession(load_credentials(self._config))
        return self._session

    def get_account_info(self, request: dict[str, Any]) -> dict[str, Any]:
        """Look up accounts by ``email`` or ``localId`` lists."""
        return self._invoke("getAccountInfo", request)

    def download_account(
        self, next_page_token: str | None = None, max_results: int | None = None
    ) -> dict[str, Any]:
        """Fetch one page of accounts."""
        request: dict[str, Any] = {}
        if next_page_token:
            request["nextPageToken"] = next_page_token
        if max_results:
            request["maxResults"] = max_results
        return self._invoke("downloadAccount", request)

    def upload_account(self, request: dict[str, Any]) -> dict[str, Any]:
        """Upload accounts along with their password hash parameters."""
        return self._invoke("uploadAccount", request)

    def delete_account(self, local_id: str) -> dict[str, Any]:
        return self._invoke("deleteAccount", {"localId": local_id})

    def get_oob_code(self, request: dict[str, Any]) -> str:
        """Request an out-of-band confirmation code.

        Raises:
            GitkitServerError: If the response carries no ``oobCode``.
        """
        response = self._invoke("getOobConfirmationCode", request)
        code = response.get("oobCode")
        if not code:
            raise GitkitServerError("Missing oobCode in getOobConfirmationCode response")
        return code

    def _invoke(self, method: str, body: dict[str, Any]) -> dict[str, Any]:
        url = self._api_url + method
        logger.debug("Calling %s", method)
        try:
            response = self.session.post(
                url, json=body, params=self._params, timeout=self._timeout
            )
        except google.auth.exceptions.GoogleAuthError as e:
            raise GitkitServerError(f"Unable to authorize service account: {e}") from e
        except requests.RequestException as e:
            raise GitkitServerError(f"{method} request failed: {e}") from e
        return self._check_response(method, response)

    @staticmethod
    def _check_response(method: str, response: requests.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = None

        if response.ok and isinstance(body, dict) and "error" not in body:
            return body

        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            code = error.get("code", response.status_code)
            message = error.get("message") or response.reason
        elif response.ok and not error:
            code = response.status_code
            message = "invalid response"
        else:
            code = response.status_code
            message = error or response.reason or "invalid response"

        logger.warning("%s failed with %s: %s", method, code, message)
        if code == 400:
            raise GitkitClientError(str(message))
        raise GitkitServerError(f"{method} failed: {message}", status_code=response.status_code)
