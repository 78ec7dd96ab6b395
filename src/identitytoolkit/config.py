"""Client configuration.

Holds everything the client needs to talk to the Identity Toolkit service:
the widget URL used to build out-of-band links, the audiences accepted on
inbound tokens, and the service account used to mint outbound bearer tokens.

Configuration can come from three places:

- keyword arguments (``GitkitConfig(...)``)
- the JSON server-config file downloaded from the developer console
  (``GitkitConfig.from_file``)
- environment variables, optionally loaded from a ``.env`` file
  (``GitkitConfig.from_env``)
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from dotenv import find_dotenv, load_dotenv

from .errors import GitkitClientError

DEFAULT_COOKIE_NAME: Final[str] = "gtoken"

# JSON server-config key -> GitkitConfig field
_FILE_KEYS: Final[dict[str, str]] = {
    "widgetUrl": "widget_url",
    "projectId": "project_id",
    "clientId": "client_id",
    "serviceAccountEmail": "service_account_email",
    "serviceAccountPrivateKey": "service_account_private_key",
    "serviceAccountPrivateKeyFile": "service_account_private_key_file",
    "cookieName": "cookie_name",
    "serverApiKey": "server_api_key",
}


@dataclass(frozen=True, slots=True)
class GitkitConfig:
    """Immutable client configuration.

    Attributes:
        widget_url: URL of the sign-in widget. Out-of-band links are built by
            appending ``mode`` and ``oobCode`` query parameters to it.
        project_id: Accepted token audience (the project id).
        client_id: Accepted token audience (the OAuth client id).
        service_account_email: Service account identity for outbound calls.
        service_account_private_key: PEM private key of the service account.
        service_account_private_key_file: Path to a PEM private key or a JSON
            service-account key file. Used when no inline key is given.
        cookie_name: Name of the cookie the widget stores the token in.
        server_api_key: Optional API key appended to API calls.

    Raises:
        GitkitClientError: If neither project_id nor client_id is set.
    """

    widget_url: str | None = None
    project_id: str | None = None
    client_id: str | None = None
    service_account_email: str | None = None
    service_account_private_key: str | None = None
    service_account_private_key_file: str | None = None
    cookie_name: str = DEFAULT_COOKIE_NAME
    server_api_key: str | None = None

    def __post_init__(self) -> None:
        if not self.audiences:
            raise GitkitClientError("Missing projectId or clientId in server configuration.")

    @property
    def audiences(self) -> list[str]:
        """Accepted token audiences, project id first."""
        return [aud for aud in (self.project_id, self.client_id) if aud]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GitkitConfig:
        """Build a config from a JSON server-config mapping.

        Unknown keys are ignored. Field names (``widget_url``) are accepted
        as well as the camelCase keys of the server-config file.
        """
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            field = _FILE_KEYS.get(key, key)
            if field in _FILE_KEYS.values() and value is not None:
                kwargs[field] = value
        return cls(**kwargs)

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> GitkitConfig:
        """Load the JSON server-config file at ``path``."""
        with Path(path).open(encoding="utf-8") as fh:
            try:
                data = json.load(fh)
            except json.JSONDecodeError as e:
                raise GitkitClientError(f"Invalid server config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise GitkitClientError(f"Invalid server config file {path}: expected an object")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, prefix: str = "GITKIT_", *, dotenv: bool = True) -> GitkitConfig:
        """Build a config from environment variables.

        Reads ``<prefix>WIDGET_URL``, ``<prefix>PROJECT_ID``,
        ``<prefix>CLIENT_ID``, ``<prefix>SERVICE_ACCOUNT_EMAIL``,
        ``<prefix>SERVICE_ACCOUNT_PRIVATE_KEY``,
        ``<prefix>SERVICE_ACCOUNT_PRIVATE_KEY_FILE``, ``<prefix>COOKIE_NAME``
        and ``<prefix>SERVER_API_KEY``. A ``.env`` file is loaded first
        from the working directory (or a parent) unless ``dotenv`` is False;
        existing variables win.
        """
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        kwargs: dict[str, Any] = {}
        for field in _FILE_KEYS.values():
            value = os.environ.get(f"{prefix}{field.upper()}")
            if value:
                kwargs[field] = value
        return cls(**kwargs)
