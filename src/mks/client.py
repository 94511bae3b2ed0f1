"""Morpheus API client.

Main entry point for talking to a Morpheus appliance.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from mks._config import MksConfig
from mks._http import HttpClient
from mks.auth import AccessTokenAuth, AuthProvider, PasswordAuth
from mks.resources.clusters import Clusters
from mks.resources.hosts import Hosts


class MorpheusClient:
    """Synchronous client for the Morpheus API.

    Supports two authentication methods:
    - Access token: a pre-issued bearer token
    - Username/password: OAuth2 password grant with auto token refresh

    Example:
        ```python
        from mks import MorpheusClient

        client = MorpheusClient("https://morpheus.example.com", access_token="...")
        client = MorpheusClient(
            "https://morpheus.example.com", username="admin", password="secret"
        )

        cluster = client.clusters.get(42).cluster
        ```

    Environment variables:
        MORPHEUS_API_URL: Appliance URL
        MORPHEUS_API_TOKEN: Access token
        MORPHEUS_API_USERNAME: Username for password auth
        MORPHEUS_API_PASSWORD: Password for password auth
        MORPHEUS_TIMEOUT: Request timeout in seconds (default: 60)
        MORPHEUS_MAX_RETRIES: Max retries (default: 3)
        MORPHEUS_VERIFY_SSL: Verify TLS certificates (default: true)
        MORPHEUS_DEBUG: Log at DEBUG level under the "mks" logger

    Auth priority (highest to lowest):
        1. Explicit `auth` parameter
        2. Explicit access_token, then username/password
        3. Environment variables and config file
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        access_token: str | None = None,
        username: str | None = None,
        password: str | None = None,
        auth: AuthProvider | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        verify_ssl: bool | None = None,
        config: MksConfig | None = None,
    ) -> None:
        """Initialize the Morpheus client.

        Args:
            base_url: Appliance URL. Falls back to MORPHEUS_API_URL or the config file.
            access_token: Pre-issued bearer token.
            username: Username for password auth (requires password).
            password: Password for password auth (requires username).
            auth: Explicit AuthProvider instance to use.
            timeout: Request timeout in seconds.
            max_retries: Maximum number of retries for failed requests.
            verify_ssl: Whether to verify SSL certificates.
            config: Preloaded configuration; loaded from env and file when omitted.
        """
        self._config = config or MksConfig.load()
        if self._config.debug:
            logging.getLogger("mks").setLevel(logging.DEBUG)

        base_url = base_url or self._config.base_url
        if not base_url:
            raise ValueError(
                "Morpheus API URL is required. Pass base_url, set MORPHEUS_API_URL, "
                "or configure api_url in ~/.mks/config.toml"
            )
        self._base_url = base_url
        self._timeout = timeout if timeout is not None else self._config.timeout
        self._max_retries = max_retries if max_retries is not None else self._config.max_retries
        self._verify_ssl = verify_ssl if verify_ssl is not None else self._config.verify_ssl

        self._auth = self._resolve_auth(
            access_token=access_token,
            username=username,
            password=password,
            auth=auth,
        )

        self._http = HttpClient(
            base_url=self._base_url,
            auth=self._auth,
            timeout=self._timeout,
            max_retries=self._max_retries,
            verify_ssl=self._verify_ssl,
        )

        self.clusters = Clusters(self._http)
        self.hosts = Hosts(self._http)

    def _resolve_auth(
        self,
        access_token: str | None = None,
        username: str | None = None,
        password: str | None = None,
        auth: AuthProvider | None = None,
    ) -> AuthProvider:
        """Resolve the authentication provider.

        Raises:
            ValueError: If no authentication credentials are available.
        """
        if auth is not None:
            return auth

        if access_token:
            return AccessTokenAuth(access_token=access_token)

        if username and password:
            return PasswordAuth(username=username, password=password)

        config = self._config
        if config.access_token:
            return AccessTokenAuth(access_token=config.access_token)
        if config.auth.access_token:
            return AccessTokenAuth(access_token=config.auth.access_token)
        if config.auth.username and config.auth.password:
            return PasswordAuth(username=config.auth.username, password=config.auth.password)

        raise ValueError(
            "No authentication credentials provided. "
            "Provide one of: access_token, username/password, or auth provider. "
            "Or set environment variables: MORPHEUS_API_TOKEN or "
            "MORPHEUS_API_USERNAME/MORPHEUS_API_PASSWORD."
        )

    @property
    def config(self) -> MksConfig:
        return self._config

    @contextmanager
    def deadline(self, seconds: float) -> Iterator[None]:
        """Fail any API call made inside the block once ``seconds`` have passed."""
        with self._http.deadline(seconds):
            yield

    def close(self) -> None:
        """Close the client and release resources."""
        self._http.close()

    def __enter__(self) -> MorpheusClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"MorpheusClient(base_url={self._base_url!r})"

    @property
    def base_url(self) -> str:
        return self._base_url
