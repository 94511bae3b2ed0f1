"""Authentication providers for the Morpheus API.

Supports two authentication methods:
- AccessToken: a pre-issued bearer token
- Password: OAuth2 password grant with automatic token refresh
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx

TOKEN_PATH = "/oauth/token"
CLIENT_ID = "morpheus"
FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


class AuthProvider(ABC):
    """Base authentication provider interface.

    All authentication methods must implement this interface.
    """

    @abstractmethod
    def get_headers(self) -> dict[str, str]:
        """Return authentication headers for requests."""
        ...

    @abstractmethod
    def needs_refresh(self) -> bool:
        """Check if credentials need refreshing before the next request."""
        ...

    @abstractmethod
    def refresh(self, client: httpx.Client) -> None:
        """Refresh credentials if needed.

        Args:
            client: HTTP client to use for refresh requests.
        """
        ...

    @property
    @abstractmethod
    def is_authenticated(self) -> bool:
        """Check if valid credentials are available."""
        ...


@dataclass
class PasswordAuth(AuthProvider):
    """OAuth2 password grant authentication.

    Logs in with username/password and manages the access token lifecycle.

    Example:
        ```python
        auth = PasswordAuth(username="admin", password="secret")
        # Login is performed automatically on first request or manually:
        auth.login(http_client)
        ```
    """

    username: str
    password: str = field(repr=False)
    _access_token: str | None = field(default=None, repr=False)
    _refresh_token: str | None = field(default=None, repr=False)
    _expires_at: float = field(default=0.0, repr=False)
    _refresh_buffer: int = field(default=60, repr=False)  # Refresh 60s before expiry

    def get_headers(self) -> dict[str, str]:
        if self._access_token:
            return {"Authorization": f"Bearer {self._access_token}"}
        return {}

    def needs_refresh(self) -> bool:
        if not self._access_token:
            return True
        return time.time() >= (self._expires_at - self._refresh_buffer)

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None and time.time() < self._expires_at

    def login(self, client: Any) -> dict[str, Any]:
        """Perform the password grant to obtain tokens.

        Args:
            client: HTTP client bound to the Morpheus appliance URL.

        Returns:
            Token response data.

        Raises:
            httpx.HTTPStatusError: If login fails.
        """
        response = client.post(
            TOKEN_PATH,
            params={"grant_type": "password", "scope": "write", "client_id": CLIENT_ID},
            data={"username": self.username, "password": self.password},
            headers=FORM_HEADERS,
        )
        response.raise_for_status()
        data = response.json()
        self._store_tokens(data)
        return data

    def refresh(self, client: Any) -> None:
        """Refresh the access token.

        Uses the refresh token when available and falls back to a full
        login when the refresh is rejected.
        """
        if not self._refresh_token:
            self.login(client)
            return

        response = client.post(
            TOKEN_PATH,
            params={"grant_type": "refresh_token", "scope": "write", "client_id": CLIENT_ID},
            data={"refresh_token": self._refresh_token},
            headers=FORM_HEADERS,
        )

        if response.status_code in (400, 401):
            self.login(client)
            return

        response.raise_for_status()
        self._store_tokens(response.json())

    def _store_tokens(self, data: dict[str, Any]) -> None:
        self._access_token = data.get("access_token")
        if data.get("refresh_token"):
            self._refresh_token = data["refresh_token"]
        # Morpheus tokens are long lived; default to one hour when unspecified
        expires_in = data.get("expires_in", 3600)
        self._expires_at = time.time() + expires_in


@dataclass
class AccessTokenAuth(AuthProvider):
    """Pre-issued bearer token authentication.

    Example:
        ```python
        auth = AccessTokenAuth(access_token="...")
        client = MorpheusClient("https://morpheus.example.com", auth=auth)
        ```
    """

    access_token: str = field(repr=False)

    def get_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def needs_refresh(self) -> bool:
        return False

    def refresh(self, client: Any) -> None:
        pass

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)
