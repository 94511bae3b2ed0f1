"""HTTP transport for the Morpheus API.

Every request goes through ``HttpClient._request``, which:
- attaches the bearer token and logs in / refreshes it when due
- retries transient failures (timeouts, transport errors, 429, 5xx) with backoff
- bounds requests and their retries by an optional ``deadline``
- turns Morpheus error bodies (``{"success": false, "msg": ...}``) into MksError subclasses

Only idempotent methods are retried after the request may have reached the
appliance. A POST is retried only when it was never sent (connect failure)
or was refused with 429.
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

import httpx

from mks._version import __version__
from mks.exceptions import (
    AuthenticationError,
    ConnectionError,
    MksError,
    NotFoundError,
    RateLimitError,
    RemoteCallError,
    RequestTimeoutError,
    ValidationError,
)

if TYPE_CHECKING:
    from mks.auth import AuthProvider

logger = logging.getLogger("mks.http")

DEFAULT_HEADERS = {
    "User-Agent": f"mks-python/{__version__}",
    "Accept": "application/json",
    "Content-Type": "application/json",
}

BACKOFF_BASE = 0.1

IDEMPOTENT_METHODS = frozenset({"GET", "PUT", "DELETE"})

# Transport failures raised before any byte of the request left the client
_NOT_SENT = (httpx.ConnectError, httpx.ConnectTimeout)


class HttpClient:
    """Synchronous HTTP client bound to one Morpheus appliance."""

    def __init__(
        self,
        base_url: str,
        auth: AuthProvider | None = None,
        timeout: float = 60.0,
        max_retries: int = 3,
        verify_ssl: bool = True,
    ) -> None:
        self._auth = auth
        self._timeout = timeout
        self._max_retries = max_retries
        self._deadline: float | None = None
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=DEFAULT_HEADERS.copy(),
            timeout=timeout,
            verify=verify_ssl,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @contextlib.contextmanager
    def deadline(self, seconds: float) -> Iterator[None]:
        """Bound every request made inside the block, retries included, to ``seconds``.

        Nested deadlines keep the earlier of the two.
        """
        previous = self._deadline
        deadline = time.monotonic() + seconds
        self._deadline = deadline if previous is None else min(deadline, previous)
        try:
            yield
        finally:
            self._deadline = previous

    def _remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return self._deadline - time.monotonic()

    def get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, *, json: dict[str, Any] | None = None) -> Any:
        return self._request("POST", path, json=json)

    def put(self, path: str, *, json: dict[str, Any] | None = None) -> Any:
        return self._request("PUT", path, json=json)

    def delete(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        """Perform DELETE request; Morpheus takes removal options as query params."""
        return self._request("DELETE", path, params=params)

    def _login_if_needed(self) -> None:
        if self._auth is None or not self._auth.needs_refresh():
            return
        try:
            self._auth.refresh(self._client)
        except httpx.HTTPStatusError as e:
            raise AuthenticationError(
                f"Failed to obtain access token: {e}", response=e.response
            ) from e

    def _refresh_after_unauthorized(self) -> bool:
        """Refresh credentials after a 401; False when that is not possible."""
        if self._auth is None:
            return False
        try:
            self._auth.refresh(self._client)
        except (httpx.HTTPError, MksError) as e:
            logger.debug("Credential refresh after 401 failed: %s", e)
            return False
        return True

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        self._login_if_needed()
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        refreshed = False
        attempt = 0
        while True:
            try:
                return self._send(method, path, params=params or None, json=json)
            except AuthenticationError:
                if refreshed or not self._refresh_after_unauthorized():
                    raise
                refreshed = True
                continue
            except RemoteCallError as e:
                if not _is_retryable(e, method) or attempt >= self._max_retries:
                    raise
                attempt += 1
                delay = _retry_delay(e, attempt)
                remaining = self._remaining()
                if remaining is not None and delay >= remaining:
                    raise
                logger.debug(
                    "%s %s failed (%s), retry %d/%d in %gs",
                    method,
                    path,
                    e,
                    attempt,
                    self._max_retries,
                    delay,
                )
                time.sleep(delay)

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None,
        json: dict[str, Any] | None,
    ) -> Any:
        timeout = self._timeout
        remaining = self._remaining()
        if remaining is not None:
            if remaining <= 0:
                raise RequestTimeoutError(f"{method} {path}: operation deadline exceeded")
            timeout = min(timeout, remaining)

        headers = self._auth.get_headers() if self._auth is not None else {}
        try:
            response = self._client.request(
                method, path, params=params, json=json, headers=headers, timeout=timeout
            )
        except _NOT_SENT as e:
            raise ConnectionError(f"Failed to connect: {e}") from e
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"Request timed out: {e}") from e
        except httpx.TransportError as e:
            raise ConnectionError(f"Connection failed: {e}") from e
        return _decode(response)


def _is_retryable(error: RemoteCallError, method: str) -> bool:
    if isinstance(error, (AuthenticationError, NotFoundError, ValidationError)):
        return False
    if isinstance(error, RateLimitError):
        return True
    if method not in IDEMPOTENT_METHODS:
        return isinstance(error.__cause__, _NOT_SENT)
    if isinstance(error, (RequestTimeoutError, ConnectionError)):
        return True
    return error.status_code is None or error.status_code >= 500


def _retry_delay(error: RemoteCallError, attempt: int) -> float:
    if isinstance(error, RateLimitError) and error.retry_after:
        return error.retry_after
    return BACKOFF_BASE * 2**attempt


def _decode(response: httpx.Response) -> Any:
    """Return the JSON body of a successful response or raise the mapped error."""
    if response.status_code == 204:
        return None
    try:
        data = response.json()
    except ValueError:
        data = None

    if response.is_success:
        return data

    status = response.status_code
    message = _error_message(data, response)

    if status == 401:
        raise AuthenticationError(message, response=response)
    if status == 404:
        raise NotFoundError(message, response=response)
    if status in (400, 422):
        errors = data.get("errors") if isinstance(data, dict) else None
        raise ValidationError(message, errors=errors or {}, response=response)
    if status == 429:
        retry_after = None
        with contextlib.suppress(TypeError, ValueError):
            retry_after = int(response.headers.get("Retry-After"))
        raise RateLimitError(message, retry_after=retry_after, response=response)
    if status >= 500:
        raise RemoteCallError(f"Server error: {message}", response=response)
    raise RemoteCallError(message, response=response)


def _error_message(data: Any, response: httpx.Response) -> str:
    if isinstance(data, dict):
        # Morpheus failures: {"success": false, "msg": "..."}; OAuth failures use "error"
        for key in ("msg", "message", "error_description", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value.get("message"):
                return str(value["message"])
    return f"HTTP {response.status_code}: {response.reason_phrase}"
