"""MKS reconciler exceptions.

All exceptions inherit from MksError for easy catching.
"""

from __future__ import annotations

from typing import Any


class MksError(Exception):
    """Base exception for all MKS errors."""

    def __init__(self, message: str, *, response: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.response = response

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"

    def with_prefix(self, prefix: str) -> MksError:
        """Return a copy of this error with ``prefix: `` prepended to the message.

        The copy keeps the original type and attributes so callers can still
        catch the specific error.
        """
        message = f"{prefix}: {self.message}"
        clone = self.__class__.__new__(self.__class__, message)
        clone.__dict__.update(self.__dict__)
        clone.message = message
        return clone


class RemoteCallError(MksError):
    """A call to the Morpheus API failed.

    Always surfaced to the caller of the lifecycle operation.
    """

    @property
    def status_code(self) -> int | None:
        return getattr(self.response, "status_code", None)


class AuthenticationError(RemoteCallError):
    """Invalid or missing credentials.

    Check that MORPHEUS_API_TOKEN or MORPHEUS_API_USERNAME/PASSWORD are set.
    """


class NotFoundError(RemoteCallError):
    """Remote object not found (HTTP 404).

    Recoverable: a read clears the local identifier, a delete poll treats
    it as already removed.
    """

    def __init__(
        self, message: str, *, resource_type: str = "", resource_id: str = "", response: Any = None
    ) -> None:
        super().__init__(message, response=response)
        self.resource_type = resource_type
        self.resource_id = resource_id


class ValidationError(RemoteCallError):
    """The API rejected the request payload."""

    def __init__(
        self, message: str, *, errors: dict[str, Any] | None = None, response: Any = None
    ) -> None:
        super().__init__(message, response=response)
        self.errors = errors or {}


class RateLimitError(RemoteCallError):
    """Rate limit exceeded.

    Check retry_after for when to retry.
    """

    def __init__(
        self, message: str, *, retry_after: int | None = None, response: Any = None
    ) -> None:
        super().__init__(message, response=response)
        self.retry_after = retry_after


class ConnectionError(RemoteCallError):
    """Failed to connect to the Morpheus API.

    Check network connectivity and the configured API URL.
    """


class RequestTimeoutError(RemoteCallError):
    """A single HTTP request timed out."""


class ConvergenceError(MksError):
    """Polling for a remote state ended without reaching a target status."""

    def __init__(
        self, message: str, *, last_status: str | None = None, response: Any = None
    ) -> None:
        super().__init__(message, response=response)
        self.last_status = last_status


class ConvergenceTimeout(ConvergenceError):
    """Polling exceeded its timeout."""

    def __init__(
        self,
        message: str,
        *,
        timeout: float,
        last_status: str | None = None,
        response: Any = None,
    ) -> None:
        super().__init__(message, last_status=last_status, response=response)
        self.timeout = timeout


class ConvergenceCancelled(ConvergenceError):
    """The caller cancelled the operation while polling."""


class WorkerProvisionFailure(MksError):
    """A cluster worker reached the failed status during scale-up."""

    def __init__(self, message: str, *, worker_ids: list[int] | None = None) -> None:
        super().__init__(message)
        self.worker_ids = worker_ids or []


class InvariantError(MksError):
    """Malformed desired state or a violated internal invariant."""


class TerminalFailureState(MksError):
    """The cluster reported a failed status not explained by provisioning hosts."""

    def __init__(self, message: str, *, cluster_id: int | None = None) -> None:
        super().__init__(message)
        self.cluster_id = cluster_id
