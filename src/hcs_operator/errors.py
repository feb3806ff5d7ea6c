"""Error taxonomy for cluster and sub-resource reconciliation.

Every failure surfaced by a reconciler is an HCSError carrying the context
needed to correlate it with provider-side logs: resource names, the managed
scope, and the correlation id attached to every outbound request.

NotFoundError is the only kind reconcilers recover from locally, and only
where it means the resource legitimately no longer exists.
"""

from __future__ import annotations

from typing import Any

from azure.core.exceptions import AzureError, HttpResponseError, ResourceNotFoundError


class HCSError(Exception):
    """Base class for reconciliation failures with diagnostic context."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = {k: v for k, v in context.items() if v is not None}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class NotFoundError(HCSError):
    """Raised when a remote lookup returns 404."""

    pass


class AlreadyExistsError(HCSError):
    """Raised when creating a resource that already exists remotely."""

    pass


class ValidationFailedError(HCSError):
    """Raised for bad regions, unavailable versions or missing companion fields."""

    pass


class FederationInvariantViolation(HCSError):
    """Raised when deleting a federation primary that still has secondaries."""

    pass


class AsyncOperationFailedError(HCSError):
    """Raised when a polled operation reaches DONE carrying an error."""

    def __init__(self, code: int, **context: Any) -> None:
        super().__init__(f"an error occurred in an async operation; code: {code}", **context)
        self.code = code


class TransportError(HCSError):
    """Raised on network failures, timeouts and cancellation."""

    pass


class OperationCancelledError(TransportError):
    """Raised when a wait is cancelled or its deadline expires."""

    pass


class RemoteAPIError(HCSError):
    """Raised when a remote API answers with an unexpected status code."""

    def __init__(self, message: str, status_code: int | None = None, **context: Any) -> None:
        super().__init__(message, status_code=status_code, **context)
        self.status_code = status_code


def from_azure_error(error: AzureError, message: str, **context: Any) -> HCSError:
    """Classify an Azure SDK exception.

    404 is kept apart from every other failure so callers can treat it as
    absence; other HTTP failures keep their status code.
    """
    if isinstance(error, ResourceNotFoundError):
        return NotFoundError(message, **context)
    if isinstance(error, HttpResponseError):
        if error.status_code == 404:
            return NotFoundError(message, **context)
        return RemoteAPIError(
            f"{message}: {error.message}", status_code=error.status_code, **context
        )
    return TransportError(f"{message}: {error}", **context)
