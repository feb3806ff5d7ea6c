"""Waiting on long-running remote work.

Two mechanisms exist and are kept apart behind one ``Completion`` interface:

- Managed application create/delete return an azure-core ``LROPoller``; it
  completes or raises, there is no embedded error code.
- Custom actions return an ``Operation`` that is polled by id until it reports
  DONE. Success or failure is decided only by the error attached to the
  terminal observation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from azure.core.exceptions import AzureError

from .ama_models import Operation, OperationState
from .errors import AsyncOperationFailedError, OperationCancelledError, from_azure_error

logger = logging.getLogger(__name__)

FetchOperation = Callable[[str, str, str], Awaitable[Operation]]


class Completion(Protocol):
    """Something that can be awaited until remote work reaches a terminal state."""

    async def wait(self) -> None: ...


async def poll_operation(
    fetch_operation: FetchOperation,
    operation_id: str,
    scope: str,
    resource_name: str,
    *,
    interval_seconds: float,
    stop_event: asyncio.Event | None = None,
    **context: Any,
) -> None:
    """Poll a custom-action operation until it reaches DONE.

    The first fetch happens one interval after the call. Fetch failures are
    not retried and abort the wait; the caller decides whether to start the
    whole action again.

    Args:
        fetch_operation: Coroutine ``(operation_id, scope, resource_name)``
            returning the current Operation.
        operation_id: Operation handle returned by the mutating action.
        scope: Managed resource group id the action ran in.
        resource_name: Managed application name.
        interval_seconds: Fixed delay between polls.
        stop_event: Cancels the wait when set.
        **context: Extra fields, such as the correlation id, carried by the
            raised errors and the log records.

    Raises:
        ValueError: If interval_seconds is not positive.
        OperationCancelledError: If stop_event is set before DONE.
        AsyncOperationFailedError: If the operation finishes with an error.
    """
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be greater than 0")

    stop_event = stop_event or asyncio.Event()
    context = {
        **context,
        "operation_id": operation_id,
        "scope": scope,
        "resource_name": resource_name,
    }

    while True:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except TimeoutError:
            pass
        else:
            raise OperationCancelledError("context cancelled", **context)

        operation = await fetch_operation(operation_id, scope, resource_name)
        if operation.state != OperationState.DONE:
            logger.debug(
                "Operation in progress",
                extra={**context, "state": operation.state.value},
            )
            continue

        if operation.error is not None:
            raise AsyncOperationFailedError(operation.error.code, **context)

        logger.debug("Operation finished", extra=context)
        return


class OperationCompletion:
    """Completion for a custom-action Operation."""

    def __init__(
        self,
        fetch_operation: FetchOperation,
        operation_id: str,
        scope: str,
        resource_name: str,
        *,
        interval_seconds: float,
        stop_event: asyncio.Event | None = None,
        **context: Any,
    ) -> None:
        self._fetch_operation = fetch_operation
        self.operation_id = operation_id
        self._scope = scope
        self._resource_name = resource_name
        self._interval_seconds = interval_seconds
        self._stop_event = stop_event
        self._context = context

    async def wait(self) -> None:
        await poll_operation(
            self._fetch_operation,
            self.operation_id,
            self._scope,
            self._resource_name,
            interval_seconds=self._interval_seconds,
            stop_event=self._stop_event,
            **self._context,
        )


class LROCompletion:
    """Completion for an azure-core long-running operation poller."""

    def __init__(self, poller: Any, description: str, **context: Any) -> None:
        self._poller = poller
        self._description = description
        self._context = context

    async def wait(self) -> None:
        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, self._poller.result)
        except AzureError as e:
            raise from_azure_error(e, f"unable to wait for {self._description}", **self._context) from e
