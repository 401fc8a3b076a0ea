"""
Deadline-bounded execution of asynchronous operations

Every network call made by a lyric provider goes through run_with_timeout().
The operation and a deadline timer are started as two independent asyncio
tasks; whichever finishes first wins and the other one is cancelled and
awaited so no socket or timer is left dangling.

Cancellation of the awaiting task is never converted into a timeout: both
inner tasks are cancelled and asyncio.CancelledError propagates unchanged.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

from ..utils.logger import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


class AsyncTimeoutError(Exception):
    """Base class for errors produced by the timeout helper."""

    recovery_suggestion = ""


class InvalidTimeout(AsyncTimeoutError):
    """The timeout budget was zero or negative."""

    recovery_suggestion = "Provide a timeout value greater than zero seconds."

    def __init__(self, seconds: float) -> None:
        super().__init__(f"The timeout must be greater than zero (got {seconds}).")
        self.seconds = seconds


class TimeoutExceeded(AsyncTimeoutError):
    """The operation did not finish within its budget."""

    recovery_suggestion = "Retry the operation with a higher timeout or investigate performance bottlenecks."

    def __init__(self, seconds: float) -> None:
        super().__init__(f"The operation exceeded the allotted timeout of {seconds}s.")
        self.seconds = seconds


async def _cancel_and_wait(*tasks: "asyncio.Future") -> None:
    """Cancel unfinished tasks and wait until they have actually unwound."""
    pending = [task for task in tasks if not task.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)


async def run_with_timeout(seconds: float, operation: Callable[[], Awaitable[T]]) -> T:
    """
    Run an asynchronous operation bounded by a duration

    Args:
        seconds: Maximum number of seconds to wait for the operation. Must be positive.
        operation: Zero-argument callable returning an awaitable (usually a coroutine
                   function or a lambda wrapping one). It is not invoked when the
                   budget is invalid.

    Returns:
        The value produced by the operation if it finishes before the deadline

    Raises:
        InvalidTimeout: If seconds <= 0 (the operation is never started)
        TimeoutExceeded: If the deadline timer fires first
        asyncio.CancelledError: If the caller is cancelled while waiting
        Exception: Whatever the operation itself raised
    """
    if seconds <= 0:
        logger.error(f"Refusing to run timeout wrapper because seconds is non-positive: {seconds}")
        raise InvalidTimeout(seconds)

    logger.debug(f"Executing timeout wrapper with {seconds}s budget")

    # The operation is started first so a synchronous failure leaves no timer behind
    operation_task = asyncio.ensure_future(operation())
    timer_task = asyncio.ensure_future(asyncio.sleep(seconds))

    try:
        done, _ = await asyncio.wait(
            {operation_task, timer_task},
            return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        await _cancel_and_wait(operation_task, timer_task)
        raise

    await _cancel_and_wait(operation_task, timer_task)

    if operation_task in done:
        # Re-raises the operation's own exception, CancelledError included
        return operation_task.result()

    if timer_task in done:
        logger.error(f"Timeout of {seconds}s exceeded. Cancelling operation.")
        raise TimeoutExceeded(seconds)

    # Neither side finished: never hang and never return a silent None
    raise asyncio.CancelledError()
