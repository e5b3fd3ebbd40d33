"""Caller-controlled cancellation for store calls."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def raise_if_cancelled(cancel: asyncio.Event | None) -> None:
    """Raise ``asyncio.CancelledError`` when ``cancel`` is already set."""
    if cancel is not None and cancel.is_set():
        raise asyncio.CancelledError("operation cancelled before it started")


async def run_cancellable(
    operation: Callable[[], Awaitable[T]],
    cancel: asyncio.Event | None = None,
) -> T:
    """
    Await ``operation()`` unless ``cancel`` is set first.

    An event that is already set raises ``asyncio.CancelledError`` without
    starting the operation. An event set while waiting stops the wait and
    raises ``asyncio.CancelledError``; the store may still finish the write.
    """
    if cancel is None:
        return await operation()
    raise_if_cancelled(cancel)

    task = asyncio.ensure_future(operation())
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task.done():
        return task.result()

    task.cancel()
    logger.debug("Stopped waiting for store operation after cancellation")
    raise asyncio.CancelledError("operation cancelled while waiting for the store")
