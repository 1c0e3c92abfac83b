"""Cooperative timed-retry primitive used by discovery and window-readiness waits."""

import asyncio
from typing import Callable, Optional, TypeVar

from .errors import HearthlogError

T = TypeVar("T")


class PollCancelled(HearthlogError):
    """Raised by poll_until when its cancel event is set."""


async def poll_until(
    probe: Callable[[], Optional[T]],
    interval: float,
    cancel: Optional[asyncio.Event] = None,
) -> T:
    """
    Call `probe` every `interval` seconds until it returns a truthy value.

    The wait between probes is an asyncio sleep, so the loop never blocks a
    thread and is cancelled like any other task.

    Args:
        probe: Zero-argument callable; its first truthy result is returned
        interval: Delay between probes in seconds
        cancel: Optional event; setting it ends the wait with PollCancelled

    Raises:
        PollCancelled: `cancel` was set before the probe succeeded
    """
    while True:
        if cancel is not None and cancel.is_set():
            raise PollCancelled()
        result = probe()
        if result:
            return result
        if cancel is None:
            await asyncio.sleep(interval)
            continue
        try:
            await asyncio.wait_for(cancel.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass
