from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from speakpro.errors import AttemptTimeoutError


T = TypeVar("T")


def _discard_outcome(task: "asyncio.Future[object]") -> None:
    # Late results are dropped; reading the exception keeps asyncio from warning about it.
    if not task.cancelled():
        task.exception()


async def with_timeout(operation: Awaitable[T], timeout_ms: int, label: str = "API call") -> T:
    """Wait for ``operation`` for at most ``timeout_ms`` milliseconds.

    The operation itself is not cancelled on expiry. It keeps running in the
    background and whatever it settles with is discarded.
    """
    task = asyncio.ensure_future(operation)
    task.add_done_callback(_discard_outcome)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=max(0, int(timeout_ms)) / 1000.0)
    except asyncio.TimeoutError as exc:
        raise AttemptTimeoutError(label, timeout_ms) from exc
