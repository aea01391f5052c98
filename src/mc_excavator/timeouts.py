"""Race an awaitable against a timer, with guaranteed cleanup of the loser."""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")


class TimeoutStatus(str, Enum):
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(slots=True)
class TimeoutOutcome(Generic[T]):
    status: TimeoutStatus
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status == TimeoutStatus.COMPLETED

    @property
    def timed_out(self) -> bool:
        return self.status == TimeoutStatus.TIMED_OUT


async def with_timeout(
    operation: Awaitable[T],
    timeout_seconds: float,
    *,
    on_timeout: Callable[[], Any] | None = None,
    grace_seconds: float = 0.0,
) -> TimeoutOutcome[T]:
    """Run ``operation`` for at most ``timeout_seconds``.

    On timeout, ``on_timeout`` (sync or async) runs first so the underlying
    action can be told to stop, then ``grace_seconds`` elapse, then the
    operation task is cancelled and awaited. Only after that is the timeout
    reported. Failures of the operation are returned, not raised.
    """
    task = asyncio.ensure_future(operation)
    try:
        done, _ = await asyncio.wait({task}, timeout=max(0.0, timeout_seconds))
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        if task.cancelled():
            return TimeoutOutcome(TimeoutStatus.FAILED, error=RuntimeError("Operation was cancelled"))
        error = task.exception()
        if error is not None:
            return TimeoutOutcome(TimeoutStatus.FAILED, error=error)
        return TimeoutOutcome(TimeoutStatus.COMPLETED, value=task.result())

    if on_timeout is not None:
        result = on_timeout()
        if inspect.isawaitable(result):
            await result
    if grace_seconds > 0:
        await asyncio.sleep(grace_seconds)

    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception:  # noqa: BLE001
        pass
    return TimeoutOutcome(TimeoutStatus.TIMED_OUT)
