from __future__ import annotations

import asyncio

from mc_excavator.timeouts import TimeoutStatus, with_timeout


def test_completed_operation_returns_its_value() -> None:
    async def _op() -> int:
        await asyncio.sleep(0)
        return 42

    outcome = asyncio.run(with_timeout(_op(), 1.0))

    assert outcome.ok
    assert outcome.value == 42


def test_failing_operation_is_reported_not_raised() -> None:
    async def _op() -> None:
        raise ValueError("broken")

    outcome = asyncio.run(with_timeout(_op(), 1.0))

    assert outcome.status == TimeoutStatus.FAILED
    assert isinstance(outcome.error, ValueError)


def test_timeout_runs_cleanup_before_cancelling_the_loser() -> None:
    order: list[str] = []

    async def _run():
        async def _slow() -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                order.append("cancelled")
                raise

        def _on_timeout() -> None:
            order.append("on_timeout")

        return await with_timeout(_slow(), 0.01, on_timeout=_on_timeout, grace_seconds=0.01)

    outcome = asyncio.run(_run())

    assert outcome.timed_out
    assert order == ["on_timeout", "cancelled"]


def test_cleanup_can_let_the_operation_finish_during_grace() -> None:
    async def _run():
        stopped = asyncio.Event()

        async def _dig() -> None:
            await stopped.wait()
            raise RuntimeError("Digging aborted")

        async def _stop() -> None:
            stopped.set()

        return await with_timeout(_dig(), 0.01, on_timeout=_stop, grace_seconds=0.01)

    outcome = asyncio.run(_run())

    assert outcome.status == TimeoutStatus.TIMED_OUT
    assert outcome.error is None
