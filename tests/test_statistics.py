from __future__ import annotations

from mc_excavator.events import BlockCleared, EventBus, Finished, Started
from mc_excavator.models import Region, Vec3
from mc_excavator.statistics import SessionStatistics


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_rate_and_estimate_follow_cleared_blocks() -> None:
    bus = EventBus()
    clock = _Clock()
    stats = SessionStatistics(bus, clock=clock)

    bus.publish(Started(region=Region(Vec3(0, 0, 0), Vec3(9, 0, 9)).normalized()))
    for _ in range(20):
        clock.now += 1
        bus.publish(BlockCleared(position=Vec3(0, 0, 0), name="stone"))

    snapshot = stats.get_stats()

    assert snapshot.total_blocks_mined == 20
    assert snapshot.blocks_per_minute == 20
    assert snapshot.estimated_seconds_remaining == 240.0
    assert snapshot.session_duration_seconds == 20.0


def test_rate_only_counts_the_last_minute() -> None:
    bus = EventBus()
    clock = _Clock()
    stats = SessionStatistics(bus, clock=clock)

    bus.publish(BlockCleared(position=Vec3(0, 0, 0), name="stone"))
    clock.now += 90
    bus.publish(BlockCleared(position=Vec3(1, 0, 0), name="stone"))

    snapshot = stats.get_stats()

    assert snapshot.blocks_per_minute == 1
    assert snapshot.total_blocks_mined == 2
    assert snapshot.estimated_seconds_remaining is None


def test_finish_and_reset() -> None:
    bus = EventBus()
    clock = _Clock()
    stats = SessionStatistics(bus, clock=clock)

    bus.publish(Started(region=Region(Vec3(0, 0, 0), Vec3(1, 0, 1)).normalized()))
    bus.publish(BlockCleared(position=Vec3(0, 0, 0), name="stone"))
    bus.publish(Finished())
    assert stats.get_stats().estimated_seconds_remaining is None

    clock.now += 5
    stats.reset_session()
    snapshot = stats.get_stats()

    assert snapshot.total_blocks_mined == 0
    assert snapshot.session_duration_seconds == 0.0


def test_close_unsubscribes() -> None:
    bus = EventBus()
    stats = SessionStatistics(bus, clock=_Clock())
    stats.close()

    bus.publish(BlockCleared(position=Vec3(0, 0, 0), name="stone"))

    assert stats.get_stats().total_blocks_mined == 0
