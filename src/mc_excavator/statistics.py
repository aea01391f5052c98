"""Session throughput figures derived from the event stream."""

from __future__ import annotations

import time
from collections import deque
from typing import Callable

from mc_excavator.events import BlockCleared, EventBus, Finished, Started
from mc_excavator.models import MiningStats

RATE_WINDOW_SECONDS = 60.0


class SessionStatistics:
    """Counts cleared blocks; the rate is the number cleared in the last minute."""

    def __init__(self, bus: EventBus, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._session_start = clock()
        self._total_blocks_mined = 0
        self._total_blocks = 0
        self._recent: deque[float] = deque()

        self._unsubscribers = [
            bus.subscribe(BlockCleared, self._on_block_cleared),
            bus.subscribe(Started, self._on_started),
            bus.subscribe(Finished, self._on_finished),
        ]

    def _on_block_cleared(self, event: BlockCleared) -> None:
        self._total_blocks_mined += 1
        self._recent.append(self._clock())

    def _on_started(self, event: Started) -> None:
        self._total_blocks = event.region.volume

    def _on_finished(self, event: Finished) -> None:
        self._total_blocks = 0

    def _prune(self, now: float) -> None:
        cutoff = now - RATE_WINDOW_SECONDS
        while self._recent and self._recent[0] <= cutoff:
            self._recent.popleft()

    def get_stats(self) -> MiningStats:
        now = self._clock()
        self._prune(now)
        per_minute = len(self._recent)
        remaining = self._total_blocks - self._total_blocks_mined if self._total_blocks > 0 else 0

        estimate: float | None = None
        if per_minute > 0 and remaining > 0:
            estimate = round(remaining / per_minute * 60, 1)

        return MiningStats(
            session_duration_seconds=now - self._session_start,
            total_blocks_mined=self._total_blocks_mined,
            blocks_per_minute=per_minute,
            estimated_seconds_remaining=estimate,
        )

    def reset_session(self) -> None:
        self._session_start = self._clock()
        self._total_blocks_mined = 0
        self._total_blocks = 0
        self._recent.clear()

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
