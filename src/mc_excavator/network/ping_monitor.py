"""Latency and tick-rate sampling for the adaptive timing policy."""

from __future__ import annotations

import asyncio
import logging
import math
import statistics
import time
from collections import deque
from typing import Callable

from mc_excavator.adapters.world import BotPort
from mc_excavator.events import EventBus, PingCritical, PingHigh, PingUpdate
from mc_excavator.models import PingData, PingQuality

PING_SAMPLE_SIZE = 20
TICK_SAMPLE_SIZE = 40
MIN_TICK_SAMPLES = 10
# Intervals this long are server freezes, not a tick-rate signal.
MAX_TICK_INTERVAL_MS = 500.0
HIGH_PING_MS = 500
CRITICAL_PING_MS = 1000


class PingMonitor:
    """Keeps a bounded window of latency and tick-interval samples."""

    def __init__(
        self,
        bot: BotPort,
        bus: EventBus,
        *,
        sample_interval_seconds: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        self._bot = bot
        self._bus = bus
        self._sample_interval_seconds = sample_interval_seconds
        self._clock = clock
        self._logger = logger or logging.getLogger("mc_excavator.network.ping")

        self._samples: deque[int] = deque(maxlen=PING_SAMPLE_SIZE)
        self._tick_deltas: deque[float] = deque(maxlen=TICK_SAMPLE_SIZE)
        self._last_tick_time: float | None = None
        self._current_ping = 0
        self._tps = 20.0
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def current_ping(self) -> int:
        return self._current_ping

    @property
    def tps(self) -> float:
        return self._tps

    @property
    def average_ping(self) -> int:
        if not self._samples:
            return 0
        return round(sum(self._samples) / len(self._samples))

    @property
    def jitter(self) -> int:
        if len(self._samples) < 2:
            return 0
        avg = self.average_ping
        variance = sum((s - avg) ** 2 for s in self._samples) / len(self._samples)
        return round(math.sqrt(variance))

    @property
    def quality(self) -> PingQuality:
        ping = self._current_ping
        if ping < 100:
            return PingQuality.good
        if ping < 250:
            return PingQuality.moderate
        if ping < 500:
            return PingQuality.poor
        return PingQuality.critical

    def get_data(self) -> PingData:
        return PingData(ping=self._current_ping, tps=round(self._tps, 1), quality=self.quality)

    def record_latency(self, ping: int) -> None:
        """Add a latency sample; the median of the window becomes the current ping."""
        self._samples.append(max(0, int(ping)))
        ordered = sorted(self._samples)
        self._current_ping = ordered[len(ordered) // 2]

        self._bus.publish(PingUpdate(data=self.get_data()))
        if self._current_ping > HIGH_PING_MS:
            self._bus.publish(PingHigh(ping=self._current_ping))
        if self._current_ping > CRITICAL_PING_MS:
            self._bus.publish(PingCritical(ping=self._current_ping))

    def record_tick(self, now: float | None = None) -> None:
        """Register one client physics tick observed at ``now`` (seconds)."""
        now = self._clock() if now is None else now
        if self._last_tick_time is not None:
            delta_ms = (now - self._last_tick_time) * 1000
            if 0 < delta_ms < MAX_TICK_INTERVAL_MS:
                self._tick_deltas.append(delta_ms)
        self._last_tick_time = now

        if len(self._tick_deltas) >= MIN_TICK_SAMPLES:
            self._tps = min(20.0, 1000 / statistics.fmean(self._tick_deltas))

    async def start(self) -> None:
        if self._tasks:
            return
        self._last_tick_time = self._clock()
        self._tasks = [
            asyncio.create_task(self._sample_loop(), name="ping-monitor-samples"),
            asyncio.create_task(self._tick_loop(), name="ping-monitor-ticks"),
        ]
        self._logger.info("ping_monitor_started", extra={"interval_seconds": self._sample_interval_seconds})

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _sample_loop(self) -> None:
        while True:
            if self._bot.position is not None:
                self.record_latency(self._bot.latency)
            await asyncio.sleep(self._sample_interval_seconds)

    async def _tick_loop(self) -> None:
        while True:
            await self._bot.wait_for_ticks(1)
            self.record_tick()
