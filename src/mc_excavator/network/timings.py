"""Timeouts and thresholds derived from live latency and server tick rate.

Every value is computed on access from the telemetry source, so consumers
always see the current network conditions. Durations are milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass

from mc_excavator.adapters.capabilities import NetworkTelemetry

NOMINAL_TPS = 20.0


@dataclass(slots=True)
class StaticTelemetry:
    """Telemetry source with settable values, for offline tools and tests."""

    current_ping: int = 0
    tps: float = NOMINAL_TPS


class AdaptiveTimings:
    def __init__(self, telemetry: NetworkTelemetry, *, auto_pause_ping_ms: int = 1000) -> None:
        self.telemetry = telemetry
        self._auto_pause_ping_ms = auto_pause_ping_ms

    @property
    def _ping(self) -> int:
        return self.telemetry.current_ping

    @property
    def _tps(self) -> float:
        return self.telemetry.tps

    @property
    def dig_timeout(self) -> int:
        """Timeout for digging a single block."""
        tps_factor = NOMINAL_TPS / max(1.0, self._tps)
        return min(round((6000 + max(0, self._ping * 2)) * tps_factor), 30000)

    @property
    def path_timeout(self) -> int:
        """Timeout for reaching a nearby block."""
        return min(round(8000 + self._ping * 3), 30000)

    @property
    def navigation_timeout(self) -> int:
        """Timeout for long-distance travel (base, storage)."""
        return min(round(180000 + self._ping * 10), 300000)

    @property
    def post_dig_wait_ticks(self) -> int:
        """Ticks to wait for the server to acknowledge a broken block."""
        if self._ping > 400:
            return 6
        if self._ping > 200:
            return 4
        if self._ping > 100:
            return 3
        return 2

    @property
    def inter_block_delay(self) -> int:
        return min(round(max(0, self._ping - 50) * 0.4), 200)

    @property
    def speed_multiplier(self) -> float:
        if self._ping > 400:
            return 0.45
        if self._ping > 200:
            return 0.55
        if self._ping > 100:
            return 0.65
        return 0.8

    @property
    def should_auto_pause(self) -> bool:
        return self._ping >= self._auto_pause_ping_ms or self._tps < 5

    @property
    def stall_time_threshold(self) -> int:
        return 3000 + self._ping * 2

    @property
    def recovery_cooldown(self) -> int:
        return 2000 + self._ping

    @property
    def stuck_ticks_threshold(self) -> int:
        if self._ping > 300:
            return 5
        if self._ping > 150:
            return 4
        return 3

    @property
    def min_recovery_level(self) -> int:
        """Lowest recovery level worth trying; short jumps are useless at high latency."""
        if self._ping > 300:
            return 2
        if self._ping > 150:
            return 1
        return 0

    @property
    def safe_dig_timeout(self) -> int:
        return min(5000 + self._ping * 2, 15000)

    @property
    def stuck_check_interval(self) -> int:
        return 500

    @property
    def rubber_band_distance(self) -> float:
        # Larger corrections are routine on slow links.
        if self._ping > 300:
            return 1.0
        if self._ping > 150:
            return 0.7
        return 0.5

    def as_dict(self) -> dict[str, int | float | bool]:
        return {
            "dig_timeout": self.dig_timeout,
            "path_timeout": self.path_timeout,
            "navigation_timeout": self.navigation_timeout,
            "post_dig_wait_ticks": self.post_dig_wait_ticks,
            "inter_block_delay": self.inter_block_delay,
            "speed_multiplier": self.speed_multiplier,
            "should_auto_pause": self.should_auto_pause,
            "stall_time_threshold": self.stall_time_threshold,
            "recovery_cooldown": self.recovery_cooldown,
            "stuck_ticks_threshold": self.stuck_ticks_threshold,
            "min_recovery_level": self.min_recovery_level,
            "safe_dig_timeout": self.safe_dig_timeout,
            "stuck_check_interval": self.stuck_check_interval,
            "rubber_band_distance": self.rubber_band_distance,
        }
