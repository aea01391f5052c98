"""Network-quality sampling and the timing policy derived from it."""

from .confirmer import ConfirmationWaiter
from .ping_monitor import PingMonitor
from .timings import AdaptiveTimings, StaticTelemetry

__all__ = ["AdaptiveTimings", "ConfirmationWaiter", "PingMonitor", "StaticTelemetry"]
