"""Composition root: wires the engine and its collaborators around one bot."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from mc_excavator.adapters.pathing import GoalSolver
from mc_excavator.adapters.world import BotPort
from mc_excavator.config import Settings, settings as default_settings
from mc_excavator.errors import AlreadyMiningError
from mc_excavator.events import EventBus
from mc_excavator.inventory import FoodManager, InventoryManager, SkipListToolSelector
from mc_excavator.mining import EngineDependencies, ExcavationEngine, JsonProgressStore, Navigator, ProgressStore
from mc_excavator.models import Region
from mc_excavator.network import AdaptiveTimings, ConfirmationWaiter, PingMonitor
from mc_excavator.safety import ObstructionRecovery
from mc_excavator.statistics import SessionStatistics


@dataclass(slots=True)
class ExcavatorRuntime:
    """Everything built by ``build_runtime``; owns the background excavation task."""

    settings: Settings
    bus: EventBus
    ping_monitor: PingMonitor
    timings: AdaptiveTimings
    navigator: Navigator
    recovery: ObstructionRecovery
    progress: ProgressStore
    engine: ExcavationEngine
    statistics: SessionStatistics
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("mc_excavator.runtime"))
    _job: asyncio.Task[None] | None = None

    @property
    def busy(self) -> bool:
        return self._job is not None and not self._job.done()

    async def boot(self) -> bool:
        """Start telemetry, let the world load, then pick up saved progress in the background."""
        await self.ping_monitor.start()
        await asyncio.sleep(self.settings.resume_delay_seconds)

        if self.busy or not self.progress.has_state():
            return False

        self.logger.info("boot_resume_scheduled")
        self._job = asyncio.create_task(self._resume(), name="excavation-resume")
        return True

    def start_excavation(self, region: Region) -> asyncio.Task[None]:
        if self.busy:
            raise AlreadyMiningError("Already mining")
        self._job = asyncio.create_task(self.engine.start(region), name="excavation")
        return self._job

    async def wait(self) -> None:
        if self._job is not None:
            await self._job

    async def shutdown(self) -> None:
        """Persist where we are and stop background work; saved progress survives for the next boot."""
        self.engine.pause()
        if self._job is not None:
            self._job.cancel()
            try:
                await self._job
            except asyncio.CancelledError:
                pass
            finally:
                self._job = None
        self.navigator.stop()
        self.recovery.disable()
        await self.ping_monitor.stop()
        self.statistics.close()
        self.logger.info("runtime_stopped")

    async def _resume(self) -> None:
        await self.engine.resume_if_needed()


def build_runtime(
    bot: BotPort,
    pathfinder: GoalSolver,
    *,
    settings: Settings | None = None,
    progress: ProgressStore | None = None,
    bus: EventBus | None = None,
) -> ExcavatorRuntime:
    settings = settings or default_settings
    bus = bus or EventBus()
    progress = progress or JsonProgressStore(settings.state_file)

    ping_monitor = PingMonitor(bot, bus, sample_interval_seconds=settings.ping_sample_interval_seconds)
    timings = AdaptiveTimings(ping_monitor)
    tools = SkipListToolSelector(bot)
    recovery = ObstructionRecovery(bot, pathfinder, timings, tools, bus)
    navigator = Navigator(bot, pathfinder, timings, recovery=recovery)

    deps = EngineDependencies(
        bot=bot,
        bus=bus,
        navigator=navigator,
        progress=progress,
        tools=tools,
        inventory=InventoryManager(bot, pathfinder, bus, chest_location=settings.chest_location),
        sustenance=FoodManager(bot, bus),
        recovery=recovery,
        timings=timings,
        confirmer=ConfirmationWaiter(bot, timings),
        telemetry=ping_monitor,
        settings=settings,
    )

    return ExcavatorRuntime(
        settings=settings,
        bus=bus,
        ping_monitor=ping_monitor,
        timings=timings,
        navigator=navigator,
        recovery=recovery,
        progress=progress,
        engine=ExcavationEngine(deps),
        statistics=SessionStatistics(bus),
    )
