"""Supervisory control loop that excavates a region target by target."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace

from mc_excavator.adapters.capabilities import (
    InventoryCapability,
    NetworkTelemetry,
    SustenanceCapability,
    ToolCapability,
)
from mc_excavator.adapters.world import Block, BotPort
from mc_excavator.config import Settings
from mc_excavator.errors import AlreadyMiningError, BaseNotConfiguredError, BotBusyError, DigTimeoutError, ExcavatorError
from mc_excavator.events import (
    BlockCleared,
    Errored,
    EventBus,
    Finished,
    InventoryFull,
    Paused,
    Progress,
    Resumed,
    Started,
)
from mc_excavator.mining.navigator import Navigator
from mc_excavator.mining.planner import iter_traversal
from mc_excavator.mining.progress import ProgressStore
from mc_excavator.models import ExcavationState, ExcavationStatus, NormalizedRegion, Region, Vec3
from mc_excavator.network.confirmer import ConfirmationWaiter
from mc_excavator.network.timings import AdaptiveTimings
from mc_excavator.safety.recovery import ObstructionRecovery
from mc_excavator.timeouts import with_timeout

REACH_DISTANCE = 4.5
MAX_ATTEMPTS = 3
CHECKPOINT_EVERY = 50
APPROACH_RADIUS = 2


@dataclass(frozen=True, slots=True)
class EngineDependencies:
    """Collaborators handed to the engine at construction."""

    bot: BotPort
    bus: EventBus
    navigator: Navigator
    progress: ProgressStore
    tools: ToolCapability
    inventory: InventoryCapability
    sustenance: SustenanceCapability
    recovery: ObstructionRecovery
    timings: AdaptiveTimings
    confirmer: ConfirmationWaiter
    telemetry: NetworkTelemetry
    settings: Settings


class ExcavationEngine:
    """Owns the excavation state; only this object's control flow mutates it.

    ``stop()`` bumps a run generation counter. Each loop iteration and each
    return from a suspension point compares its generation with the current
    one, so a stopped or superseded run unwinds without touching the state.
    """

    def __init__(
        self,
        deps: EngineDependencies,
        *,
        retry_delay_seconds: float = 0.5,
        pause_poll_seconds: float = 0.5,
        auto_pause_poll_seconds: float = 2.0,
        heal_poll_seconds: float = 2.0,
        capacity_poll_seconds: float = 1.0,
        dig_cancel_grace_seconds: float = 0.3,
        checkpoint_yield_seconds: float = 0.01,
        logger: logging.Logger | None = None,
    ) -> None:
        self._deps = deps
        self._retry_delay_seconds = retry_delay_seconds
        self._pause_poll_seconds = pause_poll_seconds
        self._auto_pause_poll_seconds = auto_pause_poll_seconds
        self._heal_poll_seconds = heal_poll_seconds
        self._capacity_poll_seconds = capacity_poll_seconds
        self._dig_cancel_grace_seconds = dig_cancel_grace_seconds
        self._checkpoint_yield_seconds = checkpoint_yield_seconds
        self._logger = logger or logging.getLogger("mc_excavator.engine")

        self._state = ExcavationState()
        self._run_id = 0

    # Public API

    @property
    def status(self) -> ExcavationStatus:
        return self._state.status

    def get_state(self) -> ExcavationState:
        """Return a snapshot of the state merged with live vitals and network quality."""
        bot = self._deps.bot
        telemetry = self._deps.telemetry
        position = bot.position
        return replace(
            self._state,
            position=position.floored() if position is not None else None,
            health=bot.health,
            food=bot.food,
            ping=telemetry.current_ping,
            tps=round(telemetry.tps, 1),
        )

    async def start(self, region: Region, start_index: int = 0) -> None:
        if self._state.status == ExcavationStatus.mining and start_index == 0:
            raise AlreadyMiningError("Already mining")
        if self._state.status == ExcavationStatus.traveling:
            raise BotBusyError("Bot is busy travelling")

        normalized = region.normalized()
        self._run_id += 1
        run_id = self._run_id

        self._state.status = ExcavationStatus.mining
        self._state.region = normalized
        self._state.total_blocks = normalized.volume
        self._state.mined_blocks = start_index
        self._state.error = None

        self._deps.navigator.configure_for_mining()
        self._deps.recovery.enable()

        self._deps.bus.publish(Started(region=normalized))
        self._logger.info(
            "excavation_started",
            extra={"volume": normalized.volume, "start_index": start_index, "run_id": run_id},
        )

        try:
            await self._mine_region(normalized, start_index, run_id)
            if self._is_current(run_id) and self._state.status in (ExcavationStatus.mining, ExcavationStatus.paused):
                self._state.status = ExcavationStatus.finished
                self._deps.progress.clear()
                self._deps.bus.publish(Finished())
                self._logger.info("excavation_finished", extra={"mined_blocks": self._state.mined_blocks})
        except Exception as exc:  # noqa: BLE001
            if self._is_current(run_id) and self._state.status != ExcavationStatus.idle:
                message = str(exc) or type(exc).__name__
                self._state.status = ExcavationStatus.error
                self._state.error = message
                self._deps.progress.save(normalized, self._state.mined_blocks)
                self._deps.bus.publish(Errored(message=message))
                self._logger.exception("excavation_failed", extra={"mined_blocks": self._state.mined_blocks})
            else:
                self._logger.debug("excavation_cancelled", extra={"run_id": run_id, "error": repr(exc)})
        finally:
            if self._run_id == run_id:
                self._deps.recovery.disable()

    def pause(self) -> None:
        if self._state.status != ExcavationStatus.mining:
            return
        self._state.status = ExcavationStatus.paused
        if self._state.region is not None:
            self._deps.progress.save(self._state.region, self._state.mined_blocks)
        self._deps.bus.publish(Paused(reason="user"))
        self._logger.info("excavation_paused", extra={"mined_blocks": self._state.mined_blocks})

    def resume(self) -> None:
        if self._state.status != ExcavationStatus.paused:
            return
        self._state.status = ExcavationStatus.mining
        self._state.error = None
        self._deps.bus.publish(Resumed())
        self._logger.info("excavation_resumed")

    def stop(self) -> None:
        self._run_id += 1
        self._state.status = ExcavationStatus.idle
        self._state.error = None
        self._deps.bot.stop_digging()
        self._deps.navigator.stop()
        self._deps.recovery.disable()
        self._deps.progress.clear()
        self._logger.info("excavation_stopped")

    async def resume_if_needed(self) -> bool:
        """Restart from persisted progress; returns whether there was anything to resume."""
        saved = self._deps.progress.load()
        if saved is None:
            return False

        region = saved.to_region()
        self._logger.info("resuming_saved_progress", extra={"mined_blocks": saved.mined_blocks})
        await self.start(Region(region.min, region.max), saved.mined_blocks)
        return True

    async def go_to_base(self) -> None:
        base = self._deps.settings.base_location
        if base is None:
            raise BaseNotConfiguredError("Base coordinates are not configured (MC_EXCAVATOR_BASE_X/Z)")
        if self._state.status in (ExcavationStatus.mining, ExcavationStatus.paused, ExcavationStatus.traveling):
            raise BotBusyError("Bot is busy")

        self._run_id += 1
        run_id = self._run_id
        self._state.status = ExcavationStatus.traveling
        self._state.error = "Navigating to base..."
        self._deps.navigator.configure_for_travel()
        self._deps.recovery.enable()

        try:
            if base.y is None:
                await self._deps.navigator.go_to_xz(base.x, base.z)
            else:
                await self._deps.navigator.go_to(Vec3(base.x, base.y, base.z), 2)

            if self._is_current(run_id) and self._state.status == ExcavationStatus.traveling:
                self._state.status = ExcavationStatus.idle
                self._state.error = None
                self._logger.info("reached_base")
        except Exception as exc:  # noqa: BLE001
            if self._is_current(run_id) and self._state.status != ExcavationStatus.idle:
                self._state.status = ExcavationStatus.error
                self._state.error = f"Navigation error: {exc}"
                self._logger.error("base_navigation_failed", extra={"error": str(exc)})
        finally:
            if self._run_id == run_id:
                self._deps.recovery.disable()

    # Run loop

    def _is_current(self, run_id: int) -> bool:
        return self._run_id == run_id

    def _is_cancelled(self, run_id: int) -> bool:
        return self._run_id != run_id or self._state.status == ExcavationStatus.idle

    async def _mine_region(self, region: NormalizedRegion, start_index: int, run_id: int) -> None:
        settings = self._deps.settings
        for index, target in enumerate(iter_traversal(region, start_index), start=start_index):
            if self._is_cancelled(run_id):
                return

            if index % CHECKPOINT_EVERY == 0:
                self._deps.progress.save(region, self._state.mined_blocks)
                await asyncio.sleep(self._checkpoint_yield_seconds)
                if self._is_cancelled(run_id):
                    return

            await self._wait_out_bad_network(run_id)
            if not await self._heal_if_needed(run_id):
                return
            if not await self._wait_while_paused(run_id):
                return

            await self._deps.sustenance.maintain(settings.food_threshold)
            if self._is_cancelled(run_id):
                return

            await self._excavate_target(target, region, run_id)
            if self._is_cancelled(run_id):
                return

            # Advance even when every attempt failed: an unminable block must not stall the run.
            self._state.mined_blocks = index + 1
            self._deps.bus.publish(Progress(mined=self._state.mined_blocks, total=self._state.total_blocks))

            delay = self._deps.timings.inter_block_delay
            if delay > 0:
                await asyncio.sleep(delay / 1000)

    async def _wait_out_bad_network(self, run_id: int) -> None:
        timings = self._deps.timings
        if not timings.should_auto_pause or self._state.status != ExcavationStatus.mining:
            return

        telemetry = self._deps.telemetry
        self._logger.warning("auto_pause", extra={"ping": telemetry.current_ping, "tps": telemetry.tps})
        self._state.status = ExcavationStatus.paused
        self._state.error = "Auto-paused: bad connection"
        self._deps.bus.publish(Paused(reason="high_ping"))

        while timings.should_auto_pause and self._state.status == ExcavationStatus.paused:
            await asyncio.sleep(self._auto_pause_poll_seconds)
            if self._is_cancelled(run_id):
                return

        if self._state.status == ExcavationStatus.paused:
            self._state.status = ExcavationStatus.mining
            self._state.error = None
            self._deps.bus.publish(Resumed())
            self._logger.info("auto_resume", extra={"ping": telemetry.current_ping})

    async def _heal_if_needed(self, run_id: int) -> bool:
        bot = self._deps.bot
        settings = self._deps.settings
        if bot.health >= settings.low_health_threshold:
            return True

        previous = self._state.status
        self._state.status = ExcavationStatus.paused
        self._state.error = "Healing..."
        self._logger.warning("healing", extra={"health": bot.health})

        while bot.health < settings.heal_to_threshold:
            await self._deps.sustenance.maintain(settings.food_threshold)
            await asyncio.sleep(self._heal_poll_seconds)
            if self._is_cancelled(run_id):
                return False

        self._state.status = ExcavationStatus.paused if previous == ExcavationStatus.paused else ExcavationStatus.mining
        self._state.error = None
        return True

    async def _wait_while_paused(self, run_id: int) -> bool:
        while self._state.status == ExcavationStatus.paused:
            await asyncio.sleep(self._pause_poll_seconds)
            if self._is_cancelled(run_id):
                return False
        return not self._is_cancelled(run_id)

    async def _excavate_target(self, target: Vec3, region: NormalizedRegion, run_id: int) -> bool:
        """Try a target up to MAX_ATTEMPTS times; True when it is clear or not worth digging."""
        bot = self._deps.bot
        tools = self._deps.tools

        for attempt in range(1, MAX_ATTEMPTS + 1):
            if self._is_cancelled(run_id):
                return False

            await self._deps.recovery.clear_overlapping()

            block = bot.block_at(target)
            if block is None or not tools.should_excavate(block):
                return True

            if self._deps.inventory.is_full() and not await self._make_room(region, run_id):
                return False

            if not self._within_reach(block):
                try:
                    await self._deps.navigator.go_near(target, APPROACH_RADIUS)
                except Exception as exc:  # noqa: BLE001
                    self._logger.debug("approach_failed", extra={"target": target.as_dict(), "error": repr(exc)})
            if self._is_cancelled(run_id):
                return False

            block = bot.block_at(target)
            if block is None or not tools.should_excavate(block):
                return True

            self._state.current_tool = await tools.equip_for(block)

            try:
                await self._dig(block, target, region)
                return True
            except Exception as exc:  # noqa: BLE001
                self._logger.info(
                    "dig_attempt_failed",
                    extra={"target": target.as_dict(), "attempt": attempt, "error": repr(exc)},
                )
                await asyncio.sleep(self._retry_delay_seconds)

        self._logger.warning("target_skipped", extra={"target": target.as_dict(), "attempts": MAX_ATTEMPTS})
        return False

    def _within_reach(self, block: Block) -> bool:
        position = self._deps.bot.position
        if position is None:
            return False
        return position.distance_to(block.position) <= REACH_DISTANCE and self._deps.bot.can_see(block)

    async def _dig(self, block: Block, target: Vec3, region: NormalizedRegion) -> None:
        bot = self._deps.bot
        await bot.look_at(target.offset(0.5, 0.5, 0.5), True)

        # Turning can put a wall between us and the block.
        if not self._within_reach(block):
            raise ExcavatorError("Block not reachable after looking")

        timeout_ms = self._deps.timings.dig_timeout
        outcome = await with_timeout(
            bot.dig(block),
            timeout_ms / 1000,
            on_timeout=bot.stop_digging,
            grace_seconds=self._dig_cancel_grace_seconds,
        )
        if outcome.timed_out:
            raise DigTimeoutError(f"Dig timeout after {timeout_ms}ms")
        if outcome.error is not None:
            raise outcome.error

        if not await self._deps.confirmer.wait_after_dig(target):
            raise ExcavatorError("Server did not confirm the block break")

        self._deps.recovery.mark_safe_position()
        self._deps.progress.save(region, self._state.mined_blocks)
        self._deps.bus.publish(BlockCleared(position=target, name=block.name))

    async def _make_room(self, region: NormalizedRegion, run_id: int) -> bool:
        inventory = self._deps.inventory
        self._state.error = "Depositing items..."
        self._deps.bus.publish(InventoryFull())
        freed = await inventory.deposit_to_storage(self._state.region)
        self._state.error = None
        if freed:
            return True

        self._logger.warning("inventory_full_no_storage")
        self._state.status = ExcavationStatus.paused
        self._state.error = "Inventory full, no chest found"
        self._deps.progress.save(region, self._state.mined_blocks)
        self._deps.bus.publish(Paused(reason="inventory_full"))

        while self._state.status == ExcavationStatus.paused:
            await asyncio.sleep(self._capacity_poll_seconds)
            if self._is_cancelled(run_id):
                return False
            if not inventory.is_full():
                self._state.status = ExcavationStatus.mining
                self._state.error = None
                self._deps.bus.publish(Resumed())
                break

        return self._state.status == ExcavationStatus.mining and not self._is_cancelled(run_id)
