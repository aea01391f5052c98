"""Goal-solver wrapper with adaptive timeouts and a stall kick."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from mc_excavator.adapters.pathing import MINING_PROFILE, TRAVEL_PROFILE, Goal, GoalNear, GoalSolver, GoalXZ
from mc_excavator.adapters.world import BotPort
from mc_excavator.errors import PathTimeoutError
from mc_excavator.models import Vec3
from mc_excavator.network.timings import AdaptiveTimings
from mc_excavator.timeouts import with_timeout

if TYPE_CHECKING:
    from mc_excavator.safety.recovery import ObstructionRecovery

STALL_MOVE_EPSILON = 0.2
JUMP_PULSE_SECONDS = 0.25


class Navigator:
    """Moves the bot through the goal-solver; every exit path releases the controls."""

    def __init__(
        self,
        bot: BotPort,
        pathfinder: GoalSolver,
        timings: AdaptiveTimings,
        *,
        recovery: ObstructionRecovery | None = None,
        check_interval_seconds: float | None = None,
        stall_kick_seconds: float = 2.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self._bot = bot
        self._pathfinder = pathfinder
        self._timings = timings
        self._recovery = recovery
        self._check_interval_seconds = check_interval_seconds
        self._stall_kick_seconds = stall_kick_seconds
        self._logger = logger or logging.getLogger("mc_excavator.navigator")

    def set_recovery(self, recovery: ObstructionRecovery) -> None:
        self._recovery = recovery

    def configure_for_mining(self) -> None:
        self._pathfinder.set_movements(MINING_PROFILE)

    def configure_for_travel(self) -> None:
        self._pathfinder.set_movements(TRAVEL_PROFILE)

    async def go_near(self, point: Vec3, radius: float = 2) -> None:
        await self._goto_with_timeout(GoalNear(point.x, point.y, point.z, radius), self._timings.path_timeout)

    async def go_to_xz(self, x: float, z: float) -> None:
        await self._goto_with_timeout(GoalXZ(x, z), self._timings.navigation_timeout)

    async def go_to(self, point: Vec3, radius: float = 2) -> None:
        await self._goto_with_timeout(GoalNear(point.x, point.y, point.z, radius), self._timings.navigation_timeout)

    def stop(self) -> None:
        try:
            self._pathfinder.stop()
        except Exception:  # noqa: BLE001
            self._logger.debug("pathfinder_stop_failed", exc_info=True)
        self._bot.clear_controls()

    async def _goto_with_timeout(self, goal: Goal, timeout_ms: int) -> None:
        stall_checker = asyncio.create_task(self._watch_for_stall(), name="navigator-stall-checker")
        try:
            outcome = await with_timeout(
                self._pathfinder.goto(goal),
                timeout_ms / 1000,
                on_timeout=self._pathfinder.stop,
            )
        finally:
            stall_checker.cancel()
            try:
                await stall_checker
            except asyncio.CancelledError:
                pass
            self._bot.clear_controls()

        if outcome.timed_out:
            self._logger.warning("path_timeout", extra={"goal": repr(goal), "timeout_ms": timeout_ms})
            raise PathTimeoutError(f"Path timeout after {timeout_ms}ms")
        if outcome.error is not None:
            raise outcome.error

    async def _watch_for_stall(self) -> None:
        interval = self._check_interval_seconds
        if interval is None:
            interval = self._timings.stuck_check_interval / 1000

        last_position = self._bot.position
        stuck_seconds = 0.0
        while True:
            await asyncio.sleep(interval)
            position = self._bot.position
            if position is None:
                continue
            if last_position is None or position.distance_to(last_position) >= STALL_MOVE_EPSILON:
                stuck_seconds = 0.0
                last_position = position
                continue

            stuck_seconds += interval
            if stuck_seconds < self._stall_kick_seconds:
                continue

            self._logger.info("navigation_stall_kick", extra={"stuck_seconds": round(stuck_seconds, 2)})
            if self._recovery is not None and not self._recovery.is_recovering:
                await self._recovery.clear_blocking_path()
            self._bot.set_control("jump", True)
            await asyncio.sleep(JUMP_PULSE_SECONDS)
            self._bot.set_control("jump", False)
            stuck_seconds = 0.0
