"""Obstruction detection and escalating recovery.

Two monitors run as tasks on the controller's event loop:

* a per-tick monitor for rubber-banding (server position corrections),
  suffocation (hitbox inside solid blocks) and safe-position checkpoints;
* a periodic stall monitor for lack of progress while a goal is active and
  for back-and-forth loops.

Both feed one recovery ladder (levels 0..5). Only one recovery runs at a
time, and triggers inside the adaptive cooldown are dropped.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import deque
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable

from mc_excavator.adapters.capabilities import ToolCapability
from mc_excavator.adapters.pathing import GoalSolver
from mc_excavator.adapters.world import Block, BotPort
from mc_excavator.events import EventBus, Stuck, Unstuck
from mc_excavator.models import Vec3
from mc_excavator.network.timings import AdaptiveTimings
from mc_excavator.timeouts import with_timeout

MAX_RECOVERY_LEVEL = 5
SAFE_POSITIONS_KEEP = 15
SAFE_SAVE_INTERVAL_SECONDS = 5.0
POSITION_HISTORY_SIZE = 30
LOOP_RADIUS = 2.5
LOOP_COUNT = 4
STALL_MOVE_EPSILON = 0.15
TELEPORT_DISTANCE = 20.0

# Player hitbox.
HALF_WIDTH = 0.3
HEIGHT = 1.8

Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class RecoveryStats:
    total_recoveries: int = 0
    suffocations: int = 0
    stalls: int = 0
    rubber_bands: int = 0
    loops: int = 0


@dataclass(frozen=True, slots=True)
class _Sample:
    position: Vec3
    time: float


class ObstructionRecovery:
    def __init__(
        self,
        bot: BotPort,
        pathfinder: GoalSolver,
        timings: AdaptiveTimings,
        tools: ToolCapability,
        bus: EventBus,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self._bot = bot
        self._pathfinder = pathfinder
        self._timings = timings
        self._tools = tools
        self._bus = bus
        self._clock = clock
        self._sleep = sleep
        self._logger = logger or logging.getLogger("mc_excavator.safety.recovery")

        self._active = False
        self._recovering = False
        self._tasks: list[asyncio.Task[None]] = []
        self._saved_player_speed = 0.0

        self._last_tick_pos: Vec3 | None = None
        self._stuck_ticks = 0

        self._last_move_pos: Vec3 | None = None
        self._last_move_time = 0.0
        self._history: deque[_Sample] = deque(maxlen=POSITION_HISTORY_SIZE)

        self._safe_positions: deque[Vec3] = deque(maxlen=SAFE_POSITIONS_KEEP)
        self._last_safe_save = -math.inf

        self._level = 0
        self._last_recovery_time = -math.inf
        self._consecutive_stucks = 0
        self._block_clear_attempted = False

        self.stats = RecoveryStats()

    # Lifecycle

    def enable(self) -> None:
        """Slow the agent down and start both monitors on the running loop."""
        if self._active:
            return
        self._active = True

        self._saved_player_speed = self._bot.player_speed
        self._bot.player_speed = self._saved_player_speed * self._timings.speed_multiplier

        self._last_tick_pos = self._bot.position
        self._stuck_ticks = 0
        self._last_move_pos = self._bot.position
        self._last_move_time = self._clock()
        self._tasks = [
            asyncio.create_task(self._tick_monitor(), name="recovery-tick-monitor"),
            asyncio.create_task(self._stall_monitor(), name="recovery-stall-monitor"),
        ]
        self._logger.info("recovery_enabled", extra={"speed_multiplier": self._timings.speed_multiplier})

    def disable(self) -> None:
        if not self._active:
            return
        self._active = False

        if self._saved_player_speed > 0:
            self._bot.player_speed = self._saved_player_speed
            self._saved_player_speed = 0.0
        for task in self._tasks:
            task.cancel()
        self._tasks = []

        self._level = 0
        self._consecutive_stucks = 0
        self._stuck_ticks = 0
        self._block_clear_attempted = False
        self._history.clear()
        self._logger.info("recovery_disabled")

    @property
    def is_enabled(self) -> bool:
        return self._active

    @property
    def is_recovering(self) -> bool:
        return self._recovering

    @property
    def recovery_level(self) -> int:
        return self._level

    @property
    def safe_positions(self) -> list[Vec3]:
        return list(self._safe_positions)

    def reset(self) -> None:
        self._level = 0
        self._consecutive_stucks = 0
        self._stuck_ticks = 0
        self._block_clear_attempted = False
        self._history.clear()
        self._safe_positions.clear()
        self._last_move_pos = None
        self._last_move_time = self._clock()
        self.stats = RecoveryStats()

    def get_stats(self) -> dict[str, int]:
        return {**asdict(self.stats), "recovery_level": self._level, "safe_positions": len(self._safe_positions)}

    def mark_safe_position(self) -> None:
        position = self._bot.position
        if position is None:
            return
        if self._safe_positions and position.distance_to(self._safe_positions[-1]) < 1:
            return
        self._safe_positions.append(position)

    # Obstruction queries

    def overlapping_blocks(self) -> list[Block]:
        """Solid, non-bedrock blocks intersecting the agent's hitbox."""
        position = self._bot.position
        if position is None:
            return []

        min_x, max_x = position.x - HALF_WIDTH, position.x + HALF_WIDTH
        min_y, max_y = position.y, position.y + HEIGHT
        min_z, max_z = position.z - HALF_WIDTH, position.z + HALF_WIDTH

        blocks: list[Block] = []
        for bx in range(math.floor(min_x), math.floor(max_x) + 1):
            for by in range(math.floor(min_y), math.floor(max_y) + 1):
                for bz in range(math.floor(min_z), math.floor(max_z) + 1):
                    block = self._bot.block_at(Vec3(bx, by, bz))
                    if block is None or not block.solid or block.name == "bedrock":
                        continue
                    if (
                        min_x < bx + 1 and max_x > bx
                        and min_y < by + 1 and max_y > by
                        and min_z < bz + 1 and max_z > bz
                    ):
                        blocks.append(block)
        return blocks

    def blocking_blocks(self) -> list[Block]:
        """Diggable blocks in the way of the current heading, at foot and head height.

        Diagonal movement also checks the corner block, which is what usually
        pins an agent against two half-cleared walls.
        """
        position = self._bot.position
        direction = self._movement_direction()
        if position is None or direction is None:
            return []

        sx = 1 if direction.x > 0.3 else -1 if direction.x < -0.3 else 0
        sz = 1 if direction.z > 0.3 else -1 if direction.z < -0.3 else 0
        if sx == 0 and sz == 0:
            return []

        bot_x, bot_z = math.floor(position.x), math.floor(position.z)
        base_y = math.floor(position.y)
        candidates: list[tuple[int, int, int]] = []
        for dy in (0, 1):
            y = base_y + dy
            if sx:
                candidates.append((bot_x + sx, y, bot_z))
            if sz:
                candidates.append((bot_x, y, bot_z + sz))
            if sx and sz:
                candidates.append((bot_x + sx, y, bot_z + sz))

        blocks: list[Block] = []
        for x, y, z in dict.fromkeys(candidates):
            block = self._bot.block_at(Vec3(x, y, z))
            if block is not None and block.solid and self._tools.should_excavate(block):
                blocks.append(block)
        return blocks

    def _movement_direction(self) -> Vec3 | None:
        position = self._bot.position
        if position is None:
            return None

        goal = self._pathfinder.goal
        if goal is not None:
            dx = goal.x - position.x
            dz = goal.z - position.z
            length = math.hypot(dx, dz)
            if length > 0.5:
                return Vec3(dx / length, 0, dz / length)

        velocity = self._bot.velocity
        if abs(velocity.x) > 0.01 or abs(velocity.z) > 0.01:
            length = math.hypot(velocity.x, velocity.z)
            return Vec3(velocity.x / length, 0, velocity.z / length)

        yaw = self._bot.yaw
        return Vec3(-math.sin(yaw), 0, math.cos(yaw))

    def _is_obstructed(self) -> bool:
        return bool(self.overlapping_blocks()) or bool(self.blocking_blocks())

    # Clearing helpers

    async def clear_overlapping(self) -> None:
        for block in self.overlapping_blocks():
            if not self._tools.should_excavate(block):
                continue
            await self._safe_dig(block)
            await self._bot.wait_for_ticks(2)

    async def clear_blocking_path(self) -> bool:
        """Dig out whatever blocks the current heading; returns whether anything was tried."""
        if self._recovering:
            return False

        blocking = self.blocking_blocks()
        if not blocking:
            return False

        self._recovering = True
        try:
            self._logger.info("clearing_blocking_path", extra={"blocks": len(blocking)})
            for block in blocking:
                await self._safe_dig(block)
                await self._bot.wait_for_ticks(2)
            return True
        except Exception:  # noqa: BLE001
            self._logger.warning("clear_blocking_path_failed", exc_info=True)
            return False
        finally:
            self._recovering = False

    async def force_clear_area(self) -> None:
        await self._recover_clear_space()

    async def _safe_dig(self, block: Block) -> bool:
        try:
            await self._tools.equip_for(block)
        except Exception:  # noqa: BLE001
            self._logger.debug("safe_dig_equip_failed", extra={"block": block.name}, exc_info=True)

        outcome = await with_timeout(
            self._bot.dig(block),
            self._timings.safe_dig_timeout / 1000,
            on_timeout=self._bot.stop_digging,
        )
        if not outcome.ok:
            self._logger.debug(
                "safe_dig_failed",
                extra={"block": block.name, "status": outcome.status.value, "error": repr(outcome.error)},
            )
        return outcome.ok

    async def _pulse(self, seconds: float, *controls: str) -> None:
        for control in controls:
            self._bot.set_control(control, True)
        try:
            await self._sleep(seconds)
        finally:
            for control in controls:
                self._bot.set_control(control, False)

    async def _hold(self, seconds: float, *controls: str) -> None:
        """Like ``_pulse`` but releases every control afterwards."""
        for control in controls:
            self._bot.set_control(control, True)
        try:
            await self._sleep(seconds)
        finally:
            self._bot.clear_controls()

    # Monitors

    async def _tick_monitor(self) -> None:
        while self._active:
            await self._bot.wait_for_ticks(1)
            await self.process_tick()

    async def _stall_monitor(self) -> None:
        while self._active:
            await asyncio.sleep(self._timings.stuck_check_interval / 1000)
            await self.check_stall()

    async def process_tick(self) -> None:
        """Per-tick checks: rubber-band, suffocation and safe-position checkpointing."""
        position = self._bot.position
        if position is None or self._recovering:
            return

        if self._last_tick_pos is not None:
            delta = position.distance_to(self._last_tick_pos)
            if self._timings.rubber_band_distance < delta < TELEPORT_DISTANCE:
                self.stats.rubber_bands += 1
                self._logger.warning("rubber_band_detected", extra={"delta": round(delta, 2)})
                self._bot.clear_controls()
        self._last_tick_pos = position

        overlapping = self.overlapping_blocks()
        if overlapping:
            self._stuck_ticks += 1
            if self._stuck_ticks >= self._timings.stuck_ticks_threshold and not self._recovering:
                self.stats.suffocations += 1
                self._logger.warning(
                    "suffocation_detected",
                    extra={"blocks": len(overlapping), "level": self._level},
                )
                await self.trigger_recovery("suffocation")
            return

        if self._stuck_ticks > 0:
            self._level = max(0, self._level - 1)
        self._stuck_ticks = 0

        if self._bot.on_ground:
            now = self._clock()
            if now - self._last_safe_save > SAFE_SAVE_INTERVAL_SECONDS:
                self.mark_safe_position()
                self._last_safe_save = now

    async def check_stall(self) -> None:
        """Periodic checks: stalled progress towards an active goal, and movement loops."""
        position = self._bot.position
        if position is None or self._recovering:
            return

        now = self._clock()
        self._history.append(_Sample(position=position, time=now))

        if self._last_move_pos is None:
            self._last_move_pos = position
            self._last_move_time = now
        elif position.distance_to(self._last_move_pos) > STALL_MOVE_EPSILON:
            self._last_move_pos = position
            self._last_move_time = now
            self._consecutive_stucks = 0
            self._block_clear_attempted = False
        elif (now - self._last_move_time) * 1000 > self._timings.stall_time_threshold:
            if self._pathfinder.goal is not None and not self._recovering:
                await self._handle_stall(now)

        await self._check_for_loop()

    async def _handle_stall(self, now: float) -> None:
        blocking = self.blocking_blocks()
        if blocking and not self._block_clear_attempted:
            self._logger.info("stall_clearing_path", extra={"blocks": len(blocking)})
            self._block_clear_attempted = True
            await self.clear_blocking_path()
            self._last_move_time = self._clock()
            return

        self.stats.stalls += 1
        self._block_clear_attempted = False
        self._logger.warning("stall_detected", extra={"seconds": round(now - self._last_move_time, 1)})
        await self.trigger_recovery("stall")
        self._last_move_time = self._clock()

    async def _check_for_loop(self) -> None:
        if len(self._history) < POSITION_HISTORY_SIZE // 2:
            return

        current = self._history[-1].position
        returns = 0
        last_was_near = True
        for sample in self._history:
            near = sample.position.distance_to(current) < LOOP_RADIUS
            if near and not last_was_near:
                returns += 1
            last_was_near = near

        if returns >= LOOP_COUNT:
            self.stats.loops += 1
            self._logger.warning("loop_detected", extra={"returns": returns})
            self._history.clear()
            await self.trigger_recovery("loop")

    # Recovery ladder

    async def trigger_recovery(self, reason: str) -> bool:
        """Run one rung of the ladder; returns False when guarded or cooling down."""
        if self._recovering:
            return False

        now = self._clock()
        if (now - self._last_recovery_time) * 1000 < self._timings.recovery_cooldown:
            return False

        self._recovering = True
        self._last_recovery_time = now
        self.stats.total_recoveries += 1
        self._consecutive_stucks += 1
        self._level = max(self._level, self._timings.min_recovery_level)

        try:
            self._logger.info("recovery_started", extra={"level": self._level, "reason": reason})
            self._bus.publish(Stuck(level=self._level, reason=reason))

            await self._ladder()[min(self._level, MAX_RECOVERY_LEVEL)]()

            await self._sleep(0.3)
            if self._is_obstructed():
                self._level = min(self._level + 1, MAX_RECOVERY_LEVEL)
            else:
                self._level = max(0, self._level - 1)
                self._stuck_ticks = 0
                self._bus.publish(Unstuck())
        except Exception:  # noqa: BLE001
            self._logger.exception("recovery_failed", extra={"level": self._level, "reason": reason})
            self._level = min(self._level + 1, MAX_RECOVERY_LEVEL)
        finally:
            self._recovering = False
        return True

    def _ladder(self) -> dict[int, Callable[[], Awaitable[None]]]:
        return {
            0: self._recover_jump,
            1: self._recover_jump_and_move,
            2: self._recover_dig_overlapping,
            3: self._recover_clear_space,
            4: self._recover_dig_up,
            5: self._recover_emergency,
        }

    async def _recover_jump(self) -> None:
        for block in self.blocking_blocks():
            await self._safe_dig(block)
        await self._pulse(0.3, "jump")

    async def _recover_jump_and_move(self) -> None:
        origin = self._bot.position
        if origin is None:
            return

        for block in self.blocking_blocks():
            await self._safe_dig(block)
            await self._bot.wait_for_ticks(1)
        for block in self.overlapping_blocks():
            if self._tools.should_excavate(block):
                await self._safe_dig(block)

        await self._hold(0.4, "forward", "jump")

        still_overlapping = self.overlapping_blocks()
        if not still_overlapping:
            return

        center = still_overlapping[0].position.offset(0.5, 0, 0.5)
        escape_x, escape_z = origin.x - center.x, origin.z - center.z
        length = math.hypot(escape_x, escape_z)
        if length <= 0.01:
            return
        try:
            await self._bot.look_at(origin.offset(escape_x / length * 5, 0, escape_z / length * 5), True)
        except Exception:  # noqa: BLE001
            self._logger.debug("escape_look_failed", exc_info=True)
        await self._hold(0.3, "jump", "forward")

    async def _recover_dig_overlapping(self) -> None:
        await self._pulse(0.2, "jump")
        for block in self.overlapping_blocks():
            if self._tools.should_excavate(block):
                await self._safe_dig(block)

    async def _recover_clear_space(self) -> None:
        position = self._bot.position
        if position is None:
            return
        center = position.floored()

        for dy in (0, 1):
            for dx in (-1, 0, 1):
                for dz in (-1, 0, 1):
                    block = self._bot.block_at(center.offset(dx, dy, dz))
                    if block is not None and block.solid and self._tools.should_excavate(block):
                        await self._safe_dig(block)
        await self._pulse(0.3, "jump")

    async def _recover_dig_up(self) -> None:
        position = self._bot.position
        if position is None:
            return
        center = position.floored()

        await self._recover_clear_space()
        for dy in (2, 3, 4):
            above = self._bot.block_at(center.offset(0, dy, 0))
            if above is not None and above.solid and self._tools.should_excavate(above):
                await self._safe_dig(above)
        await self._pulse(0.5, "jump")

    async def _recover_emergency(self) -> None:
        self._logger.error("emergency_recovery")
        position = self._bot.position
        if position is None:
            return
        center = position.floored()

        for dy in range(-1, 4):
            for dx in (-1, 0, 1):
                for dz in (-1, 0, 1):
                    if dx == 0 and dz == 0 and dy == -1:
                        continue
                    block = self._bot.block_at(center.offset(dx, dy, dz))
                    if block is not None and block.solid and block.name != "bedrock":
                        await self._safe_dig(block)

        await self._hold(0.5, "jump")
        try:
            self._pathfinder.stop()
        except Exception:  # noqa: BLE001
            self._logger.debug("pathfinder_stop_failed", exc_info=True)

        self._level = 0
        self._consecutive_stucks = 0
