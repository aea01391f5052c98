from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from fakes import FakeBot, FakePathfinder
from mc_excavator.adapters.pathing import TRAVEL_PROFILE, GoalXZ
from mc_excavator.adapters.world import Block, Item
from mc_excavator.config import Settings
from mc_excavator.errors import AlreadyMiningError, BaseNotConfiguredError, BotBusyError
from mc_excavator.events import BlockCleared, Errored, EventBus, Finished, InventoryFull, Paused, Progress, Resumed
from mc_excavator.inventory import FoodManager, InventoryManager, SkipListToolSelector
from mc_excavator.mining import EngineDependencies, ExcavationEngine, InMemoryProgressStore, Navigator
from mc_excavator.models import ExcavationStatus, Region, Vec3
from mc_excavator.network import AdaptiveTimings, ConfirmationWaiter, StaticTelemetry
from mc_excavator.safety import ObstructionRecovery

REGION = Region(Vec3(1, 0, 1), Vec3(0, 0, 0))
SERPENTINE = [Vec3(0, 0, 0), Vec3(1, 0, 0), Vec3(1, 0, 1), Vec3(0, 0, 1)]


def _stone_floor() -> dict[Vec3, str]:
    return {position: "stone" for position in SERPENTINE}


class _Harness:
    def __init__(
        self,
        bot: FakeBot,
        *,
        telemetry: StaticTelemetry | None = None,
        settings: Settings | None = None,
        pathfinder: FakePathfinder | None = None,
        **overrides,
    ) -> None:
        self.bot = bot
        self.bus = EventBus()
        self.telemetry = telemetry or StaticTelemetry()
        self.timings = AdaptiveTimings(self.telemetry)
        self.pathfinder = pathfinder or FakePathfinder(bot)
        self.store = InMemoryProgressStore()
        self.settings = settings or Settings(_env_file=None)

        tools = SkipListToolSelector(bot)
        self.recovery = ObstructionRecovery(bot, self.pathfinder, self.timings, tools, self.bus)
        deps = EngineDependencies(
            bot=bot,
            bus=self.bus,
            navigator=Navigator(bot, self.pathfinder, self.timings, recovery=self.recovery),
            progress=self.store,
            tools=tools,
            inventory=InventoryManager(bot, self.pathfinder, self.bus),
            sustenance=FoodManager(bot, self.bus),
            recovery=self.recovery,
            timings=self.timings,
            confirmer=ConfirmationWaiter(bot, self.timings),
            telemetry=self.telemetry,
            settings=self.settings,
        )
        self.engine = ExcavationEngine(
            replace(deps, **overrides),
            retry_delay_seconds=0,
            pause_poll_seconds=0.01,
            auto_pause_poll_seconds=0.01,
            heal_poll_seconds=0.01,
            capacity_poll_seconds=0.01,
            dig_cancel_grace_seconds=0,
            checkpoint_yield_seconds=0,
        )
        self.events: list[object] = []
        self.bus.subscribe_all(self.events.append)

    def of_type(self, event_type: type) -> list:
        return [event for event in self.events if isinstance(event, event_type)]


def test_engine_clears_region_in_serpentine_order_and_finishes() -> None:
    async def _run() -> _Harness:
        harness = _Harness(FakeBot(world=_stone_floor()))
        await harness.engine.start(REGION)
        return harness

    harness = asyncio.run(_run())
    state = harness.engine.get_state()

    assert harness.bot.dug == SERPENTINE
    assert [event.position for event in harness.of_type(BlockCleared)] == SERPENTINE
    assert [event.mined for event in harness.of_type(Progress)] == [1, 2, 3, 4]
    assert harness.of_type(Finished)
    assert state.status == ExcavationStatus.finished
    assert state.mined_blocks == state.total_blocks == 4
    assert state.current_tool == "Diamond Pickaxe"
    assert harness.store.load() is None
    assert not harness.recovery.is_enabled


def test_unbreakable_target_is_skipped_and_still_counted() -> None:
    async def _run() -> _Harness:
        bot = FakeBot(world=_stone_floor())
        bot.unbreakable.add(Vec3(1, 0, 0))
        harness = _Harness(bot)
        await harness.engine.start(REGION)
        return harness

    harness = asyncio.run(_run())

    assert Vec3(1, 0, 0) not in harness.bot.dug
    assert harness.bot.dig_calls.count(Vec3(1, 0, 0)) == 3
    assert harness.bot.world[Vec3(1, 0, 0)] == "stone"
    assert [event.mined for event in harness.of_type(Progress)] == [1, 2, 3, 4]
    assert harness.engine.status == ExcavationStatus.finished


def test_air_targets_advance_without_digging() -> None:
    async def _run() -> _Harness:
        harness = _Harness(FakeBot(world={Vec3(1, 0, 1): "stone"}))
        await harness.engine.start(REGION)
        return harness

    harness = asyncio.run(_run())

    assert harness.bot.dug == [Vec3(1, 0, 1)]
    assert harness.engine.get_state().mined_blocks == 4


SINGLE_BLOCK = Region(Vec3(0, 0, 0), Vec3(0, 0, 0))


class _QuickDigTimings(AdaptiveTimings):
    @property
    def dig_timeout(self) -> int:
        return 20


class _GhostBreakBot(FakeBot):
    """Dig succeeds locally but the server never removes the block."""

    async def dig(self, block: Block) -> None:
        self.dig_calls.append(block.position)
        await asyncio.sleep(0)


def test_dig_timeout_aborts_the_dig_then_skips_after_retries() -> None:
    async def _run() -> _Harness:
        bot = FakeBot(world={Vec3(0, 0, 0): "stone"})
        bot.slow_dig.add(Vec3(0, 0, 0))
        harness = _Harness(bot, timings=_QuickDigTimings(StaticTelemetry()))
        await harness.engine.start(SINGLE_BLOCK)
        return harness

    harness = asyncio.run(_run())

    assert harness.bot.dig_calls == [Vec3(0, 0, 0)] * 3
    assert harness.bot.stop_digging_calls == 3
    assert harness.bot.world[Vec3(0, 0, 0)] == "stone"
    assert not harness.of_type(BlockCleared)
    assert [event.mined for event in harness.of_type(Progress)] == [1]
    assert harness.engine.status == ExcavationStatus.finished


def test_unconfirmed_break_counts_as_a_failed_attempt() -> None:
    async def _run() -> _Harness:
        harness = _Harness(_GhostBreakBot(world={Vec3(0, 0, 0): "stone"}))
        await harness.engine.start(SINGLE_BLOCK)
        return harness

    harness = asyncio.run(_run())

    assert harness.bot.dig_calls == [Vec3(0, 0, 0)] * 3
    assert harness.bot.stop_digging_calls == 0
    assert not harness.of_type(BlockCleared)
    assert [event.mined for event in harness.of_type(Progress)] == [1]
    assert harness.engine.get_state().mined_blocks == 1
    assert harness.engine.status == ExcavationStatus.finished


def test_high_latency_auto_pauses_then_resumes() -> None:
    telemetry = StaticTelemetry(current_ping=1000)
    seen: dict[str, object] = {}

    async def _run() -> _Harness:
        harness = _Harness(FakeBot(world=_stone_floor()), telemetry=telemetry)

        def on_paused(event: Paused) -> None:
            state = harness.engine.get_state()
            seen["status"] = state.status
            seen["error"] = state.error
            seen["mined"] = state.mined_blocks
            asyncio.get_running_loop().call_later(0.05, setattr, telemetry, "current_ping", 40)

        harness.bus.subscribe(Paused, on_paused)
        await harness.engine.start(REGION)
        return harness

    harness = asyncio.run(_run())

    assert harness.of_type(Paused) == [Paused(reason="high_ping")]
    assert harness.of_type(Resumed)
    assert seen == {"status": ExcavationStatus.paused, "error": "Auto-paused: bad connection", "mined": 0}
    assert harness.events.index(harness.of_type(Resumed)[0]) < harness.events.index(harness.of_type(BlockCleared)[0])
    assert harness.engine.status == ExcavationStatus.finished
    assert harness.bot.dug == SERPENTINE


def test_resume_if_needed_continues_from_persisted_index() -> None:
    async def _run() -> tuple[_Harness, bool]:
        harness = _Harness(FakeBot(world=_stone_floor()))
        harness.store.save(REGION.normalized(), 2)
        resumed = await harness.engine.resume_if_needed()
        return harness, resumed

    harness, resumed = asyncio.run(_run())

    assert resumed is True
    assert harness.of_type(BlockCleared)[0].position == Vec3(1, 0, 1)
    assert harness.bot.dug == [Vec3(1, 0, 1), Vec3(0, 0, 1)]
    assert [event.mined for event in harness.of_type(Progress)] == [3, 4]


def test_resume_if_needed_without_saved_progress_is_a_no_op() -> None:
    async def _run() -> tuple[_Harness, bool]:
        harness = _Harness(FakeBot(world=_stone_floor()))
        return harness, await harness.engine.resume_if_needed()

    harness, resumed = asyncio.run(_run())

    assert resumed is False
    assert harness.engine.status == ExcavationStatus.idle
    assert harness.events == []


def test_second_start_is_rejected_and_stop_cancels_quietly() -> None:
    async def _run() -> tuple[_Harness, bool]:
        bot = FakeBot(world=_stone_floor())
        bot.slow_dig.add(Vec3(0, 0, 0))
        harness = _Harness(bot)

        task = asyncio.create_task(harness.engine.start(REGION))
        await asyncio.sleep(0.05)
        assert harness.engine.status == ExcavationStatus.mining

        rejected = False
        try:
            await harness.engine.start(REGION)
        except AlreadyMiningError:
            rejected = True

        harness.engine.stop()
        await asyncio.wait_for(task, timeout=2)
        return harness, rejected

    harness, rejected = asyncio.run(_run())

    assert rejected
    assert harness.engine.status == ExcavationStatus.idle
    assert not harness.of_type(Errored)
    assert not harness.of_type(Finished)
    assert not harness.of_type(Progress)
    assert harness.store.load() is None
    assert harness.bot.stop_digging_calls >= 1
    assert not harness.recovery.is_enabled


def test_user_pause_holds_the_loop_until_resume() -> None:
    async def _run() -> tuple[_Harness, int | None]:
        harness = _Harness(FakeBot(world=_stone_floor()))
        saved: dict[str, int] = {}

        def on_cleared(event: BlockCleared) -> None:
            if event.position != SERPENTINE[0]:
                return
            harness.engine.pause()
            progress = harness.store.load()
            saved["mined"] = progress.mined_blocks if progress else -1
            asyncio.get_running_loop().call_later(0.05, harness.engine.resume)

        harness.bus.subscribe(BlockCleared, on_cleared)
        await harness.engine.start(REGION)
        return harness, saved.get("mined")

    harness, saved_mined = asyncio.run(_run())

    assert harness.of_type(Paused) == [Paused(reason="user")]
    assert harness.of_type(Resumed)
    assert saved_mined == 0
    assert harness.engine.status == ExcavationStatus.finished
    assert harness.bot.dug == SERPENTINE


def test_low_health_waits_for_healing_and_eats() -> None:
    async def _run() -> tuple[_Harness, str | None, ExcavationStatus]:
        bot = FakeBot(world=_stone_floor())
        bot.health = 10.0
        bot.food = 10.0
        bot.items = [Item("bread", 4)]
        harness = _Harness(bot)

        task = asyncio.create_task(harness.engine.start(REGION))
        await asyncio.sleep(0.05)
        state = harness.engine.get_state()
        bot.health = 20.0
        await asyncio.wait_for(task, timeout=2)
        return harness, state.error, state.status

    harness, error, status = asyncio.run(_run())

    assert error == "Healing..."
    assert status == ExcavationStatus.paused
    assert harness.bot.consumed >= 1
    assert harness.engine.status == ExcavationStatus.finished


def test_full_inventory_without_chest_waits_for_space() -> None:
    async def _run() -> tuple[_Harness, str | None]:
        bot = FakeBot(world=_stone_floor())
        bot.fill_inventory()
        harness = _Harness(bot)

        task = asyncio.create_task(harness.engine.start(REGION))
        await asyncio.sleep(0.05)
        error = harness.engine.get_state().error
        bot.empty_inventory()
        await asyncio.wait_for(task, timeout=2)
        return harness, error

    harness, error = asyncio.run(_run())

    assert error == "Inventory full, no chest found"
    assert harness.of_type(InventoryFull)
    assert Paused(reason="inventory_full") in harness.events
    assert harness.engine.status == ExcavationStatus.finished
    assert harness.bot.dug == SERPENTINE


class _BrokenSustenance:
    async def maintain(self, threshold: float) -> None:
        raise RuntimeError("stomach exploded")


def test_unexpected_failure_moves_to_error_and_keeps_progress() -> None:
    async def _run() -> _Harness:
        harness = _Harness(FakeBot(world=_stone_floor()), sustenance=_BrokenSustenance())
        await harness.engine.start(REGION)
        return harness

    harness = asyncio.run(_run())
    state = harness.engine.get_state()

    assert state.status == ExcavationStatus.error
    assert state.error == "stomach exploded"
    assert harness.of_type(Errored) == [Errored(message="stomach exploded")]
    saved = harness.store.load()
    assert saved is not None and saved.mined_blocks == 0


def test_go_to_base_requires_configured_coordinates() -> None:
    harness = _Harness(FakeBot())

    with pytest.raises(BaseNotConfiguredError):
        asyncio.run(harness.engine.go_to_base())


def test_go_to_base_travels_by_xz_and_returns_to_idle() -> None:
    async def _run() -> _Harness:
        settings = Settings(_env_file=None, base_x=10, base_z=-20)
        harness = _Harness(FakeBot(), settings=settings)
        await harness.engine.go_to_base()
        return harness

    harness = asyncio.run(_run())

    assert harness.pathfinder.goals == [GoalXZ(10, -20)]
    assert harness.pathfinder.profiles[-1] == TRAVEL_PROFILE
    assert harness.engine.status == ExcavationStatus.idle
    assert harness.engine.get_state().error is None


def test_go_to_base_reports_navigation_failure() -> None:
    async def _run() -> _Harness:
        bot = FakeBot()
        settings = Settings(_env_file=None, base_x=10, base_y=64, base_z=-20)
        harness = _Harness(bot, settings=settings, pathfinder=FakePathfinder(bot, error=RuntimeError("No path")))
        await harness.engine.go_to_base()
        return harness

    harness = asyncio.run(_run())
    state = harness.engine.get_state()

    assert state.status == ExcavationStatus.error
    assert state.error == "Navigation error: No path"


def test_go_to_base_is_rejected_while_mining() -> None:
    async def _run() -> bool:
        bot = FakeBot(world=_stone_floor())
        bot.slow_dig.add(Vec3(0, 0, 0))
        harness = _Harness(bot, settings=Settings(_env_file=None, base_x=0, base_z=0))
        task = asyncio.create_task(harness.engine.start(REGION))
        await asyncio.sleep(0.05)
        try:
            await harness.engine.go_to_base()
        except BotBusyError:
            return True
        finally:
            harness.engine.stop()
            await asyncio.wait_for(task, timeout=2)
        return False

    assert asyncio.run(_run()) is True


def test_get_state_returns_a_snapshot_with_live_vitals() -> None:
    bot = FakeBot(position=Vec3(3.7, 64.2, -1.5))
    bot.health = 17.0
    harness = _Harness(bot, telemetry=StaticTelemetry(current_ping=120, tps=19.46))

    state = harness.engine.get_state()
    state.mined_blocks = 99

    assert state.position == Vec3(3, 64, -2)
    assert state.health == 17.0
    assert state.ping == 120
    assert state.tps == 19.5
    assert harness.engine.get_state().mined_blocks == 0
