"""Tests for garden.simulation (config, clock, engine pipeline, placement, queries)."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FixedClock
from garden.elements.entity import Entity
from garden.elements.types import ELEMENT_TYPES
from garden.simulation.clock import Season, SystemClock, season_for_elapsed
from garden.simulation.config import SimulationConfig
from garden.simulation.engine import (
    GRID_STATE_KEY,
    SYSTEM_ACTOR,
    PlacementError,
    SimulationEngine,
)
from garden.storage.backend import MemoryStore

_REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "default.yaml"


class TestConfig:
    """Tests for SimulationConfig loading."""

    def test_defaults(self, default_config: SimulationConfig) -> None:
        assert default_config.seed == 42
        assert default_config.grid_size == 50
        assert default_config.cycle_interval == 300
        assert default_config.season_duration == 7 * 24 * 60 * 60
        assert default_config.dead_grace_cycles == 5
        assert default_config.max_catch_up_cycles == 100
        assert default_config.placement_cooldown == 24 * 60 * 60

    def test_load_shipped_config(self) -> None:
        cfg = SimulationConfig.from_yaml(_REPO_CONFIG)
        assert cfg == SimulationConfig()

    def test_partial_yaml_keeps_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "garden.yaml"
        path.write_text("grid_size: 12\ncycle_interval: 1.5\nmystery: true\n")
        cfg = SimulationConfig.from_yaml(path)
        assert cfg.grid_size == 12
        assert cfg.cycle_interval == 1.5
        assert cfg.seed == 42

    def test_empty_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert SimulationConfig.from_yaml(path) == SimulationConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            SimulationConfig.from_yaml(tmp_path / "nope.yaml")


class TestClock:
    """Tests for seasons and daylight."""

    @pytest.mark.parametrize(
        ("elapsed_seasons", "expected"),
        [
            (0.0, Season.SPRING),
            (0.99, Season.SPRING),
            (1.0, Season.SUMMER),
            (2.5, Season.AUTUMN),
            (3.0, Season.WINTER),
            (4.0, Season.SPRING),
            (-1.0, Season.SPRING),
        ],
    )
    def test_season_rotation(self, elapsed_seasons: float, expected: Season) -> None:
        duration = 1000.0
        assert season_for_elapsed(elapsed_seasons * duration, duration) is expected

    def test_season_modifiers(self) -> None:
        assert Season.SPRING.growth_modifier == 1.5
        assert Season.WINTER.growth_modifier == 0.3
        assert Season.SUMMER.label == "Summer"

    def test_night_sunlight(self, monkeypatch: pytest.MonkeyPatch) -> None:
        clock = SystemClock(night_sunlight_factor=0.3)
        monkeypatch.setattr(SystemClock, "is_daytime", property(lambda self: False))
        assert clock.base_sunlight() == pytest.approx(30.0)
        monkeypatch.setattr(SystemClock, "is_daytime", property(lambda self: True))
        assert clock.base_sunlight() == 100.0


class TestPipeline:
    """Tests for run_cycle ordering and effects."""

    def test_init(self, engine: SimulationEngine) -> None:
        assert engine.cycle_count == 0
        assert engine.grid.size == 10
        assert engine.current_season is Season.SPRING
        assert not engine.is_running

    def test_cycle_advances_count_and_tiles(self, engine: SimulationEngine) -> None:
        engine.run_cycle()
        tile = engine.grid.tile_at(0, 0)
        assert engine.cycle_count == 1
        assert tile.moisture == 25
        assert tile.nutrients == 51
        assert tile.sunlight == 100

    def test_sunlight_follows_clock(
        self,
        engine: SimulationEngine,
        clock: FixedClock,
    ) -> None:
        clock.sunlight = 30.0
        engine.run_cycle()
        assert engine.grid.tile_at(3, 3).sunlight == 30.0

    def test_shade_applies_before_entities(self, engine: SimulationEngine) -> None:
        engine.place_element("BOULDER", 5, 5)
        engine.run_cycle()
        assert engine.grid.tile_at(4, 5).sunlight == 70
        assert engine.grid.tile_at(5, 5).sunlight == 100

    def test_season_changes_with_time(
        self,
        engine: SimulationEngine,
        clock: FixedClock,
    ) -> None:
        clock.advance(engine.config.season_duration * 1.5)
        engine.run_cycle()
        assert engine.current_season is Season.SUMMER

    def test_entities_age_each_cycle(self, engine: SimulationEngine) -> None:
        boulder = engine.place_element("BOULDER", 1, 1).entity
        engine.run_cycles(5)
        assert boulder.age == 5

    def test_failing_entity_does_not_stop_cycle(
        self,
        engine: SimulationEngine,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        broken = engine.place_element("BOULDER", 1, 1).entity
        healthy = engine.place_element("BOULDER", 8, 8).entity

        def explode(*args: object) -> None:
            raise RuntimeError("boom")

        monkeypatch.setattr(broken, "update", explode)
        engine.run_cycle()
        assert engine.cycle_count == 1
        assert healthy.age == 1

    def test_new_entities_wait_for_next_cycle(
        self,
        engine: SimulationEngine,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        parent = engine.place_element("BOULDER", 1, 1).entity
        spawned: list[Entity] = []
        original_update = parent.update

        def spawn(*args: object) -> None:
            original_update(*args)
            child = Entity.create(ELEMENT_TYPES["BOULDER"], placed_at=0.0)
            engine.grid.tile_at(8, 8).place_entity(child)
            spawned.append(child)

        monkeypatch.setattr(parent, "update", spawn)
        engine.run_cycle()
        assert spawned[0].age == 0
        monkeypatch.undo()
        engine.run_cycle()
        assert spawned[0].age == 1

    def test_rain_expires_after_a_cycle(self, engine: SimulationEngine) -> None:
        rain = engine.place_element("RAIN_CLOUD", 4, 4).entity
        engine.run_cycle()
        assert not rain.is_alive

    def test_dead_swept_after_grace(self, store: MemoryStore, clock: FixedClock) -> None:
        config = SimulationConfig(grid_size=10, dead_grace_cycles=2)
        engine = SimulationEngine(config=config, store=store, clock=clock)
        flower = engine.place_element("WILDFLOWER", 2, 2).entity
        flower.die(engine.grid)

        engine.run_cycles(3)
        assert engine.grid.tile_at(2, 2).ground_entity is flower
        assert flower.death_cycle == 1

        engine.run_cycle()
        assert engine.grid.tile_at(2, 2).ground_entity is None
        assert flower.position is None

    def test_deterministic_with_same_seed(self, small_config: SimulationConfig) -> None:
        def fingerprint() -> list[tuple]:
            engine = SimulationEngine(
                config=small_config,
                store=MemoryStore(),
                clock=FixedClock(),
            )
            engine.seed_garden()
            engine.water_all()
            for _ in range(320):
                engine.run_cycle()
                engine.grid.tile_at(5, 3).moisture = 100
            return [
                (t.x, t.y, round(t.moisture, 6), round(t.nutrients, 6))
                + tuple((e.element_type.id, e.age, e.health, e.current_stage) for e in t.entities())
                for t in engine.grid.iter_tiles()
            ]

        assert fingerprint() == fingerprint()


class TestStartStop:
    """Tests for the background ticker integration."""

    def test_start_runs_a_cycle_immediately(
        self,
        store: MemoryStore,
        clock: FixedClock,
    ) -> None:
        config = SimulationConfig(grid_size=5, cycle_interval=3600)
        engine = SimulationEngine(config=config, store=store, clock=clock)
        engine.start()
        try:
            assert engine.is_running
            assert engine.cycle_count == 1
            engine.start()
            assert engine.cycle_count == 1
        finally:
            engine.stop()
        assert not engine.is_running
        engine.stop()

    def test_set_speed(self, store: MemoryStore, clock: FixedClock) -> None:
        config = SimulationConfig(grid_size=5, cycle_interval=3600)
        engine = SimulationEngine(config=config, store=store, clock=clock)
        engine.set_speed(2.0)
        try:
            assert engine.is_running
            assert engine.cycle_count == 1
        finally:
            engine.set_speed(0)
        assert not engine.is_running


class TestPlacement:
    """Tests for place_element."""

    def test_rain_wets_neighbourhood(self, engine: SimulationEngine) -> None:
        engine.grid.tile_at(5, 5).moisture = 0
        result = engine.place_element("RAIN_CLOUD", 5, 5)
        assert result.success
        assert result.error is None
        assert engine.grid.tile_at(5, 5).moisture == 80
        for x, y in ((4, 4), (5, 4), (6, 5), (6, 6)):
            assert engine.grid.tile_at(x, y).moisture == 70
        assert engine.grid.tile_at(7, 7).moisture == 30

    def test_entity_fields(self, engine: SimulationEngine, clock: FixedClock) -> None:
        result = engine.place_element(ELEMENT_TYPES["OAK_TREE"], 3, 4, placed_by="alice")
        entity = result.entity
        assert entity.position == (3, 4)
        assert entity.placed_by == "alice"
        assert entity.placed_at == clock.now()
        assert engine.grid.tile_at(3, 4).ground_entity is entity

    @pytest.mark.parametrize(("x", "y"), [(-1, 0), (0, -1), (10, 3), (3, 10)])
    def test_out_of_bounds(self, engine: SimulationEngine, x: int, y: int) -> None:
        result = engine.place_element("OAK_TREE", x, y)
        assert not result.success
        assert result.error is PlacementError.INVALID_POSITION
        assert result.reason == "Invalid position"

    def test_unknown_type(self, engine: SimulationEngine) -> None:
        result = engine.place_element("DRAGON", 1, 1)
        assert result.error is PlacementError.PLACEMENT_REJECTED

    def test_occupied_layer(self, engine: SimulationEngine) -> None:
        engine.place_element("OAK_TREE", 5, 5)
        result = engine.place_element("GRASS_PATCH", 5, 5)
        assert not result.success
        assert result.reason == "Cannot place element here"

    def test_layers_coexist(self, engine: SimulationEngine) -> None:
        assert engine.place_element("OAK_TREE", 5, 5).success
        assert engine.place_element("RAIN_CLOUD", 5, 5).success
        assert not engine.place_element("SUNBEAM", 5, 5).success

    def test_too_dark(self, engine: SimulationEngine) -> None:
        engine.grid.tile_at(2, 2).sunlight = 30
        assert not engine.place_element("WILDFLOWER", 2, 2).success
        assert engine.place_element("BOULDER", 2, 2).success

    def test_replaces_dead_occupant(self, engine: SimulationEngine) -> None:
        old = engine.place_element("WILDFLOWER", 2, 2).entity
        old.die(engine.grid)
        result = engine.place_element("GRASS_PATCH", 2, 2)
        assert result.success
        assert engine.grid.tile_at(2, 2).ground_entity is result.entity
        assert old.position is None

    def test_placement_saves_and_notifies(
        self,
        engine: SimulationEngine,
        store: MemoryStore,
    ) -> None:
        calls: list[int] = []
        engine.add_listener(lambda e: calls.append(e.cycle_count))
        engine.place_element("BOULDER", 0, 0)
        assert calls == [0]
        assert store.get(GRID_STATE_KEY) is not None

    def test_failed_placement_is_silent(
        self,
        engine: SimulationEngine,
        store: MemoryStore,
    ) -> None:
        calls: list[int] = []
        engine.add_listener(lambda e: calls.append(1))
        engine.place_element("BOULDER", 99, 99)
        assert calls == []
        assert store.get(GRID_STATE_KEY) is None


class TestPlacementCooldown:
    """Tests for the once-per-cooldown placement limit."""

    @pytest.fixture
    def daily(self, store: MemoryStore, clock: FixedClock) -> SimulationEngine:
        config = SimulationConfig(grid_size=10, placement_cooldown=24 * 60 * 60)
        return SimulationEngine(config=config, store=store, clock=clock)

    def test_second_placement_waits(
        self,
        daily: SimulationEngine,
        clock: FixedClock,
    ) -> None:
        assert daily.place_element("BOULDER", 1, 1, placed_by="alice").success
        clock.advance(60 * 60)

        result = daily.place_element("BOULDER", 2, 2, placed_by="alice")
        assert not result.success
        assert result.error is PlacementError.COOLDOWN
        assert result.retry_after == pytest.approx(23 * 60 * 60)
        assert result.reason == "Placement cooldown active (23h 0m left)"
        assert daily.grid.tile_at(2, 2).ground_entity is None
        assert daily.time_until_next_placement("alice") == pytest.approx(23 * 60 * 60)

    def test_cooldown_expires(self, daily: SimulationEngine, clock: FixedClock) -> None:
        daily.place_element("BOULDER", 1, 1, placed_by="alice")
        clock.advance(24 * 60 * 60)
        assert daily.time_until_next_placement("alice") == 0
        assert daily.place_element("BOULDER", 2, 2, placed_by="alice").success

    def test_actors_are_independent(self, daily: SimulationEngine) -> None:
        assert daily.place_element("BOULDER", 1, 1, placed_by="alice").success
        assert daily.place_element("BOULDER", 2, 2, placed_by="bob").success
        assert not daily.place_element("BOULDER", 3, 3, placed_by="alice").success

    def test_failed_placement_does_not_start_cooldown(
        self,
        daily: SimulationEngine,
    ) -> None:
        assert not daily.place_element("BOULDER", 40, 40, placed_by="alice").success
        assert daily.time_until_next_placement("alice") == 0

    def test_system_and_spread_are_exempt(self, daily: SimulationEngine) -> None:
        daily.seed_garden()
        assert daily.get_stats().total_elements == 8
        assert daily.place_element("BOULDER", 0, 0, placed_by="spread").success
        assert daily.place_element("BOULDER", 9, 9, placed_by="spread").success

    def test_reset_cooldown(self, daily: SimulationEngine) -> None:
        daily.place_element("BOULDER", 1, 1, placed_by="alice")
        daily.place_element("BOULDER", 2, 2, placed_by="bob")
        daily.reset_cooldown("alice")
        assert daily.time_until_next_placement("alice") == 0
        assert daily.time_until_next_placement("bob") > 0
        daily.reset_cooldown()
        assert daily.time_until_next_placement("bob") == 0

    def test_cooldown_survives_restart(
        self,
        daily: SimulationEngine,
        store: MemoryStore,
        clock: FixedClock,
    ) -> None:
        daily.place_element("BOULDER", 1, 1, placed_by="alice")
        restarted = SimulationEngine(config=daily.config, store=store, clock=clock)
        assert restarted.time_until_next_placement("alice") > 0

    def test_unreadable_record_allows_placement(
        self,
        daily: SimulationEngine,
        store: MemoryStore,
    ) -> None:
        store.set("garden_last_placement", "{broken")
        assert daily.place_element("BOULDER", 1, 1, placed_by="alice").success


class TestListeners:
    """Tests for change notification."""

    def test_called_after_each_cycle(self, engine: SimulationEngine) -> None:
        seen: list[int] = []
        engine.add_listener(lambda e: seen.append(e.cycle_count))
        engine.run_cycles(3)
        assert seen == [1, 2, 3]

    def test_failing_listener_is_isolated(self, engine: SimulationEngine) -> None:
        seen: list[int] = []

        def broken(_: SimulationEngine) -> None:
            raise RuntimeError("listener bug")

        engine.add_listener(broken)
        engine.add_listener(lambda e: seen.append(e.cycle_count))
        engine.run_cycle()
        assert seen == [1]

    def test_remove_listener(self, engine: SimulationEngine) -> None:
        seen: list[int] = []

        def listener(e: SimulationEngine) -> None:
            seen.append(e.cycle_count)

        engine.add_listener(listener)
        engine.run_cycle()
        engine.remove_listener(listener)
        engine.remove_listener(listener)
        engine.run_cycle()
        assert seen == [1]


class TestQueries:
    """Tests for stats, leaderboard, contributions, and tools."""

    def test_seed_garden(self, engine: SimulationEngine) -> None:
        engine.seed_garden()
        stats = engine.get_stats()
        assert stats.total_elements == 8
        assert stats.living_plants == 7
        assert stats.cycle_count == 0
        assert stats.season == "Spring"
        assert engine.grid.tile_at(5, 5).ground_entity.element_type.id == "OAK_TREE"
        assert engine.grid.tile_at(5, 4).atmospheric_entity.element_type.id == "RAIN_CLOUD"
        assert len(engine.get_user_contributions(SYSTEM_ACTOR)) == 8

    def test_stats_empty(self, engine: SimulationEngine) -> None:
        stats = engine.get_stats()
        assert stats.total_elements == 0
        assert stats.avg_moisture == 30
        assert stats.ecosystem_health == 9

    def test_leaderboard_oldest_first(self, engine: SimulationEngine) -> None:
        for i, age in enumerate((5, 50, 20)):
            engine.place_element("BOULDER", i, 0).entity.age = age * 288
        board = engine.get_leaderboard(limit=2)
        assert [entry.age_days for entry in board] == [50, 20]
        assert board[0].name == ELEMENT_TYPES["BOULDER"].name
        assert board[0].placed_by == "player"

    def test_leaderboard_skips_dead(self, engine: SimulationEngine) -> None:
        engine.place_element("BOULDER", 0, 0).entity.age = 1000
        engine.place_element("OAK_TREE", 3, 3).entity.die(engine.grid)
        assert len(engine.get_leaderboard()) == 1

    def test_user_contributions(
        self,
        engine: SimulationEngine,
        clock: FixedClock,
    ) -> None:
        engine.place_element("OAK_TREE", 1, 1, placed_by="alice")
        clock.advance(10)
        grass = engine.place_element("GRASS_PATCH", 8, 8, placed_by="alice").entity
        engine.place_element("BOULDER", 4, 4, placed_by="bob")
        grass.die(engine.grid)

        mine = engine.get_user_contributions("alice")
        assert [c.name for c in mine] == [
            ELEMENT_TYPES["GRASS_PATCH"].name,
            ELEMENT_TYPES["OAK_TREE"].name,
        ]
        assert not mine[0].is_alive
        assert mine[1].position == (1, 1)
        assert engine.get_user_contributions("carol") == []

    def test_describe_at(self, engine: SimulationEngine) -> None:
        engine.seed_garden()
        (oak,) = engine.describe_at(5, 5)
        assert oak.splitlines()[0] == ELEMENT_TYPES["OAK_TREE"].name
        assert len(engine.describe_at(5, 4)) == 1
        assert engine.describe_at(0, 0) == []
        assert engine.describe_at(-3, 40) == []

    def test_kill_all_plants(self, engine: SimulationEngine) -> None:
        engine.seed_garden()
        assert engine.kill_all_plants() == 7
        stats = engine.get_stats()
        assert stats.living_plants == 0
        assert stats.total_elements == 1

    def test_clear_garden(self, engine: SimulationEngine) -> None:
        engine.seed_garden()
        oak = engine.grid.tile_at(5, 5).ground_entity
        engine.clear_garden()
        assert engine.grid.occupied_tiles() == []
        assert engine.grid.average_moisture() == 30
        assert oak.position is None

    def test_water_and_sunlight_tools(self, engine: SimulationEngine) -> None:
        engine.water_all()
        engine.sunlight_boost_all()
        assert engine.grid.average_moisture() == 100
        assert (engine.grid.resource_layer("sunlight") == 100).all()
