"""SimulationEngine — the main cycle loop.

Owns the grid and advances it in the canonical cycle order:

1. Recompute the season from elapsed wall-clock time
2. Reset sunlight to the time-of-day baseline
3. Grid effect passes (shade, then compost)
4. Tile upkeep (evaporation, nutrient regeneration, clamping)
5. Update every entity that was alive when the pass began
6. Sweep corpses whose grace window has run out
7. Persist a snapshot and notify listeners

Cycles and placements are serialised on a single re-entrant lock, so a
placement can never observe a half-finished cycle.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
from numpy.random import Generator

from garden.elements import environmental
from garden.elements.entity import Entity
from garden.elements.plant import SPREAD_ACTOR
from garden.elements.types import ELEMENT_TYPES, Category, ElementType, layer_for
from garden.simulation.clock import Clock, Season, SystemClock, season_for_elapsed
from garden.simulation.config import SimulationConfig
from garden.simulation.ticker import CycleTicker
from garden.storage.backend import KeyValueStore, MemoryStore, PersistenceFailure
from garden.world.grid import Grid

logger = logging.getLogger(__name__)

GRID_STATE_KEY = "garden_grid_state"
LAST_RUN_KEY = "garden_simulation_last_run"
START_TIME_KEY = "garden_start_time"
# JSON object mapping actor id to its last placement time
LAST_PLACEMENT_KEY = "garden_last_placement"

SYSTEM_ACTOR = "system"
_COOLDOWN_EXEMPT = frozenset({SYSTEM_ACTOR, SPREAD_ACTOR})

Listener = Callable[["SimulationEngine"], None]


class PlacementError(Enum):
    """Why a placement request was refused."""

    INVALID_POSITION = "Invalid position"
    PLACEMENT_REJECTED = "Cannot place element here"
    COOLDOWN = "Placement cooldown active"


@dataclass
class PlacementResult:
    """Outcome of ``SimulationEngine.place_element``.

    Attributes:
        success: Whether the element was placed.
        entity: The new entity on success.
        error: The failure kind otherwise.
        retry_after: Seconds until the actor may place again, set on
            a cooldown failure.
    """

    success: bool
    entity: Entity | None = None
    error: PlacementError | None = None
    retry_after: float | None = None

    @property
    def reason(self) -> str | None:
        """Human-readable failure message, or None on success."""
        if self.error is None:
            return None
        if self.retry_after is None:
            return self.error.value
        hours, rest = divmod(int(self.retry_after), 3600)
        return f"{self.error.value} ({hours}h {rest // 60}m left)"

    @classmethod
    def failed(
        cls,
        error: PlacementError,
        retry_after: float | None = None,
    ) -> PlacementResult:
        return cls(success=False, error=error, retry_after=retry_after)


@dataclass(frozen=True)
class GardenStats:
    """Headline numbers for the stats panel."""

    total_elements: int
    living_plants: int
    avg_moisture: int
    ecosystem_health: int
    cycle_count: int
    season: str


@dataclass(frozen=True)
class LeaderboardEntry:
    name: str
    icon: str
    age_days: int
    placed_by: str
    health: int


@dataclass(frozen=True)
class Contribution:
    name: str
    icon: str
    age_days: int
    is_alive: bool
    health: int
    position: tuple[int, int] | None


@dataclass
class SimulationEngine:
    """Drives the garden forward cycle by cycle.

    Attributes:
        config: Loaded simulation configuration.
        store: Snapshot persistence backend.
        clock: Wall-clock and daylight source.  Defaults to a
            ``SystemClock`` built from the config's day/night hours.
        grid: The tile grid.
        rng: Seeded random generator used for stochastic behaviour.
        cycle_count: Cycles run since the garden was created.
        current_season: Season used by the most recent cycle.
        start_time: Epoch seconds at which the garden was created.
        lock: Serialises cycles and placements.
    """

    config: SimulationConfig
    store: KeyValueStore = field(default_factory=MemoryStore)
    clock: Clock | None = None
    grid: Grid = field(init=False)
    rng: Generator = field(init=False)
    cycle_count: int = field(init=False, default=0)
    current_season: Season = field(init=False)
    start_time: float = field(init=False)
    lock: threading.RLock = field(init=False, repr=False)
    _listeners: list[Listener] = field(init=False, default_factory=list, repr=False)
    _ticker: CycleTicker | None = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        """Build grid, RNG, and clock from config."""
        if self.clock is None:
            self.clock = SystemClock(
                day_start_hour=self.config.day_start_hour,
                day_end_hour=self.config.day_end_hour,
                night_sunlight_factor=self.config.night_sunlight_factor,
            )
        self.rng = np.random.default_rng(self.config.seed)
        self.grid = Grid(size=self.config.grid_size)
        self.lock = threading.RLock()
        start_time = self._read_float(START_TIME_KEY)
        self.start_time = start_time if start_time is not None else self.clock.now()
        self.current_season = self._season_now()

    # -- Run state -----------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._ticker is not None

    def start(self) -> None:
        """Run a cycle now, then keep cycling every ``cycle_interval``."""
        self._start_ticker(self.config.cycle_interval)

    def stop(self) -> None:
        """Stop scheduling cycles.  A cycle in progress still completes."""
        if self._ticker is None:
            return
        ticker, self._ticker = self._ticker, None
        ticker.stop()
        logger.info("Simulation stopped at cycle %d", self.cycle_count)

    def set_speed(self, multiplier: float) -> None:
        """Restart the ticker at ``cycle_interval / multiplier``.

        A multiplier of zero or less pauses the simulation.
        """
        self.stop()
        if multiplier <= 0:
            logger.info("Simulation paused")
            return
        self._start_ticker(self.config.cycle_interval / multiplier)

    def _start_ticker(self, interval: float) -> None:
        if self._ticker is not None:
            return
        self._ticker = CycleTicker(interval, self.run_cycle)
        logger.info("Simulation started (one cycle every %.1fs)", interval)
        self.run_cycle()
        self._ticker.start()

    # -- Cycle pipeline ------------------------------------------------------

    def run_cycle(self) -> None:
        """Advance the garden by one cycle."""
        with self.lock:
            self.cycle_count += 1
            self.current_season = self._season_now()
            logger.debug(
                "Running cycle #%d (%s)",
                self.cycle_count,
                self.current_season.label,
            )

            self.grid.reset_sunlight(self.clock.base_sunlight())
            self.grid.apply_shade_effects()
            self.grid.apply_compost_effects()
            self.grid.update_cycle()
            self._update_entities()
            self._sweep_dead()

            self.save_state()
            self.notify_listeners()

    def run_cycles(self, count: int) -> None:
        """Run ``count`` cycles back to back."""
        for _ in range(count):
            self.run_cycle()

    def _season_now(self) -> Season:
        elapsed = self.clock.now() - self.start_time
        return season_for_elapsed(elapsed, self.config.season_duration)

    def _update_entities(self) -> None:
        # Snapshot first: plants spawned by spreading wait for next cycle.
        for entity in self.grid.living_entities():
            try:
                entity.update(self.grid, self.current_season, self.rng)
            except Exception:
                logger.exception("Update failed for %s", entity.id)

    def _sweep_dead(self) -> None:
        grace = self.config.dead_grace_cycles
        for entity in self.grid.dead_entities():
            if entity.death_cycle is None:
                entity.death_cycle = self.cycle_count
            if self.cycle_count - entity.death_cycle > grace:
                tile = self.grid.entity_tile(entity)
                if tile is not None:
                    tile.remove_entity(entity)

    # -- Placement -------------------------------------------------------------

    def place_element(
        self,
        element_type: ElementType | str,
        x: int,
        y: int,
        placed_by: str = "player",
    ) -> PlacementResult:
        """Place a new element on the grid.

        Plant or environmental behaviour follows from the type's
        category.  A dead occupant of the target layer is cleared away.
        Each actor other than the system and spreading plants may place
        once per ``placement_cooldown`` seconds; the cooldown is checked
        before the position.

        Args:
            element_type: Type descriptor or type id.
            x: Column index.
            y: Row index.
            placed_by: Actor identifier recorded on the entity.

        Returns:
            A PlacementResult; failures are reported, never raised.
        """
        with self.lock:
            if isinstance(element_type, str):
                resolved = ELEMENT_TYPES.get(element_type)
                if resolved is None:
                    return PlacementResult.failed(PlacementError.PLACEMENT_REJECTED)
                element_type = resolved

            remaining = self.time_until_next_placement(placed_by)
            if remaining > 0:
                return PlacementResult.failed(PlacementError.COOLDOWN, remaining)

            tile = self.grid.tile_at(x, y)
            if tile is None:
                return PlacementResult.failed(PlacementError.INVALID_POSITION)
            if not tile.can_place(element_type):
                return PlacementResult.failed(PlacementError.PLACEMENT_REJECTED)

            stale = tile.occupant(layer_for(element_type))
            if stale is not None:
                tile.remove_entity(stale)

            entity = Entity.create(element_type, placed_by, self.clock.now())
            if not tile.place_entity(entity):
                return PlacementResult.failed(PlacementError.PLACEMENT_REJECTED)

            if element_type.category is Category.ENVIRONMENTAL:
                environmental.apply_effects(entity, self.grid)

            logger.debug(
                "%s placed %s at (%d, %d)",
                placed_by,
                element_type.id,
                x,
                y,
            )
            self._record_placement(placed_by)
            self.save_state()
            self.notify_listeners()
            return PlacementResult(success=True, entity=entity)

    def seed_garden(self) -> None:
        """Plant a small starter garden around the centre tile."""
        cx = cy = self.grid.size // 2
        self.place_element("OAK_TREE", cx, cy, SYSTEM_ACTOR)
        for x, y in ((cx - 2, cy), (cx + 2, cy), (cx, cy - 2), (cx, cy + 2)):
            self.place_element("GRASS_PATCH", x, y, SYSTEM_ACTOR)
        self.place_element("WILDFLOWER", cx - 1, cy - 1, SYSTEM_ACTOR)
        self.place_element("WILDFLOWER", cx + 1, cy + 1, SYSTEM_ACTOR)
        self.place_element("RAIN_CLOUD", cx, cy - 1, SYSTEM_ACTOR)
        logger.info("Garden seeded with starter elements")

    # -- Placement cooldown ----------------------------------------------------

    def time_until_next_placement(self, actor: str) -> float:
        """Return seconds until ``actor`` may place again (0 if now)."""
        cooldown = self.config.placement_cooldown
        if cooldown <= 0 or actor in _COOLDOWN_EXEMPT:
            return 0.0
        with self.lock:
            last = self._read_placements().get(actor)
        if last is None:
            return 0.0
        return max(0.0, cooldown - (self.clock.now() - last))

    def _record_placement(self, actor: str) -> None:
        if self.config.placement_cooldown <= 0 or actor in _COOLDOWN_EXEMPT:
            return
        placements = self._read_placements()
        placements[actor] = self.clock.now()
        self._write_placements(placements)

    def _read_placements(self) -> dict[str, float]:
        try:
            raw = self.store.get(LAST_PLACEMENT_KEY)
            if raw is None:
                return {}
            return {str(k): float(v) for k, v in json.loads(raw).items()}
        except (PersistenceFailure, ValueError, TypeError, AttributeError):
            logger.warning("Ignoring unreadable %s", LAST_PLACEMENT_KEY)
            return {}

    def _write_placements(self, placements: dict[str, float]) -> None:
        try:
            self.store.set(LAST_PLACEMENT_KEY, json.dumps(placements))
        except PersistenceFailure:
            logger.exception("Failed to record placement time")

    # -- Testing-mode tools ----------------------------------------------------

    def clear_garden(self) -> None:
        """Replace the grid with an empty default one."""
        with self.lock:
            for tile in self.grid.iter_tiles():
                tile.remove_entity()
            self.grid = Grid(size=self.config.grid_size)
            self._commit("Garden cleared")

    def water_all(self, amount: float = 100.0) -> None:
        with self.lock:
            for tile in self.grid.iter_tiles():
                tile.add_moisture(amount)
            self._commit("All tiles watered")

    def sunlight_boost_all(self, amount: float = 100.0) -> None:
        with self.lock:
            for tile in self.grid.iter_tiles():
                tile.add_sunlight(amount)
            self._commit("All tiles boosted with sunlight")

    def kill_all_plants(self) -> int:
        """Kill every living plant and return how many died."""
        with self.lock:
            plants = [e for e in self.grid.living_entities() if e.element_type.is_plant]
            for entity in plants:
                entity.die(self.grid)
            self._commit(f"Killed {len(plants)} plant(s)")
            return len(plants)

    def reset_cooldown(self, actor: str | None = None) -> None:
        """Let ``actor`` (or every actor, when None) place again at once."""
        with self.lock:
            if actor is None:
                placements: dict[str, float] = {}
            else:
                placements = self._read_placements()
                placements.pop(actor, None)
            self._write_placements(placements)
            logger.info("Placement cooldown reset for %s", actor or "all actors")

    def _commit(self, message: str) -> None:
        logger.info(message)
        self.save_state()
        self.notify_listeners()

    # -- Queries -----------------------------------------------------------------

    def get_stats(self) -> GardenStats:
        with self.lock:
            living = self.grid.living_entities()
            return GardenStats(
                total_elements=len(living),
                living_plants=sum(1 for e in living if e.element_type.is_plant),
                avg_moisture=round(self.grid.average_moisture()),
                ecosystem_health=self.grid.ecosystem_health(),
                cycle_count=self.cycle_count,
                season=self.current_season.label,
            )

    def get_leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        """Return the oldest living entities, oldest first."""
        with self.lock:
            living = sorted(self.grid.living_entities(), key=lambda e: e.age, reverse=True)
            return [
                LeaderboardEntry(
                    name=e.element_type.name,
                    icon=e.icon_key(),
                    age_days=e.age_days,
                    placed_by=e.placed_by,
                    health=round(e.health),
                )
                for e in living[:limit]
            ]

    def get_user_contributions(self, user_id: str) -> list[Contribution]:
        """Return every resident entity placed by ``user_id``, newest first."""
        with self.lock:
            entities = self.grid.living_entities() + self.grid.dead_entities()
            mine = sorted(
                (e for e in entities if e.placed_by == user_id),
                key=lambda e: e.placed_at,
                reverse=True,
            )
            return [
                Contribution(
                    name=e.element_type.name,
                    icon=e.icon_key(),
                    age_days=e.age_days,
                    is_alive=e.is_alive,
                    health=round(e.health),
                    position=e.position,
                )
                for e in mine
            ]

    def describe_at(self, x: int, y: int) -> list[str]:
        """Return descriptions of every entity on tile ``(x, y)``."""
        with self.lock:
            tile = self.grid.tile_at(x, y)
            if tile is None:
                return []
            return [e.describe(tile) for e in tile.entities()]

    # -- Listeners ---------------------------------------------------------------

    def add_listener(self, callback: Listener) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def notify_listeners(self) -> None:
        """Call every listener with this engine.  Failures are logged."""
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Listener %r failed", listener)

    # -- Persistence -------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Return the JSON-ready persistent state."""
        return {
            "grid": self.grid.to_dict(),
            "cycleCount": self.cycle_count,
            "timestamp": self.clock.now(),
        }

    def save_state(self) -> bool:
        """Write a snapshot to the store.

        Returns:
            True if saved.  On failure the in-memory garden stays
            authoritative and the error is logged.
        """
        try:
            payload = json.dumps(self.snapshot())
            self.store.set(GRID_STATE_KEY, payload)
            self.store.set(LAST_RUN_KEY, repr(self.clock.now()))
        except PersistenceFailure:
            logger.exception("Failed to save garden state")
            return False
        return True

    def load_state(self) -> bool:
        """Restore the garden from the store and replay missed cycles.

        Absent or unreadable state starts a fresh garden.

        Returns:
            True if a saved garden was restored.
        """
        with self.lock:
            try:
                raw = self.store.get(GRID_STATE_KEY)
                if raw is None:
                    logger.info("No saved garden found; starting fresh")
                    self._begin_fresh()
                    return False
                grid, cycle_count, timestamp = _decode_snapshot(raw)
            except PersistenceFailure:
                logger.exception("Failed to load garden state; starting fresh")
                self._begin_fresh()
                return False

            self.grid = grid
            self.cycle_count = cycle_count
            start_time = self._read_float(START_TIME_KEY)
            self.start_time = start_time if start_time is not None else timestamp
            self.current_season = self._season_now()
            logger.info(
                "Loaded garden at cycle %d (%d living elements)",
                self.cycle_count,
                len(self.grid.living_entities()),
            )

            last_run = self._read_float(LAST_RUN_KEY)
            self._catch_up(last_run if last_run is not None else timestamp)
            return True

    def _catch_up(self, last_run: float) -> int:
        """Replay cycles missed since ``last_run``; return how many ran."""
        elapsed = self.clock.now() - last_run
        missed = int(elapsed // self.config.cycle_interval)
        if missed <= 0:
            return 0
        if missed >= self.config.max_catch_up_cycles:
            logger.warning(
                "Skipping %d missed cycles (replay limit is %d)",
                missed,
                self.config.max_catch_up_cycles,
            )
            return 0
        logger.info("Running %d missed cycles...", missed)
        self.run_cycles(missed)
        return missed

    def _begin_fresh(self) -> None:
        self.grid = Grid(size=self.config.grid_size)
        self.cycle_count = 0
        self.start_time = self.clock.now()
        self.current_season = self._season_now()
        try:
            self.store.set(START_TIME_KEY, repr(self.start_time))
        except PersistenceFailure:
            logger.exception("Failed to record garden start time")

    def _read_float(self, key: str) -> float | None:
        try:
            raw = self.store.get(key)
            return float(raw) if raw is not None else None
        except (PersistenceFailure, ValueError):
            logger.warning("Ignoring unreadable %s", key)
            return None


def _decode_snapshot(raw: str) -> tuple[Grid, int, float]:
    """Parse a stored snapshot into ``(grid, cycle_count, timestamp)``.

    Raises:
        PersistenceFailure: If the snapshot is corrupt or incomplete.
    """
    try:
        state = json.loads(raw)
        grid = Grid.from_dict(state["grid"])
        cycle_count = int(state.get("cycleCount", 0))
        timestamp = float(state["timestamp"])
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        msg = f"corrupt garden snapshot: {exc}"
        raise PersistenceFailure(msg) from exc
    return grid, cycle_count, timestamp
