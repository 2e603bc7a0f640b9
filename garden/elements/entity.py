"""Entity — a placed plant or environmental element.

An ``Entity`` is a common record (identity, age, health, growth) plus a
variant payload: ``PlantState`` or ``EnvironmentalState``.  Behaviour is
dispatched on the payload type in ``Entity.update`` rather than through
subclassing, so the set of variants stays closed and explicit.

The entity's link to its tile is a coordinate handle (``position``).
The owning ``Tile`` sets and clears it; the entity never holds a
reference to the tile object itself.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from garden.elements import environmental, plant
from garden.elements.types import CYCLES_PER_DAY, ELEMENT_TYPES, Category

if TYPE_CHECKING:
    from numpy.random import Generator

    from garden.elements.types import ElementType
    from garden.simulation.clock import Season
    from garden.world.grid import Grid
    from garden.world.tile import Tile

DEAD_COLOR = "#795548"


@dataclass
class PlantState:
    """Plant-only lifecycle state.

    Attributes:
        cycles_without_water: Consecutive cycles spent below the
            survival moisture threshold.
        has_flowered: Set once when a pollinator-attracting plant
            reaches its final growth stage.
    """

    cycles_without_water: int = 0
    has_flowered: bool = False


@dataclass
class EnvironmentalState:
    """Environmental-only state.

    Attributes:
        has_activated: Whether the area effect has fired at least once.
    """

    has_activated: bool = False


@dataclass(eq=False)
class Entity:
    """A single placed element.

    Attributes:
        element_type: Shared immutable type descriptor.
        id: Unique identifier.
        placed_by: Actor that placed the element (``"spread"`` for
            self-propagated plants).
        placed_at: Placement wall-clock time in epoch seconds.
        age: Cycles survived since placement.
        is_alive: False once the element has died or expired.
        health: Vitality (0-100).
        growth_progress: Accumulated growth.
        current_stage: Growth stage reached, never decreasing.
        state: Variant payload.
        position: ``(x, y)`` of the owning tile, or None when unplaced.
        death_cycle: Engine cycle at which death was observed.
    """

    element_type: ElementType
    id: str
    placed_by: str = "unknown"
    placed_at: float = 0.0
    age: int = 0
    is_alive: bool = True
    health: float = 100.0
    growth_progress: float = 0.0
    current_stage: int = 0
    state: PlantState | EnvironmentalState = field(default_factory=PlantState)
    position: tuple[int, int] | None = None
    death_cycle: int | None = None

    @classmethod
    def create(
        cls,
        element_type: ElementType,
        placed_by: str = "unknown",
        placed_at: float | None = None,
    ) -> Entity:
        """Create a fresh, unplaced entity of ``element_type``.

        The payload variant is chosen from the type's category.
        """
        if placed_at is None:
            placed_at = time.time()
        state: PlantState | EnvironmentalState
        if element_type.category is Category.PLANT:
            state = PlantState()
        else:
            state = EnvironmentalState()
        entity_id = f"{element_type.id}_{int(placed_at * 1000)}_{uuid.uuid4().hex[:9]}"
        return cls(
            element_type=element_type,
            id=entity_id,
            placed_by=placed_by,
            placed_at=placed_at,
            state=state,
        )

    @property
    def age_days(self) -> int:
        """Age in whole simulated days."""
        return self.age // CYCLES_PER_DAY

    def update(self, grid: Grid, season: Season, rng: Generator) -> None:
        """Advance this entity by one cycle.

        No-op when dead or unplaced.  Otherwise ages the entity, applies
        expiry, then hands over to the variant's rules.

        Args:
            grid: The grid the entity lives on.
            season: Active season for this cycle.
            rng: Random source for stochastic behaviour (spreading).
        """
        if not self.is_alive or self.position is None:
            return
        tile = grid.tile_at(*self.position)
        if tile is None:
            return

        self.age += 1

        if self._expired():
            self.die(grid)
            return

        match self.state:
            case PlantState():
                plant.update_plant(self, tile, grid, season, rng)
            case EnvironmentalState():
                environmental.update_environmental(self, grid)

    def _expired(self) -> bool:
        etype = self.element_type
        if (
            not etype.permanent
            and etype.duration is not None
            and self.age >= etype.duration
        ):
            return True
        return etype.max_age is not None and self.age >= etype.max_age

    def die(self, grid: Grid | None) -> None:
        """Mark the entity dead.  Idempotent.

        Plants decompose into their tile exactly once, at the moment of
        death.

        Args:
            grid: The grid the entity lives on.  Required so that every
                death path enriches the soil; pass None only for an
                entity that is not on a grid, which skips decomposition.
        """
        if not self.is_alive:
            return
        self.is_alive = False
        self.health = 0.0
        if isinstance(self.state, PlantState) and grid is not None:
            plant.decompose(self, grid)

    # -- Presentation -------------------------------------------------------

    def color_key(self) -> str:
        """Return the render colour for this entity."""
        if not self.is_alive:
            return DEAD_COLOR
        if isinstance(self.state, PlantState):
            return plant.plant_color(self)
        return self.element_type.color

    def icon_key(self) -> str:
        """Return the render icon for this entity."""
        if isinstance(self.state, PlantState):
            return plant.plant_icon(self)
        return self.element_type.icon

    def describe(self, tile: Tile | None = None) -> str:
        """Return a multi-line, human-readable status summary.

        Args:
            tile: The entity's tile, used to report local conditions.
        """
        if isinstance(self.state, PlantState):
            return plant.describe_plant(self, tile)
        return environmental.describe_environmental(self)

    # -- Serialisation -----------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready snapshot record for this entity."""
        data: dict[str, Any] = {
            "typeId": self.element_type.id,
            "id": self.id,
            "placedBy": self.placed_by,
            "placedAt": self.placed_at,
            "age": self.age,
            "isAlive": self.is_alive,
            "health": self.health,
            "growthProgress": self.growth_progress,
            "currentStage": self.current_stage,
        }
        match self.state:
            case PlantState(cycles_without_water=dry, has_flowered=flowered):
                data["cyclesWithoutWater"] = dry
                data["hasFlowered"] = flowered
            case EnvironmentalState(has_activated=activated):
                data["hasActivated"] = activated
        if self.death_cycle is not None:
            data["deathCycle"] = self.death_cycle
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Entity | None:
        """Rebuild an unplaced entity from a snapshot record.

        Returns:
            The entity, or None if ``typeId`` is not a known type.
        """
        element_type = ELEMENT_TYPES.get(data.get("typeId", ""))
        if element_type is None:
            return None

        state: PlantState | EnvironmentalState
        if element_type.category is Category.PLANT:
            state = PlantState(
                cycles_without_water=int(data.get("cyclesWithoutWater", 0)),
                has_flowered=bool(data.get("hasFlowered", False)),
            )
        else:
            state = EnvironmentalState(
                has_activated=bool(data.get("hasActivated", False)),
            )

        death_cycle = data.get("deathCycle")
        return cls(
            element_type=element_type,
            id=str(data["id"]),
            placed_by=str(data.get("placedBy", "unknown")),
            placed_at=float(data.get("placedAt", 0.0)),
            age=int(data.get("age", 0)),
            is_alive=bool(data.get("isAlive", True)),
            health=float(data.get("health", 100.0)),
            growth_progress=float(data.get("growthProgress", 0.0)),
            current_stage=int(data.get("currentStage", 0)),
            state=state,
            death_cycle=int(death_cycle) if death_cycle is not None else None,
        )
