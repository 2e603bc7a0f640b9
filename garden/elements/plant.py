"""Plant rules — survival, growth, resource draw, and spreading.

Called once per cycle from ``Entity.update`` for every living plant,
after its age has been incremented and expiry checked.  The order is:

1. Survival: wilting damage when dry, light starvation when shaded,
   slow recovery when watered.
2. Growth: progress scaled by moisture, sunlight, season, and compost;
   stages only ever advance.
3. Resource consumption from the tile.
4. Spreading to a free, moist neighbour (spreading types only).
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from garden.elements.types import CYCLES_PER_DAY
from garden.world.tile import RESOURCE_MAX

if TYPE_CHECKING:
    from numpy.random import Generator

    from garden.elements.entity import Entity, PlantState
    from garden.simulation.clock import Season
    from garden.world.grid import Grid
    from garden.world.tile import Tile

# -- Constants ---------------------------------------------------------------

MIN_MOISTURE_TO_SURVIVE = 20.0
WILTING_CYCLES = 3
_WILT_DAMAGE = 10.0
_SHADE_DAMAGE = 5.0
_RECOVERY_PER_CYCLE = 2.0
_MOISTURE_DRAW = 3.0
_NUTRIENT_DRAW = 2.0
_SPREAD_CHANCE = 0.01
_SPREAD_MIN_AGE = CYCLES_PER_DAY
_DECOMPOSITION_NUTRIENTS = 20.0
_SICKLY_HEALTH = 50.0
_SICKLY_COLOR = "#A1887F"
_WILTED_ICON = "🍂"
SPREAD_ACTOR = "spread"


def update_plant(
    entity: Entity,
    tile: Tile,
    grid: Grid,
    season: Season,
    rng: Generator,
) -> None:
    """Run one cycle of plant behaviour.

    Args:
        entity: A living plant with a ``PlantState`` payload.
        tile: The tile the plant occupies.
        grid: The grid (for death enrichment and spreading).
        season: Active season, supplies the growth modifier.
        rng: Random source for spreading.
    """
    state: PlantState = entity.state  # type: ignore[assignment]

    _check_survival(entity, state, tile, grid)
    if not entity.is_alive:
        return

    _grow(entity, state, tile, season)
    _consume_resources(tile)

    if entity.element_type.spreads:
        _try_spread(entity, tile, grid, rng)


def _check_survival(
    entity: Entity,
    state: PlantState,
    tile: Tile,
    grid: Grid,
) -> None:
    """Apply drought and shade damage, or recover when watered.

    Damage from both sources can stack within one cycle, so health is
    checked again once penalties are applied.
    """
    if entity.health <= 0:
        entity.die(grid)
        return

    if tile.moisture < MIN_MOISTURE_TO_SURVIVE:
        state.cycles_without_water += 1
        if state.cycles_without_water >= WILTING_CYCLES:
            entity.health -= _WILT_DAMAGE
    else:
        state.cycles_without_water = 0
        entity.health = min(100.0, entity.health + _RECOVERY_PER_CYCLE)

    etype = entity.element_type
    if etype.needs_sunlight and tile.sunlight < etype.min_sunlight:
        entity.health -= _SHADE_DAMAGE

    if entity.health <= 0:
        entity.die(grid)


def growth_rate(entity: Entity, tile: Tile, season: Season) -> float:
    """Return this cycle's growth increment for ``entity`` on ``tile``."""
    rate = tile.moisture / RESOURCE_MAX
    if entity.element_type.needs_sunlight:
        rate *= tile.sunlight / RESOURCE_MAX
    rate *= season.growth_modifier
    rate *= tile.effects.growth_bonus
    return rate


def _grow(entity: Entity, state: PlantState, tile: Tile, season: Season) -> None:
    entity.growth_progress += growth_rate(entity, tile, season)

    etype = entity.element_type
    if not (etype.growth_stages and etype.growth_time):
        return

    cycles_per_stage = etype.growth_time / etype.growth_stages
    target = min(
        etype.growth_stages,
        math.floor(entity.growth_progress / cycles_per_stage),
    )
    if target > entity.current_stage:
        entity.current_stage = target
        if (
            target == etype.growth_stages
            and etype.attracts_pollinators
            and not state.has_flowered
        ):
            state.has_flowered = True


def _consume_resources(tile: Tile) -> None:
    tile.consume_moisture(_MOISTURE_DRAW)
    tile.consume_nutrients(_NUTRIENT_DRAW)


def _try_spread(entity: Entity, tile: Tile, grid: Grid, rng: Generator) -> None:
    """Occasionally seed a copy of this plant on a free adjacent tile.

    Only unoccupied tiles (both layers empty) with enough moisture to
    sustain a seedling are candidates.
    """
    from garden.elements.entity import Entity

    if entity.age < _SPREAD_MIN_AGE:
        return
    if rng.random() >= _SPREAD_CHANCE:
        return

    candidates = [
        t
        for t in grid.adjacent_tiles(tile.x, tile.y)
        if not t.is_occupied() and t.moisture >= MIN_MOISTURE_TO_SURVIVE
    ]
    if not candidates:
        return

    target = candidates[int(rng.integers(len(candidates)))]
    offspring = Entity.create(entity.element_type, placed_by=SPREAD_ACTOR)
    target.place_entity(offspring)


def decompose(entity: Entity, grid: Grid) -> None:
    """Return nutrients to the soil when a plant dies."""
    if entity.position is None:
        return
    tile = grid.tile_at(*entity.position)
    if tile is not None:
        tile.add_nutrients(_DECOMPOSITION_NUTRIENTS)


# -- Presentation -------------------------------------------------------------


def plant_color(entity: Entity) -> str:
    if entity.health < _SICKLY_HEALTH:
        return _SICKLY_COLOR
    return entity.element_type.color


def plant_icon(entity: Entity) -> str:
    if not entity.is_alive:
        return _WILTED_ICON
    icons = entity.element_type.stage_icons
    if icons:
        return icons[min(entity.current_stage, len(icons) - 1)]
    return entity.element_type.icon


def describe_plant(entity: Entity, tile: Tile | None) -> str:
    name = entity.element_type.name
    days = entity.age_days
    if not entity.is_alive:
        return f"{name} - Dead after {days} days"

    state: PlantState = entity.state  # type: ignore[assignment]
    max_stage = entity.element_type.growth_stages or 1
    lines = [
        name,
        f"Age: {days} days",
        f"Health: {round(entity.health)}%",
        f"Growth: Stage {entity.current_stage}/{max_stage}",
    ]
    if state.has_flowered:
        lines.append("In bloom")
    if state.cycles_without_water > 0:
        lines.append("Needs water!")
    if tile is not None:
        lines.append(f"Moisture: {round(tile.moisture)}%")
        lines.append(f"Sunlight: {round(tile.sunlight)}%")
    return "\n".join(lines)
