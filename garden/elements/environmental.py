"""Environmental rules — rain, sunbeams, and permanent structures.

Transient elements (rain clouds, sunbeams) apply an area effect every
cycle until their duration runs out.  Permanent structures (boulders,
compost) never expire; their influence is applied by the grid-wide
shade and compost passes instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from garden.elements.entity import EnvironmentalState, Entity
    from garden.world.grid import Grid
    from garden.world.tile import Tile


def update_environmental(entity: Entity, grid: Grid) -> None:
    """Run one cycle for a living environmental element."""
    if entity.element_type.permanent:
        return
    apply_effects(entity, grid)


def apply_effects(entity: Entity, grid: Grid) -> None:
    """Apply this element's area effect around its tile.

    Also called once by the engine right after placement, so a new rain
    cloud wets its area before the next cycle.
    """
    if entity.position is None:
        return
    x, y = entity.position
    etype = entity.element_type
    tiles = grid.tiles_in_radius(x, y, etype.effect_radius)

    if etype.moisture_boost:
        _apply_rain(entity, tiles)
    elif etype.sunlight_boost:
        for tile in tiles:
            tile.add_sunlight(etype.sunlight_boost)
    else:
        return

    state: EnvironmentalState = entity.state  # type: ignore[assignment]
    state.has_activated = True


def _apply_rain(entity: Entity, tiles: list[Tile]) -> None:
    # Centre tile gets the full boost, the rest of the area half.
    boost = entity.element_type.moisture_boost
    for tile in tiles:
        if (tile.x, tile.y) == entity.position:
            tile.add_moisture(boost)
        else:
            tile.add_moisture(boost / 2)


def describe_environmental(entity: Entity) -> str:
    etype = entity.element_type
    if not entity.is_alive and not etype.permanent:
        return f"{etype.name} - Expired"

    lines = [etype.name]
    if etype.permanent:
        lines.append("Permanent structure")
    elif etype.duration is not None:
        lines.append(f"Remaining: {etype.duration - entity.age} cycles")
    lines.append(etype.description)
    return "\n".join(lines)
