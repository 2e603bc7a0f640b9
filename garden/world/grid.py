"""Grid — the spatial container for the garden.

The Grid owns a square arrangement of tiles and provides spatial
queries (point, radius, and 4-neighbour lookups), aggregate statistics
(living/dead entities, average moisture, ecosystem health), and the
grid-wide effect passes that rebuild each tile's transient overlay.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import NDArray

from garden.world.tile import INITIAL_MOISTURE, Tile

if TYPE_CHECKING:
    from garden.elements.entity import Entity

logger = logging.getLogger(__name__)

SHADE_AMOUNT = 30.0

_HEALTH_ENTITY_CAP = 50  # living entities at which the count score saturates
_HEALTH_OCCUPANCY_SCALE = 1000  # occupancy multiplier, saturates at 0.1% of tiles

_RESOURCES = ("moisture", "sunlight", "nutrients")


@dataclass
class Grid:
    """An N x N grid of tiles.

    Attributes:
        size: Number of tiles along each side.
        tiles: 2D list of Tile objects indexed as ``tiles[y][x]``.
    """

    size: int
    tiles: list[list[Tile]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Initialise the grid with default tiles."""
        self.tiles = [[Tile(x=x, y=y) for x in range(self.size)] for y in range(self.size)]

    # -- Spatial queries ---------------------------------------------------

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.size and 0 <= y < self.size

    def tile_at(self, x: int, y: int) -> Tile | None:
        """Return the tile at ``(x, y)``, or None when out of bounds."""
        if not self.in_bounds(x, y):
            return None
        return self.tiles[y][x]

    def tiles_in_radius(self, cx: int, cy: int, radius: int) -> list[Tile]:
        """Return in-bounds tiles in the square of half-width ``radius``.

        The centre tile is included.
        """
        result: list[Tile] = []
        for dy in range(-radius, radius + 1):
            for dx in range(-radius, radius + 1):
                nx, ny = cx + dx, cy + dy
                if self.in_bounds(nx, ny):
                    result.append(self.tiles[ny][nx])
        return result

    def adjacent_tiles(self, x: int, y: int) -> list[Tile]:
        """Return in-bounds cardinal neighbours (north, east, south, west)."""
        result: list[Tile] = []
        for dx, dy in ((0, -1), (1, 0), (0, 1), (-1, 0)):
            nx, ny = x + dx, y + dy
            if self.in_bounds(nx, ny):
                result.append(self.tiles[ny][nx])
        return result

    def entity_tile(self, entity: Entity) -> Tile | None:
        """Resolve an entity's position handle to its tile."""
        if entity.position is None:
            return None
        return self.tile_at(*entity.position)

    def iter_tiles(self) -> Iterator[Tile]:
        """Yield every tile in row-major order."""
        for row in self.tiles:
            yield from row

    # -- Aggregate queries -------------------------------------------------

    def occupied_tiles(self) -> list[Tile]:
        return [t for t in self.iter_tiles() if t.is_occupied()]

    def living_entities(self) -> list[Entity]:
        """Return every living entity across both layers."""
        return [e for t in self.iter_tiles() for e in t.entities() if e.is_alive]

    def dead_entities(self) -> list[Entity]:
        """Return every dead entity still resident on a tile."""
        return [e for t in self.iter_tiles() for e in t.entities() if not e.is_alive]

    def resource_layer(self, name: str) -> NDArray[np.float64]:
        """Return a ``(size, size)`` array of one resource across the grid.

        Args:
            name: One of ``"moisture"``, ``"sunlight"``, ``"nutrients"``.

        Raises:
            ValueError: If ``name`` is not a tile resource.
        """
        if name not in _RESOURCES:
            msg = f"unknown resource {name!r}"
            raise ValueError(msg)
        return np.array(
            [[getattr(tile, name) for tile in row] for row in self.tiles],
            dtype=np.float64,
        )

    def average_moisture(self) -> float:
        """Return the unweighted mean moisture over all tiles."""
        if self.size == 0:
            return 0.0
        return float(self.resource_layer("moisture").mean())

    def ecosystem_health(self) -> int:
        """Return a 0-100 composite score for the garden.

        Weighted 40% on living-entity count, 30% on average moisture,
        and 30% on the share of tiles that are alive.  Rounded once, at
        the end.
        """
        living = len(self.living_entities())
        total_tiles = self.size * self.size
        occupancy = living / total_tiles if total_tiles else 0.0

        entity_score = min(100.0, living / _HEALTH_ENTITY_CAP * 100) * 0.4
        moisture_score = self.average_moisture() * 0.3
        occupancy_score = min(100.0, occupancy * _HEALTH_OCCUPANCY_SCALE) * 0.3
        return round(entity_score + moisture_score + occupancy_score)

    # -- Per-cycle passes --------------------------------------------------

    def reset_sunlight(self, baseline: float) -> None:
        """Reset every tile's sunlight to the time-of-day ``baseline``."""
        for tile in self.iter_tiles():
            tile.sunlight = baseline

    def update_cycle(self) -> None:
        """Run ``Tile.update_cycle`` on every tile."""
        for tile in self.iter_tiles():
            tile.update_cycle()

    def apply_shade_effects(self) -> None:
        """Recompute shade from every live shade-providing occupant.

        Each provider darkens every other tile within its shade radius.
        Overlapping providers stack.
        """
        for tile in self.iter_tiles():
            tile.effects.shade = 0.0

        for tile in self.iter_tiles():
            for entity in tile.entities():
                if not (entity.is_alive and entity.element_type.provides_shade):
                    continue
                radius = entity.element_type.shade_radius
                for affected in self.tiles_in_radius(tile.x, tile.y, radius):
                    if affected is tile:
                        continue
                    affected.apply_shade(SHADE_AMOUNT)
                    affected.effects.shade += SHADE_AMOUNT

    def apply_compost_effects(self) -> None:
        """Recompute growth and nutrient bonuses from compost piles."""
        for tile in self.iter_tiles():
            tile.effects.growth_bonus = 1.0
            tile.effects.nutrient_bonus = 0.0

        for tile in self.iter_tiles():
            for entity in tile.entities():
                etype = entity.element_type
                if etype.growth_boost is None:
                    continue
                for affected in self.tiles_in_radius(
                    tile.x,
                    tile.y,
                    etype.effect_radius,
                ):
                    affected.effects.growth_bonus = etype.growth_boost
                    affected.effects.nutrient_bonus = etype.nutrient_boost
                    affected.add_nutrients(etype.nutrient_boost)

    # -- Serialisation -----------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return a sparse snapshot.

        Only tiles that hold an entity or whose moisture has drifted from
        the default are included.
        """
        return {
            "size": self.size,
            "tiles": [
                t.to_dict()
                for t in self.iter_tiles()
                if t.is_occupied() or t.moisture != INITIAL_MOISTURE
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Grid:
        """Build a default grid and overlay the snapshot's tile records.

        Raises:
            KeyError: If ``size`` or a tile's required field is missing.
        """
        grid = cls(size=int(data["size"]))
        for record in data.get("tiles") or []:
            tile = Tile.from_dict(record)
            if not grid.in_bounds(tile.x, tile.y):
                logger.warning(
                    "Ignoring out-of-bounds tile record (%d, %d)",
                    tile.x,
                    tile.y,
                )
                continue
            grid.tiles[tile.y][tile.x] = tile
        return grid
