"""Tile — a single cell in the garden grid.

Each tile holds bounded resource levels (moisture, sunlight, nutrients),
two independent entity slots (ground and atmospheric), and a transient
effects overlay that the grid rebuilds every cycle from the current
entity placements.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from garden.elements.types import Layer, layer_for

if TYPE_CHECKING:
    from garden.elements.entity import Entity
    from garden.elements.types import ElementType

logger = logging.getLogger(__name__)

RESOURCE_MIN = 0.0
RESOURCE_MAX = 100.0

INITIAL_MOISTURE = 30.0
INITIAL_SUNLIGHT = 70.0
INITIAL_NUTRIENTS = 50.0
INITIAL_TEMPERATURE = 20.0

_EVAPORATION_PER_CYCLE = 5.0
_NUTRIENT_REGEN_PER_CYCLE = 1.0

_SOIL_WET = "#42A5F5"
_SOIL_GRASSY = "#7CB342"
_SOIL_DRY = "#8B7355"
_SOIL_SANDY = "#D7CCC8"

_LAYER_KEYS = {
    Layer.GROUND: "groundEntity",
    Layer.ATMOSPHERIC: "atmosphericEntity",
}


def _clamp(value: float) -> float:
    return max(RESOURCE_MIN, min(RESOURCE_MAX, value))


@dataclass
class TileEffects:
    """Per-cycle overlay derived from nearby entities.

    Attributes:
        shade: Cumulative sunlight subtracted by shade providers.
        nutrient_bonus: Nutrient bonus from compost in range.
        growth_bonus: Growth multiplier from compost in range (>= 1).
    """

    shade: float = 0.0
    nutrient_bonus: float = 0.0
    growth_bonus: float = 1.0


@dataclass
class Tile:
    """A single tile in the garden grid.

    Attributes:
        x: Column position.
        y: Row position.
        moisture: Water level (0-100).
        sunlight: Light level (0-100), reset to a baseline every cycle.
        nutrients: Soil richness (0-100).
        temperature: Degrees Celsius.  Persisted but not yet used.
        ground_entity: Plant or structure rooted on this tile.
        atmospheric_entity: Rain cloud or sunbeam hovering over it.
        effects: Transient overlay, never persisted.
    """

    x: int
    y: int
    moisture: float = INITIAL_MOISTURE
    sunlight: float = INITIAL_SUNLIGHT
    nutrients: float = INITIAL_NUTRIENTS
    temperature: float = INITIAL_TEMPERATURE
    ground_entity: Entity | None = field(default=None, repr=False)
    atmospheric_entity: Entity | None = field(default=None, repr=False)
    effects: TileEffects = field(default_factory=TileEffects, repr=False)

    # -- Occupancy ---------------------------------------------------------

    def occupant(self, layer: Layer) -> Entity | None:
        """Return the entity in ``layer``, if any."""
        if layer is Layer.ATMOSPHERIC:
            return self.atmospheric_entity
        return self.ground_entity

    def _set_occupant(self, layer: Layer, entity: Entity | None) -> None:
        if layer is Layer.ATMOSPHERIC:
            self.atmospheric_entity = entity
        else:
            self.ground_entity = entity

    def entities(self) -> list[Entity]:
        """Return resident entities, ground layer first."""
        return [e for e in (self.ground_entity, self.atmospheric_entity) if e]

    def is_occupied(self) -> bool:
        """Return True if either layer holds an entity (alive or dead)."""
        return self.ground_entity is not None or self.atmospheric_entity is not None

    def place_entity(self, entity: Entity) -> bool:
        """Bind ``entity`` to this tile if its layer is free.

        Args:
            entity: An unplaced entity.

        Returns:
            True on success.  False (with no side effect) if the target
            layer is occupied or the entity already sits on a tile.
        """
        layer = layer_for(entity.element_type)
        if self.occupant(layer) is not None or entity.position is not None:
            return False
        self._set_occupant(layer, entity)
        entity.position = (self.x, self.y)
        return True

    def remove_entity(self, entity: Entity | None = None) -> None:
        """Remove ``entity`` from this tile, or clear both layers.

        Removing an entity that is not resident here is a no-op.
        """
        for layer in Layer:
            occupant = self.occupant(layer)
            if occupant is None:
                continue
            if entity is None or occupant is entity:
                occupant.position = None
                self._set_occupant(layer, None)

    def can_place(self, element_type: ElementType) -> bool:
        """Return True if an element of ``element_type`` may be placed here.

        A dead occupant does not block placement; it is cleared first.
        """
        occupant = self.occupant(layer_for(element_type))
        if occupant is not None and occupant.is_alive:
            return False
        return not (
            element_type.needs_sunlight and self.sunlight < element_type.min_sunlight
        )

    # -- Resources ---------------------------------------------------------

    def update_cycle(self) -> None:
        """Evaporate moisture, regenerate nutrients, and clamp resources.

        Sunlight is not touched here; the engine resets it to the
        time-of-day baseline before shade is applied.
        """
        self.moisture -= _EVAPORATION_PER_CYCLE
        if self.nutrients < RESOURCE_MAX:
            self.nutrients += _NUTRIENT_REGEN_PER_CYCLE
        self.moisture = _clamp(self.moisture)
        self.sunlight = _clamp(self.sunlight)
        self.nutrients = _clamp(self.nutrients)

    def add_moisture(self, amount: float) -> None:
        self.moisture = _clamp(self.moisture + amount)

    def add_sunlight(self, amount: float) -> None:
        self.sunlight = _clamp(self.sunlight + amount)

    def add_nutrients(self, amount: float) -> None:
        self.nutrients = _clamp(self.nutrients + amount)

    def consume_moisture(self, amount: float) -> None:
        self.moisture = _clamp(self.moisture - amount)

    def consume_nutrients(self, amount: float) -> None:
        self.nutrients = _clamp(self.nutrients - amount)

    def apply_shade(self, amount: float) -> None:
        self.sunlight = max(RESOURCE_MIN, self.sunlight - amount)

    def color_key(self) -> str:
        """Return the render colour for this tile.

        A live ground entity shows its own colour; otherwise the soil
        colour is banded by moisture.
        """
        if self.ground_entity is not None and self.ground_entity.is_alive:
            return self.ground_entity.color_key()
        ratio = self.moisture / RESOURCE_MAX
        if ratio > 0.7:
            return _SOIL_WET
        if ratio > 0.4:
            return _SOIL_GRASSY
        if ratio > 0.2:
            return _SOIL_DRY
        return _SOIL_SANDY

    # -- Serialisation -----------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready snapshot of this tile and its residents."""
        data: dict[str, Any] = {
            "x": self.x,
            "y": self.y,
            "moisture": self.moisture,
            "sunlight": self.sunlight,
            "nutrients": self.nutrients,
            "temperature": self.temperature,
        }
        for layer, key in _LAYER_KEYS.items():
            occupant = self.occupant(layer)
            if occupant is not None:
                data[key] = occupant.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Tile:
        """Rebuild a tile from ``to_dict`` output.

        Restored entities are re-linked to the new tile.  Entity records
        with an unknown type id are dropped.

        Raises:
            KeyError: If a required scalar field is missing.
        """
        from garden.elements.entity import Entity

        tile = cls(
            x=int(data["x"]),
            y=int(data["y"]),
            moisture=float(data["moisture"]),
            sunlight=float(data["sunlight"]),
            nutrients=float(data["nutrients"]),
            temperature=float(data.get("temperature", INITIAL_TEMPERATURE)),
        )
        for key in _LAYER_KEYS.values():
            record = data.get(key)
            if not record:
                continue
            entity = Entity.from_dict(record)
            if entity is None:
                logger.warning(
                    "Dropping entity with unknown type %r at (%d, %d)",
                    record.get("typeId"),
                    tile.x,
                    tile.y,
                )
                continue
            tile.place_entity(entity)
        return tile
