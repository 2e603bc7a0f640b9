"""Element types — immutable descriptors for everything placeable.

Every plant and environmental element in the garden is an instance of
one of the ``ElementType`` records below.  Descriptors are shared by all
instances and never mutated; per-instance state lives on ``Entity``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from types import MappingProxyType

# 24 hours at one cycle every 5 minutes
CYCLES_PER_DAY = 288


class Category(Enum):
    """Broad behavioural family of an element type."""

    PLANT = auto()
    ENVIRONMENTAL = auto()


class Layer(Enum):
    """The two independent entity slots a tile can hold."""

    GROUND = auto()
    ATMOSPHERIC = auto()


@dataclass(frozen=True)
class ElementType:
    """Static description of a placeable element.

    Attributes:
        id: Unique type identifier (e.g. ``"OAK_TREE"``).
        name: Human-readable name.
        icon: Default icon key.
        category: Plant or environmental.
        description: Player-facing blurb.
        color: Render colour as a ``#RRGGBB`` string.
        growth_time: Cycles needed to reach the final growth stage.
        growth_stages: Number of discrete growth stages.
        max_age: Age in cycles at which the element dies (None = never).
        needs_sunlight: Whether sunlight gates placement and health.
        min_sunlight: Minimum tile sunlight when ``needs_sunlight``.
        provides_shade: Whether the element shades its surroundings.
        shade_radius: Half-width of the shaded square.
        attracts_pollinators: Whether reaching full bloom flowers.
        spreads: Whether the plant colonises adjacent tiles.
        duration: Lifetime in cycles for transient elements.
        effect_radius: Half-width of the area effect square.
        moisture_boost: Moisture added by rain.
        sunlight_boost: Sunlight added by a sunbeam.
        nutrient_boost: Nutrients added by compost.
        growth_boost: Growth multiplier applied by compost.
        permanent: Whether the element never expires.
        stage_icons: Icon per growth stage, indexed by stage.
    """

    id: str
    name: str
    icon: str
    category: Category
    description: str
    color: str
    growth_time: int = 0
    growth_stages: int = 0
    max_age: int | None = None
    needs_sunlight: bool = False
    min_sunlight: float = 0.0
    provides_shade: bool = False
    shade_radius: int = 1
    attracts_pollinators: bool = False
    spreads: bool = False
    duration: int | None = None
    effect_radius: int = 0
    moisture_boost: float = 0.0
    sunlight_boost: float = 0.0
    nutrient_boost: float = 0.0
    growth_boost: float | None = None
    permanent: bool = False
    stage_icons: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_plant(self) -> bool:
        """Return True for plant-category types."""
        return self.category is Category.PLANT


_TYPES = (
    ElementType(
        id="OAK_TREE",
        name="Oak Tree",
        icon="🌳",
        category=Category.PLANT,
        description=(
            "Slow growth (7 days to mature), lives 60+ days, "
            "provides shade, attracts birds"
        ),
        color="#558B2F",
        growth_time=7 * CYCLES_PER_DAY,
        growth_stages=3,
        max_age=60 * CYCLES_PER_DAY,
        needs_sunlight=True,
        min_sunlight=50,
        provides_shade=True,
        shade_radius=2,
        stage_icons=("🌱", "🌳", "🌳", "🌳"),
    ),
    ElementType(
        id="WILDFLOWER",
        name="Wildflower",
        icon="🌸",
        category=Category.PLANT,
        description=(
            "Fast bloom (2 days), lives 10-15 days, requires sunlight, "
            "attracts pollinators"
        ),
        color="#EC407A",
        growth_time=2 * CYCLES_PER_DAY,
        growth_stages=2,
        max_age=15 * CYCLES_PER_DAY,
        needs_sunlight=True,
        min_sunlight=60,
        attracts_pollinators=True,
        stage_icons=("🌱", "🌸", "🌸"),
    ),
    ElementType(
        id="GRASS_PATCH",
        name="Grass Patch",
        icon="🌿",
        category=Category.PLANT,
        description=(
            "Spreads to adjacent tiles (1 per day), lives indefinitely with water"
        ),
        color="#7CB342",
        growth_time=1 * CYCLES_PER_DAY,
        growth_stages=1,
        needs_sunlight=True,
        min_sunlight=40,
        spreads=True,
    ),
    ElementType(
        id="RAIN_CLOUD",
        name="Rain Cloud",
        icon="🌧️",
        category=Category.ENVIRONMENTAL,
        description="Waters 3x3 tile area, lasts 1 cycle, critical for survival",
        color="#42A5F5",
        duration=1,
        effect_radius=1,
        moisture_boost=80,
    ),
    ElementType(
        id="SUNBEAM",
        name="Sunbeam",
        icon="☀️",
        category=Category.ENVIRONMENTAL,
        description="Boosts light in 3x3 area for 2 cycles, needed for flowers",
        color="#FDD835",
        duration=2,
        effect_radius=1,
        sunlight_boost=90,
    ),
    ElementType(
        id="COMPOST_PILE",
        name="Compost",
        icon="🍂",
        category=Category.ENVIRONMENTAL,
        description="Enriches soil in 3x3 area permanently (+50% growth speed)",
        color="#795548",
        permanent=True,
        effect_radius=1,
        nutrient_boost=50,
        growth_boost=1.5,
    ),
    ElementType(
        id="BOULDER",
        name="Boulder",
        icon="🪨",
        category=Category.ENVIRONMENTAL,
        description="Permanent decoration, creates shade, blocks spread",
        color="#78909C",
        permanent=True,
        provides_shade=True,
        shade_radius=1,
    ),
)

ELEMENT_TYPES: MappingProxyType[str, ElementType] = MappingProxyType(
    {t.id: t for t in _TYPES},
)

# Closed set: everything else lives on the ground layer.
ATMOSPHERIC_TYPES = frozenset({"RAIN_CLOUD", "SUNBEAM"})


def layer_for(element_type: ElementType) -> Layer:
    """Return the tile layer an element of this type occupies."""
    if element_type.id in ATMOSPHERIC_TYPES:
        return Layer.ATMOSPHERIC
    return Layer.GROUND


def get_element_type(type_id: str) -> ElementType:
    """Look up an element type by id.

    Raises:
        KeyError: If ``type_id`` is not a known element type.
    """
    return ELEMENT_TYPES[type_id]
