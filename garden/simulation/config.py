"""Config — load simulation parameters from YAML files.

Tunable engine policy (grid size, cycle interval, season length,
day/night hours, corpse grace window, catch-up ceiling, placement
cooldown) lives in YAML and is parsed into a typed dataclass here.
Element-type descriptors are static data in ``garden.elements.types``
and are not configurable.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path

import yaml

_DAY_SECONDS = 24 * 60 * 60


@dataclass
class SimulationConfig:
    """Top-level simulation configuration.

    Attributes:
        seed: RNG seed for deterministic replay.
        grid_size: Number of tiles along each side of the square grid.
        cycle_interval: Wall-clock seconds between cycles.
        season_duration: Wall-clock seconds per season.
        day_start_hour: Local hour at which daylight begins.
        day_end_hour: Local hour at which night begins.
        night_sunlight_factor: Fraction of full sunlight at night.
        dead_grace_cycles: Cycles a dead entity stays on its tile before
            it is swept away.
        max_catch_up_cycles: Missed cycles at or above this count are
            skipped on load instead of replayed.
        placement_cooldown: Seconds an actor must wait between
            placements.  Zero disables the cooldown.
    """

    seed: int = 42
    grid_size: int = 50
    cycle_interval: float = 5 * 60.0
    season_duration: float = 7 * _DAY_SECONDS
    day_start_hour: int = 6
    day_end_hour: int = 20
    night_sunlight_factor: float = 0.3
    dead_grace_cycles: int = 5
    max_catch_up_cycles: int = 100
    placement_cooldown: float = float(_DAY_SECONDS)

    @classmethod
    def from_yaml(cls, path: str | Path) -> SimulationConfig:
        """Load configuration from a YAML file.

        Keys missing from the file keep their defaults; unknown keys are
        ignored.

        Args:
            path: Path to the YAML config file.

        Returns:
            A populated SimulationConfig instance.

        Raises:
            FileNotFoundError: If the config file does not exist.
        """
        path = Path(path)
        with path.open("r") as f:
            data = yaml.safe_load(f) or {}

        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
