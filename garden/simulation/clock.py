"""Clock — wall time, day/night light, and the rotating seasons.

The engine never keeps its own notion of time: it asks a ``Clock`` for
the current epoch time and the sunlight baseline for that moment, and
derives the season from the time elapsed since the garden was created.
Tests swap in a fixed clock to make cycles reproducible.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

FULL_SUNLIGHT = 100.0


class Season(Enum):
    """The four seasons, in rotation order.

    Each value carries ``(label, growth_modifier, moisture_retention,
    color)``.
    """

    SPRING = ("Spring", 1.5, 1.0, "#7CB342")
    SUMMER = ("Summer", 1.0, 0.8, "#FFA726")
    AUTUMN = ("Autumn", 0.7, 1.0, "#FF7043")
    WINTER = ("Winter", 0.3, 1.2, "#90CAF9")

    def __init__(
        self,
        label: str,
        growth_modifier: float,
        moisture_retention: float,
        color: str,
    ) -> None:
        self.label = label
        self.growth_modifier = growth_modifier
        self.moisture_retention = moisture_retention
        self.color = color


SEASON_ORDER = (Season.SPRING, Season.SUMMER, Season.AUTUMN, Season.WINTER)


def season_for_elapsed(elapsed: float, season_duration: float) -> Season:
    """Return the season after ``elapsed`` seconds of garden time.

    Args:
        elapsed: Seconds since the garden was created.
        season_duration: Length of one season in seconds.
    """
    if elapsed < 0 or season_duration <= 0:
        return Season.SPRING
    return SEASON_ORDER[int(elapsed // season_duration) % len(SEASON_ORDER)]


class Clock(Protocol):
    """Source of wall-clock time and ambient daylight."""

    def now(self) -> float:
        """Return the current time in epoch seconds."""
        ...

    def base_sunlight(self) -> float:
        """Return the unshaded sunlight level for the current moment."""
        ...


@dataclass
class SystemClock:
    """Real time, with daylight between two local hours.

    Attributes:
        day_start_hour: Local hour at which day begins.
        day_end_hour: Local hour at which night begins.
        night_sunlight_factor: Fraction of full sunlight at night.
    """

    day_start_hour: int = 6
    day_end_hour: int = 20
    night_sunlight_factor: float = 0.3

    def now(self) -> float:
        return time.time()

    @property
    def is_daytime(self) -> bool:
        """Return True if the local hour is between dawn and dusk."""
        hour = time.localtime().tm_hour
        return self.day_start_hour <= hour < self.day_end_hour

    def base_sunlight(self) -> float:
        if self.is_daytime:
            return FULL_SUNLIGHT
        return FULL_SUNLIGHT * self.night_sunlight_factor
