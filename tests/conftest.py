"""Shared fixtures for The Garden test suite."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pytest
from numpy.random import Generator

from garden.simulation.config import SimulationConfig
from garden.simulation.engine import SimulationEngine
from garden.storage.backend import MemoryStore
from garden.world.grid import Grid


@dataclass
class FixedClock:
    """A clock that only moves when told to."""

    current: float = 1_700_000_000.0
    sunlight: float = 100.0

    def now(self) -> float:
        return self.current

    def base_sunlight(self) -> float:
        return self.sunlight

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def rng() -> Generator:
    """A deterministic random generator for reproducible tests."""
    return np.random.default_rng(seed=12345)


@pytest.fixture
def small_grid() -> Grid:
    """A small 10x10 grid for fast tests."""
    return Grid(size=10)


@pytest.fixture
def default_config() -> SimulationConfig:
    """Default simulation config (no YAML file needed)."""
    return SimulationConfig()


@pytest.fixture
def small_config() -> SimulationConfig:
    """Config for a 10x10 garden with no placement cooldown."""
    return SimulationConfig(grid_size=10, placement_cooldown=0)


@pytest.fixture
def clock() -> FixedClock:
    """Frozen daytime clock."""
    return FixedClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def engine(
    small_config: SimulationConfig,
    store: MemoryStore,
    clock: FixedClock,
) -> SimulationEngine:
    """A 10x10 engine on an in-memory store and a frozen clock."""
    return SimulationEngine(config=small_config, store=store, clock=clock)
