"""Shared fixtures for region generation tests."""

import asyncio

import numpy as np
import pytest

from py_regions.config import RegionGeneratorOptions
from py_regions.core.grid import SampleGrid
from py_regions.core.sampling import Sample


def build_grid(heights, categories=None, options=None, **kwargs) -> SampleGrid:
    """Frozen grid from [i][j] rasters; plains everywhere by default."""
    heights = np.asarray(heights)
    if categories is None:
        categories = np.full(heights.shape, "plains", dtype=object)
    return SampleGrid.from_arrays(heights, categories, options=options, **kwargs)


class FakeSampler:
    """In-memory sampler with call recording and in-flight tracking."""

    def __init__(self, answer=None, delay: float = 0.0):
        self.answer = answer or (lambda x, z: ("plains", 64))
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def sample(self, x, z):
        self.calls.append((x, z))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            result = self.answer(x, z)
            if asyncio.iscoroutine(result):
                result = await result
            category, elevation = result
            return Sample(category, elevation)
        finally:
            self.in_flight -= 1


@pytest.fixture
def options():
    """Small-grid options: no size pressure, no smoothing, fixed seed."""
    return RegionGeneratorOptions(
        min_region_cells=1,
        max_region_cells=1000,
        chaikin_iterations=0,
        random_seed=42,
    )


@pytest.fixture
def flat_grid(options):
    """3x3 flat single-category grid."""
    return build_grid(np.full((3, 3), 64), options=options)
