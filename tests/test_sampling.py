"""Tests for grid sampling."""

import asyncio

import numpy as np
import pytest

from conftest import FakeSampler
from py_regions.config import GridTopologyName, RegionGeneratorOptions
from py_regions.core.sampling import CallableSampler, GridBuilder, compute_concurrency
from py_regions.core.topology import Domain
from py_regions.errors import ConfigurationError, SamplerUnavailableError


class TestComputeConcurrency:
    """Test the effective concurrency rule."""

    @pytest.mark.parametrize("configured,cpus,expected", [
        (0, 4, 8),
        (5, 8, 5),
        (-1, 2, 4),
        (0, 0, 1),
        (1, 64, 1),
    ])
    def test_values(self, configured, cpus, expected):
        assert compute_concurrency(configured, cpus) == expected


class TestGridBuilder:
    """Test asynchronous domain sampling."""

    @pytest.fixture
    def sampling_options(self):
        return RegionGeneratorOptions(
            sample_spacing=8,
            max_parallel_samples=3,
            per_sample_timeout_seconds=5.0,
        )

    @pytest.fixture
    def domain(self):
        """5x5 cells at spacing 8."""
        return Domain(radius=16)

    @pytest.mark.asyncio
    async def test_samples_every_cell(self, sampling_options, domain):
        """Each cell is sampled once and the grid is frozen afterwards."""
        sampler = FakeSampler(lambda x, z: ("plains", 70 + x // 8))
        grid = await GridBuilder(sampling_options, sampler).build(domain)

        assert grid.sampled.all()
        assert len(sampler.calls) == 25
        assert len(set(sampler.calls)) == 25
        assert grid.elevation[0, 0] == 68
        assert grid.elevation[4, 0] == 72
        assert not grid.elevation.flags.writeable

    @pytest.mark.asyncio
    async def test_water_gets_sentinel(self, sampling_options, domain):
        """Water-like categories become barriers above the world height."""
        sampler = FakeSampler(lambda x, z: ("deep_ocean" if x < 0 else "plains", 62))
        grid = await GridBuilder(sampling_options, sampler).build(domain)

        assert grid.water[:2].all()
        assert not grid.water[2:].any()
        assert (grid.elevation[:2] == sampling_options.max_height + 100).all()
        assert (grid.elevation[2:] == 62).all()

    @pytest.mark.asyncio
    async def test_failed_samples_use_fallback(self, sampling_options, domain):
        """A failing sample leaves the cell at elevation 0 and the fallback category."""
        def answer(x, z):
            if x == 0:
                raise IOError("chunk not loaded")
            return "forest", 80

        grid = await GridBuilder(sampling_options, FakeSampler(answer)).build(domain)

        assert not grid.sampled[2].any()
        assert (grid.elevation[2] == 0).all()
        assert all(c == "unknown" for c in grid.category[2])
        assert grid.sampled[[0, 1, 3, 4]].all()

    @pytest.mark.asyncio
    async def test_timed_out_sample(self, domain):
        """Slow samples time out individually without failing the run."""
        options = RegionGeneratorOptions(sample_spacing=8, per_sample_timeout_seconds=0.05)

        async def answer(x, z):
            if (x, z) == (0, 0):
                await asyncio.sleep(1.0)
            return "plains", 64

        grid = await GridBuilder(options, FakeSampler(answer)).build(domain)

        assert not grid.sampled[2, 2]
        assert grid.category[2, 2] == "unknown"
        assert np.count_nonzero(grid.sampled) == 24

    @pytest.mark.asyncio
    async def test_all_failures_raise(self, sampling_options, domain):
        def answer(x, z):
            raise ConnectionError("world closed")

        with pytest.raises(SamplerUnavailableError) as exc_info:
            await GridBuilder(sampling_options, FakeSampler(answer)).build(domain)

        assert exc_info.value.total == 25
        assert isinstance(exc_info.value.last_error, ConnectionError)

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, sampling_options, domain):
        """No more than max_parallel_samples requests are in flight."""
        sampler = FakeSampler(delay=0.01)
        await GridBuilder(sampling_options, sampler).build(domain)

        assert 1 <= sampler.max_in_flight <= 3
        assert len(sampler.calls) == 25

    @pytest.mark.asyncio
    async def test_progress_strictly_increasing(self, sampling_options, domain):
        reported = []
        builder = GridBuilder(sampling_options, FakeSampler(), on_progress=reported.append)
        await builder.build(domain)

        assert reported
        assert reported[-1] == 100
        assert all(a < b for a, b in zip(reported, reported[1:]))

    @pytest.mark.asyncio
    async def test_failing_progress_callback_stops_sampling(self, domain):
        """A raising progress callback fails the build instead of stalling it."""
        def on_progress(percent):
            raise RuntimeError("host is gone")

        options = RegionGeneratorOptions(sample_spacing=8, max_parallel_samples=1)
        sampler = FakeSampler()
        builder = GridBuilder(options, sampler, on_progress=on_progress)

        with pytest.raises(RuntimeError, match="host is gone"):
            await asyncio.wait_for(builder.build(domain), timeout=5)

        assert len(sampler.calls) < 25

    @pytest.mark.asyncio
    async def test_unknown_category_fails(self, domain):
        """A category outside known_categories is a configuration error."""
        options = RegionGeneratorOptions(sample_spacing=8, known_categories=["plains"])
        sampler = FakeSampler(lambda x, z: ("mystery" if x == 0 else "plains", 64))

        with pytest.raises(ConfigurationError):
            await GridBuilder(options, sampler).build(domain)

    @pytest.mark.asyncio
    async def test_integer_block_coordinates(self):
        """Hex centres are floored before reaching the sampler."""
        options = RegionGeneratorOptions(sample_spacing=8, grid_topology=GridTopologyName.HEX)
        sampler = FakeSampler()
        await GridBuilder(options, sampler).build(Domain(radius=24))

        assert sampler.calls
        assert all(isinstance(x, int) and isinstance(z, int) for x, z in sampler.calls)

    @pytest.mark.asyncio
    async def test_callable_sampler(self, sampling_options, domain):
        """Plain functions are adapted to the sampler protocol."""
        sampler = CallableSampler(lambda x, z: ("plains", 64))
        grid = await GridBuilder(sampling_options, sampler).build(domain)

        assert grid.sampled.all()
        assert (grid.elevation == 64).all()
