"""
Grid sampling under bounded concurrency.

This module implements:
- The sampler adapter protocol the engine consumes
- The effective concurrency rule
- The grid builder issuing one asynchronous sample per domain cell
"""

import asyncio
import inspect
import math
import os
from typing import Any, Callable, NamedTuple, Optional, Protocol

import structlog

from ..config.generator_settings import RegionGeneratorOptions
from ..errors import ConfigurationError, SamplerUnavailableError
from .grid import SampleGrid
from .topology import Domain, GridTopology, get_topology

logger = structlog.get_logger()

ProgressCallback = Callable[[int], None]


class Sample(NamedTuple):
    """Answer of the sampler for one coordinate."""
    category: str
    elevation: int


class SamplerAdapter(Protocol):
    """Capability answering "what is at (x, z)?" asynchronously."""

    async def sample(self, x: int, z: int) -> Sample:
        ...


class CallableSampler:
    """Adapt a plain (or async) function of (x, z) to the sampler protocol."""

    def __init__(self, fn: Callable[[int, int], Any]):
        self.fn = fn

    async def sample(self, x: int, z: int) -> Sample:
        result = self.fn(x, z)
        if inspect.isawaitable(result):
            result = await result
        category, elevation = result
        return Sample(category, elevation)


def compute_concurrency(configured: int, cpus: int) -> int:
    """
    Calculate the effective number of samples in flight.

    Args:
        configured: Value from options; 0 or negative means 2 x CPU
        cpus: Available processors

    Returns:
        Concurrency limit, at least 1
    """
    base = configured if configured > 0 else cpus * 2
    return max(1, base)


class GridBuilder:
    """Samples every domain cell and assembles a SampleGrid."""

    def __init__(
        self,
        options: RegionGeneratorOptions,
        sampler: SamplerAdapter,
        topology: Optional[GridTopology] = None,
        on_progress: Optional[ProgressCallback] = None,
        log=None,
    ):
        self.options = options
        self.sampler = sampler
        self.topology = topology or get_topology(options.grid_topology)
        self.on_progress = on_progress
        self.log = log or logger

        self.concurrency = compute_concurrency(options.max_parallel_samples, os.cpu_count() or 1)

        self._total = 0
        self._step = 1
        self._done = 0
        self._failed = 0
        self._last_percent = -1
        self._last_error: Optional[BaseException] = None
        self._fatal: Optional[ConfigurationError] = None
        self._callback_error: Optional[Exception] = None

    async def build(self, domain: Domain) -> SampleGrid:
        """
        Sample the whole domain.

        Blocks until every scheduled sample has completed, failed or timed
        out. Failed cells keep elevation 0 and the fallback category.

        Raises:
            ConfigurationError: A sample reported an unknown category
            SamplerUnavailableError: Every sample failed
            Exception: Whatever the progress callback raised
        """
        grid = SampleGrid.empty(self.topology, domain, self.options.sample_spacing,
                                self.options.fallback_category)
        cells = list(grid.valid_cells())

        self._total = len(cells)
        self._step = max(1, self._total // 20)
        self.log.info("Sampling domain", cells=self._total, concurrency=self.concurrency,
                      topology=self.topology.name, radius=domain.radius)

        semaphore = asyncio.Semaphore(self.concurrency)
        tasks = []
        for i, j in cells:
            await semaphore.acquire()
            if self._fatal is not None or self._callback_error is not None:
                semaphore.release()
                break
            tasks.append(asyncio.create_task(self._sample_cell(grid, i, j, semaphore)))

        if tasks:
            await asyncio.gather(*tasks)

        if self._fatal is not None:
            raise self._fatal
        if self._callback_error is not None:
            raise self._callback_error
        if self._total and self._failed == self._total:
            raise SamplerUnavailableError(self._total, self._last_error)

        self._report(100)
        if self._callback_error is not None:
            raise self._callback_error
        self.log.info("Sampling completed", cells=self._total, failed=self._failed)
        return grid.freeze()

    async def _sample_cell(self, grid: SampleGrid, i: int, j: int, semaphore: asyncio.Semaphore):
        x, z = grid.world_position(i, j)
        bx, bz = math.floor(x), math.floor(z)
        try:
            category, elevation = await asyncio.wait_for(
                self.sampler.sample(bx, bz), timeout=self.options.per_sample_timeout_seconds
            )
            if not self.options.is_known(category):
                raise ConfigurationError(f"Unresolvable category {category!r} at ({bx}, {bz})")
            grid.set_sample(i, j, elevation, category, self.options)
        except ConfigurationError as e:
            if self._fatal is None:
                self._fatal = e
        except asyncio.TimeoutError:
            self._failed += 1
            self.log.warning("Sample timed out", x=bx, z=bz,
                             timeout=self.options.per_sample_timeout_seconds)
        except Exception as e:
            self._failed += 1
            self._last_error = e
            self.log.error("Sample failed", x=bx, z=bz, error=str(e), exc_info=True)
        finally:
            semaphore.release()
            self._done += 1
            if self._done % self._step == 0:
                self._report(self._done * 100 // self._total)

    def _report(self, percent: int):
        if percent <= self._last_percent:
            return
        self._last_percent = percent
        if self.on_progress is None:
            return
        try:
            self.on_progress(percent)
        except Exception as e:
            # Stops scheduling; build() re-raises once in-flight samples settle
            if self._callback_error is None:
                self._callback_error = e
            self.log.error("Progress callback failed", percent=percent, error=str(e))
