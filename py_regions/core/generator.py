"""
Region generation pipeline.

This module ties the stages together:
sampling -> barrier detection -> growth -> normalization -> tracing

A RegionGenerator runs the pipeline either on its own worker thread
(generate, returning a Future) or on the caller's event loop
(generate_async). Every invocation gets a fresh GenerationRun that walks
the state machine once and never restarts.
"""

import asyncio
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

import structlog

from ..config.generator_settings import RegionGeneratorOptions
from ..errors import PipelineError, RegionGenerationError
from .barriers import get_barrier_detector
from .grid import SampleGrid
from .normalization import SizeNormalizer
from .ocean import (
    admits_water_region,
    coast_distance,
    coastal_water_mask,
    collapse_bulk_water,
)
from .regions import (
    RegionMap,
    absorb_barrier_cells,
    dominant_category,
    grow_regions,
    grow_water_regions,
)
from .sampling import GridBuilder, ProgressCallback, SamplerAdapter
from .topology import Domain, get_topology
from .tracing import is_degenerate, smooth_outline, trace_boundary

logger = structlog.get_logger()

Dispatch = Callable[..., Any]


class GenerationState(str, Enum):
    """Lifecycle of one generation run."""

    IDLE = "idle"
    SAMPLING = "sampling"
    DETECTING_BARRIERS = "detecting_barriers"
    GROWING = "growing"
    NORMALIZING = "normalizing"
    TRACING = "tracing"
    DONE = "done"
    FAILED = "failed"


_STAGE_ORDER = [
    GenerationState.IDLE,
    GenerationState.SAMPLING,
    GenerationState.DETECTING_BARRIERS,
    GenerationState.GROWING,
    GenerationState.NORMALIZING,
    GenerationState.TRACING,
    GenerationState.DONE,
]


@dataclass(frozen=True)
class Region:
    """A generated region: closed outline in world coordinates plus stats."""

    id: uuid.UUID
    outline: Tuple[Tuple[float, float], ...]
    area_blocks: float
    dominant_category: str
    cell_count: int
    bulk: bool = False

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(min_x, min_z, max_x, max_z) of the outline."""
        xs = [x for x, _ in self.outline]
        zs = [z for _, z in self.outline]
        return min(xs), min(zs), max(xs), max(zs)


@dataclass
class GenerationResult:
    """Outcome of a run: regions on success, the error otherwise."""

    regions: List[Region] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> List[Region]:
        if self.error is not None:
            raise self.error
        return self.regions


class GenerationCallback:
    """Receiver of run events; override what you need."""

    def on_progress(self, percent: int):
        pass

    def on_finished(self, regions: List[Region]):
        pass

    def on_error(self, cause: BaseException):
        pass


class GenerationRun:
    """State machine of one pipeline invocation."""

    def __init__(self, log=None):
        self.run_id = uuid.uuid4().hex[:12]
        self.log = (log or logger).bind(run_id=self.run_id)
        self.state = GenerationState.IDLE
        self.history: List[GenerationState] = [GenerationState.IDLE]
        self.error: Optional[BaseException] = None
        self._started = False
        self._started_at = 0.0

    @property
    def finished(self) -> bool:
        return self.state in (GenerationState.DONE, GenerationState.FAILED)

    def start(self):
        if self._started:
            raise RuntimeError(f"Generation run {self.run_id} was already started")
        self._started = True
        self._started_at = time.perf_counter()
        self.log.info("Region generation started")

    def advance(self, state: GenerationState):
        """Move forward to a later stage."""
        if not self._started:
            raise RuntimeError("Generation run has not been started")
        if self.finished or _STAGE_ORDER.index(state) <= _STAGE_ORDER.index(self.state):
            raise RuntimeError(f"Invalid transition {self.state.value} -> {state.value}")
        self.log.debug("Generation state changed", previous=self.state.value, state=state.value)
        self.state = state
        self.history.append(state)

    @contextmanager
    def stage(self, state: GenerationState):
        """Enter a stage; unexpected errors come out as PipelineError."""
        self.advance(state)
        try:
            yield
        except RegionGenerationError:
            raise
        except Exception as e:
            raise PipelineError(state.value, e) from e

    def finish(self, region_count: int):
        self.advance(GenerationState.DONE)
        self.log.info("Region generation completed", regions=region_count,
                      elapsed_seconds=round(time.perf_counter() - self._started_at, 3))

    def fail(self, error: BaseException):
        failed_stage = self.state
        self.error = error
        self.state = GenerationState.FAILED
        self.history.append(GenerationState.FAILED)
        self.log.error("Region generation failed", stage=failed_stage.value,
                       error=str(error), error_type=type(error).__name__)


def _call_directly(fn: Callable[..., Any], *args: Any):
    fn(*args)


class RegionGenerator:
    """
    Partition a world domain into regions.

    Args:
        options: Generation options
        sampler: Adapter answering category and elevation per block
        logger: Bound structlog logger; module logger by default
        dispatch: Called as dispatch(fn, *args) to deliver callbacks to the
            host's context; calls directly by default
    """

    def __init__(
        self,
        options: Optional[RegionGeneratorOptions] = None,
        sampler: Optional[SamplerAdapter] = None,
        logger=None,
        dispatch: Optional[Dispatch] = None,
    ):
        self.options = options or RegionGeneratorOptions()
        self.sampler = sampler
        self.topology = get_topology(self.options.grid_topology)
        self.log = logger or structlog.get_logger()
        self.dispatch = dispatch or _call_directly
        self._executor: Optional[ThreadPoolExecutor] = None

    def generate(self, domain: Optional[Domain] = None,
                 callback: Optional[GenerationCallback] = None) -> "Future[GenerationResult]":
        """
        Run the pipeline on the generator's worker thread.

        Returns immediately. Progress, completion and failure are delivered
        to the callback through the dispatch function; the returned Future
        resolves to the GenerationResult.

        Raises:
            RuntimeError: No sampler was configured
        """
        self._require_sampler()
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="region-generator")
        return self._executor.submit(self._run_on_worker, domain, callback or GenerationCallback())

    def _require_sampler(self):
        if self.sampler is None:
            raise RuntimeError("RegionGenerator needs a sampler to generate from a domain")

    def _run_on_worker(self, domain: Optional[Domain], callback: GenerationCallback) -> GenerationResult:
        def report(percent: int):
            self.dispatch(callback.on_progress, percent)

        result = asyncio.run(self.generate_async(domain, on_progress=report))
        if result.ok:
            self.dispatch(callback.on_finished, result.regions)
        else:
            self.dispatch(callback.on_error, result.error)
        return result

    async def generate_async(self, domain: Optional[Domain] = None,
                             on_progress: Optional[ProgressCallback] = None) -> GenerationResult:
        """
        Run the pipeline on the current event loop.

        Sampling runs as asyncio tasks; the CPU-bound stages are moved to a
        thread. Pipeline errors never propagate: they are returned in the
        result.
        """
        self._require_sampler()
        domain = domain or Domain(radius=self.options.radius)
        run = GenerationRun(self.log)
        run.start()

        try:
            with run.stage(GenerationState.SAMPLING):
                builder = GridBuilder(self.options, self.sampler, self.topology,
                                      on_progress=on_progress, log=run.log)
                grid = await builder.build(domain)
            regions = await asyncio.to_thread(self._partition, grid, run)
        except RegionGenerationError as e:
            run.fail(e)
            return GenerationResult(error=e)

        run.finish(len(regions))
        return GenerationResult(regions=regions)

    def partition(self, grid: SampleGrid) -> List[Region]:
        """
        Run the post-sampling stages on an existing grid.

        Raises:
            RegionGenerationError: A stage failed
        """
        run = GenerationRun(self.log)
        run.start()
        try:
            regions = self._partition(grid, run)
        except RegionGenerationError as e:
            run.fail(e)
            raise
        run.finish(len(regions))
        return regions

    def _partition(self, grid: SampleGrid, run: GenerationRun) -> List[Region]:
        options = self.options
        buffer = options.coast_buffer_distance

        with run.stage(GenerationState.DETECTING_BARRIERS):
            barriers = get_barrier_detector(options).detect(grid)

        with run.stage(GenerationState.GROWING):
            distance = coast_distance(grid)
            regions = grow_regions(grid, barriers)
            if options.absorb_barrier_cells:
                absorb_barrier_cells(grid, regions, barriers)
            grow_water_regions(grid, regions, coastal_water_mask(grid, distance, buffer))

        with run.stage(GenerationState.NORMALIZING):
            SizeNormalizer(options).normalize(grid, regions)

        with run.stage(GenerationState.TRACING):
            return self._build_regions(grid, regions, distance, run.log)

    def _build_regions(self, grid: SampleGrid, regions: RegionMap, distance, log) -> List[Region]:
        options = self.options
        buffer = options.coast_buffer_distance
        output: List[Region] = []
        skipped_water = 0
        degenerate = 0

        for region_id in sorted(regions.cells):
            cells = regions.cells[region_id]
            category = dominant_category(grid, cells)
            if options.is_water(category) and not admits_water_region(cells, distance, buffer):
                skipped_water += 1
                continue

            ring = trace_boundary(cells, grid, options.trace_step_factor)
            outline = smooth_outline(ring, options.chaikin_iterations, options.collinear_tolerance)
            if is_degenerate(outline, options.collinear_tolerance):
                log.debug("Dropping degenerate region", region=region_id, cells=len(cells),
                          points=len(outline))
                degenerate += 1
                continue

            output.append(Region(
                id=uuid.uuid4(),
                outline=tuple(outline),
                area_blocks=len(cells) * grid.cell_area,
                dominant_category=category,
                cell_count=len(cells),
            ))

        bulk = collapse_bulk_water(grid, distance, buffer)
        if bulk is not None:
            output.append(Region(
                id=uuid.uuid4(),
                outline=tuple(bulk.outline),
                area_blocks=bulk.cell_count * grid.cell_area,
                dominant_category=bulk.dominant_category,
                cell_count=bulk.cell_count,
                bulk=True,
            ))

        log.info("Region outlines built", regions=len(output), degenerate=degenerate,
                 skipped_water=skipped_water, bulk=bulk is not None)
        return output

    def shutdown(self, wait: bool = True):
        """Stop the worker thread."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
