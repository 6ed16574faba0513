"""
Barrier detection between adjacent cells.

This module implements:
- The barrier mask (barrier cells plus blocked edges, always symmetric)
- Local-threshold detection: adaptive slope threshold and category groups
- Watershed-ridge detection: steepest-descent basins and ridge thinning
"""

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import structlog

from ..config.generator_settings import (
    BarrierStrategyName,
    RegionGeneratorOptions,
    SlopeStatistic,
)
from .grid import SampleGrid
from .topology import GridTopology

logger = structlog.get_logger()


def _pair_slices(width: int, height: int, di: int, dj: int):
    """Slices selecting every cell and its neighbour at offset (di, dj)."""
    src = (slice(max(0, -di), width - max(0, di)), slice(max(0, -dj), height - max(0, dj)))
    dst = (slice(max(0, di), width - max(0, -di)), slice(max(0, dj), height - max(0, -dj)))
    return src, dst


@dataclass
class BarrierMask:
    """Barrier cells and blocked edges of a grid.

    edges[d, i, j] blocks the edge from (i, j) to its neighbour at growth
    offset d. An edge is open only if it is not blocked and neither of its
    cells is a barrier cell.
    """
    cells: np.ndarray
    edges: np.ndarray

    @classmethod
    def for_grid(cls, grid: SampleGrid) -> "BarrierMask":
        """Start with water and out-of-domain cells as barriers."""
        directions = len(grid.topology.growth_offsets)
        return cls(
            cells=(grid.water | ~grid.valid).copy(),
            edges=np.zeros((directions, grid.width, grid.height), dtype=bool),
        )

    def mark_edge(self, topology: GridTopology, i: int, j: int, direction: int):
        di, dj = topology.growth_offsets[direction]
        self.edges[direction, i, j] = True
        self.edges[topology.opposite(direction), i + di, j + dj] = True

    def is_open(self, i: int, j: int, direction: int, ni: int, nj: int) -> bool:
        return not (self.edges[direction, i, j] or self.cells[i, j] or self.cells[ni, nj])

    @property
    def barrier_cell_count(self) -> int:
        return int(np.count_nonzero(self.cells))


class BarrierDetector(ABC):
    """Strategy computing a barrier mask for a grid."""

    def __init__(self, options: RegionGeneratorOptions):
        self.options = options

    @abstractmethod
    def detect(self, grid: SampleGrid) -> BarrierMask:
        """Compute the barrier mask of a grid."""


class LocalThresholdDetector(BarrierDetector):
    """Barriers from steep slopes and dissimilar categories."""

    def _category_codes(self, grid: SampleGrid) -> np.ndarray:
        """Integer code per cell; equal codes mean similar categories."""
        codes = np.full(grid.category.shape, -1, dtype=np.int32)
        seen: Dict[Tuple[str, str], int] = {}
        for i in range(grid.width):
            for j in range(grid.height):
                name = grid.category[i, j]
                codes[i, j] = seen.setdefault(self.options.category_group(name), len(seen))
        return codes

    def slope_threshold(self, grid: SampleGrid) -> int:
        """Adaptive threshold from the neighbour slope statistic."""
        elevation = grid.elevation.astype(np.int64)
        land = grid.valid & ~grid.water

        slopes: List[np.ndarray] = []
        for di, dj in grid.topology.growth_offsets:
            src, dst = _pair_slices(grid.width, grid.height, di, dj)
            pairs = land[src] & land[dst]
            slopes.append(np.abs(elevation[src] - elevation[dst])[pairs])

        values = np.concatenate(slopes) if slopes else np.zeros(0, dtype=np.int64)
        if values.size == 0:
            statistic = 0.0
        elif self.options.slope_statistic == SlopeStatistic.MEDIAN:
            statistic = float(np.sort(values)[values.size // 2])
        else:
            statistic = float(values.mean())

        scaled = int(np.floor(statistic * self.options.slope_factor + 0.5))
        return max(self.options.steep_slope_threshold, scaled + self.options.slope_extra)

    def detect(self, grid: SampleGrid) -> BarrierMask:
        topology = grid.topology
        mask = BarrierMask.for_grid(grid)
        threshold = self.slope_threshold(grid)
        codes = self._category_codes(grid)
        elevation = grid.elevation.astype(np.int64)

        for direction, (di, dj) in enumerate(topology.growth_offsets):
            src, dst = _pair_slices(grid.width, grid.height, di, dj)
            pairs = grid.valid[src] & grid.valid[dst]
            dissimilar = codes[src] != codes[dst]
            steep = np.abs(elevation[src] - elevation[dst]) >= threshold
            blocked = pairs & (dissimilar | steep)

            mask.edges[direction][src] |= blocked
            mask.edges[topology.opposite(direction)][dst] |= blocked
            if not self.options.edge_only_barriers:
                mask.cells[src] |= blocked
                mask.cells[dst] |= blocked

        logger.info("Local-threshold barriers detected", threshold=threshold,
                    barrier_cells=mask.barrier_cell_count,
                    blocked_edges=int(np.count_nonzero(mask.edges)) // 2)
        return mask


class WatershedRidgeDetector(BarrierDetector):
    """Barriers along drainage-basin boundaries."""

    def detect(self, grid: SampleGrid) -> BarrierMask:
        mask = BarrierMask.for_grid(grid)
        basins, ridges = self.assign_basins(grid)
        skeleton = thin_ridges(ridges, grid.topology)
        mask.cells |= skeleton

        logger.info("Watershed ridges detected", basins=int(basins.max()) + 1 if basins.size else 0,
                    ridge_cells=int(np.count_nonzero(ridges)),
                    skeleton_cells=int(np.count_nonzero(skeleton)))
        return mask

    def _descent_targets(self, grid: SampleGrid, land: np.ndarray):
        """
        Compute the next downhill cell of every land cell.

        Cells without a strictly lower neighbour that sit on a flat draining
        elsewhere step across the flat towards its exit. Flats without any
        exit are minima and get a shared component label.

        Returns:
            Tuple of (target_i, target_j, minimum_label) arrays, -1 where unset
        """
        topology = grid.topology
        width, height = grid.width, grid.height
        elevation = grid.elevation
        target_i = np.full((width, height), -1, dtype=np.int32)
        target_j = np.full((width, height), -1, dtype=np.int32)

        for i in range(width):
            for j in range(height):
                if not land[i, j]:
                    continue
                lowest = elevation[i, j]
                for _, ni, nj in topology.neighbors(i, j, width, height):
                    if land[ni, nj] and elevation[ni, nj] < lowest:
                        lowest = elevation[ni, nj]
                        target_i[i, j], target_j[i, j] = ni, nj

        sinks = land & (target_i == -1)

        # Route flat cells to an equal-height neighbour that can descend
        queue = deque()
        for i, j in zip(*np.nonzero(sinks)):
            for _, ni, nj in topology.neighbors(i, j, width, height):
                if land[ni, nj] and not sinks[ni, nj] and elevation[ni, nj] == elevation[i, j]:
                    target_i[i, j], target_j[i, j] = ni, nj
                    queue.append((i, j))
                    break
        while queue:
            ci, cj = queue.popleft()
            for _, ni, nj in topology.neighbors(ci, cj, width, height):
                if sinks[ni, nj] and target_i[ni, nj] == -1 and elevation[ni, nj] == elevation[ci, cj]:
                    target_i[ni, nj], target_j[ni, nj] = ci, cj
                    queue.append((ni, nj))

        minimum_label = np.full((width, height), -1, dtype=np.int32)
        label = 0
        for i, j in zip(*np.nonzero(sinks & (target_i == -1))):
            if minimum_label[i, j] != -1:
                continue
            minimum_label[i, j] = label
            queue.append((i, j))
            while queue:
                ci, cj = queue.popleft()
                for _, ni, nj in topology.neighbors(ci, cj, width, height):
                    if (sinks[ni, nj] and target_i[ni, nj] == -1 and minimum_label[ni, nj] == -1
                            and elevation[ni, nj] == elevation[ci, cj]):
                        minimum_label[ni, nj] = label
                        queue.append((ni, nj))
            label += 1

        return target_i, target_j, minimum_label

    def assign_basins(self, grid: SampleGrid) -> Tuple[np.ndarray, np.ndarray]:
        """
        Assign every land cell to the basin of the minimum it drains to.

        Returns:
            Tuple of (basin ids, ridge flags); basin id is -1 off land
        """
        topology = grid.topology
        width, height = grid.width, grid.height
        land = grid.valid & ~grid.water
        target_i, target_j, minimum_label = self._descent_targets(grid, land)

        basins = np.full((width, height), -1, dtype=np.int32)
        ridges = np.zeros((width, height), dtype=bool)
        minimum_basin: Dict[int, int] = {}

        for i in range(width):
            for j in range(height):
                if not land[i, j] or basins[i, j] != -1:
                    continue

                path = []
                ci, cj = i, j
                while True:
                    if basins[ci, cj] != -1:
                        basin = int(basins[ci, cj])
                        break
                    path.append((ci, cj))
                    if minimum_label[ci, cj] != -1:
                        basin = minimum_basin.setdefault(int(minimum_label[ci, cj]), len(minimum_basin))
                        break
                    ci, cj = int(target_i[ci, cj]), int(target_j[ci, cj])

                for pi, pj in reversed(path):
                    basins[pi, pj] = basin
                    foreign = 0
                    for _, ni, nj in topology.neighbors(pi, pj, width, height):
                        if basins[ni, nj] != -1 and basins[ni, nj] != basin:
                            foreign += 1
                    if foreign > 1:
                        ridges[pi, pj] = True

        return basins, ridges


def thin_ridges(ridges: np.ndarray, topology: GridTopology) -> np.ndarray:
    """
    Reduce ridge blobs to one-cell-wide lines.

    Two-pass Zhang-Suen thinning over the topology's neighbour ring, repeated
    until no cell is removed. A cell is removable when 2 <= B <= len(ring) - 2
    ridge neighbours surround it, the ring has exactly one 0 -> 1 transition,
    and the sub-iteration's directional guards hold.
    """
    ring = topology.thinning_ring
    n = len(ring)
    width, height = ridges.shape
    skeleton = ridges.copy()

    changed = True
    while changed:
        changed = False
        for guards in topology.thinning_guards:
            removable = []
            for i, j in zip(*np.nonzero(skeleton)):
                values = []
                for di, dj in ring:
                    ni, nj = i + di, j + dj
                    values.append(bool(0 <= ni < width and 0 <= nj < height and skeleton[ni, nj]))

                count = sum(values)
                if count < 2 or count > n - 2:
                    continue
                transitions = sum(1 for k in range(n) if not values[k] and values[(k + 1) % n])
                if transitions != 1:
                    continue
                if any(all(values[k] for k in triple) for triple in guards):
                    continue
                removable.append((i, j))

            for i, j in removable:
                skeleton[i, j] = False
            changed = changed or bool(removable)

    return skeleton


def get_barrier_detector(options: RegionGeneratorOptions) -> BarrierDetector:
    """Instantiate the configured barrier detection strategy."""
    if options.barrier_strategy == BarrierStrategyName.WATERSHED_RIDGE:
        return WatershedRidgeDetector(options)
    return LocalThresholdDetector(options)
