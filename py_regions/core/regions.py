"""
Region growing over the barrier mask.

This module handles:
- The intermediate region map (cell labels plus per-region cell lists)
- Row-major flood fill of non-barrier cells into connected components
- Absorption of land barrier cells into adjacent regions
- Growth of coastal water cells into their own regions
"""

from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import structlog

from .barriers import BarrierMask
from .grid import SampleGrid

logger = structlog.get_logger()

Cell = Tuple[int, int]

UNASSIGNED = -1


@dataclass
class RegionMap:
    """Cell membership of intermediate regions."""

    labels: np.ndarray
    cells: Dict[int, List[Cell]] = field(default_factory=dict)
    next_id: int = 0

    @classmethod
    def for_grid(cls, grid: SampleGrid) -> "RegionMap":
        return cls(labels=np.full((grid.width, grid.height), UNASSIGNED, dtype=np.int32))

    def __len__(self) -> int:
        return len(self.cells)

    def size(self, region_id: int) -> int:
        return len(self.cells[region_id])

    def region_of(self, i: int, j: int) -> int:
        return int(self.labels[i, j])

    def add(self, cells: List[Cell]) -> int:
        """Register a new region and return its id."""
        region_id = self.next_id
        self.next_id += 1
        self.cells[region_id] = list(cells)
        for i, j in cells:
            self.labels[i, j] = region_id
        return region_id

    def assign(self, region_id: int, i: int, j: int):
        self.labels[i, j] = region_id
        self.cells[region_id].append((i, j))

    def merge(self, source: int, target: int):
        """Move every cell of source into target and drop source."""
        moved = self.cells.pop(source)
        for i, j in moved:
            self.labels[i, j] = target
        self.cells[target].extend(moved)

    def replace(self, region_id: int, fragments: List[List[Cell]]) -> List[int]:
        """Keep the first fragment under region_id, append new ids for the rest."""
        self.cells[region_id] = list(fragments[0])
        for i, j in fragments[0]:
            self.labels[i, j] = region_id
        return [region_id] + [self.add(fragment) for fragment in fragments[1:]]

    def total_cells(self) -> int:
        return sum(len(cells) for cells in self.cells.values())


def _flood(grid: SampleGrid, regions: RegionMap, start: Cell, eligible: np.ndarray,
           barriers: Optional[BarrierMask] = None) -> List[Cell]:
    """Breadth-first component of eligible, unassigned cells around start."""
    topology = grid.topology
    width, height = grid.width, grid.height
    region_id = regions.next_id
    regions.next_id += 1
    regions.cells[region_id] = []

    start = (int(start[0]), int(start[1]))
    queue = deque([start])
    regions.labels[start] = region_id
    component = []
    while queue:
        ci, cj = queue.popleft()
        component.append((ci, cj))
        for direction, ni, nj in topology.neighbors(ci, cj, width, height):
            if not eligible[ni, nj] or regions.labels[ni, nj] != UNASSIGNED:
                continue
            if barriers is not None and not barriers.is_open(ci, cj, direction, ni, nj):
                continue
            regions.labels[ni, nj] = region_id
            queue.append((ni, nj))

    regions.cells[region_id] = component
    return component


def grow_regions(grid: SampleGrid, barriers: BarrierMask) -> RegionMap:
    """
    Flood-fill non-barrier cells into connected regions.

    Cells are scanned in row-major order; every unassigned valid cell that is
    not a barrier cell seeds a breadth-first component crossing open edges
    only. Barrier cells are left unassigned.

    Args:
        grid: Sampled grid
        barriers: Barrier mask from a detector

    Returns:
        RegionMap with one region per component
    """
    regions = RegionMap.for_grid(grid)
    eligible = grid.valid & ~barriers.cells

    for i, j in grid.valid_cells():
        if eligible[i, j] and regions.labels[i, j] == UNASSIGNED:
            _flood(grid, regions, (i, j), eligible, barriers)

    logger.info("Regions grown", regions=len(regions), cells=regions.total_cells())
    return regions


def absorb_barrier_cells(grid: SampleGrid, regions: RegionMap, barriers: BarrierMask) -> int:
    """
    Assign land barrier cells to the neighbouring region they touch most.

    Cells are processed breadth-first outward from assigned cells; ties go to
    the lowest region id. Barrier cells that cannot reach any region are
    flood-filled into new regions of their own.

    Returns:
        Number of absorbed cells
    """
    topology = grid.topology
    width, height = grid.width, grid.height
    pending = barriers.cells & grid.valid & ~grid.water & (regions.labels == UNASSIGNED)

    def touches_region(i: int, j: int) -> bool:
        return any(regions.labels[ni, nj] != UNASSIGNED
                   for _, ni, nj in topology.neighbors(i, j, width, height))

    queue = deque((int(i), int(j)) for i, j in zip(*np.nonzero(pending)) if touches_region(i, j))
    queued = np.zeros_like(pending)
    for cell in queue:
        queued[cell] = True

    absorbed = 0
    while queue:
        ci, cj = queue.popleft()
        tally = Counter()
        for _, ni, nj in topology.neighbors(ci, cj, width, height):
            if regions.labels[ni, nj] != UNASSIGNED:
                tally[int(regions.labels[ni, nj])] += 1
        best = max(tally.values())
        target = min(rid for rid, count in tally.items() if count == best)
        regions.assign(target, ci, cj)
        absorbed += 1

        for _, ni, nj in topology.neighbors(ci, cj, width, height):
            if pending[ni, nj] and not queued[ni, nj] and regions.labels[ni, nj] == UNASSIGNED:
                queued[ni, nj] = True
                queue.append((ni, nj))

    leftover = pending & (regions.labels == UNASSIGNED)
    stranded = 0
    for i, j in zip(*np.nonzero(leftover)):
        if regions.labels[i, j] == UNASSIGNED:
            _flood(grid, regions, (i, j), leftover)
            stranded += 1

    logger.info("Barrier cells absorbed", absorbed=absorbed, stranded_regions=stranded)
    return absorbed


def grow_water_regions(grid: SampleGrid, regions: RegionMap, coastal: np.ndarray) -> List[int]:
    """
    Flood-fill coastal water cells into their own regions.

    Args:
        grid: Sampled grid
        regions: Region map to extend
        coastal: Mask of water cells close enough to land to keep

    Returns:
        Ids of the new water regions
    """
    eligible = coastal & grid.valid & grid.water
    created = []
    for i, j in zip(*np.nonzero(eligible)):
        if regions.labels[i, j] == UNASSIGNED:
            _flood(grid, regions, (int(i), int(j)), eligible)
            created.append(regions.next_id - 1)

    logger.info("Coastal water regions grown", regions=len(created))
    return created


def dominant_category(grid: SampleGrid, cells: Iterable[Cell]) -> str:
    """Most common category among cells; ties go to the first encountered."""
    counts = Counter(grid.category[i, j] for i, j in cells)
    return counts.most_common(1)[0][0]
