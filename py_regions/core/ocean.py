"""
Ocean collapsing.

Water far from land is not worth partitioning: those cells are folded into
a single bulk area whose outline is the bounding rectangle of the cells.
Water within the coast buffer keeps ordinary regions.
"""

from collections import Counter, deque
from typing import Iterable, List, NamedTuple, Optional, Tuple

import numpy as np
import structlog

from .grid import SampleGrid
from .tracing import Point, bounding_rectangle

logger = structlog.get_logger()

UNREACHABLE = np.iinfo(np.int32).max


class BulkArea(NamedTuple):
    """Collapsed far-from-coast water."""
    outline: List[Point]
    dominant_category: str
    cell_count: int


def coast_distance(grid: SampleGrid) -> np.ndarray:
    """
    Grid distance of every cell to the nearest land cell.

    Multi-source breadth-first search from all valid non-water cells over
    the growth neighbourhood. Land has distance 0; cells that cannot reach
    land keep UNREACHABLE.
    """
    topology = grid.topology
    width, height = grid.width, grid.height
    land = grid.valid & ~grid.water

    distance = np.full((width, height), UNREACHABLE, dtype=np.int32)
    distance[land] = 0
    queue = deque((int(i), int(j)) for i, j in zip(*np.nonzero(land)))

    while queue:
        ci, cj = queue.popleft()
        step = distance[ci, cj] + 1
        for _, ni, nj in topology.neighbors(ci, cj, width, height):
            if grid.valid[ni, nj] and distance[ni, nj] == UNREACHABLE:
                distance[ni, nj] = step
                queue.append((ni, nj))

    return distance


def coastal_water_mask(grid: SampleGrid, distance: np.ndarray, buffer: int) -> np.ndarray:
    return grid.valid & grid.water & (distance <= buffer)


def bulk_water_mask(grid: SampleGrid, distance: np.ndarray, buffer: int) -> np.ndarray:
    return grid.valid & grid.water & (distance > buffer)


def admits_water_region(cells: Iterable[Tuple[int, int]], distance: np.ndarray, buffer: int) -> bool:
    """Check if a water-dominant region touches the coast buffer."""
    return any(distance[i, j] <= buffer for i, j in cells)


def collapse_bulk_water(grid: SampleGrid, distance: np.ndarray, buffer: int) -> Optional[BulkArea]:
    """
    Fold all water beyond the coast buffer into one bulk area.

    Args:
        grid: Sampled grid
        distance: Output of coast_distance
        buffer: Coast buffer in cells

    Returns:
        BulkArea, or None when no water lies beyond the buffer
    """
    mask = bulk_water_mask(grid, distance, buffer)
    cells = [(int(i), int(j)) for i, j in zip(*np.nonzero(mask))]
    if not cells:
        return None

    centres = [grid.world_position(i, j) for i, j in cells]
    outline = bounding_rectangle(centres, grid.topology.cell_half_extent(grid.spacing))
    category = Counter(grid.category[i, j] for i, j in cells).most_common(1)[0][0]

    logger.info("Bulk water collapsed", cells=len(cells), category=category)
    return BulkArea(outline=outline, dominant_category=category, cell_count=len(cells))
