"""
Boundary tracing and outline smoothing.

This module handles:
- Contour following around a region's cell set
- Chaikin corner cutting
- Removal of duplicate and collinear points
- Bounding-rectangle outlines for areas that are not traced
"""

from typing import Iterable, List, Sequence, Tuple

import numpy as np
import structlog

from .grid import SampleGrid

logger = structlog.get_logger()

Point = Tuple[float, float]


def _start_key(cell: Tuple[int, int]) -> int:
    i, j = cell
    return (i + j) * 100000 + i


def trace_boundary(cells: Iterable[Tuple[int, int]], grid: SampleGrid,
                   step_factor: int = 20) -> List[Point]:
    """
    Follow the outer boundary of a cell set.

    Starting at the cell with the smallest diagonal key and heading 0, each
    step records the current cell centre and moves along the first direction
    that stays inside the set, trying heading - 1 first and then turning the
    other way through every remaining direction, reversal included.

    Args:
        cells: Cells of one region
        grid: Grid providing topology and world mapping
        step_factor: Step budget per cell

    Returns:
        Closed ring of cell centres in world coordinates (first != last)
    """
    members = set(cells)
    if not members:
        return []

    offsets = grid.topology.growth_offsets
    directions = len(offsets)
    start = min(members, key=_start_key)
    max_steps = len(members) * step_factor

    ring: List[Point] = []
    seen = set()
    current, heading = start, 0
    for _ in range(max_steps):
        if current == start and len(ring) > 1:
            break
        state = (current, heading)
        if state in seen:
            break
        seen.add(state)
        ring.append(grid.world_position(*current))

        i, j = current
        for turn in range(-1, directions - 1):
            candidate = (heading + turn) % directions
            di, dj = offsets[candidate]
            if (i + di, j + dj) in members:
                current, heading = (i + di, j + dj), candidate
                break
        else:
            break

    return ring


def chaikin(points: Sequence[Point], iterations: int) -> List[Point]:
    """Cut every corner of a closed ring, `iterations` times."""
    result = [tuple(p) for p in points]
    for _ in range(iterations):
        if len(result) < 3:
            break
        ring = np.asarray(result, dtype=np.float64)
        following = np.roll(ring, -1, axis=0)
        cut = np.empty((len(ring) * 2, 2), dtype=np.float64)
        cut[0::2] = 0.75 * ring + 0.25 * following
        cut[1::2] = 0.25 * ring + 0.75 * following
        result = [(float(x), float(z)) for x, z in cut]
    return result


def dedup(points: Sequence[Point]) -> List[Point]:
    """Drop consecutive repeats, including a closing point equal to the first."""
    result: List[Point] = []
    for point in points:
        if not result or point != result[-1]:
            result.append(point)
    while len(result) > 1 and result[-1] == result[0]:
        result.pop()
    return result


def is_collinear(a: Point, b: Point, c: Point, tolerance: float = 1e-6) -> bool:
    cross = (b[0] - a[0]) * (c[1] - b[1]) - (b[1] - a[1]) * (c[0] - b[0])
    return abs(cross) < tolerance


def remove_collinear(points: Sequence[Point], tolerance: float = 1e-6) -> List[Point]:
    """
    Remove points lying on the line through their ring neighbours.

    Repeats until no point is removed. If fewer than three points would
    remain, the input is returned unchanged.
    """
    original = list(points)
    result = original
    while len(result) >= 3:
        n = len(result)
        kept = [result[k] for k in range(n)
                if not is_collinear(result[k - 1], result[k], result[(k + 1) % n], tolerance)]
        if len(kept) == n:
            break
        result = kept

    if len(result) < 3:
        return original
    return result


def is_degenerate(points: Sequence[Point], tolerance: float = 1e-6) -> bool:
    """True if the ring has fewer than three points or lies on one line."""
    n = len(points)
    if n < 3:
        return True
    return all(is_collinear(points[k - 1], points[k], points[(k + 1) % n], tolerance) for k in range(n))


def bounding_rectangle(centres: Iterable[Point], half_extent: Tuple[float, float]) -> List[Point]:
    """Axis-aligned rectangle around cell centres padded by half a cell."""
    xs, zs = zip(*centres)
    hx, hz = half_extent
    min_x, max_x = min(xs) - hx, max(xs) + hx
    min_z, max_z = min(zs) - hz, max(zs) + hz
    return [(min_x, min_z), (max_x, min_z), (max_x, max_z), (min_x, max_z)]


def smooth_outline(ring: Sequence[Point], chaikin_iterations: int = 2,
                   tolerance: float = 1e-6) -> List[Point]:
    """Chaikin smoothing followed by dedup and collinear removal."""
    smoothed = chaikin(ring, chaikin_iterations)
    return remove_collinear(dedup(smoothed), tolerance)
