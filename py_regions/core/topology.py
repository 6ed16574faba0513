"""
Grid topologies for region generation.

A topology decides how cells are laid out over the domain and which cells
are neighbours:
- Square grids: 4-neighbour growth, 8-neighbour merge borders
- Hex grids (axial coordinates, pointy top): 6-neighbour growth and borders

It also owns the cell -> world coordinate mapping, which must stay identical
between sampling and polygon emission.
"""

import math
from abc import ABC, abstractmethod
from typing import Iterator, NamedTuple, Tuple

import numpy as np

SQRT3 = math.sqrt(3.0)

Offset = Tuple[int, int]


class Domain(NamedTuple):
    """Area to partition: a square (or circle on hex grids) around a centre."""
    radius: int
    center_x: int = 0
    center_z: int = 0


class DomainLayout(NamedTuple):
    """Array shape and placement of a domain on a topology."""
    width: int
    height: int
    origin_i: int
    origin_j: int
    valid: np.ndarray


class GridTopology(ABC):
    """Cell layout strategy."""

    name: str = ""

    # Neighbours for barriers, growth and tracing. Cyclic order, opposite
    # direction of d is (d + len // 2) % len.
    growth_offsets: Tuple[Offset, ...] = ()

    # Neighbourhood used when tallying region borders during merges
    border_offsets: Tuple[Offset, ...] = ()

    # Ordered ring for skeleton thinning and, per sub-iteration, index triples
    # into the ring of which at least one neighbour must be empty
    thinning_ring: Tuple[Offset, ...] = ()
    thinning_guards: Tuple[Tuple[Tuple[int, int, int], ...], ...] = ()

    @abstractmethod
    def enumerate_domain(self, domain: Domain, spacing: int) -> DomainLayout:
        """Compute the grid shape and valid-cell mask for a domain."""

    @abstractmethod
    def world_position(self, grid, i: int, j: int) -> Tuple[float, float]:
        """World (x, z) of the centre of cell (i, j)."""

    @abstractmethod
    def cell_area(self, spacing: int) -> float:
        """Area of one cell in square blocks."""

    @abstractmethod
    def cell_half_extent(self, spacing: int) -> Tuple[float, float]:
        """Half width and half height of one cell's bounding box."""

    def opposite(self, direction: int) -> int:
        return (direction + len(self.growth_offsets) // 2) % len(self.growth_offsets)

    def neighbors(self, i: int, j: int, width: int, height: int) -> Iterator[Tuple[int, int, int]]:
        """Yield (direction, ni, nj) for in-bounds growth neighbours."""
        for d, (di, dj) in enumerate(self.growth_offsets):
            ni, nj = i + di, j + dj
            if 0 <= ni < width and 0 <= nj < height:
                yield d, ni, nj

    def border_neighbors(self, i: int, j: int, width: int, height: int) -> Iterator[Tuple[int, int]]:
        for di, dj in self.border_offsets:
            ni, nj = i + di, j + dj
            if 0 <= ni < width and 0 <= nj < height:
                yield ni, nj


class SquareTopology(GridTopology):
    """Regular square grid, linear scaling from cell index to world."""

    name = "square"
    growth_offsets = ((1, 0), (0, 1), (-1, 0), (0, -1))
    border_offsets = ((1, 0), (1, 1), (0, 1), (-1, 1), (-1, 0), (-1, -1), (0, -1), (1, -1))
    # N, NE, E, SE, S, SW, W, NW (Zhang-Suen P2..P9)
    thinning_ring = ((0, -1), (1, -1), (1, 0), (1, 1), (0, 1), (-1, 1), (-1, 0), (-1, -1))
    thinning_guards = (
        ((0, 2, 4), (2, 4, 6)),
        ((0, 2, 6), (0, 4, 6)),
    )

    def enumerate_domain(self, domain: Domain, spacing: int) -> DomainLayout:
        size = domain.radius // spacing * 2 + 1
        offset = size // 2
        valid = np.ones((size, size), dtype=bool)
        return DomainLayout(size, size, -offset, -offset, valid)

    def world_position(self, grid, i: int, j: int) -> Tuple[float, float]:
        x = grid.center_x + (i + grid.origin_i) * grid.spacing
        z = grid.center_z + (j + grid.origin_j) * grid.spacing
        return float(x), float(z)

    def cell_area(self, spacing: int) -> float:
        return float(spacing * spacing)

    def cell_half_extent(self, spacing: int) -> Tuple[float, float]:
        return spacing / 2.0, spacing / 2.0


class HexTopology(GridTopology):
    """
    Pointy-top hex grid in axial (q, r) coordinates.

    The hex side length is half the sample spacing. Array index (i, j) maps
    to axial (i + origin_i, j + origin_j); cells of the axial bounding box
    whose centre falls outside the circular domain are marked invalid.
    """

    name = "hex"
    growth_offsets = ((1, 0), (1, -1), (0, -1), (-1, 0), (-1, 1), (0, 1))
    border_offsets = growth_offsets
    thinning_ring = growth_offsets
    thinning_guards = (
        ((0, 4, 5),),
        ((1, 2, 3),),
    )

    @staticmethod
    def hex_size(spacing: int) -> float:
        return spacing / 2.0

    def _axial_to_world(self, q: int, r: int, size: float) -> Tuple[float, float]:
        return SQRT3 * size * (q + r / 2.0), 1.5 * size * r

    def enumerate_domain(self, domain: Domain, spacing: int) -> DomainLayout:
        size = self.hex_size(spacing)
        reach = math.ceil(domain.radius / spacing) * 2 + 2

        inside = []
        for q in range(-reach, reach + 1):
            for r in range(-reach, reach + 1):
                x, z = self._axial_to_world(q, r, size)
                if math.hypot(x, z) <= domain.radius:
                    inside.append((q, r))

        q_min = min(q for q, _ in inside)
        q_max = max(q for q, _ in inside)
        r_min = min(r for _, r in inside)
        r_max = max(r for _, r in inside)

        width = q_max - q_min + 1
        height = r_max - r_min + 1
        valid = np.zeros((width, height), dtype=bool)
        for q, r in inside:
            valid[q - q_min, r - r_min] = True

        return DomainLayout(width, height, q_min, r_min, valid)

    def world_position(self, grid, i: int, j: int) -> Tuple[float, float]:
        x, z = self._axial_to_world(i + grid.origin_i, j + grid.origin_j, self.hex_size(grid.spacing))
        return grid.center_x + x, grid.center_z + z

    def cell_area(self, spacing: int) -> float:
        size = self.hex_size(spacing)
        return 3.0 * SQRT3 / 2.0 * size * size

    def cell_half_extent(self, spacing: int) -> Tuple[float, float]:
        size = self.hex_size(spacing)
        return SQRT3 * size / 2.0, size


_TOPOLOGIES = {
    SquareTopology.name: SquareTopology,
    HexTopology.name: HexTopology,
}


def get_topology(name) -> GridTopology:
    """Instantiate a topology by name ("square" or "hex")."""
    key = getattr(name, "value", name)
    try:
        return _TOPOLOGIES[key]()
    except KeyError:
        raise ValueError(f"Unknown grid topology: {name}") from None
