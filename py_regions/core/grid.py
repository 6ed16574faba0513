"""Sample grid data structure."""

from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np

from ..config.generator_settings import RegionGeneratorOptions
from .topology import Domain, GridTopology, SquareTopology


@dataclass
class SampleGrid:
    """Dense per-cell samples of the domain.

    Arrays are indexed [i, j] where i runs along world x (or axial q) and j
    along world z (or axial r). The builder fills the arrays once and then
    freezes them; every later stage only reads.
    """
    topology: GridTopology
    spacing: int
    origin_i: int
    origin_j: int

    elevation: np.ndarray   # int32 height of the surface, sentinel for water
    category: np.ndarray    # object array of category names
    water: np.ndarray       # True for water-like categories (always barriers)
    valid: np.ndarray       # True for cells inside the domain
    sampled: np.ndarray     # True where the sampler answered

    center_x: int = 0
    center_z: int = 0

    @property
    def width(self) -> int:
        return self.elevation.shape[0]

    @property
    def height(self) -> int:
        return self.elevation.shape[1]

    @property
    def cell_area(self) -> float:
        return self.topology.cell_area(self.spacing)

    def world_position(self, i: int, j: int) -> Tuple[float, float]:
        return self.topology.world_position(self, i, j)

    def valid_cells(self) -> Iterator[Tuple[int, int]]:
        """Iterate valid cells in row-major (i outer, j inner) order."""
        for i in range(self.width):
            for j in range(self.height):
                if self.valid[i, j]:
                    yield i, j

    def set_sample(self, i: int, j: int, elevation: int, category: str,
                   options: RegionGeneratorOptions):
        """Store one sample; water categories get the sentinel elevation."""
        self.category[i, j] = category
        self.sampled[i, j] = True
        if options.is_water(category):
            self.water[i, j] = True
            self.elevation[i, j] = options.sentinel_elevation
        else:
            self.water[i, j] = False
            self.elevation[i, j] = int(elevation)

    def freeze(self) -> "SampleGrid":
        for array in (self.elevation, self.category, self.water, self.valid, self.sampled):
            array.flags.writeable = False
        return self

    @classmethod
    def empty(cls, topology: GridTopology, domain: Domain, spacing: int,
              fallback_category: str = "unknown") -> "SampleGrid":
        """Allocate an unsampled grid covering a domain."""
        layout = topology.enumerate_domain(domain, spacing)
        shape = (layout.width, layout.height)

        category = np.empty(shape, dtype=object)
        category.fill(fallback_category)

        return cls(
            topology=topology,
            spacing=spacing,
            origin_i=layout.origin_i,
            origin_j=layout.origin_j,
            elevation=np.zeros(shape, dtype=np.int32),
            category=category,
            water=np.zeros(shape, dtype=bool),
            valid=layout.valid.copy(),
            sampled=np.zeros(shape, dtype=bool),
            center_x=domain.center_x,
            center_z=domain.center_z,
        )

    @classmethod
    def from_arrays(
        cls,
        elevation: Sequence[Sequence[int]],
        categories: Sequence[Sequence[str]],
        options: Optional[RegionGeneratorOptions] = None,
        topology: Optional[GridTopology] = None,
        spacing: int = 1,
        origin: Tuple[int, int] = (0, 0),
        center: Tuple[int, int] = (0, 0),
        valid: Optional[np.ndarray] = None,
    ) -> "SampleGrid":
        """
        Build a frozen grid from pre-sampled rasters.

        Args:
            elevation: Heights indexed [i][j]
            categories: Category names indexed [i][j]
            options: Options deciding which categories are water
            topology: Cell layout, square by default
            spacing: Distance between cell centres in blocks
            origin: Index offset of array cell (0, 0)
            center: World position of the domain centre
            valid: Optional mask of cells inside the domain

        Returns:
            SampleGrid with water flags and sentinel elevations applied
        """
        options = options or RegionGeneratorOptions()
        heights = np.asarray(elevation, dtype=np.int32)
        names = np.asarray(categories, dtype=object)
        if heights.shape != names.shape:
            raise ValueError(f"Shape mismatch: elevation {heights.shape} vs categories {names.shape}")

        shape = heights.shape
        grid = cls(
            topology=topology or SquareTopology(),
            spacing=spacing,
            origin_i=origin[0],
            origin_j=origin[1],
            elevation=np.zeros(shape, dtype=np.int32),
            category=np.empty(shape, dtype=object),
            water=np.zeros(shape, dtype=bool),
            valid=np.ones(shape, dtype=bool) if valid is None else np.asarray(valid, dtype=bool).copy(),
            sampled=np.zeros(shape, dtype=bool),
            center_x=center[0],
            center_z=center[1],
        )
        for i in range(shape[0]):
            for j in range(shape[1]):
                grid.set_sample(i, j, heights[i, j], names[i, j], options)
        return grid.freeze()
