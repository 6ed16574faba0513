"""
Options for the region generator.

This module defines the tunables of a generation run: domain size and
resolution, barrier detection, size normalization, smoothing, sampling
concurrency and ocean collapsing.
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, model_validator

from ..errors import ConfigurationError


class GridTopologyName(str, Enum):
    """Cell layouts supported by the grid builder."""

    SQUARE = "square"
    HEX = "hex"


class BarrierStrategyName(str, Enum):
    """Barrier detection strategies."""

    LOCAL_THRESHOLD = "local-threshold"
    WATERSHED_RIDGE = "watershed-ridge"


class SlopeStatistic(str, Enum):
    """Statistic used to derive the adaptive slope threshold."""

    MEAN = "mean"
    MEDIAN = "median"


class SplitStrategyName(str, Enum):
    """How oversized regions are partitioned."""

    KMEANS = "kmeans"
    BISECT = "bisect"


class RegionGeneratorOptions(BaseModel):
    """Settings for one region generation run."""

    # Domain
    radius: int = Field(default=5000, gt=0, description="Domain half-width in blocks")
    sample_spacing: int = Field(default=8, gt=0, description="Distance between samples in blocks")
    grid_topology: GridTopologyName = Field(
        default=GridTopologyName.SQUARE, description="Cell layout (square or hex)"
    )

    # Region size bounds (in cells)
    min_region_cells: int = Field(default=400, ge=1, description="Regions below this are merged")
    max_region_cells: int = Field(default=3000, ge=1, description="Regions above this are split")

    # Barrier detection
    barrier_strategy: BarrierStrategyName = Field(
        default=BarrierStrategyName.LOCAL_THRESHOLD, description="Barrier detection strategy"
    )
    steep_slope_threshold: int = Field(default=10, ge=0, description="Minimum slope that forms a barrier")
    slope_extra: int = Field(default=2, description="Added to the slope statistic")
    slope_factor: float = Field(default=1.0, gt=0, description="Multiplier for the slope statistic")
    slope_statistic: SlopeStatistic = Field(
        default=SlopeStatistic.MEAN, description="Mean or median neighbour slope"
    )
    edge_only_barriers: bool = Field(
        default=False, description="Block edges without turning cells into barriers"
    )
    absorb_barrier_cells: bool = Field(
        default=True, description="Assign land barrier cells to adjacent regions"
    )
    similar_category_groups: Dict[str, str] = Field(
        default_factory=dict, description="Category -> group key; same key counts as similar"
    )

    # Normalization
    split_strategy: SplitStrategyName = Field(
        default=SplitStrategyName.KMEANS, description="Partitioning of oversized regions"
    )
    kmeans_iterations: int = Field(default=5, ge=1, description="Lloyd iterations per split")
    random_seed: Optional[int] = Field(default=None, description="Seed for k-means initial centres")

    # Geometry
    chaikin_iterations: int = Field(default=2, ge=0, description="Chaikin smoothing rounds")
    trace_step_factor: int = Field(default=20, ge=1, description="Tracing step budget per cell")
    collinear_tolerance: float = Field(default=1e-6, ge=0, description="Cross product tolerance")

    # Sampling
    max_parallel_samples: int = Field(default=0, description="Concurrent samples; <= 0 means 2 x CPU")
    per_sample_timeout_seconds: float = Field(default=30.0, gt=0, description="Timeout for one sample")
    max_height: int = Field(default=320, description="World height; water samples sit above it")
    water_keywords: Tuple[str, ...] = Field(
        default=("ocean", "river", "swamp", "beach"),
        description="Category name fragments that mark water",
    )
    fallback_category: str = Field(default="unknown", description="Category of failed samples")
    known_categories: Optional[List[str]] = Field(
        default=None, description="If set, samples must report one of these categories"
    )

    # Ocean collapsing
    coast_buffer_distance: int = Field(
        default=2, ge=0, description="Water within this many cells of land keeps its own regions"
    )

    @model_validator(mode="after")
    def check_consistency(self) -> "RegionGeneratorOptions":
        if self.max_region_cells < self.min_region_cells:
            raise ValueError(
                f"max_region_cells ({self.max_region_cells}) must be >= "
                f"min_region_cells ({self.min_region_cells})"
            )
        if self.known_categories is not None:
            known = set(self.known_categories)
            unknown = sorted(c for c in self.similar_category_groups if c not in known)
            if unknown:
                raise ValueError(f"similar_category_groups references unknown categories: {unknown}")
        return self

    @property
    def sentinel_elevation(self) -> int:
        """Elevation assigned to water cells."""
        return self.max_height + 100

    def is_water(self, category: Optional[str]) -> bool:
        """Check if a category name is water-like."""
        if category is None:
            return False
        name = str(category).lower()
        return any(keyword in name for keyword in self.water_keywords)

    def is_known(self, category: str) -> bool:
        if self.known_categories is None or category == self.fallback_category:
            return True
        return category in self.known_categories

    def category_group(self, category: str) -> Tuple[str, str]:
        """Key shared by every category of one similarity group."""
        group = self.similar_category_groups.get(category)
        if group is None:
            return ("category", category)
        return ("group", group)

    @classmethod
    def load(cls, data: Mapping[str, Any]) -> "RegionGeneratorOptions":
        """Validate a raw mapping, raising ConfigurationError on bad input."""
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e
