"""
Region size normalization.

Undersized regions are merged into the neighbour they share the longest
border with, then oversized regions are split by clustering until every
region fits the configured bounds or no further move is possible.
"""

import math
import warnings
from bisect import bisect_left
from collections import Counter
from typing import List, Optional

import numpy as np
import structlog
from scipy.cluster.vq import kmeans2

from ..config.generator_settings import RegionGeneratorOptions, SplitStrategyName
from .grid import SampleGrid
from .regions import UNASSIGNED, Cell, RegionMap

logger = structlog.get_logger()


def kmeans_partition(cells: List[Cell], k: int, iterations: int,
                     rng: np.random.Generator) -> List[List[Cell]]:
    """
    Cluster cells by position with Lloyd's k-means.

    Initial centres are k distinct cells drawn at random; each iteration
    reassigns every cell to its nearest centre (squared Euclidean distance).

    Returns:
        Non-empty clusters
    """
    k = min(k, len(cells))
    points = np.asarray(cells, dtype=np.float64)
    centres = points[rng.choice(len(cells), size=k, replace=False)]

    with warnings.catch_warnings():
        # Empty clusters keep their previous centre and are dropped below
        warnings.simplefilter("ignore", UserWarning)
        _, labels = kmeans2(points, centres, iter=iterations, minit="matrix")

    clusters: List[List[Cell]] = [[] for _ in range(k)]
    for cell, label in zip(cells, labels):
        clusters[int(label)].append(cell)
    return [cluster for cluster in clusters if cluster]


def bisect_partition(cells: List[Cell]) -> List[List[Cell]]:
    """Split cells in half along the diagonal key i + j."""
    ordered = sorted(cells, key=lambda c: c[0] + c[1])
    half = len(ordered) // 2
    return [part for part in (ordered[:half], ordered[half:]) if part]


class SizeNormalizer:
    """Merge-small / split-large passes over a region map."""

    def __init__(self, options: RegionGeneratorOptions, rng: Optional[np.random.Generator] = None):
        self.options = options
        self.rng = rng or np.random.default_rng(options.random_seed)

    def normalize(self, grid: SampleGrid, regions: RegionMap) -> RegionMap:
        before = len(regions)
        merges = self.merge_small(grid, regions)
        splits = self.split_large(regions)
        logger.info("Regions normalized", before=before, after=len(regions),
                    merges=merges, splits=splits)
        return regions

    def _merge_target(self, grid: SampleGrid, regions: RegionMap, region_id: int) -> Optional[int]:
        topology = grid.topology
        tally = Counter()
        for i, j in regions.cells[region_id]:
            for ni, nj in topology.border_neighbors(i, j, grid.width, grid.height):
                other = int(regions.labels[ni, nj])
                if other != UNASSIGNED and other != region_id:
                    tally[other] += 1
        if not tally:
            return None
        best = max(tally.values())
        return min(rid for rid, count in tally.items() if count == best)

    def merge_small(self, grid: SampleGrid, regions: RegionMap) -> int:
        """
        Merge regions below min_region_cells into their strongest neighbour.

        Scans in ascending id order and always handles the first undersized
        region; isolated ones are left alone. Ends when a full scan merges
        nothing.

        Returns:
            Number of merges performed
        """
        min_cells = self.options.min_region_cells
        order = sorted(regions.cells)
        isolated = set()
        merges = 0

        position = 0
        while position < len(order):
            region_id = order[position]
            if (region_id not in regions.cells or region_id in isolated
                    or regions.size(region_id) >= min_cells):
                position += 1
                continue

            target = self._merge_target(grid, regions, region_id)
            if target is None:
                isolated.add(region_id)
                position += 1
                continue

            regions.merge(region_id, target)
            merges += 1

            # Only the target changed; if it sits earlier and is still small
            # it is the next undersized region in scan order
            if target < region_id and regions.size(target) < min_cells:
                position = bisect_left(order, target)
            else:
                position += 1

        if isolated:
            logger.debug("Undersized regions without neighbours", count=len(isolated))
        return merges

    def partition(self, cells: List[Cell]) -> List[List[Cell]]:
        if self.options.split_strategy == SplitStrategyName.BISECT:
            return bisect_partition(cells)
        k = math.ceil(len(cells) / self.options.max_region_cells)
        return kmeans_partition(cells, k, self.options.kmeans_iterations, self.rng)

    def split_large(self, regions: RegionMap) -> int:
        """
        Split regions above max_region_cells into clusters.

        The existing id keeps the first fragment, new ids are appended for
        the others. A region that yields a single fragment is left as is.
        Ends when a full scan splits nothing.

        Returns:
            Number of splits performed
        """
        max_cells = self.options.max_region_cells
        order = sorted(regions.cells)
        unsplittable = set()
        splits = 0

        position = 0
        while position < len(order):
            region_id = order[position]
            if (region_id not in regions.cells or region_id in unsplittable
                    or regions.size(region_id) <= max_cells):
                position += 1
                continue

            fragments = self.partition(regions.cells[region_id])
            if len(fragments) < 2:
                unsplittable.add(region_id)
                position += 1
                continue

            new_ids = regions.replace(region_id, fragments)
            order.extend(new_ids[1:])
            splits += 1
            # Stay on region_id: its remaining fragment may still be too large

        if unsplittable:
            logger.debug("Oversized regions that could not be split", count=len(unsplittable))
        return splits
