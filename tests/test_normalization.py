"""Tests for region size normalization."""

import numpy as np
import pytest

from conftest import build_grid
from py_regions.config import RegionGeneratorOptions, SplitStrategyName
from py_regions.core.normalization import SizeNormalizer, bisect_partition, kmeans_partition
from py_regions.core.regions import RegionMap


def all_cells(width, height):
    return [(i, j) for i in range(width) for j in range(height)]


def assert_consistent(regions):
    """Labels and cell lists describe the same partition."""
    for region_id, cells in regions.cells.items():
        for i, j in cells:
            assert regions.labels[i, j] == region_id


class TestMergeSmall:
    """Test merging of undersized regions."""

    def test_small_region_joins_neighbour(self):
        """10 cells below the minimum next to 50 cells become one region of 60."""
        grid = build_grid(np.full((6, 10), 64))
        regions = RegionMap.for_grid(grid)
        regions.add([(0, j) for j in range(10)])
        regions.add([(i, j) for i in range(1, 6) for j in range(10)])

        options = RegionGeneratorOptions(min_region_cells=20, max_region_cells=1000)
        merges = SizeNormalizer(options).merge_small(grid, regions)

        assert merges == 1
        assert len(regions) == 1
        assert regions.size(1) == 60
        assert_consistent(regions)

    def test_single_cells_reach_minimum(self):
        grid = build_grid(np.full((4, 4), 64))
        regions = RegionMap.for_grid(grid)
        for cell in all_cells(4, 4):
            regions.add([cell])

        options = RegionGeneratorOptions(min_region_cells=4, max_region_cells=1000)
        SizeNormalizer(options).merge_small(grid, regions)

        assert len(regions) < 16
        assert all(len(cells) >= 4 for cells in regions.cells.values())
        assert regions.total_cells() == 16
        assert_consistent(regions)

    def test_tie_goes_to_lowest_id(self):
        """A region bordering two equal neighbours joins the lower id."""
        grid = build_grid(np.full((3, 1), 64))
        regions = RegionMap.for_grid(grid)
        regions.add([(0, 0)])
        regions.add([(1, 0)])
        regions.add([(2, 0)])

        options = RegionGeneratorOptions(min_region_cells=1, max_region_cells=10)
        normalizer = SizeNormalizer(options)

        assert normalizer._merge_target(grid, regions, 1) == 0

    def test_isolated_region_kept(self):
        grid = build_grid(np.full((5, 3), 64))
        regions = RegionMap.for_grid(grid)
        regions.add([(0, j) for j in range(3)])
        regions.add([(i, j) for i in range(3, 5) for j in range(3)])

        options = RegionGeneratorOptions(min_region_cells=5, max_region_cells=1000)
        merges = SizeNormalizer(options).merge_small(grid, regions)

        assert merges == 0
        assert len(regions) == 2


class TestSplitLarge:
    """Test splitting of oversized regions."""

    @pytest.fixture
    def big_region(self):
        grid = build_grid(np.full((25, 10), 64))
        regions = RegionMap.for_grid(grid)
        regions.add(all_cells(25, 10))
        return grid, regions

    def test_kmeans_split(self, big_region):
        """250 cells with a maximum of 100 end up in at least 3 regions."""
        grid, regions = big_region
        options = RegionGeneratorOptions(min_region_cells=1, max_region_cells=100, random_seed=7)
        splits = SizeNormalizer(options).split_large(regions)

        assert splits >= 1
        assert len(regions) >= 3
        assert all(len(cells) <= 100 for cells in regions.cells.values())
        assert regions.total_cells() == 250
        assert_consistent(regions)

    def test_bisect_split(self, big_region):
        grid, regions = big_region
        options = RegionGeneratorOptions(min_region_cells=1, max_region_cells=100,
                                         split_strategy=SplitStrategyName.BISECT)
        SizeNormalizer(options).split_large(regions)

        assert len(regions) == 4
        assert sorted(len(c) for c in regions.cells.values()) == [62, 62, 63, 63]
        assert_consistent(regions)

    def test_seeded_split_is_reproducible(self, big_region):
        grid, regions = big_region
        other = RegionMap.for_grid(grid)
        other.add(all_cells(25, 10))

        options = RegionGeneratorOptions(min_region_cells=1, max_region_cells=100, random_seed=3)
        SizeNormalizer(options).split_large(regions)
        SizeNormalizer(options).split_large(other)

        assert np.array_equal(regions.labels, other.labels)

    def test_split_never_decreases_count(self, big_region):
        grid, regions = big_region
        before = len(regions)
        options = RegionGeneratorOptions(min_region_cells=1, max_region_cells=100, random_seed=1)
        SizeNormalizer(options).normalize(grid, regions)

        assert len(regions) >= before


class TestPartitions:
    def test_kmeans_drops_nothing(self):
        cells = all_cells(10, 10)
        clusters = kmeans_partition(cells, 3, 5, np.random.default_rng(0))

        assert 1 < len(clusters) <= 3
        assert sorted(c for cluster in clusters for c in cluster) == sorted(cells)

    def test_kmeans_k_capped_by_cells(self):
        clusters = kmeans_partition([(0, 0), (5, 5)], 4, 5, np.random.default_rng(0))
        assert sorted(len(c) for c in clusters) == [1, 1]

    def test_bisect_on_diagonal(self):
        cells = [(2, 2), (0, 0), (1, 1), (0, 1)]
        first, second = bisect_partition(cells)

        assert sorted(first) == [(0, 0), (0, 1)]
        assert sorted(second) == [(1, 1), (2, 2)]
