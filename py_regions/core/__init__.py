"""
Core region generation functionality.
"""

from .topology import Domain, GridTopology, SquareTopology, HexTopology, get_topology
from .grid import SampleGrid
from .sampling import Sample, SamplerAdapter, CallableSampler, GridBuilder, compute_concurrency
from .barriers import BarrierMask, LocalThresholdDetector, WatershedRidgeDetector, get_barrier_detector
from .regions import RegionMap, grow_regions
from .normalization import SizeNormalizer
from .generator import (
    Region, RegionGenerator, GenerationState, GenerationRun, GenerationCallback, GenerationResult
)

__all__ = ['Domain', 'GridTopology', 'SquareTopology', 'HexTopology', 'get_topology',
           'SampleGrid', 'Sample', 'SamplerAdapter', 'CallableSampler', 'GridBuilder',
           'compute_concurrency', 'BarrierMask', 'LocalThresholdDetector',
           'WatershedRidgeDetector', 'get_barrier_detector', 'RegionMap', 'grow_regions',
           'SizeNormalizer', 'Region', 'RegionGenerator', 'GenerationState', 'GenerationRun',
           'GenerationCallback', 'GenerationResult']
