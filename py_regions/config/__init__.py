"""
Configuration modules for region generation.
"""

from .generator_settings import (
    BarrierStrategyName,
    GridTopologyName,
    RegionGeneratorOptions,
    SlopeStatistic,
    SplitStrategyName,
)
from .config import Settings, settings

__all__ = ['RegionGeneratorOptions', 'GridTopologyName', 'BarrierStrategyName',
           'SlopeStatistic', 'SplitStrategyName', 'Settings', 'settings']
