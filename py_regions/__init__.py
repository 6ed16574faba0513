"""
Region partitioning of sampled worlds.
"""

from .config import RegionGeneratorOptions
from .core import CallableSampler, Domain, Region, RegionGenerator, SampleGrid
from .errors import ConfigurationError, PipelineError, RegionGenerationError, SamplerUnavailableError

__version__ = "0.1.0"

__all__ = ['RegionGeneratorOptions', 'RegionGenerator', 'Region', 'Domain', 'SampleGrid',
           'CallableSampler', 'RegionGenerationError', 'ConfigurationError',
           'SamplerUnavailableError', 'PipelineError']
