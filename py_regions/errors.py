"""Exception hierarchy for region generation."""

from typing import Optional


class RegionGenerationError(Exception):
    """Base class for all errors surfaced by a generation run."""


class ConfigurationError(RegionGenerationError, ValueError):
    """Invalid options or a category that cannot be resolved."""


class SamplerUnavailableError(RegionGenerationError):
    """Raised when every sample of a run failed."""

    def __init__(self, total: int, last_error: Optional[BaseException] = None):
        self.total = total
        self.last_error = last_error
        super().__init__(f"Sampler failed for all {total} cells")


class PipelineError(RegionGenerationError):
    """Unexpected failure inside one of the pipeline stages."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Region generation failed during {stage}: {cause}")
