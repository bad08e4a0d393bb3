"""
Error taxonomy for the poster pipeline.

Every failure is terminal: nothing is retried. Each error names the stage
that raised it so a caller can resume from there instead of re-running
the whole pipeline.
"""
from typing import Optional, Union

from portrait.types import Stage


class PipelineError(Exception):
    """Raised when a pipeline step fails."""

    def __init__(self, message: str, stage: Optional[Union[Stage, str]] = None):
        super().__init__(message)
        self.message = message
        self.stage = Stage(stage) if stage is not None else None

    def __str__(self) -> str:
        if self.stage is None:
            return self.message
        return f"[{self.stage}] {self.message}"


class ConfigError(PipelineError):
    """Unknown palette/font identifier or invalid configuration value."""
    pass


class DataError(PipelineError):
    """Unusable input data: empty boundary, no-data-only elevation grid."""
    pass


class FatalRenderError(PipelineError):
    """Rasterizer failure, missing lighting/font/icon resource, or a busy render context."""
    pass
