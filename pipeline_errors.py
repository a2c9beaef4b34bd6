"""
Error taxonomy for the tRNA differential-expression pipeline.

Every error is fatal: the pipeline is a one-shot batch analysis, so callers
surface the failing stage and the offending identifier and stop.
"""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    stage = "pipeline"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.stage}] {self.message}"


class ConfigError(PipelineError):
    """Raised when an AnalysisConfig is invalid."""

    stage = "config"


class MissingFileError(PipelineError):
    """Raised when an expected input file is absent."""

    stage = "load"


class MalformedRowError(PipelineError):
    """Raised when a row does not match the expected schema."""

    stage = "load"


class UnmatchedLibraryError(PipelineError):
    """Raised when a design library has no column in the count matrix."""

    stage = "align"


class JoinMismatchError(PipelineError):
    """Raised when no DE result matches the annotation (strict mode only)."""

    stage = "join"


class DEEngineError(PipelineError):
    """Raised when the differential-expression engine fails to fit."""

    stage = "de"


class NormalizationError(PipelineError):
    """Raised when size factors cannot be estimated."""

    stage = "normalize"
