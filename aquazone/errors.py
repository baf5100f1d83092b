"""
Exception hierarchy for the suitability pipeline.

Every error raised by aquazone for structural or data problems derives
from AquazoneError. None of them are retried: they describe inputs that
will fail the same way on every attempt.
"""

from typing import Any, Optional


class AquazoneError(Exception):
    """Base exception for suitability analysis errors."""
    pass


class ConfigError(AquazoneError):
    """Configuration is invalid or inconsistent with the input data."""
    pass


class CRSError(AquazoneError):
    """A dataset has no CRS, or a CRS identifier cannot be used."""

    def __init__(self, message: str, dataset: Optional[str] = None, crs: Any = None):
        super().__init__(message)
        self.dataset = dataset
        self.crs = crs


class CRSMismatchError(AquazoneError):
    """Two datasets that must share a CRS do not."""

    def __init__(self, message: str, expected: Any = None, actual: Any = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class CongruencyError(AquazoneError):
    """Grids expected to share CRS, extent and resolution do not."""

    def __init__(self, message: str, expected: Any = None, actual: Any = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class IncongruentStackError(CongruencyError):
    """Members of a raster stack are not spatially congruent."""
    pass


class IncongruentMaskError(CongruencyError):
    """Suitability masks being combined are not spatially congruent."""
    pass


class AlignmentError(AquazoneError):
    """Resampling was attempted across mismatched CRS."""

    def __init__(self, message: str, expected: Any = None, actual: Any = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class BoundaryError(AquazoneError):
    """Boundary polygons are missing, empty, invalid or ambiguously named."""
    pass


class PipelineStageError(AquazoneError):
    """
    A pipeline stage failed.

    Attributes:
        stage: Name of the stage that failed
        species: Species whose pipeline failed (None for shared stages)
    """

    def __init__(self, stage: str, species: Optional[str], cause: BaseException):
        scope = f"species '{species}'" if species else "shared stages"
        super().__init__(f"Stage '{stage}' failed for {scope}: {cause}")
        self.stage = stage
        self.species = species
        self.cause = cause
