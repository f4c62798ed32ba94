"""
Data structures that flow through the resize pipeline.
"""
from dataclasses import dataclass


DEFAULT_MIN_WIDTH = 2880
DEFAULT_MIN_HEIGHT = 2304
DEFAULT_SIZE_BUDGET = 5 * 1024 * 1024  # 5MB
DEFAULT_ASPECT_RATIO = 16 / 9
DEFAULT_ASPECT_TOLERANCE = 0.01


@dataclass(frozen=True)
class SourceImage:
    """Dimensions and on-disk size of the image as uploaded."""
    width: int
    height: int
    byte_size: int


@dataclass(frozen=True)
class TargetSpec:
    """Minimum output resolution. Both sides of the output end up strictly larger."""
    min_width: int = DEFAULT_MIN_WIDTH
    min_height: int = DEFAULT_MIN_HEIGHT


@dataclass(frozen=True)
class EncodedCandidate:
    """One trial encode produced during the quality search."""
    quality_level: float  # 0.0 - 1.0
    byte_size: int
    payload: bytes

    def fits(self, budget: int) -> bool:
        return self.byte_size <= budget


@dataclass(frozen=True)
class ResizeResult:
    """Final encoded image handed back to the caller."""
    width: int
    height: int
    byte_size: int
    payload: bytes
    quality_level: float
