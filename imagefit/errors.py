"""
Error types raised by the resize pipeline.
"""
from typing import Optional


class ImageFitError(Exception):
    """Base class for every failure the resize pipeline reports."""

    error_code = 'IMAGEFIT_ERROR'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ImageFitError):
    """Non-positive dimensions, empty or undecodable image, or wrong aspect ratio."""

    error_code = 'INVALID_INPUT'


class RasterizerFailure(ImageFitError):
    """The resample step could not produce a bitmap."""

    error_code = 'RASTERIZER_FAILURE'


class EncodeFailure(ImageFitError):
    """An encode call produced no output."""

    error_code = 'ENCODE_FAILURE'


class CompressionInfeasible(ImageFitError):
    """
    No probed quality level produced output within the byte budget.

    Attributes:
        budget: The byte ceiling that could not be met
        best_size: Smallest encoded size observed during the search
    """

    error_code = 'COMPRESSION_INFEASIBLE'

    def __init__(self, budget: int, best_size: Optional[int] = None):
        message = f'Could not compress the image under {budget / 1024 / 1024:g}MB'
        if best_size is not None:
            message += f' (smallest attempt was {best_size} bytes)'
        super().__init__(message)
        self.budget = budget
        self.best_size = best_size
