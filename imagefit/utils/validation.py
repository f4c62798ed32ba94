"""
Input validation utilities for the resize pipeline and the backend API.
"""
import os
from PIL import Image
from typing import Tuple

from imagefit.errors import InvalidInput
from imagefit.models import DEFAULT_ASPECT_RATIO, DEFAULT_ASPECT_TOLERANCE


def validate_image(file) -> Tuple[bool, str]:
    """
    Validates uploaded image file.

    Args:
        file: FileStorage object from Flask request

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not file:
        return False, "No image file provided"

    # Check file type
    if not (file.content_type or '').startswith('image/'):
        return False, "Invalid image type. Please select an image file"

    # Check file size
    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(0)

    if size == 0:
        return False, "Image file is empty"

    # Validate it's actually an image
    try:
        img = Image.open(file)
        img.verify()
        file.seek(0)
        return True, ""
    except Exception as e:
        file.seek(0)
        return False, f"Invalid image file: {str(e)}"


def validate_dimensions(width: int, height: int) -> None:
    """
    Reject non-positive image dimensions.

    Raises:
        InvalidInput: If either dimension is zero or negative
    """
    if width <= 0 or height <= 0:
        raise InvalidInput(f"Image dimensions must be positive, got {width}x{height}")


def is_aspect_ratio_valid(
    width: int,
    height: int,
    ratio: float = DEFAULT_ASPECT_RATIO,
    tolerance: float = DEFAULT_ASPECT_TOLERANCE
) -> bool:
    """Return True when width/height is within tolerance of the expected ratio."""
    if width <= 0 or height <= 0:
        return False
    return abs(width / height - ratio) <= tolerance


def validate_aspect_ratio(
    width: int,
    height: int,
    ratio: float = DEFAULT_ASPECT_RATIO,
    tolerance: float = DEFAULT_ASPECT_TOLERANCE
) -> None:
    """
    Ensure the image has the expected aspect ratio (16:9 by default).

    Args:
        width: Image width in pixels
        height: Image height in pixels
        ratio: Expected width/height ratio
        tolerance: Maximum absolute difference from the expected ratio

    Raises:
        InvalidInput: If dimensions are non-positive or the ratio is off
    """
    validate_dimensions(width, height)
    if not is_aspect_ratio_valid(width, height, ratio, tolerance):
        expected = "16:9" if ratio == DEFAULT_ASPECT_RATIO else f"{ratio:.3f}"
        raise InvalidInput(
            f"Image aspect ratio must be {expected}, got {width}x{height} ({width / height:.3f})"
        )


def sanitize_string(input_str: str) -> str:
    """
    Sanitize string input to prevent injection attacks.

    Args:
        input_str: String to sanitize

    Returns:
        Sanitized string
    """
    if not input_str:
        return ""

    # Remove any null bytes
    sanitized = input_str.replace('\x00', '')

    # Strip whitespace
    sanitized = sanitized.strip()

    # Limit length to prevent DoS
    max_length = 256
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized
