"""
Output dimension planning for upscaled images.
"""
import math
from typing import Optional, Tuple

from imagefit.models import TargetSpec
from imagefit.utils.validation import validate_dimensions


def plan_dimensions(
    original_width: int,
    original_height: int,
    target: Optional[TargetSpec] = None
) -> Tuple[int, int]:
    """
    Compute output dimensions that strictly exceed both target minimums.

    The larger of the two per-axis scale factors is applied to both axes so
    the aspect ratio is kept; each axis is rounded up independently, which
    may drift the ratio by up to one pixel.

    Args:
        original_width: Source width in pixels
        original_height: Source height in pixels
        target: Minimum output resolution (defaults to 2880x2304)

    Returns:
        Tuple of (width, height)

    Raises:
        InvalidInput: If either source dimension is non-positive
    """
    validate_dimensions(original_width, original_height)
    target = target or TargetSpec()

    # +1 so the output is strictly above each minimum
    scale_width = (target.min_width + 1) / original_width
    scale_height = (target.min_height + 1) / original_height
    scale = max(scale_width, scale_height)

    return math.ceil(original_width * scale), math.ceil(original_height * scale)
