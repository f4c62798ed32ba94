"""
Image processing utilities: Pillow decode/resample/encode and the resize pipeline.
"""
import asyncio
import functools
import inspect
import io
import logging
from PIL import Image, ImageOps, UnidentifiedImageError
from typing import Optional, Tuple

from imagefit.errors import ImageFitError, InvalidInput, RasterizerFailure
from imagefit.models import (
    DEFAULT_ASPECT_RATIO,
    DEFAULT_ASPECT_TOLERANCE,
    DEFAULT_SIZE_BUDGET,
    EncodedCandidate,
    ResizeResult,
    SourceImage,
    TargetSpec,
)
from imagefit.utils.dimensions import plan_dimensions
from imagefit.utils.quality_search import Observer, search_quality, search_quality_async
from imagefit.utils.validation import validate_aspect_ratio

logger = logging.getLogger(__name__)


def decode_image(image_bytes: bytes) -> Tuple[Image.Image, SourceImage]:
    """
    Decode uploaded bytes into a Pillow image.

    Args:
        image_bytes: Raw file contents

    Returns:
        Tuple of (decoded image, SourceImage describing it)

    Raises:
        InvalidInput: If the bytes are empty or not a readable image
    """
    if not image_bytes:
        raise InvalidInput('Image file is empty')

    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise InvalidInput(f'Failed to load image for processing: {str(e)}') from e

    # Dimensions as displayed, not as stored
    img = ImageOps.exif_transpose(img)

    return img, SourceImage(width=img.width, height=img.height, byte_size=len(image_bytes))


class PillowRasterizer:
    """Resamples a bitmap to new dimensions with a LANCZOS filter."""

    def __init__(self, resample=Image.Resampling.LANCZOS):
        self.resample_filter = resample

    def resample(self, bitmap: Image.Image, width: int, height: int) -> Image.Image:
        if width <= 0 or height <= 0:
            raise RasterizerFailure(f'Cannot resample to {width}x{height}')

        try:
            # JPEG has no alpha channel
            if bitmap.mode != 'RGB':
                bitmap = bitmap.convert('RGB')
            return bitmap.resize((width, height), self.resample_filter)
        except (OSError, ValueError) as e:
            raise RasterizerFailure(f'Could not resample image: {str(e)}') from e


class PillowJpegEncoder:
    """
    Encodes a bitmap as JPEG at a quality level in [0, 1].

    Pillow takes an integer quality, so the level is scaled to 1-100.
    """

    def __init__(self, optimize: bool = True):
        self.optimize = optimize

    @staticmethod
    def pillow_quality(quality: float) -> int:
        return max(1, min(100, round(quality * 100)))

    def encode_at(self, bitmap: Image.Image, quality: float) -> EncodedCandidate:
        output = io.BytesIO()
        bitmap.save(output, format='JPEG', quality=self.pillow_quality(quality), optimize=self.optimize)
        payload = output.getvalue()
        return EncodedCandidate(quality_level=quality, byte_size=len(payload), payload=payload)


def _check_bitmap(bitmap) -> None:
    if bitmap is None:
        raise InvalidInput('No image provided')


def _build_result(width: int, height: int, best: EncodedCandidate) -> ResizeResult:
    logger.info('Resized to %dx%d at quality %.4f (%d bytes)', width, height, best.quality_level, best.byte_size)
    return ResizeResult(
        width=width,
        height=height,
        byte_size=best.byte_size,
        payload=best.payload,
        quality_level=best.quality_level
    )


def resize_to_fit(
    bitmap: Image.Image,
    original_width: int,
    original_height: int,
    target: Optional[TargetSpec] = None,
    budget: int = DEFAULT_SIZE_BUDGET,
    aspect_ratio: float = DEFAULT_ASPECT_RATIO,
    tolerance: float = DEFAULT_ASPECT_TOLERANCE,
    rasterizer=None,
    encoder=None,
    observer: Optional[Observer] = None
) -> ResizeResult:
    """
    Upscale a 16:9 bitmap past the target resolution and encode it under the byte budget.

    Args:
        bitmap: Decoded source image
        original_width: Source width in pixels
        original_height: Source height in pixels
        target: Minimum output resolution (defaults to 2880x2304)
        budget: Maximum encoded size in bytes
        aspect_ratio: Required width/height ratio
        tolerance: Allowed deviation from the ratio
        rasterizer: Object with ``resample(bitmap, width, height)`` (defaults to PillowRasterizer)
        encoder: Object with ``encode_at(bitmap, quality)`` (defaults to PillowJpegEncoder)
        observer: Optional callback invoked with every trial encode

    Returns:
        ResizeResult with the encoded JPEG

    Raises:
        InvalidInput: Missing bitmap, non-positive dimensions or wrong aspect ratio
        RasterizerFailure: Resampling failed
        EncodeFailure: An encode call failed
        CompressionInfeasible: No probed quality fit the budget
    """
    _check_bitmap(bitmap)
    validate_aspect_ratio(original_width, original_height, aspect_ratio, tolerance)
    rasterizer = rasterizer or PillowRasterizer()
    encoder = encoder or PillowJpegEncoder()

    width, height = plan_dimensions(original_width, original_height, target)
    logger.debug('Planned %dx%d -> %dx%d', original_width, original_height, width, height)

    try:
        resampled = rasterizer.resample(bitmap, width, height)
    except ImageFitError:
        raise
    except Exception as e:
        raise RasterizerFailure(f'Could not resample image: {str(e)}') from e

    best = search_quality(functools.partial(encoder.encode_at, resampled), budget, observer)
    return _build_result(width, height, best)


async def resize_to_fit_async(
    bitmap: Image.Image,
    original_width: int,
    original_height: int,
    target: Optional[TargetSpec] = None,
    budget: int = DEFAULT_SIZE_BUDGET,
    aspect_ratio: float = DEFAULT_ASPECT_RATIO,
    tolerance: float = DEFAULT_ASPECT_TOLERANCE,
    rasterizer=None,
    encoder=None,
    observer: Optional[Observer] = None
) -> ResizeResult:
    """
    Coroutine variant of ``resize_to_fit``.

    Coroutine ``resample``/``encode_at`` methods are awaited directly; blocking
    ones run in the loop's default executor so the event loop stays free.
    """
    _check_bitmap(bitmap)
    validate_aspect_ratio(original_width, original_height, aspect_ratio, tolerance)
    rasterizer = rasterizer or PillowRasterizer()
    encoder = encoder or PillowJpegEncoder()
    loop = asyncio.get_running_loop()

    width, height = plan_dimensions(original_width, original_height, target)
    logger.debug('Planned %dx%d -> %dx%d', original_width, original_height, width, height)

    try:
        if inspect.iscoroutinefunction(rasterizer.resample):
            resampled = await rasterizer.resample(bitmap, width, height)
        else:
            resampled = await loop.run_in_executor(None, rasterizer.resample, bitmap, width, height)
    except ImageFitError:
        raise
    except Exception as e:
        raise RasterizerFailure(f'Could not resample image: {str(e)}') from e

    if inspect.iscoroutinefunction(encoder.encode_at):
        encode_at = functools.partial(encoder.encode_at, resampled)
    else:
        def encode_at(quality):
            return loop.run_in_executor(None, encoder.encode_at, resampled, quality)

    best = await search_quality_async(encode_at, budget, observer)
    return _build_result(width, height, best)


def resize_image_bytes(image_bytes: bytes, **options) -> Tuple[SourceImage, ResizeResult]:
    """
    Decode raw image bytes and run them through ``resize_to_fit``.

    Args:
        image_bytes: Raw file contents
        **options: Passed through to ``resize_to_fit``

    Returns:
        Tuple of (SourceImage, ResizeResult)
    """
    img, source = decode_image(image_bytes)
    result = resize_to_fit(img, source.width, source.height, **options)
    return source, result
