"""
Bounded bisection over lossy-encoder quality.

Finds the highest quality level whose encoded size fits a byte budget using
at most 12 encoder calls: one at maximum quality, ten bisection probes and
one fixed fallback. The probe sequence is written once as a generator and
driven either by a blocking loop (``search_quality``) or by a coroutine
(``search_quality_async``) so the same algorithm serves both kinds of
encoder.
"""
import inspect
import logging
from typing import Awaitable, Callable, Generator, Optional, Union

from imagefit.errors import CompressionInfeasible, EncodeFailure, InvalidInput
from imagefit.models import EncodedCandidate

logger = logging.getLogger(__name__)

MAX_QUALITY = 1.0
SEARCH_ITERATIONS = 10
FALLBACK_QUALITY = 0.5

EncodeAt = Callable[[float], EncodedCandidate]
AsyncEncodeAt = Callable[[float], Union[EncodedCandidate, Awaitable[EncodedCandidate]]]
Observer = Callable[[EncodedCandidate], None]

ProbeSequence = Generator[float, EncodedCandidate, EncodedCandidate]


def _probe_qualities(budget: int) -> ProbeSequence:
    """
    Yield quality levels to try and receive the encoded candidate for each.

    Returns the winning candidate (via StopIteration) or raises
    CompressionInfeasible.
    """
    candidate = yield MAX_QUALITY
    if candidate.fits(budget):
        return candidate

    smallest = candidate.byte_size
    low, high = 0.0, MAX_QUALITY
    best = None

    for _ in range(SEARCH_ITERATIONS):
        mid = (low + high) / 2
        candidate = yield mid
        smallest = min(smallest, candidate.byte_size)
        if candidate.fits(budget):
            # mid only moves up after a fit, so the latest fit is the best
            best = candidate
            low = mid
        else:
            high = mid

    if best is None:
        # Fixed fallback regardless of where low/high converged
        candidate = yield FALLBACK_QUALITY
        smallest = min(smallest, candidate.byte_size)
        if not candidate.fits(budget):
            raise CompressionInfeasible(budget, smallest)
        best = candidate

    return best


def _check_candidate(candidate: Optional[EncodedCandidate], quality: float) -> EncodedCandidate:
    if not isinstance(candidate, EncodedCandidate):
        raise EncodeFailure(
            f'Encoder returned {type(candidate).__name__} instead of a candidate at quality {quality:.4f}'
        )
    if not candidate.payload:
        raise EncodeFailure(f'Encoder produced no output at quality {quality:.4f}')
    return candidate


def _record(candidate: EncodedCandidate, budget: int, observer: Optional[Observer]) -> None:
    logger.debug('Probed quality %.4f: %d bytes (%s)', candidate.quality_level, candidate.byte_size,
                 'fits' if candidate.fits(budget) else 'over budget')
    if observer is not None:
        observer(candidate)


def search_quality(
    encode_at: EncodeAt,
    budget: int,
    observer: Optional[Observer] = None
) -> EncodedCandidate:
    """
    Find the highest quality whose encoded size is at most ``budget`` bytes.

    Args:
        encode_at: Blocking capability returning an EncodedCandidate for a quality in [0, 1]
        budget: Byte ceiling
        observer: Optional callback invoked with every candidate produced

    Returns:
        The winning EncodedCandidate

    Raises:
        EncodeFailure: If an encode call or the observer fails, or the encoder returns no candidate
        CompressionInfeasible: If no probe fits the budget
    """
    if budget <= 0:
        raise InvalidInput(f'Size budget must be positive, got {budget}')

    probes = _probe_qualities(budget)
    quality = next(probes)
    while True:
        try:
            candidate = _check_candidate(encode_at(quality), quality)
            _record(candidate, budget, observer)
        except EncodeFailure:
            raise
        except Exception as e:
            raise EncodeFailure(f'Encoding at quality {quality:.4f} failed: {str(e)}') from e

        try:
            quality = probes.send(candidate)
        except StopIteration as stop:
            return stop.value


async def search_quality_async(
    encode_at: AsyncEncodeAt,
    budget: int,
    observer: Optional[Observer] = None
) -> EncodedCandidate:
    """
    Coroutine variant of ``search_quality``.

    ``encode_at`` may be a plain function or return an awaitable; each call is
    awaited before the next one is issued, so encodes never overlap.
    """
    if budget <= 0:
        raise InvalidInput(f'Size budget must be positive, got {budget}')

    probes = _probe_qualities(budget)
    quality = next(probes)
    while True:
        try:
            candidate = encode_at(quality)
            if inspect.isawaitable(candidate):
                candidate = await candidate
            candidate = _check_candidate(candidate, quality)
            _record(candidate, budget, observer)
        except EncodeFailure:
            raise
        except Exception as e:
            raise EncodeFailure(f'Encoding at quality {quality:.4f} failed: {str(e)}') from e

        try:
            quality = probes.send(candidate)
        except StopIteration as stop:
            return stop.value
