"""Detection of seamlessly repeating segments in the main section."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from panel_export.models import FrameOutput, LoopSegment

DEFAULT_MIN_SEGMENT_FRAMES = 3

LOGGER = logging.getLogger(__name__)


def resolve_search_start(fingerprints: Sequence[Optional[str]], start_index: int) -> int:
    """Clamp ``start_index`` and skip forward past frames without a fingerprint.

    Falls back to the first frame when no fingerprinted frame follows.
    """
    total = len(fingerprints)
    if total == 0:
        return 0
    position = min(max(0, start_index), total - 1)
    while position < total and fingerprints[position] is None:
        position += 1
    if position >= total:
        return 0
    return position


def _transition_occurs_within(window: Sequence[str], previous: str, following: str) -> bool:
    return any(
        window[offset] == previous and window[offset + 1] == following
        for offset in range(len(window) - 1)
    )


def _is_candidate(
    fingerprints: Sequence[Optional[str]],
    start: int,
    length: int,
    logger: logging.Logger,
) -> bool:
    first = fingerprints[start : start + length]
    second = fingerprints[start + length : start + 2 * length]
    if any(value is None for value in first) or any(value is None for value in second):
        return False
    if list(first) != list(second):
        return False
    if all(value == first[0] for value in first):
        logger.debug("Skipped static sequence at main frame %s (length %s)", start + 1, length)
        return False
    if length > 2 and not _transition_occurs_within(first, first[-1], second[0]):
        logger.debug(
            "Wrap transition not found within sequence at main frame %s (length %s)",
            start + 1,
            length,
        )
        return False
    return True


def find_loop_segment(
    outputs: Sequence[FrameOutput],
    *,
    start_index: int = 0,
    min_length: int = DEFAULT_MIN_SEGMENT_FRAMES,
    logger: Optional[logging.Logger] = None,
) -> Optional[LoopSegment]:
    """Find the longest, left-most, non-static repeating segment.

    ``outputs`` are the main-section frame outputs in timeline order. A
    segment qualifies when it is immediately followed by an identical copy
    of itself, does not consist of a single repeated frame and, for
    segments longer than two frames, its wrap-around transition already
    occurs between two consecutive frames inside the segment.

    Returns ``None`` when nothing qualifies.
    """
    log = logger or LOGGER
    fingerprints: List[Optional[str]] = [output.fingerprint for output in outputs]
    total = len(fingerprints)
    if total < 2:
        log.info("Not enough main section frames for looping (need at least 2).")
        return None

    search_start = resolve_search_start(fingerprints, start_index)
    shortest = max(1, min_length)

    for length in range(total // 2, shortest - 1, -1):
        for start in range(search_start, total - 2 * length + 1):
            if not _is_candidate(fingerprints, start, length, log):
                continue
            segment = LoopSegment(start=start, end=start + length - 1)
            log.info(
                "Found repeating sequence: main frames %s to %s (length %s)",
                segment.start + 1,
                segment.end + 1,
                length,
            )
            return segment

    return None


__all__ = ["DEFAULT_MIN_SEGMENT_FRAMES", "find_loop_segment", "resolve_search_start"]
