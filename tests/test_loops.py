import logging
import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from panel_export.loops import find_loop_segment, resolve_search_start  # noqa: E402
from panel_export.models import FrameOutput, LoopSegment  # noqa: E402


def outputs_for(pattern):
    """Build frame outputs whose fingerprints follow ``pattern``; ``.`` is an empty frame."""
    outputs = []
    for index, symbol in enumerate(pattern):
        if symbol == ".":
            outputs.append(FrameOutput(fingerprint=None, raster=None, original_index=index))
        else:
            raster = np.zeros((1, 1, 4), dtype=np.uint8)
            outputs.append(FrameOutput(fingerprint=symbol, raster=raster, original_index=index))
    return outputs


def test_longest_alternating_segment_is_chosen():
    segment = find_loop_segment(outputs_for("ABABABAB"))

    assert segment == LoopSegment(start=0, end=3)
    assert segment.length == 4


def test_wrap_transition_must_already_occur_inside_segment():
    # ABC -> ABC wraps with C -> A, which never happens inside ABC.
    assert find_loop_segment(outputs_for("ABCABC"), min_length=3) is None


def test_static_segments_are_rejected(caplog):
    with caplog.at_level(logging.DEBUG, logger="panel_export.loops"):
        assert find_loop_segment(outputs_for("AAAAAA"), min_length=1) is None
    assert "static sequence" in caplog.text


def test_short_segments_skip_the_transition_check():
    assert find_loop_segment(outputs_for("XABAB"), min_length=2) == LoopSegment(start=1, end=2)


def test_minimum_length_excludes_shorter_candidates():
    assert find_loop_segment(outputs_for("XABAB"), min_length=3) is None


def test_search_start_index_is_honored():
    frames = outputs_for("ABABABAB")

    assert find_loop_segment(frames, start_index=0, min_length=2) == LoopSegment(0, 3)
    assert find_loop_segment(frames, start_index=1, min_length=2) == LoopSegment(1, 2)


def test_windows_with_empty_frames_never_match():
    assert find_loop_segment(outputs_for("AB.AB."), min_length=2) is None


def test_too_few_frames():
    assert find_loop_segment(outputs_for("A")) is None
    assert find_loop_segment([]) is None


def test_resolve_search_start():
    assert resolve_search_start(["A", "B"], 10) == 1
    assert resolve_search_start(["A", "B"], -3) == 0
    assert resolve_search_start([None, None, "A"], 0) == 2
    assert resolve_search_start(["A", None, None], 1) == 0
    assert resolve_search_start([], 4) == 0


def test_search_skips_leading_empty_frames():
    assert find_loop_segment(outputs_for("..ABAB"), start_index=0, min_length=2) == LoopSegment(2, 3)
