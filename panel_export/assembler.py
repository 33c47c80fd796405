"""Sequence assembly: frame rendering, loop extension and sink output."""

from __future__ import annotations

import json
import logging
import math
import threading
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import cv2
import numpy as np

from panel_export.compositor import AnimationIndex, composite_frame
from panel_export.config import ExportOptions, PanelColors
from panel_export.engine import AnimationEngine, AnimationPixels, StaticAnimationEngine
from panel_export.errors import ExportCancelled, ExportError
from panel_export.loops import find_loop_segment
from panel_export.models import (
    AnimationObject,
    ExportResult,
    Frame,
    FrameOutput,
    Layer,
    LoopSegment,
    Viewport,
)
from panel_export.progress import ProgressLog, format_timeline
from panel_export.project import Project
from panel_export.rasterizer import FrameReducer
from panel_export.sinks import FrameSink

SETTINGS_FILENAME = "settings.json"

ProgressCallback = Callable[[float, str], None]


def frame_filename(cumulative_ms: int) -> str:
    """Name a frame after its start time on the cumulative timeline."""
    return f"{cumulative_ms:06d}.png"


def encode_png(raster: np.ndarray, *, rotate180: bool = False) -> bytes:
    """Encode an RGBA raster as PNG, optionally rotated by 180 degrees."""
    image = cv2.rotate(raster, cv2.ROTATE_180) if rotate180 else raster
    bgra = cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)
    success, buffer = cv2.imencode(".png", bgra)
    if not success:
        raise ExportError(f"Failed to encode {raster.shape[1]}x{raster.shape[0]} frame as PNG")
    return buffer.tobytes()


class SequenceAssembler:
    """Render a project's frames and write the final sequence to a sink."""

    def __init__(
        self,
        frames: Sequence[Frame],
        layers: Sequence[Layer],
        viewport: Viewport,
        *,
        animations: Sequence[AnimationObject] = (),
        blocked_pixels: Optional[Mapping[str, bool]] = None,
        engine: Optional[AnimationEngine] = None,
        options: Optional[ExportOptions] = None,
        panel_colors: Optional[PanelColors] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.frames = list(frames)
        self.layers = list(layers)
        self.viewport = viewport
        self.animations = list(animations)
        self.blocked_pixels = dict(blocked_pixels or {})
        self.engine = engine or StaticAnimationEngine()
        self.options = options or ExportOptions()
        self.panel_colors = panel_colors or PanelColors()
        self.logger = logger or logging.getLogger(__name__)

        self._filenames: List[str] = []
        self._cumulative_ms = 0

    @classmethod
    def from_project(
        cls,
        project: Project,
        *,
        options: Optional[ExportOptions] = None,
        panel_colors: Optional[PanelColors] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "SequenceAssembler":
        return cls(
            project.frames,
            project.layers,
            project.viewport,
            animations=project.animations,
            blocked_pixels=project.blocked_pixels,
            engine=project.animation_engine(),
            options=options,
            panel_colors=panel_colors,
            logger=logger,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def export(
        self,
        sink: FrameSink,
        *,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ExportResult:
        """Run the full export into ``sink``.

        The sink is opened and closed here; any failure aborts it and
        propagates, so a returned result always describes a complete
        sequence.
        """
        self._filenames = []
        self._cumulative_ms = 0

        with sink:
            sink.write_text(
                SETTINGS_FILENAME,
                json.dumps(self.panel_colors.to_settings(), indent=2),
            )
            outputs = self.render_frames(sink, progress=progress, cancel_event=cancel_event)
            empty_frames = sum(1 for output in outputs if output.is_empty)

            segment: Optional[LoopSegment] = None
            repetitions = 0
            if self._looping_requested():
                segment, repetitions = self._extend_with_loop(
                    outputs,
                    sink,
                    progress=progress,
                    cancel_event=cancel_event,
                )
            sink.finish(self._cumulative_ms)

        self.logger.info(
            "Export finished: %s frames written, %s empty frames skipped, total duration %s",
            len(self._filenames),
            empty_frames,
            format_timeline(self._cumulative_ms),
        )
        if progress is not None:
            progress(100.0, "Export complete")

        return ExportResult(
            filenames=list(self._filenames),
            cumulative_duration_ms=self._cumulative_ms,
            loop_segment=segment,
            loop_repetitions=repetitions,
            empty_frames=empty_frames,
        )

    def render_frames(
        self,
        sink: FrameSink,
        *,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[FrameOutput]:
        """Reduce and emit every source frame once, in timeline order."""
        reducer = FrameReducer(self.viewport, self.blocked_pixels, logger=self.logger)
        animation_pixels = self._animation_pixels()
        index = AnimationIndex.from_animations(self.animations)

        total = len(self.frames)
        progress_log = ProgressLog(self.logger, "Frame export progress", total)
        outputs: List[FrameOutput] = []

        for frame_index, frame in enumerate(self.frames):
            self._check_cancelled(cancel_event)

            if self.animations:
                composited = composite_frame(
                    frame,
                    self.layers,
                    animation_pixels.get(frame.id, ()),
                    index,
                )
                raster, fingerprint = reducer.reduce(composited)
            else:
                raster, fingerprint = reducer.reduce_layers(frame, self.layers)

            output = FrameOutput(
                fingerprint=fingerprint,
                raster=raster,
                original_index=frame_index,
            )
            outputs.append(output)

            if output.is_empty:
                self.logger.warning(
                    "Frame %s (ID: %s) is empty after reduction and is skipped",
                    frame_index + 1,
                    frame.id,
                )
                self._advance(frame)
            else:
                self._emit(output, sink, self._encode(output))

            completed = frame_index + 1
            if progress is not None:
                progress(completed / total * 90.0, f"Frame {completed}/{total}")
            progress_log.update(completed)

        return outputs

    # ------------------------------------------------------------------
    # Loop extension
    # ------------------------------------------------------------------

    def _looping_requested(self) -> bool:
        return (
            self.options.enable_looping
            and len(self.frames) > 1
            and self.options.loop_min_duration_minutes > 0
        )

    def _extend_with_loop(
        self,
        outputs: Sequence[FrameOutput],
        sink: FrameSink,
        *,
        progress: Optional[ProgressCallback],
        cancel_event: Optional[threading.Event],
    ) -> Tuple[Optional[LoopSegment], int]:
        main_outputs = [
            output for output in outputs if self.frames[output.original_index].is_main
        ]
        segment = find_loop_segment(
            main_outputs,
            start_index=self.options.loop_start_frame_index,
            min_length=self.options.min_loop_segment_frames,
            logger=self.logger,
        )
        if segment is None:
            self.logger.info(
                "No suitable repeating main section frames found; exporting without loop extension."
            )
            return None, 0

        loop_outputs = main_outputs[segment.start : segment.end + 1]
        loop_duration = sum(
            self.frames[output.original_index].duration for output in loop_outputs
        )
        if loop_duration <= 0:
            self.logger.warning("Chosen loop duration is %sms; skipping looping.", loop_duration)
            return segment, 0

        target_ms = self.options.target_duration_ms
        repetitions = max(1, math.ceil((target_ms - self._cumulative_ms) / loop_duration))
        self.logger.info(
            "Looping original frames %s to %s (%sms per cycle) %s times to reach %s (currently %s)",
            loop_outputs[0].original_index + 1,
            loop_outputs[-1].original_index + 1,
            loop_duration,
            repetitions,
            format_timeline(target_ms),
            format_timeline(self._cumulative_ms),
        )

        # Loop windows never contain empty frames, so every output has a raster.
        encoded: Dict[int, bytes] = {
            output.original_index: self._encode(output) for output in loop_outputs
        }
        progress_log = ProgressLog(self.logger, "Loop export progress", repetitions, unit="iterations")
        for iteration in range(repetitions):
            for output in loop_outputs:
                self._check_cancelled(cancel_event)
                self._emit(output, sink, encoded[output.original_index])

            completed = iteration + 1
            if progress is not None:
                progress(
                    90.0 + completed / repetitions * 10.0,
                    f"Loop iteration {completed}/{repetitions}",
                )
            progress_log.update(completed)

        return segment, repetitions

    # ------------------------------------------------------------------
    # Helper utilities
    # ------------------------------------------------------------------

    def _animation_pixels(self) -> AnimationPixels:
        if not self.animations:
            return {}
        return self.engine.produce(
            self.frames,
            self.animations,
            self.viewport,
            self.blocked_pixels,
        )

    def _encode(self, output: FrameOutput) -> bytes:
        assert output.raster is not None
        return encode_png(output.raster, rotate180=self.options.rotate180)

    def _emit(self, output: FrameOutput, sink: FrameSink, png_bytes: bytes) -> None:
        frame = self.frames[output.original_index]
        filename = frame_filename(self._cumulative_ms)
        sink.write_raster(filename, png_bytes)
        self._filenames.append(filename)
        self._advance(frame)

    def _advance(self, frame: Frame) -> None:
        self._cumulative_ms += max(0, int(frame.duration))

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ExportCancelled("Export cancelled")


__all__ = [
    "ProgressCallback",
    "SETTINGS_FILENAME",
    "SequenceAssembler",
    "encode_png",
    "frame_filename",
]
