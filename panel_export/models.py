"""Data models used across the panel frame export pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


class FrameSection(str, Enum):
    """Timeline section a frame belongs to."""

    STARTUP = "startup"
    MAIN = "main"


class RenderPosition(str, Enum):
    """Z-order classification of an animation object."""

    FOREGROUND = "FOREGROUND"
    BACKGROUND = "BACKGROUND"
    ON_LAYER = "ON_LAYER"


BlockedPixels = Dict[str, bool]


def blocked_key(x: int, y: int) -> str:
    """Return the ``"x,y"`` key used by blocked-pixel masks."""
    return f"{x},{y}"


@dataclass
class Pixel:
    """A painted cell in global canvas coordinates."""

    x: int
    y: int
    color: str
    pixel_number: Optional[float] = None
    animation_id: Optional[str] = None


@dataclass
class Layer:
    """Editable layer; index 0 in a layer list is the topmost."""

    id: str
    name: str = ""
    visible: bool = True
    locked: bool = False


@dataclass
class Frame:
    """A single timeline frame holding per-layer pixel edits."""

    id: str
    duration: int
    layer_data: Dict[str, List[Pixel]] = field(default_factory=dict)
    section: FrameSection = FrameSection.MAIN

    @property
    def is_main(self) -> bool:
        return self.section == FrameSection.MAIN


@dataclass
class AnimationObject:
    """The compositing-relevant part of an animation definition."""

    id: str
    render_position: RenderPosition = RenderPosition.FOREGROUND
    layer_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Viewport:
    """Exported sub-rectangle of the canvas."""

    width: int
    height: int
    viewport_x: int = 0
    viewport_y: int = 0

    def contains(self, x: int, y: int) -> bool:
        return (
            self.viewport_x <= x < self.viewport_x + self.width
            and self.viewport_y <= y < self.viewport_y + self.height
        )

    def to_local(self, x: int, y: int) -> Tuple[int, int]:
        return x - self.viewport_x, y - self.viewport_y


@dataclass
class FrameOutput:
    """Reduced raster and fingerprint for one source frame."""

    fingerprint: Optional[str]
    raster: Optional[np.ndarray]
    original_index: int

    @property
    def is_empty(self) -> bool:
        return self.raster is None or self.fingerprint is None


@dataclass(frozen=True)
class LoopSegment:
    """Inclusive index range into the main-section frame outputs."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass
class ExportResult:
    """Summary of a completed export."""

    filenames: List[str]
    cumulative_duration_ms: int
    loop_segment: Optional[LoopSegment] = None
    loop_repetitions: int = 0
    empty_frames: int = 0

    @property
    def frame_count(self) -> int:
        return len(self.filenames)


__all__ = [
    "AnimationObject",
    "BlockedPixels",
    "ExportResult",
    "Frame",
    "FrameOutput",
    "FrameSection",
    "Layer",
    "LoopSegment",
    "Pixel",
    "RenderPosition",
    "Viewport",
    "blocked_key",
]
