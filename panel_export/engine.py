"""Boundary to the external animation engine."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from panel_export.models import AnimationObject, Frame, Pixel, Viewport

AnimationPixels = Dict[str, List[Pixel]]


class AnimationEngine(Protocol):
    """Produces the pixels every animation contributes to every frame."""

    def produce(
        self,
        frames: Sequence[Frame],
        animations: Sequence[AnimationObject],
        viewport: Viewport,
        blocked_pixels: Mapping[str, bool],
    ) -> AnimationPixels:
        ...


class StaticAnimationEngine:
    """Serve animation pixels that were computed ahead of time."""

    def __init__(self, pixels_by_frame: Optional[Mapping[str, Sequence[Pixel]]] = None) -> None:
        self._pixels = {
            frame_id: list(pixels)
            for frame_id, pixels in (pixels_by_frame or {}).items()
        }

    def produce(
        self,
        frames: Sequence[Frame],
        animations: Sequence[AnimationObject],
        viewport: Viewport,
        blocked_pixels: Mapping[str, bool],
    ) -> AnimationPixels:
        if not animations:
            return {frame.id: [] for frame in frames}
        return {frame.id: list(self._pixels.get(frame.id, ())) for frame in frames}


__all__ = ["AnimationEngine", "AnimationPixels", "StaticAnimationEngine"]
