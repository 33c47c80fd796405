"""Layer and animation compositing for a single frame."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from panel_export.models import AnimationObject, Frame, Layer, Pixel, RenderPosition

CompositeMap = Dict[Tuple[int, int], Pixel]


@dataclass
class AnimationBuckets:
    """Animation pixels grouped by z-order."""

    background: List[Pixel] = field(default_factory=list)
    foreground: List[Pixel] = field(default_factory=list)
    on_layer: Dict[str, List[Pixel]] = field(default_factory=dict)


class AnimationIndex:
    """Resolve animation ids to render placement once per export."""

    def __init__(self, placements: Mapping[str, Tuple[RenderPosition, Optional[str]]]) -> None:
        self._placements = dict(placements)

    @classmethod
    def from_animations(cls, animations: Iterable[AnimationObject]) -> "AnimationIndex":
        return cls(
            {
                animation.id: (animation.render_position, animation.layer_id)
                for animation in animations
            }
        )

    def __len__(self) -> int:
        return len(self._placements)

    def placement(self, animation_id: Optional[str]) -> Tuple[RenderPosition, Optional[str]]:
        """Return the render position and layer for an animation id.

        Unknown ids, and ``ON_LAYER`` animations without a layer, render in
        the foreground.
        """
        if animation_id is None:
            return RenderPosition.FOREGROUND, None
        resolved = self._placements.get(animation_id)
        if resolved is None:
            return RenderPosition.FOREGROUND, None
        position, layer_id = resolved
        if position == RenderPosition.ON_LAYER and not layer_id:
            return RenderPosition.FOREGROUND, None
        return position, layer_id

    def bucket(self, animation_pixels: Iterable[Pixel]) -> AnimationBuckets:
        buckets = AnimationBuckets()
        for pixel in animation_pixels:
            position, layer_id = self.placement(pixel.animation_id)
            if position == RenderPosition.BACKGROUND:
                buckets.background.append(pixel)
            elif position == RenderPosition.ON_LAYER and layer_id is not None:
                buckets.on_layer.setdefault(layer_id, []).append(pixel)
            else:
                buckets.foreground.append(pixel)
        return buckets


def _paint(target: CompositeMap, pixels: Iterable[Pixel]) -> None:
    for pixel in pixels:
        target[(pixel.x, pixel.y)] = pixel


def composite_frame(
    frame: Frame,
    layers: Sequence[Layer],
    animation_pixels: Sequence[Pixel] = (),
    index: Optional[AnimationIndex] = None,
) -> CompositeMap:
    """Merge layer pixels and animation overlays into one coordinate map.

    Layers are given foreground-first and painted back-to-front. Later
    writes replace earlier ones at the same coordinate; colors are never
    blended.
    """
    composited: CompositeMap = {}
    buckets = (index or AnimationIndex({})).bucket(animation_pixels)

    _paint(composited, buckets.background)

    for layer in reversed(layers):
        if not layer.visible:
            continue
        _paint(composited, frame.layer_data.get(layer.id, ()))
        _paint(composited, buckets.on_layer.get(layer.id, ()))

    _paint(composited, buckets.foreground)
    return composited


__all__ = ["AnimationBuckets", "AnimationIndex", "CompositeMap", "composite_frame"]
