"""
Mask compositor.

Maps each renderable mask to a destination rectangle and pastes the mask
patch onto the frame. Geometry (`plan_draw`) is kept separate from
rasterisation so it can be checked without pixels.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from privacy_mask.utils.data_models import MaskKind, RenderableMask

from .mask_source import MaskSource


@dataclass(frozen=True)
class DrawOp:
    """One mask placement: top-left corner and size in pixels."""
    track_id: int
    x: float
    y: float
    width: float
    height: float
    kind: MaskKind

    def pixel_rect(self) -> tuple[int, int, int, int]:
        """Integer (x1, y1, x2, y2), rounded outward so coverage never shrinks."""
        return (
            math.floor(self.x),
            math.floor(self.y),
            math.ceil(self.x + self.width),
            math.ceil(self.y + self.height),
        )


def plan_draw(mask: RenderableMask, aspect_ratio: float, baseline_offset: float = 0.1) -> DrawOp:
    """
    Compute where a mask goes.

    Width is the mask size; height follows the source's native aspect ratio.
    Glyphs are nudged down by ``baseline_offset * size`` because their ink
    sits high relative to a face's centre.
    """
    width = mask.size
    height = mask.size * aspect_ratio
    cx, cy = mask.position
    if mask.mask_kind is MaskKind.GLYPH:
        cy += baseline_offset * mask.size
    return DrawOp(
        track_id=mask.track_id,
        x=cx - width / 2,
        y=cy - height / 2,
        width=width,
        height=height,
        kind=mask.mask_kind,
    )


def paste_rgba(frame: np.ndarray, patch: np.ndarray, x: int, y: int) -> bool:
    """
    Alpha-blend an RGBA patch onto an RGB frame in place, clipped to bounds.

    Returns:
        True if any part of the patch landed on the frame
    """
    ph, pw = patch.shape[:2]
    fh, fw = frame.shape[:2]
    x0, y0 = max(x, 0), max(y, 0)
    x1, y1 = min(x + pw, fw), min(y + ph, fh)
    if x1 <= x0 or y1 <= y0:
        return False

    sub = patch[y0 - y:y1 - y, x0 - x:x1 - x]
    alpha = sub[..., 3:4].astype(np.float32) / 255.0
    roi = frame[y0:y1, x0:x1, :3].astype(np.float32)
    blended = roi * (1.0 - alpha) + sub[..., :3].astype(np.float32) * alpha
    frame[y0:y1, x0:x1, :3] = np.clip(np.rint(blended), 0, 255).astype(np.uint8)
    return True


class MaskCompositor:
    """Draws one mask per renderable onto RGB frames."""

    def __init__(self, source: MaskSource, baseline_offset: float = 0.1):
        self.source = source
        self.baseline_offset = baseline_offset

    def plan(self, masks: Sequence[RenderableMask]) -> list[DrawOp]:
        return [plan_draw(m, self.source.aspect_ratio, self.baseline_offset) for m in masks]

    def composite(self, frame: np.ndarray, masks: Sequence[RenderableMask]) -> int:
        """
        Draw every mask onto the frame (modified in place).

        Returns:
            Number of masks that landed on the frame
        """
        drawn = 0
        for op in self.plan(masks):
            x1, y1, x2, y2 = op.pixel_rect()
            width, height = x2 - x1, y2 - y1
            if width <= 0 or height <= 0:
                continue
            patch = self.source.render(width, height)
            if paste_rgba(frame, patch, x1, y1):
                drawn += 1
        return drawn
