"""
Mask sources: an RGBA image patch or a text/emoji glyph.

Both expose an RGBA patch rendered for a requested size so the compositor
can paste them the same way.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from privacy_mask.errors import ERROR, MaskSourceError
from privacy_mask.settings import MaskConfig
from privacy_mask.utils.data_models import MaskKind


@dataclass
class ImageMask:
    """Mask image held as RGBA uint8 (alpha is opaque for RGB sources)."""
    rgba: np.ndarray
    kind: MaskKind = MaskKind.IMAGE

    @property
    def aspect_ratio(self) -> float:
        """Height over width of the source image."""
        h, w = self.rgba.shape[:2]
        return h / w

    def render(self, width: int, height: int) -> np.ndarray:
        interp = cv2.INTER_AREA if width < self.rgba.shape[1] else cv2.INTER_LINEAR
        return cv2.resize(self.rgba, (width, height), interpolation=interp)


GLYPH_CACHE_SIZE = 32


def _load_font(font_path: Optional[str], size: int) -> ImageFont.ImageFont:
    if font_path:
        try:
            return ImageFont.truetype(font_path, size)
        except OSError as e:
            raise MaskSourceError(
                f"could not load font {font_path}: {e}", code=ERROR.MASK_UNREADABLE
            ) from e
    return ImageFont.load_default(size=size)


@functools.lru_cache(maxsize=GLYPH_CACHE_SIZE)
def _render_glyph(text: str, color: tuple[int, int, int], font_path: Optional[str], size: int) -> np.ndarray:
    """Rasterise a glyph onto a transparent square patch (read-only, shared)."""
    font = _load_font(font_path, size)
    canvas = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(canvas)
    # Anchor "mm" centres the glyph's ink box on the patch centre.
    draw.text(
        (size / 2, size / 2),
        text,
        font=font,
        fill=(*color, 255),
        anchor="mm",
        embedded_color=True,
    )
    patch = np.asarray(canvas, dtype=np.uint8).copy()
    patch.setflags(write=False)
    return patch


@dataclass
class GlyphMask:
    """Text/emoji glyph rasterised with Pillow at the requested size."""
    text: str
    color: tuple[int, int, int] = (255, 214, 0)
    font_path: Optional[str] = None
    kind: MaskKind = MaskKind.GLYPH
    aspect_ratio: float = 1.0

    def render(self, width: int, height: int) -> np.ndarray:
        size = max(1, int(round(width)))
        patch = _render_glyph(self.text, tuple(self.color), self.font_path, size)
        if patch.shape[1] != width or patch.shape[0] != height:
            patch = cv2.resize(patch, (max(1, width), max(1, height)), interpolation=cv2.INTER_LINEAR)
        return patch


MaskSource = ImageMask | GlyphMask


def load_image_mask(path: Path | str) -> ImageMask:
    """Read a PNG/JPG mask; alpha is kept when present."""
    path = Path(path)
    if not path.is_file():
        raise MaskSourceError(f"mask image not found: {path}", code=ERROR.MASK_MISSING)
    bgr = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if bgr is None or bgr.size == 0:
        raise MaskSourceError(f"could not decode mask image: {path}", code=ERROR.MASK_UNREADABLE)

    if bgr.ndim == 2:
        rgba = cv2.cvtColor(bgr, cv2.COLOR_GRAY2RGBA)
    elif bgr.shape[2] == 4:
        rgba = cv2.cvtColor(bgr, cv2.COLOR_BGRA2RGBA)
    else:
        rgba = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGBA)
    return ImageMask(rgba=rgba)


def load_mask_source(config: MaskConfig) -> MaskSource:
    """Build the configured mask source."""
    if config.glyph is not None:
        if not config.glyph.strip():
            raise MaskSourceError("mask glyph is empty", code=ERROR.MASK_INVALID)
        return GlyphMask(text=config.glyph, color=tuple(config.glyph_color), font_path=config.font_path)
    if config.image:
        return load_image_mask(config.image)
    raise MaskSourceError(
        "no mask configured: set mask.image or mask.glyph (--mask / --glyph)",
        code=ERROR.MASK_MISSING,
    )
