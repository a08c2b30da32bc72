from .compositor import DrawOp, MaskCompositor, paste_rgba, plan_draw
from .mask_source import GlyphMask, ImageMask, MaskSource, load_image_mask, load_mask_source

__all__ = [
    "DrawOp",
    "GlyphMask",
    "ImageMask",
    "MaskCompositor",
    "MaskSource",
    "load_image_mask",
    "load_mask_source",
    "paste_rgba",
    "plan_draw",
]
