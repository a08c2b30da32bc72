"""
Pydantic data models for the privacy mask pipeline.

Defines structured data types for raw detections, per-frame targets,
renderable masks, and run summaries.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class MaskKind(str, Enum):
    """How a mask is drawn."""
    IMAGE = "image"
    GLYPH = "glyph"


class TrackingMode(str, Enum):
    """Target selection mode."""
    SINGLE = "single"
    MULTI = "multi"


class PredictionPolicy(str, Enum):
    """What an unmatched track does while coasting."""
    COAST = "coast"        # hold position and scale
    INERTIAL = "inertial"  # keep moving along last velocity, with friction


class BoundingBox(BaseModel):
    """Bounding box in pixel coordinates."""
    x1: float
    y1: float
    x2: float
    y2: float
    confidence: float = 1.0

    @property
    def center(self) -> tuple[float, float]:
        """Get center point of bbox."""
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1


class Keypoint(BaseModel):
    """Single pose landmark in pixel coordinates."""
    x: float
    y: float
    visibility: float = 1.0  # confidence/visibility score in [0, 1]

    @property
    def xy(self) -> tuple[float, float]:
        return (self.x, self.y)


class PoseDetection(BaseModel):
    """One detected person with its full landmark set."""
    frame_idx: int = 0
    keypoints: list[Keypoint] = Field(default_factory=list)
    confidence: float = 1.0


class BoxDetection(BaseModel):
    """One detected face (or head) box."""
    frame_idx: int = 0
    bbox: BoundingBox


class Target(BaseModel):
    """One frame's detection-derived position/scale, before assignment.

    Produced fresh every frame and never persisted.
    """
    model_config = ConfigDict(frozen=True)

    position: tuple[float, float]
    scale: float
    valid: bool = True


class RenderableMask(BaseModel):
    """Where to draw one mask this frame."""
    model_config = ConfigDict(frozen=True)

    track_id: int
    position: tuple[float, float]
    size: float
    mask_kind: MaskKind = MaskKind.IMAGE


class RunSummary(BaseModel):
    """Totals for one processed clip."""
    video_path: str
    output_path: str
    fps: float
    width: int
    height: int
    frames_processed: int = 0
    frames_masked: int = 0
    tracks_created: int = 0
    peak_masks: int = 0
    audio_copied: bool = False

    @property
    def masked_ratio(self) -> float:
        if self.frames_processed == 0:
            return 0.0
        return self.frames_masked / self.frames_processed
