"""
Detection adapter.

Normalizes whatever the detector emits (pose landmark sets or face boxes)
into one `Target` per detected entity. Targets that fail the size gate or
carry non-finite values are emitted with ``valid=False`` and never reach
the tracker.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from privacy_mask.settings import DetectionConfig
from privacy_mask.utils.data_models import BoxDetection, Keypoint, PoseDetection, Target


@dataclass(frozen=True)
class LandmarkLayout:
    """Landmark indices used to derive head position and body scale."""
    head: int
    ears: tuple[int, int]
    shoulders: tuple[int, int]


LANDMARK_LAYOUTS: dict[str, LandmarkLayout] = {
    # COCO-17 (YOLO pose): nose, eyes 1-2, ears 3-4, shoulders 5-6
    "coco": LandmarkLayout(head=0, ears=(3, 4), shoulders=(5, 6)),
    # MediaPipe pose-33: nose, ears 7-8, shoulders 11-12
    "mediapipe": LandmarkLayout(head=0, ears=(7, 8), shoulders=(11, 12)),
}


def _midpoint(a: Keypoint, b: Keypoint) -> tuple[float, float]:
    return ((a.x + b.x) / 2.0, (a.y + b.y) / 2.0)


def _dist(a: Keypoint, b: Keypoint) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def _invalid(position: tuple[float, float] = (0.0, 0.0), scale: float = 0.0) -> Target:
    return Target(position=position, scale=scale, valid=False)


class DetectionAdapter:
    """Turns raw detections into per-frame targets."""

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()
        self.layout = LANDMARK_LAYOUTS[self.config.landmark_layout]

    def adapt(
        self,
        detections: Sequence[Union[PoseDetection, BoxDetection]],
        frame_width: float,
    ) -> list[Target]:
        """Dispatch on detection type; a frame holds one kind only."""
        if not detections:
            return []
        if isinstance(detections[0], BoxDetection):
            return self.from_boxes(detections, frame_width)
        return self.from_poses(detections, frame_width)

    def from_poses(self, detections: Sequence[PoseDetection], frame_width: float) -> list[Target]:
        return [self.pose_target(det, frame_width) for det in detections]

    def pose_target(self, detection: PoseDetection, frame_width: float) -> Target:
        """
        Derive a target from one landmark set.

        Position: head landmark if visible, else ear midpoint, else a point
        half a shoulder span above the shoulder midpoint. Scale: shoulder
        span times the expansion factor.
        """
        cfg = self.config
        kps = detection.keypoints
        layout = self.layout
        needed = max(layout.head, *layout.ears, *layout.shoulders)
        if len(kps) <= needed:
            return _invalid()

        left_sh, right_sh = kps[layout.shoulders[0]], kps[layout.shoulders[1]]
        if not _finite(left_sh.x, left_sh.y, right_sh.x, right_sh.y):
            return _invalid()
        span = _dist(left_sh, right_sh)
        shoulder_mid = _midpoint(left_sh, right_sh)

        threshold = cfg.visibility_threshold
        head = kps[layout.head]
        left_ear, right_ear = kps[layout.ears[0]], kps[layout.ears[1]]
        if head.visibility > threshold and _finite(head.x, head.y):
            position = head.xy
        elif (
            left_ear.visibility > threshold
            and right_ear.visibility > threshold
            and _finite(left_ear.x, left_ear.y, right_ear.x, right_ear.y)
        ):
            position = _midpoint(left_ear, right_ear)
        else:
            position = (shoulder_mid[0], shoulder_mid[1] - span / 2.0)

        scale = span * cfg.pose_scale_expansion
        min_span = max(cfg.min_shoulder_px, cfg.min_body_width_fraction * frame_width)
        shoulders_seen = left_sh.visibility > threshold and right_sh.visibility > threshold
        valid = shoulders_seen and span > 0 and span >= min_span and _finite(scale)
        return Target(position=position, scale=scale, valid=valid)

    def from_boxes(self, detections: Sequence[BoxDetection], frame_width: float) -> list[Target]:
        """Single-entity mode: at most one target, from the most confident box."""
        best: Optional[BoxDetection] = None
        for det in detections:
            if best is None or det.bbox.confidence > best.bbox.confidence:
                best = det
        if best is None:
            return []
        return [self.box_target(best)]

    def box_target(self, detection: BoxDetection) -> Target:
        bbox = detection.bbox
        if not _finite(bbox.x1, bbox.y1, bbox.x2, bbox.y2):
            return _invalid()
        width, height = bbox.width, bbox.height
        if width <= 0 or height <= 0:
            return _invalid(position=bbox.center)
        size = max(width, height)
        scale = size * self.config.box_scale_expansion
        return Target(position=bbox.center, scale=scale, valid=size >= self.config.min_box_px)
