"""
Detector bindings.

Wraps Ultralytics YOLO models (pose or face boxes) behind a small detector
interface; the tracker only ever sees their output through the adapter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, Union

import cv2
import numpy as np

from privacy_mask.errors import ERROR, DetectorError
from privacy_mask.settings import DetectionConfig
from privacy_mask.utils.data_models import BoundingBox, BoxDetection, Keypoint, PoseDetection

Detections = list[Union[PoseDetection, BoxDetection]]


class Detector(Protocol):
    def detect(self, frame: np.ndarray, frame_idx: int = 0) -> Detections:
        raise NotImplementedError


@dataclass(frozen=True)
class NullDetector:
    """Detector that never emits detections."""

    def detect(self, frame: np.ndarray, frame_idx: int = 0) -> Detections:
        return []


@dataclass(frozen=True)
class StaticDetector:
    """Deterministic detector backed by a pre-defined per-frame list (for fixtures/tests)."""

    per_frame: dict[int, Detections] = field(default_factory=dict)

    def detect(self, frame: np.ndarray, frame_idx: int = 0) -> Detections:
        return list(self.per_frame.get(int(frame_idx), []))


class _YoloDetector:
    """Shared Ultralytics model handling."""

    def __init__(
        self,
        model_path: str,
        confidence_threshold: float = 0.3,
        iou_threshold: float = 0.45,
        device: str = "cpu",
        max_detections: int = 10,
        input_scale: float = 1.0,
    ):
        """
        Args:
            model_path: Path to YOLO weights or model name
            confidence_threshold: Minimum confidence for detections
            iou_threshold: IoU threshold for NMS
            device: Device to run inference on ('cuda' or 'cpu')
            max_detections: Maximum number of detections per frame
            input_scale: Scale factor for input frames (0.5 = half resolution, faster)
        """
        self.confidence_threshold = confidence_threshold
        self.iou_threshold = iou_threshold
        self.device = device
        self.max_detections = max_detections
        self.input_scale = input_scale
        self.model = self._init_ultralytics(model_path)

    def _init_ultralytics(self, model_path: str):
        """Initialize local Ultralytics YOLO model."""
        try:
            from ultralytics import YOLO
        except ImportError as e:
            raise DetectorError(
                "Ultralytics is required. Install with: pip install ultralytics",
                code=ERROR.DETECTOR_UNAVAILABLE,
            ) from e

        try:
            model = YOLO(model_path)
            model.to(self.device)
        except (OSError, RuntimeError, ValueError) as e:
            raise DetectorError(
                f"could not load detector weights {model_path!r}: {e}",
                code=ERROR.DETECTOR_UNAVAILABLE,
            ) from e
        return model

    def _infer(self, frame: np.ndarray):
        """Run the model on an RGB frame; returns (result, scale_factor)."""
        # Ultralytics treats numpy input as BGR.
        bgr = cv2.cvtColor(frame, cv2.COLOR_RGB2BGR)
        if self.input_scale != 1.0:
            h, w = bgr.shape[:2]
            bgr = cv2.resize(bgr, (int(w * self.input_scale), int(h * self.input_scale)))
            scale_factor = 1.0 / self.input_scale
        else:
            scale_factor = 1.0

        try:
            result = self.model(
                bgr,
                conf=self.confidence_threshold,
                iou=self.iou_threshold,
                max_det=self.max_detections,
                verbose=False,
            )[0]
        except RuntimeError as e:
            raise DetectorError(f"inference failed: {e}", code=ERROR.DETECTOR_FAILED) from e
        return result, scale_factor


class PoseDetector(_YoloDetector):
    """Full-body landmark detector (YOLO pose, COCO-17 keypoints)."""

    def detect(self, frame: np.ndarray, frame_idx: int = 0) -> Detections:
        result, scale_factor = self._infer(frame)
        if result.keypoints is None or len(result.keypoints) == 0:
            return []

        xy = result.keypoints.xy.cpu().numpy() * scale_factor  # (N, K, 2)
        if result.keypoints.conf is not None:
            conf = result.keypoints.conf.cpu().numpy()  # (N, K)
        else:
            conf = np.ones(xy.shape[:2], dtype=np.float32)
        box_conf = result.boxes.conf.cpu().numpy() if result.boxes is not None else np.ones(len(xy))

        detections: Detections = []
        for i in range(len(xy)):
            keypoints = [
                Keypoint(x=float(xy[i, k, 0]), y=float(xy[i, k, 1]), visibility=float(conf[i, k]))
                for k in range(xy.shape[1])
            ]
            detections.append(
                PoseDetection(frame_idx=frame_idx, keypoints=keypoints, confidence=float(box_conf[i]))
            )
        return detections


class FaceBoxDetector(_YoloDetector):
    """Face (or head) box detector; any YOLO detection weights trained on faces."""

    def detect(self, frame: np.ndarray, frame_idx: int = 0) -> Detections:
        result, scale_factor = self._infer(frame)
        detections: Detections = []
        for box in result.boxes:
            bbox = BoundingBox(
                x1=float(box.xyxy[0][0]) * scale_factor,
                y1=float(box.xyxy[0][1]) * scale_factor,
                x2=float(box.xyxy[0][2]) * scale_factor,
                y2=float(box.xyxy[0][3]) * scale_factor,
                confidence=float(box.conf[0]),
            )
            detections.append(BoxDetection(frame_idx=frame_idx, bbox=bbox))
        return detections


def create_detector(config: Optional[DetectionConfig] = None) -> Detector:
    """Build the configured detector."""
    cfg = config or DetectionConfig()
    cls = PoseDetector if cfg.kind == "pose" else FaceBoxDetector
    return cls(
        model_path=cfg.model,
        confidence_threshold=cfg.confidence_threshold,
        iou_threshold=cfg.iou_threshold,
        device=cfg.device,
        max_detections=cfg.max_detections,
        input_scale=cfg.input_scale,
    )
