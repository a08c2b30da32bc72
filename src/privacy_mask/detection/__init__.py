from .adapter import LANDMARK_LAYOUTS, DetectionAdapter, LandmarkLayout
from .detector import Detector, FaceBoxDetector, NullDetector, PoseDetector, StaticDetector, create_detector

__all__ = [
    "DetectionAdapter",
    "Detector",
    "FaceBoxDetector",
    "LANDMARK_LAYOUTS",
    "LandmarkLayout",
    "NullDetector",
    "PoseDetector",
    "StaticDetector",
    "create_detector",
]
