"""
Error types for the privacy mask pipeline.

Every error carries a stable, machine-readable code so the CLI (and any
host embedding the pipeline) can react without parsing messages.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ErrorCodes:
    # Configuration
    CONFIG_MISSING: str = "E_CONFIG_MISSING"
    CONFIG_INVALID_YAML: str = "E_CONFIG_INVALID_YAML"
    CONFIG_INVALID: str = "E_CONFIG_INVALID"

    # Video I/O
    VIDEO_OPEN_FAILED: str = "E_VIDEO_OPEN_FAILED"
    VIDEO_NO_STREAM: str = "E_VIDEO_NO_STREAM"
    VIDEO_ENCODE_FAILED: str = "E_VIDEO_ENCODE_FAILED"
    VIDEO_FRAME_SHAPE: str = "E_VIDEO_FRAME_SHAPE"

    # Mask source
    MASK_MISSING: str = "E_MASK_MISSING"
    MASK_UNREADABLE: str = "E_MASK_UNREADABLE"
    MASK_INVALID: str = "E_MASK_INVALID"

    # Detector
    DETECTOR_UNAVAILABLE: str = "E_DETECTOR_UNAVAILABLE"
    DETECTOR_FAILED: str = "E_DETECTOR_FAILED"

    # Tracker misuse
    TRACKER_FRAME_SIZE: str = "E_TRACKER_FRAME_SIZE"
    TRACKER_POLICY_SWITCH: str = "E_TRACKER_POLICY_SWITCH"


ERROR = ErrorCodes()


class PrivacyMaskError(RuntimeError):
    """Base error; `code` is one of the `ERROR` constants."""

    default_code = "E_UNKNOWN"

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        self.code = code or self.default_code

    def __str__(self) -> str:
        return f"[{self.code}] {super().__str__()}"


class ConfigError(PrivacyMaskError):
    default_code = ERROR.CONFIG_INVALID


class VideoIOError(PrivacyMaskError):
    default_code = ERROR.VIDEO_OPEN_FAILED


class MaskSourceError(PrivacyMaskError):
    default_code = ERROR.MASK_INVALID


class DetectorError(PrivacyMaskError):
    default_code = ERROR.DETECTOR_FAILED


class TrackingError(PrivacyMaskError):
    default_code = ERROR.TRACKER_FRAME_SIZE
