"""
Configuration loading and validation.

Defaults ship in ``config/default.yaml``; a user file is deep-merged over
them and each section is validated into an immutable pydantic model.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from privacy_mask.errors import ERROR, ConfigError
from privacy_mask.utils.data_models import MaskKind, PredictionPolicy, TrackingMode

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config" / "default.yaml"


class TrackerConfig(BaseModel):
    """Per-call tracker parameters, passed explicitly into every `advance`."""
    model_config = ConfigDict(frozen=True)

    tracking_mode: TrackingMode = TrackingMode.MULTI
    max_concurrent_tracks: int = Field(5, ge=1)
    distance_gate_fraction: float = Field(0.25, gt=0)
    visible_miss_threshold: int = Field(5, ge=0)
    retire_miss_threshold: int = Field(15, ge=0)
    smoothing_alpha_position: float = Field(0.5, gt=0, le=1)
    smoothing_alpha_scale_fast: float = Field(0.15, gt=0, le=1)
    smoothing_alpha_scale_slow: float = Field(0.005, ge=0, le=1)
    scale_jitter_deadzone: float = Field(0.05, ge=0)
    expansion_factor: float = Field(1.5, gt=0)
    prediction: PredictionPolicy = PredictionPolicy.COAST
    velocity_decay: float = Field(0.9, ge=0, le=1)
    mask_kind: MaskKind = MaskKind.IMAGE


class DetectionConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["pose", "box"] = "pose"
    model: str = "yolov8n-pose.pt"
    confidence_threshold: float = Field(0.3, ge=0, le=1)
    iou_threshold: float = Field(0.45, ge=0, le=1)
    device: str = "cpu"
    max_detections: int = Field(10, ge=1)
    input_scale: float = Field(1.0, gt=0)
    landmark_layout: Literal["coco", "mediapipe"] = "coco"
    visibility_threshold: float = Field(0.5, ge=0, le=1)
    pose_scale_expansion: float = Field(1.1, gt=0)
    box_scale_expansion: float = Field(1.0, gt=0)
    min_shoulder_px: float = Field(10.0, ge=0)
    min_body_width_fraction: float = Field(0.05, ge=0, lt=1)
    min_box_px: float = Field(10.0, ge=0)


class MaskConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    image: Optional[str] = None
    glyph: Optional[str] = None
    font_path: Optional[str] = None
    glyph_color: tuple[int, int, int] = (255, 214, 0)
    glyph_baseline_offset: float = Field(0.1, ge=0, le=1)

    @model_validator(mode="after")
    def _one_mask_source(self) -> "MaskConfig":
        if self.image and self.glyph:
            raise ValueError("set either mask.image or mask.glyph, not both")
        return self

    @property
    def kind(self) -> MaskKind:
        return MaskKind.GLYPH if self.glyph else MaskKind.IMAGE


class OutputConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    codec: Optional[str] = None
    crf: int = Field(23, ge=0, le=63)
    keep_audio: bool = True


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    tracking: TrackerConfig = Field(default_factory=TrackerConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    mask: MaskConfig = Field(default_factory=MaskConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @model_validator(mode="before")
    @classmethod
    def _sync_mask_kind(cls, data: Any) -> Any:
        # tracking.mask_kind always follows the configured mask source.
        if not isinstance(data, dict):
            return data
        mask = data.get("mask") or {}
        glyph = mask.glyph if isinstance(mask, MaskConfig) else mask.get("glyph")
        kind = MaskKind.GLYPH if glyph else MaskKind.IMAGE
        tracking = data.get("tracking") or {}
        if isinstance(tracking, TrackerConfig):
            tracking = tracking.model_copy(update={"mask_kind": kind})
        else:
            tracking = {**tracking, "mask_kind": kind}
        return {**data, "tracking": tracking}


def _read_yaml(path: Path) -> dict:
    if not path.is_file():
        raise ConfigError(f"config file not found: {path}", code=ERROR.CONFIG_MISSING)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: invalid YAML: {e}", code=ERROR.CONFIG_INVALID_YAML) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping", code=ERROR.CONFIG_INVALID)
    return data


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override dict into base dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Path | None = None) -> dict:
    """Load the default configuration, optionally merged with a custom config."""
    config = _read_yaml(DEFAULT_CONFIG_PATH)
    if config_path:
        config = deep_merge(config, _read_yaml(Path(config_path)))
    return config


def build_app_config(config: dict[str, Any]) -> AppConfig:
    """Validate a raw config dict into an `AppConfig`."""
    try:
        return AppConfig.model_validate(config)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"invalid configuration: {problems}", code=ERROR.CONFIG_INVALID) from e


def load_app_config(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> AppConfig:
    """Load defaults + user file + explicit overrides and validate the result."""
    config = load_config(config_path)
    if overrides:
        config = deep_merge(config, overrides)
    return build_app_config(config)
