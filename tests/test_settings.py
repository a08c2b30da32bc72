from __future__ import annotations

import pytest

from privacy_mask.errors import ERROR, ConfigError
from privacy_mask.settings import AppConfig, MaskConfig, deep_merge, load_app_config, load_config
from privacy_mask.utils.data_models import MaskKind, PredictionPolicy, TrackingMode


def test_defaults_load_from_packaged_yaml() -> None:
    config = load_app_config()

    assert config.tracking.tracking_mode is TrackingMode.MULTI
    assert config.tracking.max_concurrent_tracks == 5
    assert config.tracking.distance_gate_fraction == 0.25
    assert config.tracking.visible_miss_threshold == 5
    assert config.tracking.retire_miss_threshold == 15
    assert config.tracking.prediction is PredictionPolicy.COAST
    assert config.tracking.expansion_factor == 1.5
    assert config.detection.kind == "pose"
    assert config.output.keep_audio is True


def test_deep_merge_overrides_nested_keys_only() -> None:
    base = {"tracking": {"tracking_mode": "multi", "max_concurrent_tracks": 5}, "output": {"crf": 23}}

    merged = deep_merge(base, {"tracking": {"max_concurrent_tracks": 2}})

    assert merged == {"tracking": {"tracking_mode": "multi", "max_concurrent_tracks": 2}, "output": {"crf": 23}}
    assert base["tracking"]["max_concurrent_tracks"] == 5


def test_user_file_is_merged_over_defaults(tmp_path) -> None:
    path = tmp_path / "custom.yaml"
    path.write_text("tracking:\n  tracking_mode: single\n  prediction: inertial\n", encoding="utf8")

    config = load_app_config(path)

    assert config.tracking.tracking_mode is TrackingMode.SINGLE
    assert config.tracking.prediction is PredictionPolicy.INERTIAL
    assert config.tracking.retire_miss_threshold == 15


def test_overrides_win_over_user_file(tmp_path) -> None:
    path = tmp_path / "custom.yaml"
    path.write_text("tracking:\n  max_concurrent_tracks: 3\n", encoding="utf8")

    config = load_app_config(path, {"tracking": {"max_concurrent_tracks": 1}})

    assert config.tracking.max_concurrent_tracks == 1


def test_out_of_range_value_is_rejected() -> None:
    with pytest.raises(ConfigError) as excinfo:
        load_app_config(overrides={"tracking": {"max_concurrent_tracks": 0}})

    assert excinfo.value.code == ERROR.CONFIG_INVALID
    assert "tracking.max_concurrent_tracks" in str(excinfo.value)


def test_broken_yaml_is_reported(tmp_path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("tracking: [unclosed\n", encoding="utf8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(path)
    assert excinfo.value.code == ERROR.CONFIG_INVALID_YAML


def test_missing_config_file_is_reported(tmp_path) -> None:
    with pytest.raises(ConfigError) as excinfo:
        load_config(tmp_path / "absent.yaml")
    assert excinfo.value.code == ERROR.CONFIG_MISSING


def test_glyph_mask_sets_tracker_mask_kind() -> None:
    config = load_app_config(overrides={"mask": {"glyph": "X"}})

    assert config.mask.kind is MaskKind.GLYPH
    assert config.tracking.mask_kind is MaskKind.GLYPH
    assert AppConfig().tracking.mask_kind is MaskKind.IMAGE


def test_image_and_glyph_together_are_rejected() -> None:
    with pytest.raises(ConfigError):
        load_app_config(overrides={"mask": {"image": "mask.png", "glyph": "X"}})

    with pytest.raises(ValueError):
        MaskConfig(image="mask.png", glyph="X")


def test_configs_are_immutable() -> None:
    config = load_app_config()

    with pytest.raises(Exception):
        config.tracking.max_concurrent_tracks = 9
