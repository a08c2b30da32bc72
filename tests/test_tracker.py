from __future__ import annotations

import math

import pytest

from privacy_mask.errors import ERROR, TrackingError
from privacy_mask.settings import TrackerConfig
from privacy_mask.tracking.tracker import MaskTracker
from privacy_mask.utils.data_models import MaskKind, PredictionPolicy, Target, TrackingMode

W, H = 640, 480


def _t(x: float, y: float, scale: float = 50.0, valid: bool = True) -> Target:
    return Target(position=(x, y), scale=scale, valid=valid)


def test_identity_is_stable_for_constant_velocity_target() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig()

    ids = set()
    for i in range(40):
        masks = tracker.advance([_t(100 + 6 * i, 200 + 2 * i)], W, H, cfg)
        assert len(masks) == 1
        ids.add(masks[0].track_id)

    assert ids == {1}
    assert tracker.tracks_created == 1


def test_matched_update_blends_position_toward_target() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(smoothing_alpha_position=0.5)

    tracker.advance([_t(100, 100)], W, H, cfg)
    masks = tracker.advance([_t(110, 120)], W, H, cfg)

    assert masks[0].position == pytest.approx((105.0, 110.0))
    assert tracker.tracks[0].missed_frames == 0


def test_gate_boundary_is_strict() -> None:
    cfg = TrackerConfig(distance_gate_fraction=0.25)  # 160 px at 640 wide

    at_gate = MaskTracker()
    at_gate.advance([_t(100, 100)], W, H, cfg)
    at_gate.advance([_t(260, 100)], W, H, cfg)
    assert [t.track_id for t in at_gate.tracks] == [1, 2]

    inside = MaskTracker()
    inside.advance([_t(100, 100)], W, H, cfg)
    inside.advance([_t(259.999, 100)], W, H, cfg)
    assert [t.track_id for t in inside.tracks] == [1]


def test_retirement_after_threshold_plus_one_misses() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(retire_miss_threshold=15)

    tracker.advance([_t(100, 100)], W, H, cfg)
    for _ in range(15):
        tracker.advance([], W, H, cfg)
    assert [t.track_id for t in tracker.tracks] == [1]
    assert tracker.tracks[0].missed_frames == 15
    assert not tracker.tracks[0].is_retired(cfg)

    tracker.advance([], W, H, cfg)
    assert tracker.tracks == []
    assert [t.track_id for t in tracker.get_removed_tracks()] == [1]


def test_draw_gate_hides_coasting_track_before_retirement() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(visible_miss_threshold=5, retire_miss_threshold=15)

    tracker.advance([_t(100, 100)], W, H, cfg)
    for _ in range(4):
        masks = tracker.advance([], W, H, cfg)
    assert [m.track_id for m in masks] == [1]

    masks = tracker.advance([], W, H, cfg)
    assert masks == []
    assert len(tracker.tracks) == 1

    # A detection back near the old spot revives the same identity.
    masks = tracker.advance([_t(104, 100)], W, H, cfg)
    assert [m.track_id for m in masks] == [1]
    assert tracker.tracks[0].missed_frames == 0


def test_one_frame_miss_keeps_identity() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig()

    tracker.advance([_t(100, 100)], W, H, cfg)
    tracker.advance([], W, H, cfg)
    masks = tracker.advance([_t(102, 100)], W, H, cfg)

    assert [m.track_id for m in masks] == [1]


def test_scale_deadzone_bounds_jitter() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(scale_jitter_deadzone=0.05, smoothing_alpha_scale_slow=0.005)

    tracker.advance([_t(100, 100, scale=100.0)], W, H, cfg)
    previous = tracker.tracks[0].scale
    for i in range(20):
        noisy = 103.0 if i % 2 == 0 else 97.0
        tracker.advance([_t(100, 100, scale=noisy)], W, H, cfg)
        current = tracker.tracks[0].scale
        assert abs(current - previous) <= cfg.smoothing_alpha_scale_slow * abs(noisy - previous) + 1e-9
        previous = current

    assert abs(tracker.tracks[0].scale - 100.0) < 0.05


def test_scale_outside_deadzone_uses_fast_blend() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(scale_jitter_deadzone=0.05, smoothing_alpha_scale_fast=0.15)

    tracker.advance([_t(100, 100, scale=100.0)], W, H, cfg)
    tracker.advance([_t(100, 100, scale=130.0)], W, H, cfg)

    assert tracker.tracks[0].scale == pytest.approx(104.5)


def test_single_mode_anchors_to_largest_target() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(tracking_mode=TrackingMode.SINGLE)

    masks = tracker.advance(
        [_t(100, 100, scale=10.0), _t(300, 200, scale=50.0), _t(500, 300, scale=30.0)], W, H, cfg
    )

    assert len(masks) == 1
    assert len(tracker.tracks) == 1
    assert tracker.tracks[0].position == (300.0, 200.0)
    assert tracker.tracks[0].scale == 50.0


def test_single_mode_new_subject_supersedes_old_track() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(tracking_mode=TrackingMode.SINGLE)

    tracker.advance([_t(100, 100, scale=40.0)], W, H, cfg)
    masks = tracker.advance([_t(500, 100, scale=60.0)], W, H, cfg)

    assert [m.track_id for m in masks] == [2]
    assert [t.track_id for t in tracker.tracks] == [2]
    assert [t.track_id for t in tracker.get_removed_tracks()] == [1]


def test_single_mode_coasts_when_no_targets() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(tracking_mode=TrackingMode.SINGLE)

    tracker.advance([_t(100, 100)], W, H, cfg)
    masks = tracker.advance([], W, H, cfg)

    assert [m.track_id for m in masks] == [1]
    assert tracker.tracks[0].missed_frames == 1


def test_top_n_cap_draws_largest_tracks() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(max_concurrent_tracks=2)

    scales = [30.0, 80.0, 10.0, 60.0, 20.0]
    targets = [_t(60 + 120 * i, 240, scale=s) for i, s in enumerate(scales)]
    masks = tracker.advance(targets, W, H, cfg)

    assert sorted(m.track_id for m in masks) == [2, 4]
    # Tracks over the cap are not drawn but stay alive.
    assert [t.track_id for t in tracker.tracks] == [1, 2, 3, 4, 5]
    assert tracker.get_removed_tracks() == []


def test_top_n_cap_keeps_identities_stable() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(max_concurrent_tracks=2)
    subjects = [_t(100, 240, scale=60.0), _t(300, 240, scale=50.0), _t(500, 240, scale=40.0)]

    for _ in range(10):
        masks = tracker.advance(subjects, W, H, cfg)
        assert sorted(m.track_id for m in masks) == [1, 2]

    assert tracker.tracks_created == 3
    assert [t.missed_frames for t in tracker.tracks] == [0, 0, 0]


def test_top_n_cap_ignores_hidden_coasting_tracks() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(max_concurrent_tracks=1, visible_miss_threshold=2)

    tracker.advance([_t(100, 240, scale=200.0), _t(500, 240, scale=40.0)], W, H, cfg)
    for _ in range(2):
        masks = tracker.advance([_t(500, 240, scale=40.0)], W, H, cfg)

    # The large track is still alive but no longer drawable; the visible
    # subject takes the only slot.
    assert [t.track_id for t in tracker.tracks] == [1, 2]
    assert [m.track_id for m in masks] == [2]


def test_inertial_prediction_decays_velocity() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(
        tracking_mode=TrackingMode.SINGLE,
        prediction=PredictionPolicy.INERTIAL,
        smoothing_alpha_position=1.0,
        retire_miss_threshold=30,
        velocity_decay=0.9,
    )

    tracker.advance([_t(100, 100)], W, H, cfg)
    tracker.advance([_t(110, 105)], W, H, cfg)
    assert tracker.tracks[0].velocity == pytest.approx((10.0, 5.0))

    k = 4
    for _ in range(k):
        tracker.advance([], W, H, cfg)

    track = tracker.tracks[0]
    decay = 0.9 ** k
    assert track.velocity == pytest.approx((10.0 * decay, 5.0 * decay))
    travelled = sum(0.9 ** i for i in range(k))
    assert track.position == pytest.approx((110.0 + 10.0 * travelled, 105.0 + 5.0 * travelled))
    assert math.hypot(*track.velocity) == pytest.approx(math.hypot(10.0, 5.0) * decay)


def test_coast_prediction_holds_position() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(prediction=PredictionPolicy.COAST, smoothing_alpha_position=1.0)

    tracker.advance([_t(100, 100)], W, H, cfg)
    tracker.advance([_t(120, 100)], W, H, cfg)
    for _ in range(3):
        tracker.advance([], W, H, cfg)

    assert tracker.tracks[0].position == (120.0, 100.0)


def test_inertial_prediction_is_not_clamped_to_frame() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(prediction=PredictionPolicy.INERTIAL, smoothing_alpha_position=1.0, velocity_decay=0.9)

    tracker.advance([_t(80, 50)], 100, 100, cfg)
    tracker.advance([_t(95, 50)], 100, 100, cfg)
    for _ in range(3):
        tracker.advance([], 100, 100, cfg)

    # 95 + 15 * (1 + 0.9 + 0.81): friction alone slows the drift.
    assert tracker.tracks[0].position == pytest.approx((135.65, 50.0))


def test_invalid_and_non_finite_targets_are_ignored() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig()

    masks = tracker.advance(
        [
            _t(100, 100, valid=False),
            _t(200, 100, scale=float("nan")),
            _t(300, 100, scale=0.0),
            _t(float("inf"), 100),
        ],
        W,
        H,
        cfg,
    )

    assert masks == []
    assert tracker.tracks == []


def test_ids_are_never_reused_after_retirement() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(retire_miss_threshold=1)

    tracker.advance([_t(100, 100)], W, H, cfg)
    tracker.advance([], W, H, cfg)
    tracker.advance([], W, H, cfg)
    assert tracker.tracks == []

    masks = tracker.advance([_t(100, 100)], W, H, cfg)
    assert [m.track_id for m in masks] == [2]


def test_renderable_size_and_kind_follow_config() -> None:
    tracker = MaskTracker()
    cfg = TrackerConfig(expansion_factor=1.5, mask_kind=MaskKind.GLYPH)

    masks = tracker.advance([_t(100, 100, scale=40.0)], W, H, cfg)

    assert masks[0].size == pytest.approx(60.0)
    assert masks[0].mask_kind is MaskKind.GLYPH


def test_policy_switch_is_rejected_until_reset() -> None:
    tracker = MaskTracker()
    tracker.advance([_t(100, 100)], W, H, TrackerConfig(prediction=PredictionPolicy.COAST))

    with pytest.raises(TrackingError) as excinfo:
        tracker.advance([], W, H, TrackerConfig(prediction=PredictionPolicy.INERTIAL))
    assert excinfo.value.code == ERROR.TRACKER_POLICY_SWITCH

    tracker.reset()
    masks = tracker.advance([_t(100, 100)], W, H, TrackerConfig(prediction=PredictionPolicy.INERTIAL))
    assert [m.track_id for m in masks] == [1]


def test_non_positive_frame_size_is_rejected() -> None:
    with pytest.raises(TrackingError):
        MaskTracker().advance([], 0, H, TrackerConfig())
