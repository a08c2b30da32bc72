"""
Track state and lifecycle.

A track is born from a target, smoothed toward each matched target, coasts
(in place or inertially) while unmatched, and is retired once it has been
missing for longer than the retirement threshold.
"""

from __future__ import annotations

from dataclasses import dataclass

from privacy_mask.settings import TrackerConfig
from privacy_mask.utils.data_models import PredictionPolicy, Target


def _dist(a: tuple[float, float], b: tuple[float, float]) -> float:
    dx = a[0] - b[0]
    dy = a[1] - b[1]
    return (dx * dx + dy * dy) ** 0.5


@dataclass
class Track:
    """Persistent identity-bearing estimate of one subject."""
    track_id: int
    position: tuple[float, float]
    scale: float
    velocity: tuple[float, float] = (0.0, 0.0)
    missed_frames: int = 0
    updated_this_frame: bool = False

    @classmethod
    def from_target(cls, track_id: int, target: Target) -> "Track":
        """Birth: initialize directly from the target, no smoothing."""
        return cls(
            track_id=track_id,
            position=(float(target.position[0]), float(target.position[1])),
            scale=float(target.scale),
            updated_this_frame=True,
        )

    def distance_to(self, target: Target) -> float:
        return _dist(self.position, target.position)

    def is_retired(self, cfg: TrackerConfig) -> bool:
        return self.missed_frames > cfg.retire_miss_threshold

    def is_visible(self, cfg: TrackerConfig) -> bool:
        """Draw only while the miss streak is short, even if still alive."""
        return self.missed_frames < cfg.visible_miss_threshold

    def update(self, target: Target, cfg: TrackerConfig) -> None:
        """Matched frame: exponential smoothing with a two-speed scale deadzone."""
        x, y = self.position
        tx, ty = target.position
        alpha = cfg.smoothing_alpha_position
        new_x = x + (tx - x) * alpha
        new_y = y + (ty - y) * alpha
        self.velocity = (new_x - x, new_y - y)
        self.position = (new_x, new_y)

        # Small relative changes are treated as detector jitter and barely
        # move the stored scale; larger ones track real approach/retreat.
        relative_change = abs(target.scale - self.scale) / self.scale
        if relative_change < cfg.scale_jitter_deadzone:
            scale_alpha = cfg.smoothing_alpha_scale_slow
        else:
            scale_alpha = cfg.smoothing_alpha_scale_fast
        self.scale = self.scale + (target.scale - self.scale) * scale_alpha

        self.missed_frames = 0
        self.updated_this_frame = True

    def predict(self, cfg: TrackerConfig) -> None:
        """Unmatched frame: coast in place or extrapolate with friction."""
        if cfg.prediction is PredictionPolicy.INERTIAL:
            vx, vy = self.velocity
            self.position = (self.position[0] + vx, self.position[1] + vy)
            self.velocity = (vx * cfg.velocity_decay, vy * cfg.velocity_decay)
        self.missed_frames += 1
