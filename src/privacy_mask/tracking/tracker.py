"""
Online 2D multi-target tracker for mask placement.

Turns a noisy per-frame list of targets into identity-persistent, smoothly
moving mask placements. One `advance` call per video frame; the tracker owns
its track list and nothing else mutates it.
"""

import logging
import math
from typing import Optional, Sequence

from privacy_mask.errors import ERROR, TrackingError
from privacy_mask.settings import TrackerConfig
from privacy_mask.utils.data_models import PredictionPolicy, RenderableMask, Target, TrackingMode

from .assignment import assign_greedy
from .selection import cap_largest_tracks, largest_target
from .track import Track

logger = logging.getLogger(__name__)


def _usable(target: Target) -> bool:
    if not target.valid:
        return False
    x, y = target.position
    if not (math.isfinite(x) and math.isfinite(y) and math.isfinite(target.scale)):
        return False
    return target.scale > 0


class MaskTracker:
    """
    Greedy nearest-center tracker with smoothed updates and occlusion coasting.

    Usage:
        tracker = MaskTracker()
        for frame in frames:
            masks = tracker.advance(targets, width, height, config)
    """

    def __init__(self):
        self.tracks: list[Track] = []
        self.removed_tracks: list[Track] = []
        self.frame_id = 0
        self._next_id = 1
        self._prediction: Optional[PredictionPolicy] = None

    def reset(self) -> None:
        """Clear all tracker state and restart IDs."""
        self.tracks.clear()
        self.removed_tracks.clear()
        self.frame_id = 0
        self._next_id = 1
        self._prediction = None

    @property
    def tracks_created(self) -> int:
        return self._next_id - 1

    def _get_next_id(self) -> int:
        """Get next unique track ID."""
        track_id = self._next_id
        self._next_id += 1
        return track_id

    def _spawn(self, target: Target) -> Track:
        track = Track.from_target(self._get_next_id(), target)
        logger.debug(
            "frame %d: born track %d at (%.1f, %.1f) scale %.1f",
            self.frame_id, track.track_id, track.position[0], track.position[1], track.scale,
        )
        return track

    def _bind_policy(self, prediction: PredictionPolicy) -> None:
        if self._prediction is None:
            self._prediction = prediction
        elif self._prediction is not prediction:
            raise TrackingError(
                f"prediction policy is fixed per tracker "
                f"(bound to {self._prediction.value}, got {prediction.value}); call reset() first",
                code=ERROR.TRACKER_POLICY_SWITCH,
            )

    def advance(
        self,
        targets: Sequence[Target],
        frame_width: float,
        frame_height: float,
        config: TrackerConfig,
    ) -> list[RenderableMask]:
        """
        Advance the tracker by one frame.

        Args:
            targets: This frame's targets from the detection adapter (invalid ones are ignored)
            frame_width: Frame width in pixels
            frame_height: Frame height in pixels
            config: Tracker parameters for this frame

        Returns:
            One renderable mask per live, draw-eligible track
        """
        if frame_width <= 0 or frame_height <= 0:
            raise TrackingError(
                f"frame size must be positive (got {frame_width}x{frame_height})",
                code=ERROR.TRACKER_FRAME_SIZE,
            )
        self._bind_policy(config.prediction)
        self.frame_id += 1
        self.removed_tracks = []

        usable = [t for t in targets if _usable(t)]
        if config.tracking_mode is TrackingMode.SINGLE:
            usable = largest_target(usable)

        max_jump = config.distance_gate_fraction * frame_width
        assign_greedy(
            usable,
            self.tracks,
            max_jump,
            on_match=lambda track, target: track.update(target, config),
            on_birth=self._spawn,
        )

        for track in self.tracks:
            if not track.updated_this_frame:
                track.predict(config)

        live: list[Track] = []
        for track in self.tracks:
            if track.is_retired(config):
                self._retire(track, "missed %d frames" % track.missed_frames)
            else:
                live.append(track)

        if config.tracking_mode is TrackingMode.SINGLE:
            updated = [t for t in live if t.updated_this_frame]
            if updated:
                keep = updated[0]
                for track in live:
                    if track is not keep:
                        self._retire(track, "superseded by track %d" % keep.track_id)
                live = [keep]
        self.tracks = live

        drawable = [t for t in self.tracks if t.is_visible(config)]
        if config.tracking_mode is TrackingMode.MULTI:
            # The cap limits what is drawn; capped tracks keep their identity.
            drawable = cap_largest_tracks(drawable, config.max_concurrent_tracks)
        return [self._renderable(t, config) for t in drawable]

    def _retire(self, track: Track, reason: str) -> None:
        logger.debug("frame %d: retired track %d (%s)", self.frame_id, track.track_id, reason)
        self.removed_tracks.append(track)

    @staticmethod
    def _renderable(track: Track, config: TrackerConfig) -> RenderableMask:
        return RenderableMask(
            track_id=track.track_id,
            position=track.position,
            size=track.scale * config.expansion_factor,
            mask_kind=config.mask_kind,
        )

    def get_active_tracks(self) -> list[Track]:
        """Get all live tracks, visible or not."""
        return list(self.tracks)

    def get_removed_tracks(self) -> list[Track]:
        """Get tracks that were just removed this frame."""
        return self.removed_tracks
