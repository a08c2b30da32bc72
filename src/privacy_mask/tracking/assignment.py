"""
Greedy nearest-center assignment of targets to tracks.

Targets are visited in source order; each takes the closest still-unclaimed
track strictly inside the distance gate, or starts a new track. There is no
global reassignment: on ambiguous frames the earlier target wins.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from privacy_mask.utils.data_models import Target

from .track import Track


def nearest_unclaimed_track(
    target: Target,
    tracks: Sequence[Track],
    max_distance: float,
) -> Optional[Track]:
    """Closest track not yet updated this frame with distance < max_distance."""
    best: Optional[Track] = None
    best_distance = float("inf")
    for track in tracks:
        if track.updated_this_frame:
            continue
        distance = track.distance_to(target)
        if distance < max_distance and distance < best_distance:
            best = track
            best_distance = distance
    return best


def assign_greedy(
    targets: Sequence[Target],
    tracks: list[Track],
    max_distance: float,
    on_match: Callable[[Track, Target], None],
    on_birth: Callable[[Target], Track],
) -> None:
    """Match each target in order, spawning a track when nothing is in range.

    `on_match` applies the matched-frame update and must mark the track as
    updated; `on_birth` creates a new (already marked) track, which is
    appended to `tracks` so later targets in the same frame cannot claim it.
    """
    for track in tracks:
        track.updated_this_frame = False

    for target in targets:
        track = nearest_unclaimed_track(target, tracks, max_distance)
        if track is not None:
            on_match(track, target)
        else:
            tracks.append(on_birth(target))
