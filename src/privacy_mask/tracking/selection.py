"""
Selection policy: single-target pre-filter and top-N cap by scale.
"""

from __future__ import annotations

from typing import Sequence

from privacy_mask.utils.data_models import Target

from .track import Track


def largest_target(targets: Sequence[Target]) -> list[Target]:
    """Reduce to at most one target, the one with the greatest scale.

    Ties go to the earliest target in source order.
    """
    best: Target | None = None
    for target in targets:
        if best is None or target.scale > best.scale:
            best = target
    return [] if best is None else [best]


def cap_largest_tracks(tracks: Sequence[Track], limit: int) -> list[Track]:
    """Keep the `limit` largest tracks by scale; ties keep current order.

    Survivors stay in their original relative order.
    """
    if len(tracks) <= limit:
        return list(tracks)
    keep = {id(t) for t in sorted(tracks, key=lambda t: -t.scale)[:limit]}
    return [t for t in tracks if id(t) in keep]
