from .track import Track
from .tracker import MaskTracker

__all__ = [
    "MaskTracker",
    "Track",
]
