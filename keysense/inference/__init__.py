"""Inference layer - Musical understanding from per-frame analysis.

- Key estimation (Krumhansl-Schmuckler profiles with history smoothing)
- Melody/harmony segmentation of pitch candidates

Pipeline: Chroma -> Key;  Pitch candidates -> [Melody, Chord notes]
"""

from .key import KeyEstimator, KeyCandidate
from .harmony import MelodyHarmonySegmenter, MelodyEvent, ChordEvent

__all__ = [
    # Key estimation
    "KeyEstimator",
    "KeyCandidate",
    # Melody/harmony
    "MelodyHarmonySegmenter",
    "MelodyEvent",
    "ChordEvent",
]
