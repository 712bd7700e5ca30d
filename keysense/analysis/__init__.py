"""Analysis layer - Per-frame signal analysis.

This layer turns one frame of samples and its dB spectrum into signals:
- Level and spectral features (RMS, centroid, zero crossings)
- Adaptive noise gate
- Pitch candidates (autocorrelation + spectral peaks)
- Musical vs. noise classification
- Chroma
- Onsets, beats and tempo
"""

from .features import FeatureExtractor, spectrum_db
from .gate import NoiseGate
from .pitch import PitchEstimator
from .classifier import ClassifierReport, HarmonicClassifier
from .chroma import ChromaAnalyzer
from .rhythm import RhythmAnalyzer

__all__ = [
    "FeatureExtractor",
    "spectrum_db",
    "NoiseGate",
    "PitchEstimator",
    "ClassifierReport",
    "HarmonicClassifier",
    "ChromaAnalyzer",
    "RhythmAnalyzer",
]
