"""Chroma analysis - fold the spectrum into 12 pitch classes."""

from typing import Optional

import numpy as np

from ..core.config import AnalysisConfig
from ..core.note import freq_to_midi_float
from ..core.types import ChromaVector
from .features import MAGNITUDE_FLOOR, FeatureExtractor


class ChromaAnalyzer:
    """Projects a dB spectrum onto a normalized 12-bin chroma vector."""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()
        self.features = FeatureExtractor(sr=self.config.sample_rate)

    def compute(self, spectrum: np.ndarray) -> ChromaVector:
        """
        Accumulate linear magnitude per nearest pitch class.

        Only bins in [peak_min_freq, peak_max_freq] above MAGNITUDE_FLOOR
        contribute.

        Returns:
            ChromaVector summing to 1, or all-zero when nothing qualifies
        """
        if len(spectrum) < 2:
            return ChromaVector.empty()

        freqs = self.features.bin_frequencies(len(spectrum))[1:]
        magnitude = self.features.to_linear(spectrum)[1:]

        mask = (
            (freqs >= self.config.peak_min_freq)
            & (freqs <= self.config.peak_max_freq)
            & (magnitude > MAGNITUDE_FLOOR)
        )
        chroma = np.zeros(12)
        for freq, mag in zip(freqs[mask], magnitude[mask]):
            pitch_class = int(round(freq_to_midi_float(freq))) % 12
            chroma[pitch_class] += mag

        total = chroma.sum()
        if total <= 0:
            return ChromaVector.empty()

        chroma /= total
        dominant = int(np.argmax(chroma))
        return ChromaVector(
            vector=chroma,
            dominant=dominant,
            confidence=float(chroma[dominant]),
        )
