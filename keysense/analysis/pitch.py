"""Pitch estimation - autocorrelation fundamental plus spectral peaks."""

import logging
from typing import List, Optional

import numpy as np
from scipy.signal import correlate

from ..core.config import AnalysisConfig
from ..core.constants import MAX_PITCH_CANDIDATES, MAX_SPECTRAL_PEAKS
from ..core.types import PitchCandidate
from .features import FeatureExtractor

logger = logging.getLogger(__name__)


class PitchEstimator:
    """Extracts up to six ranked pitch candidates from one frame.

    The autocorrelation estimate tracks the fundamental of a monophonic
    source; spectral peaks add the concurrent pitches of chords. Peaks that
    duplicate an already-kept frequency are dropped during the merge.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        """
        Initialize PitchEstimator.

        Args:
            config: Session configuration (sample rate, frequency bounds,
                peak and merge thresholds)
        """
        self.config = config or AnalysisConfig()
        self.sr = self.config.sample_rate
        self.features = FeatureExtractor(sr=self.sr)

    def autocorrelate(self, samples: np.ndarray) -> np.ndarray:
        """
        Autocorrelation normalized by the lag-0 value.

        Returns:
            Array r where r[lag] = sum(x[i] * x[i + lag]) / sum(x[i]^2);
            all zeros for a silent frame
        """
        samples = np.nan_to_num(np.asarray(samples, dtype=np.float64))
        n = len(samples)
        if n == 0:
            return np.zeros(0)

        corr = correlate(samples, samples, mode="full", method="fft")[n - 1:]
        if corr[0] <= 0:
            return np.zeros(n)
        return corr / corr[0]

    def detect_monophonic(
        self, samples: np.ndarray, timestamp: float = 0.0
    ) -> Optional[PitchCandidate]:
        """
        Estimate the fundamental via autocorrelation.

        Args:
            samples: Time-domain frame
            timestamp: Frame time in milliseconds

        Returns:
            PitchCandidate with confidence = peak correlation, or None
        """
        corr = self.autocorrelate(samples)
        if len(corr) == 0:
            return None

        min_lag = int(self.sr // self.config.detection_max_freq)
        max_lag = int(min(self.sr // self.config.min_freq, len(corr) // 2))
        if max_lag <= min_lag:
            return None

        window = corr[min_lag:max_lag]
        best = int(np.argmax(window))
        best_corr = float(window[best])
        best_lag = min_lag + best

        if best_corr < self.config.min_correlation or best_lag == 0:
            return None

        frequency = self.sr / best_lag
        if not (self.config.detection_min_freq <= frequency <= self.config.detection_max_freq):
            return None

        return PitchCandidate(
            frequency=float(frequency),
            confidence=float(min(1.0, best_corr)),
            timestamp=timestamp,
        )

    def detect_spectral_peaks(
        self, spectrum: np.ndarray, timestamp: float = 0.0
    ) -> List[PitchCandidate]:
        """
        Find prominent local maxima in the dB spectrum.

        Confidence grows with prominence over the larger neighbour:
        clamp((prominence + 20) / 30, 0, 1).

        Returns:
            Up to 8 candidates, strongest first
        """
        spectrum = np.nan_to_num(
            np.asarray(spectrum, dtype=np.float64), nan=-np.inf, posinf=0.0
        )
        n_bins = len(spectrum)
        if n_bins < 5:
            return []

        idx = np.arange(2, n_bins - 2)
        freqs = idx * self.features.bin_width(n_bins)
        mag = spectrum[idx]
        left = spectrum[idx - 1]
        right = spectrum[idx + 1]

        in_band = (freqs >= self.config.peak_min_freq) & (freqs <= self.config.peak_max_freq)
        is_peak = (mag > left) & (mag > right) & (mag > self.config.peak_min_db)
        mask = in_band & is_peak
        if not np.any(mask):
            return []

        prominence = mag[mask] - np.maximum(left[mask], right[mask])
        confidence = np.clip((prominence + 20) / 30, 0.0, 1.0)
        peak_freqs = freqs[mask]

        keep = confidence > self.config.peak_min_confidence
        order = np.argsort(-confidence[keep], kind="stable")[:MAX_SPECTRAL_PEAKS]

        return [
            PitchCandidate(
                frequency=float(peak_freqs[keep][i]),
                confidence=float(confidence[keep][i]),
                timestamp=timestamp,
            )
            for i in order
        ]

    def detect(
        self,
        samples: np.ndarray,
        spectrum: np.ndarray,
        timestamp: float = 0.0,
    ) -> List[PitchCandidate]:
        """
        Ranked pitch candidates for one frame.

        Args:
            samples: Time-domain frame
            spectrum: Matching dB magnitude spectrum
            timestamp: Frame time in milliseconds

        Returns:
            Up to 6 candidates sorted by confidence (highest first)
        """
        pitches: List[PitchCandidate] = []

        primary = self.detect_monophonic(samples, timestamp)
        if primary is not None:
            pitches.append(primary)

        for peak in self.detect_spectral_peaks(spectrum, timestamp):
            is_duplicate = any(
                abs(existing.frequency - peak.frequency) < self.config.duplicate_tolerance_hz
                for existing in pitches
            )
            if not is_duplicate and peak.confidence > self.config.merge_min_confidence:
                pitches.append(peak)

        pitches.sort(key=lambda p: p.confidence, reverse=True)
        return pitches[:MAX_PITCH_CANDIDATES]
