"""Musical-vs-noise classification with voice rejection.

Votes over five signals computed from the primary pitch and the spectrum:
- Harmonic ratio (energy at harmonics 1-5 vs in-band energy), smoothed
- Pitch stability over recent primary pitches, smoothed
- Spectral centroid inside the musical band
- Low zero-crossing rate
- Sustained confident pitch

Three voice filters veto the vote outright:
- Formant-band energy share
- Vibrato (rapid semitone movement)
- Speech-band centroid together with a noisy waveform
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ..core.config import AnalysisConfig
from ..core.constants import (
    HARMONIC_HISTORY_SIZE,
    PITCH_HISTORY_SIZE,
    STABILITY_HISTORY_SIZE,
)
from ..core.types import PitchCandidate
from .features import FeatureExtractor

logger = logging.getLogger(__name__)


@dataclass
class ClassifierReport:
    """Every signal and filter behind one classification."""

    harmonic_ratio: float = 0.0
    harmonic_smoothed: float = 0.0
    stability: float = 0.0
    stability_smoothed: float = 0.0
    spectral_centroid: float = 0.0
    zero_crossing_rate: float = 0.0
    is_harmonic: bool = False
    is_stable: bool = False
    is_in_musical_range: bool = False
    is_not_speech_like: bool = False
    is_sustained: bool = False
    has_voice_formants: bool = False
    has_vibrato: bool = False
    is_speech_band_noisy: bool = False
    is_musical: bool = False

    @property
    def votes(self) -> int:
        """Number of the five signals that passed."""
        return sum([
            self.is_harmonic,
            self.is_stable,
            self.is_in_musical_range,
            self.is_not_speech_like,
            self.is_sustained,
        ])

    @property
    def voice_rejected(self) -> bool:
        return self.has_voice_formants or self.has_vibrato or self.is_speech_band_noisy


class HarmonicClassifier:
    """Decides whether a gated frame is musical input or noise/speech."""

    # Typical vocal formant regions (Hz): F1, F2, F3
    FORMANT_BANDS: List[Tuple[float, float]] = [
        (300.0, 800.0),
        (1000.0, 1800.0),
        (2000.0, 3400.0),
    ]

    # Harmonics of the fundamental considered by the harmonic ratio
    N_HARMONICS = 5

    # Samples needed before stability, sustain and vibrato are meaningful
    MIN_STABILITY_SAMPLES = 3
    MIN_SUSTAIN_SAMPLES = 4
    MIN_VIBRATO_SAMPLES = 6
    SUSTAIN_WINDOW = 6

    def __init__(self, config: Optional[AnalysisConfig] = None):
        """
        Initialize HarmonicClassifier.

        Args:
            config: Session configuration with the vote thresholds
        """
        self.config = config or AnalysisConfig()
        self.features = FeatureExtractor(sr=self.config.sample_rate)
        self.pitch_history: deque = deque(maxlen=PITCH_HISTORY_SIZE)
        self.harmonic_history: deque = deque(maxlen=HARMONIC_HISTORY_SIZE)
        self.stability_history: deque = deque(maxlen=STABILITY_HISTORY_SIZE)

    def is_musical(
        self,
        samples: np.ndarray,
        spectrum: np.ndarray,
        primary: PitchCandidate,
    ) -> bool:
        """Shortcut for classify(...).is_musical."""
        return self.classify(samples, spectrum, primary).is_musical

    def classify(
        self,
        samples: np.ndarray,
        spectrum: np.ndarray,
        primary: PitchCandidate,
    ) -> ClassifierReport:
        """
        Classify one frame, updating the rolling histories.

        Args:
            samples: Time-domain frame
            spectrum: dB magnitude spectrum
            primary: Highest-confidence pitch candidate (presumed fundamental)

        Returns:
            ClassifierReport with all signals and the final decision
        """
        cfg = self.config
        report = ClassifierReport()

        report.harmonic_ratio = self.harmonic_ratio(spectrum, primary.frequency)
        self.harmonic_history.append(report.harmonic_ratio)

        report.stability = self.measure_stability(primary)
        self.stability_history.append(report.stability)

        report.spectral_centroid = self.features.spectral_centroid(spectrum)
        report.zero_crossing_rate = self.features.zero_crossing_rate(samples)

        report.harmonic_smoothed = float(np.mean(self.harmonic_history))
        report.stability_smoothed = float(np.mean(self.stability_history))

        report.is_harmonic = report.harmonic_smoothed > cfg.harmonic_threshold
        report.is_stable = report.stability_smoothed > cfg.pitch_stability
        report.is_in_musical_range = cfg.min_vocal < report.spectral_centroid < cfg.max_piano
        report.is_not_speech_like = report.zero_crossing_rate < cfg.zcr_threshold
        report.is_sustained = self.is_sustained()

        report.has_voice_formants = self.has_voice_formants(spectrum)
        report.has_vibrato = self.has_vibrato()
        report.is_speech_band_noisy = (
            cfg.min_vocal < report.spectral_centroid < cfg.max_vocal
            and report.zero_crossing_rate > cfg.zcr_threshold
        )

        report.is_musical = not report.voice_rejected and report.votes >= cfg.min_votes

        logger.debug(
            f"Classifier: votes={report.votes} harmonic={report.harmonic_smoothed:.2f} "
            f"stability={report.stability_smoothed:.2f} "
            f"centroid={report.spectral_centroid:.0f}Hz zcr={report.zero_crossing_rate:.3f} "
            f"formants={report.has_voice_formants} vibrato={report.has_vibrato} "
            f"-> {'musical' if report.is_musical else 'noise'}"
        )
        return report

    def harmonic_ratio(self, spectrum: np.ndarray, fundamental: float) -> float:
        """
        Share of in-band energy found at harmonics 1-5 of the fundamental.

        Returns:
            Ratio (0 when there is no in-band energy)
        """
        n_bins = len(spectrum)
        if n_bins < 2 or not np.isfinite(fundamental) or fundamental <= 0:
            return 0.0

        bin_width = self.features.bin_width(n_bins)
        magnitude = self.features.to_linear(spectrum)

        harmonic_energy = 0.0
        for harmonic in range(1, self.N_HARMONICS + 1):
            bin_index = int(round(fundamental * harmonic / bin_width))
            if 0 < bin_index < n_bins:
                harmonic_energy += magnitude[bin_index]

        min_bin = max(1, int(np.floor(self.config.min_freq / bin_width)))
        max_bin = min(n_bins - 1, int(np.floor(self.config.max_freq / bin_width)))
        total_energy = float(magnitude[min_bin:max_bin + 1].sum())

        if total_energy <= 0:
            return 0.0
        return float(harmonic_energy / total_energy)

    def measure_stability(self, pitch: PitchCandidate) -> float:
        """
        Record a primary pitch and score how steady recent pitches are.

        Returns:
            1 - stddev/mean over the pitch window, clamped to [0, 1];
            0 until enough samples exist
        """
        self.pitch_history.append(pitch)
        if len(self.pitch_history) < self.MIN_STABILITY_SAMPLES:
            return 0.0

        freqs = np.array([p.frequency for p in self.pitch_history])
        mean = freqs.mean()
        if mean <= 0:
            return 0.0
        return float(max(0.0, 1 - min(1.0, freqs.std() / mean)))

    def is_sustained(self) -> bool:
        """Mean confidence of the latest primary pitches exceeds the threshold."""
        if len(self.pitch_history) < self.MIN_SUSTAIN_SAMPLES:
            return False
        recent = list(self.pitch_history)[-self.SUSTAIN_WINDOW:]
        avg_confidence = np.mean([p.confidence for p in recent])
        return bool(avg_confidence > self.config.sustain_threshold)

    def has_voice_formants(self, spectrum: np.ndarray) -> bool:
        """More than formant_ratio of the spectral energy sits in formant bands."""
        if len(spectrum) == 0:
            return False

        magnitude = self.features.to_linear(spectrum)
        freqs = self.features.bin_frequencies(len(spectrum))
        total = magnitude.sum()
        if total <= 0:
            return False

        in_formant = np.zeros(len(spectrum), dtype=bool)
        for fmin, fmax in self.FORMANT_BANDS:
            in_formant |= (freqs >= fmin) & (freqs <= fmax)

        return bool(magnitude[in_formant].sum() / total > self.config.formant_ratio)

    def has_vibrato(self) -> bool:
        """Mean absolute semitone change between consecutive primary pitches is high."""
        if len(self.pitch_history) < self.MIN_VIBRATO_SAMPLES:
            return False

        freqs = np.array([p.frequency for p in self.pitch_history])
        if np.any(freqs <= 0):
            return False
        changes = np.abs(12 * np.diff(np.log2(freqs)))
        return bool(changes.mean() > self.config.vibrato_semitones)

    def reset(self) -> None:
        self.pitch_history.clear()
        self.harmonic_history.clear()
        self.stability_history.clear()
