"""Frame-level feature extraction."""

import numpy as np
import librosa
from scipy.signal import get_window

from ..core.constants import DEFAULT_SR, SILENCE_DB, SPECTRUM_FLOOR_DB

# Linear magnitude below which a bin is treated as empty
MAGNITUDE_FLOOR = 0.001


def spectrum_db(samples: np.ndarray, fft_size: int) -> np.ndarray:
    """
    Compute a Blackman-windowed magnitude spectrum in dB.

    Follows the analyser-node convention: magnitudes are normalized by the
    FFT size and only the first fft_size // 2 bins are kept.

    Args:
        samples: Mono samples (the most recent fft_size are used)
        fft_size: FFT size

    Returns:
        Spectrum [fft_size // 2] in dB, floored at SPECTRUM_FLOOR_DB
    """
    n_bins = fft_size // 2
    if n_bins == 0:
        return np.zeros(0)

    samples = np.nan_to_num(np.asarray(samples, dtype=np.float64))[-fft_size:]
    if len(samples) == 0:
        return np.full(n_bins, SPECTRUM_FLOOR_DB)

    window = get_window("blackman", len(samples), fftbins=False)
    magnitude = np.abs(np.fft.rfft(samples * window, n=fft_size))[:n_bins] / fft_size

    return librosa.amplitude_to_db(
        magnitude,
        ref=1.0,
        amin=10 ** (SPECTRUM_FLOOR_DB / 20),
        top_db=None,
    )


class FeatureExtractor:
    """Extracts per-frame features used by the gate and classifier."""

    def __init__(self, sr: int = DEFAULT_SR):
        """
        Initialize FeatureExtractor.

        Args:
            sr: Sample rate
        """
        self.sr = sr

    def bin_frequencies(self, n_bins: int) -> np.ndarray:
        """Center frequency of each of n_bins spectrum bins."""
        if n_bins == 0:
            return np.zeros(0)
        return librosa.fft_frequencies(sr=self.sr, n_fft=2 * n_bins)[:n_bins]

    def bin_width(self, n_bins: int) -> float:
        if n_bins == 0:
            return 0.0
        return self.sr / (2 * n_bins)

    def to_linear(self, spectrum: np.ndarray) -> np.ndarray:
        """Convert a dB spectrum to linear magnitude."""
        spectrum = np.nan_to_num(
            np.asarray(spectrum, dtype=np.float64),
            nan=SPECTRUM_FLOOR_DB,
            neginf=SPECTRUM_FLOOR_DB,
            posinf=0.0,
        )
        return librosa.db_to_amplitude(spectrum)

    def rms(self, samples: np.ndarray) -> float:
        """Root-mean-square amplitude of a frame (0 for an empty frame)."""
        if len(samples) == 0:
            return 0.0
        samples = np.nan_to_num(np.asarray(samples, dtype=np.float64))
        return float(np.sqrt(np.mean(samples ** 2)))

    def rms_db(self, samples: np.ndarray) -> float:
        """Frame level in dB, SILENCE_DB for silence."""
        rms = self.rms(samples)
        if rms <= 0:
            return SILENCE_DB
        return float(20 * np.log10(rms))

    def spectral_centroid(self, spectrum: np.ndarray) -> float:
        """
        Magnitude-weighted mean frequency.

        Only bins above MAGNITUDE_FLOOR (linear) contribute; the DC bin is
        skipped.

        Returns:
            Centroid in Hz, 0.0 when no bin qualifies
        """
        if len(spectrum) < 2:
            return 0.0

        magnitude = self.to_linear(spectrum)[1:]
        freqs = self.bin_frequencies(len(spectrum))[1:]
        mask = magnitude > MAGNITUDE_FLOOR

        total = magnitude[mask].sum()
        if total <= 0:
            return 0.0
        return float(np.sum(freqs[mask] * magnitude[mask]) / total)

    def zero_crossing_rate(self, samples: np.ndarray) -> float:
        """Sign changes per sample (0 is counted as positive)."""
        if len(samples) < 2:
            return 0.0
        positive = np.asarray(samples) >= 0
        crossings = np.count_nonzero(positive[1:] != positive[:-1])
        return crossings / len(samples)
