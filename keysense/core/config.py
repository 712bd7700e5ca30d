"""Session configuration for the analysis pipeline."""

import json
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Union

from .constants import DEFAULT_N_FFT, DEFAULT_SR


class ConfigError(ValueError):
    """Raised when a configuration is inconsistent or cannot be loaded."""


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for one analysis session.

    All values are fixed for the lifetime of a processor; build a new
    processor to change them.

    Attributes:
        sample_rate: Session sample rate in Hz (default: 44100)
        fft_size: FFT size; spectra carry fft_size // 2 bins (default: 4096)
        min_freq: Lower bound of the pitch range in Hz (default: 80)
        max_freq: Upper bound of the pitch range in Hz (default: 1100)
        detection_min_freq: Lowest accepted autocorrelation pitch (default: 50)
        detection_max_freq: Highest accepted pitch, also sets the shortest lag (default: 2000)
        peak_min_freq: Lower bound of the spectral peak / chroma band (default: 80)
        peak_max_freq: Upper bound of the spectral peak / chroma band (default: 2000)
        min_correlation: Minimum normalized autocorrelation (default: 0.2)
        peak_min_db: Minimum magnitude of a spectral peak in dB (default: -40)
        peak_min_confidence: Minimum spectral peak confidence (default: 0.2)
        merge_min_confidence: Spectral peaks at or below this are not merged (default: 0.3)
        duplicate_tolerance_hz: Peaks closer than this to a kept pitch are dropped (default: 10)
        threshold_min: Noise gate floor in dB (default: -65)
        threshold_max: Noise gate ceiling in dB (default: -20)
        initial_noise_floor: Starting noise floor estimate in dB (default: -60)
        gate_margin: dB above the noise floor required to open (default: 8)
        noise_floor_alpha: EMA decay of the noise floor (default: 0.001)
        harmonic_threshold: Smoothed harmonic ratio vote threshold (default: 0.18)
        pitch_stability: Smoothed stability vote threshold (default: 0.35)
        min_vocal: Lower edge of the speech centroid band (default: 150)
        max_vocal: Upper edge of the speech centroid band (default: 1200)
        max_piano: Upper edge of the musical centroid band (default: 4186)
        zcr_threshold: Zero-crossing rate separating tonal from noisy (default: 0.12)
        sustain_threshold: Mean confidence required for sustain (default: 0.4)
        formant_ratio: Formant-band energy share that rejects voice (default: 0.4)
        vibrato_semitones: Mean semitone change per frame that rejects voice (default: 0.5)
        min_votes: Signals that must pass to classify as musical (default: 3)
        key_min_confidence: Minimum key confidence to accept (default: 0.05)
        melody_memory_ms: Melody note debounce window (default: 200)
        chord_memory_ms: Polyphonic chord cache lifetime (default: 50)
        polyphonic: Treat every strong candidate as a chord note (default: False)
        tick_budget_ms: Soft real-time budget per frame (default: 16)
    """

    sample_rate: int = DEFAULT_SR
    fft_size: int = DEFAULT_N_FFT
    min_freq: float = 80.0
    max_freq: float = 1100.0
    detection_min_freq: float = 50.0
    detection_max_freq: float = 2000.0
    peak_min_freq: float = 80.0
    peak_max_freq: float = 2000.0
    min_correlation: float = 0.2
    peak_min_db: float = -40.0
    peak_min_confidence: float = 0.2
    merge_min_confidence: float = 0.3
    duplicate_tolerance_hz: float = 10.0
    threshold_min: float = -65.0
    threshold_max: float = -20.0
    initial_noise_floor: float = -60.0
    gate_margin: float = 8.0
    noise_floor_alpha: float = 0.001
    harmonic_threshold: float = 0.18
    pitch_stability: float = 0.35
    min_vocal: float = 150.0
    max_vocal: float = 1200.0
    max_piano: float = 4186.0
    zcr_threshold: float = 0.12
    sustain_threshold: float = 0.4
    formant_ratio: float = 0.4
    vibrato_semitones: float = 0.5
    min_votes: int = 3
    key_min_confidence: float = 0.05
    melody_memory_ms: float = 200.0
    chord_memory_ms: float = 50.0
    polyphonic: bool = False
    tick_budget_ms: float = 16.0

    @property
    def n_bins(self) -> int:
        """Number of magnitude bins per spectrum."""
        return self.fft_size // 2

    @property
    def bin_width(self) -> float:
        """Frequency resolution of a spectrum bin in Hz."""
        return self.sample_rate / self.fft_size

    def validate(self) -> "AnalysisConfig":
        """Check internal consistency.

        Returns:
            self, so calls can be chained

        Raises:
            ConfigError: If any value is out of range
        """
        if self.sample_rate <= 0:
            raise ConfigError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.fft_size <= 0:
            raise ConfigError(f"fft_size must be positive, got {self.fft_size}")
        if not 0 < self.min_freq < self.max_freq:
            raise ConfigError(
                f"Invalid pitch range: {self.min_freq}-{self.max_freq} Hz"
            )
        if not 0 < self.detection_min_freq < self.detection_max_freq:
            raise ConfigError(
                f"Invalid detection range: "
                f"{self.detection_min_freq}-{self.detection_max_freq} Hz"
            )
        if not 0 < self.peak_min_freq < self.peak_max_freq:
            raise ConfigError(
                f"Invalid peak range: {self.peak_min_freq}-{self.peak_max_freq} Hz"
            )
        if self.threshold_min > self.threshold_max:
            raise ConfigError(
                f"threshold_min ({self.threshold_min}) above "
                f"threshold_max ({self.threshold_max})"
            )
        if not 0 < self.noise_floor_alpha <= 1:
            raise ConfigError("noise_floor_alpha must be in (0, 1]")
        if not 1 <= self.min_votes <= 5:
            raise ConfigError("min_votes must be between 1 and 5")
        return self

    def with_overrides(self, **overrides: Any) -> "AnalysisConfig":
        """Return a validated copy with some fields replaced."""
        try:
            return replace(self, **overrides).validate()
        except TypeError as e:
            raise ConfigError(str(e)) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data).validate()

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "AnalysisConfig":
        """Load a config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config root must be an object, got {type(data).__name__}")
        return cls.from_dict(data)
