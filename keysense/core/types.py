"""Data types passed between pipeline stages."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .constants import DEFAULT_SR, DEFAULT_TEMPO, DEFAULT_TIME_SIGNATURE, PITCH_NAMES
from .note import freq_to_midi, freq_to_note_name


class AudioState(Enum):
    """Per-tick processing state reported to the host."""
    IDLE = "idle"
    NOISE_DETECTED = "noise_detected"
    MUSICAL_INPUT = "musical_input"
    PROCESSING = "processing"


class Mode(Enum):
    """Key modes."""
    MAJOR = "major"
    MINOR = "minor"


class HarmonyType(Enum):
    """How the pitch candidates of a tick were interpreted."""
    MELODY = "melody"
    CHORD = "chord"
    BOTH = "both"
    NONE = "none"


@dataclass
class AudioFrame:
    """One tick of input: time-domain samples plus their dB magnitude spectrum.

    The spectrum holds fft_size // 2 bins; bin i sits at
    i * sample_rate / fft_size Hz.
    """

    samples: np.ndarray
    spectrum_db: np.ndarray
    sample_rate: int = DEFAULT_SR
    timestamp: Optional[float] = None  # milliseconds

    @property
    def n_bins(self) -> int:
        return len(self.spectrum_db)

    @property
    def bin_width(self) -> float:
        """Frequency resolution of the spectrum in Hz."""
        if self.n_bins == 0:
            return 0.0
        return self.sample_rate / (2 * self.n_bins)

    @property
    def is_empty(self) -> bool:
        return len(self.samples) == 0 or self.n_bins == 0

    @classmethod
    def from_samples(
        cls,
        samples: np.ndarray,
        sample_rate: int = DEFAULT_SR,
        fft_size: Optional[int] = None,
        timestamp: Optional[float] = None,
    ) -> "AudioFrame":
        """Build a frame from raw samples, computing the spectrum.

        Args:
            samples: Mono PCM samples
            sample_rate: Sample rate in Hz
            fft_size: FFT size (default: len(samples))
            timestamp: Optional frame time in milliseconds
        """
        from ..analysis.features import spectrum_db

        samples = np.asarray(samples, dtype=np.float64)
        return cls(
            samples=samples,
            spectrum_db=spectrum_db(samples, fft_size or len(samples)),
            sample_rate=sample_rate,
            timestamp=timestamp,
        )


@dataclass
class PitchCandidate:
    """A detected pitch with its confidence."""

    frequency: float  # Hz
    confidence: float  # 0.0 - 1.0
    timestamp: float = 0.0  # milliseconds

    @property
    def midi(self) -> Optional[int]:
        return freq_to_midi(self.frequency)

    @property
    def note_name(self) -> Optional[str]:
        """Pitch-class name by nearest-MIDI rounding (e.g. 'A')."""
        return freq_to_note_name(self.frequency)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frequency": self.frequency,
            "confidence": self.confidence,
            "timestamp": self.timestamp,
            "note": self.note_name,
        }


@dataclass
class ChromaVector:
    """Normalized 12-bin pitch-class energy distribution."""

    vector: np.ndarray  # 12 values summing to 1, or all zero
    dominant: int = 0
    confidence: float = 0.0

    @property
    def dominant_name(self) -> str:
        return PITCH_NAMES[self.dominant]

    @property
    def is_silent(self) -> bool:
        return float(np.sum(self.vector)) == 0.0

    @classmethod
    def empty(cls) -> "ChromaVector":
        return cls(vector=np.zeros(12), dominant=0, confidence=0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vector": [float(v) for v in self.vector],
            "dominant": self.dominant_name,
            "confidence": self.confidence,
        }


@dataclass
class KeyEstimate:
    """Container for a key estimate."""

    key: str  # Pitch-class name of the tonic (e.g. "C", "F#")
    mode: Mode
    confidence: float  # 0.0 - 1.0
    source_chroma: Optional[ChromaVector] = None
    is_override: bool = False

    @property
    def name(self) -> str:
        return f"{self.key} {self.mode.value}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "mode": self.mode.value,
            "confidence": self.confidence,
            "override": self.is_override,
        }


@dataclass
class RhythmState:
    """Tempo and beat phase snapshot (4/4 assumed)."""

    tempo_bpm: float = DEFAULT_TEMPO
    beat_strength: float = 0.0
    current_beat: int = 1  # 1-4
    is_on_beat: bool = False
    time_signature: Tuple[int, int] = DEFAULT_TIME_SIGNATURE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tempo": self.tempo_bpm,
            "beat_strength": self.beat_strength,
            "current_beat": self.current_beat,
            "is_on_beat": self.is_on_beat,
            "time_signature": f"{self.time_signature[0]}/{self.time_signature[1]}",
        }


@dataclass
class HarmonyAnalysis:
    """Melody vs chord interpretation of one tick."""

    melody_notes: List[str] = field(default_factory=list)
    chord_notes: List[str] = field(default_factory=list)
    rhythm: RhythmState = field(default_factory=RhythmState)
    harmony_type: HarmonyType = HarmonyType.NONE

    @property
    def chord_note_set(self) -> set:
        return set(self.chord_notes)

    @property
    def all_notes(self) -> List[str]:
        """Melody then chord notes, without repeats."""
        seen: List[str] = []
        for name in self.melody_notes + self.chord_notes:
            if name not in seen:
                seen.append(name)
        return seen

    def to_dict(self) -> Dict[str, Any]:
        return {
            "melody_notes": list(self.melody_notes),
            "chord_notes": list(self.chord_notes),
            "rhythm": self.rhythm.to_dict(),
            "harmony_type": self.harmony_type.value,
        }


@dataclass
class NoiseGateState:
    """Adaptive noise gate state."""

    noise_floor_db: float
    is_open: bool = False


@dataclass
class AnalysisResult:
    """Per-tick output of the processor."""

    state: AudioState = AudioState.IDLE
    primary_pitch: Optional[PitchCandidate] = None
    pitches: List[PitchCandidate] = field(default_factory=list)
    chroma: Optional[ChromaVector] = None
    key: Optional[KeyEstimate] = None
    amplitude_db: float = 0.0
    noise_gate_open: bool = False
    harmony_analysis: Optional[HarmonyAnalysis] = None
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "state": self.state.value,
            "timestamp": self.timestamp,
            "primary_pitch": self.primary_pitch.to_dict() if self.primary_pitch else None,
            "pitches": [p.to_dict() for p in self.pitches],
            "chroma": self.chroma.to_dict() if self.chroma else None,
            "key": self.key.to_dict() if self.key else None,
            "amplitude_db": self.amplitude_db,
            "noise_gate_open": self.noise_gate_open,
            "harmony_analysis": (
                self.harmony_analysis.to_dict() if self.harmony_analysis else None
            ),
        }
