"""Core types, constants and configuration for keysense."""

from .constants import (
    PITCH_NAMES,
    DEFAULT_SR,
    DEFAULT_N_FFT,
    DEFAULT_TEMPO,
)
from .config import AnalysisConfig, ConfigError
from .note import (
    freq_to_midi,
    freq_to_note_name,
    midi_to_freq,
    pitch_class_index,
    pitch_class_name,
    semitones_between,
)
from .types import (
    AnalysisResult,
    AudioFrame,
    AudioState,
    ChromaVector,
    HarmonyAnalysis,
    HarmonyType,
    KeyEstimate,
    Mode,
    NoiseGateState,
    PitchCandidate,
    RhythmState,
)

__all__ = [
    "PITCH_NAMES",
    "DEFAULT_SR",
    "DEFAULT_N_FFT",
    "DEFAULT_TEMPO",
    "AnalysisConfig",
    "ConfigError",
    "freq_to_midi",
    "freq_to_note_name",
    "midi_to_freq",
    "pitch_class_index",
    "pitch_class_name",
    "semitones_between",
    "AnalysisResult",
    "AudioFrame",
    "AudioState",
    "ChromaVector",
    "HarmonyAnalysis",
    "HarmonyType",
    "KeyEstimate",
    "Mode",
    "NoiseGateState",
    "PitchCandidate",
    "RhythmState",
]
