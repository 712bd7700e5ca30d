"""Pitch helpers - frequency, MIDI and pitch-class conversions."""

from typing import Optional

import numpy as np

from .constants import A4_FREQ, A4_MIDI, PITCH_NAMES


def freq_to_midi_float(freq: float) -> float:
    """Fractional MIDI number for a frequency (Hz). NaN for non-positive input."""
    if not np.isfinite(freq) or freq <= 0:
        return float("nan")
    return float(12 * np.log2(freq / A4_FREQ) + A4_MIDI)


def freq_to_midi(freq: float) -> Optional[int]:
    """Convert frequency (Hz) to the nearest MIDI pitch."""
    midi = freq_to_midi_float(freq)
    if np.isnan(midi):
        return None
    return int(round(midi))


def midi_to_freq(midi: int) -> float:
    """Convert MIDI pitch to frequency (Hz)."""
    return A4_FREQ * (2 ** ((midi - A4_MIDI) / 12.0))


def pitch_class_name(pitch_class: int) -> str:
    """Name of a pitch class (0-11, where 0=C)."""
    return PITCH_NAMES[pitch_class % 12]


def pitch_class_index(name: str) -> int:
    """Index of a pitch-class name such as 'F#'.

    Raises:
        ValueError: If the name is not one of PITCH_NAMES
    """
    try:
        return PITCH_NAMES.index(name)
    except ValueError:
        raise ValueError(f"Unknown pitch class: {name!r}") from None


def freq_to_note_name(freq: float) -> Optional[str]:
    """Pitch-class name of the nearest MIDI note (e.g. 440 Hz -> 'A')."""
    midi = freq_to_midi(freq)
    if midi is None:
        return None
    return pitch_class_name(midi)


def semitones_between(freq1: float, freq2: float) -> int:
    """Rounded interval in semitones from freq1 up to freq2."""
    if freq1 <= 0 or freq2 <= 0:
        return 0
    return int(round(12 * np.log2(freq2 / freq1)))
