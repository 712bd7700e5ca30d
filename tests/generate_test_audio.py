"""Synthetic signals for tests, plus a script to write demo WAV files."""

import os
from typing import List

import numpy as np
import soundfile as sf

SR = 44100

# Where `python tests/generate_test_audio.py` writes its files
EXAMPLES_DIR = os.path.join(os.path.dirname(__file__), "..", "examples")


def sine_wave(freq: float, n_samples: int = 4096, sr: int = SR, amplitude: float = 0.5) -> np.ndarray:
    """Generate a sine wave of n_samples at the given frequency."""
    t = np.arange(n_samples) / sr
    return amplitude * np.sin(2 * np.pi * freq * t)


def sine_seconds(freq: float, duration: float, sr: int = SR, amplitude: float = 0.5) -> np.ndarray:
    """Generate a sine wave lasting `duration` seconds."""
    return sine_wave(freq, int(sr * duration), sr, amplitude)


def chord(frequencies: List[float], n_samples: int = 4096, sr: int = SR, amplitude: float = 0.5) -> np.ndarray:
    """Sum of sines, peak-normalized to `amplitude`."""
    voices = np.sum([sine_wave(f, n_samples, sr, 1.0) for f in frequencies], axis=0)
    peak = np.max(np.abs(voices)) or 1.0
    return amplitude * voices / peak


def silence(n_samples: int = 4096) -> np.ndarray:
    return np.zeros(n_samples)


def white_noise(n_samples: int = 4096, amplitude: float = 0.1, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return amplitude * rng.standard_normal(n_samples)


def tone_bursts(
    freq: float,
    interval: float,
    n_bursts: int,
    burst: float = 0.1,
    sr: int = SR,
    amplitude: float = 0.5,
) -> np.ndarray:
    """Short tone bursts every `interval` seconds separated by silence."""
    audio = np.zeros(int(sr * interval * n_bursts))
    tone = sine_seconds(freq, burst, sr, amplitude)
    for i in range(n_bursts):
        start = int(i * interval * sr)
        audio[start:start + len(tone)] = tone
    return audio


def accented_tone(
    freq: float,
    interval: float,
    n_accents: int,
    accent: float = 0.1,
    lead_in: float = 0.25,
    sr: int = SR,
    quiet: float = 0.02,
    loud: float = 0.5,
) -> np.ndarray:
    """Continuous tone at a low level with a loud accent every `interval` seconds."""
    duration = lead_in + interval * n_accents
    envelope = np.full(int(sr * duration), quiet)
    for i in range(n_accents):
        start = int((lead_in + i * interval) * sr)
        envelope[start:start + int(accent * sr)] = loud
    return sine_seconds(freq, duration, sr, amplitude=1.0)[:len(envelope)] * envelope


def main():
    os.makedirs(EXAMPLES_DIR, exist_ok=True)
    files = {
        "a3_sine.wav": sine_seconds(220.0, 2.0),
        "c_major_chord.wav": chord([261.63, 329.63, 392.00], int(SR * 2.0)),
        "clicks_120bpm.wav": tone_bursts(220.0, 0.5, 8),
        "silence.wav": silence(SR),
    }
    for name, audio in files.items():
        path = os.path.join(EXAMPLES_DIR, name)
        sf.write(path, audio.astype(np.float32), SR)
        print(f"Generated: {path}")


if __name__ == "__main__":
    main()
