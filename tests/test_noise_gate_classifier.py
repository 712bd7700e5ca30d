"""Tests for the adaptive noise gate and the musical/noise classifier.

These tests verify that tonal input is accepted while silence, broadband
noise and voice-like input are rejected.
"""

import pytest
import numpy as np
from pathlib import Path
import sys

# Add package root and test helpers to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from keysense.core import AnalysisConfig, PitchCandidate
from keysense.analysis import HarmonicClassifier, NoiseGate, spectrum_db
from generate_test_audio import sine_wave, white_noise


class TestNoiseGate:
    """Noise floor tracking and gate decisions."""

    def test_initial_state(self):
        gate = NoiseGate()
        assert gate.noise_floor_db == -60.0
        assert gate.is_open is False
        assert gate.gate_threshold == -35.0

    def test_silence_keeps_gate_closed(self):
        gate = NoiseGate()
        assert gate.update(-90.0) is False
        assert gate.is_open is False

    def test_loud_frame_opens_gate(self):
        gate = NoiseGate()
        assert gate.update(-10.0) is True

    def test_floor_updated_before_decision(self):
        gate = NoiseGate(AnalysisConfig(noise_floor_alpha=0.5))
        # Floor becomes (-60 + -50) / 2 = -55, threshold -47
        assert gate.update(-50.0) is False
        assert gate.noise_floor_db == pytest.approx(-55.0)

    def test_floor_tracks_ambient_level(self):
        gate = NoiseGate(AnalysisConfig(noise_floor_alpha=0.5))
        for _ in range(30):
            gate.update(-30.0)

        assert gate.noise_floor_db == pytest.approx(-30.0, abs=0.01)
        # Steady ambient level no longer opens the gate
        assert gate.update(-30.0) is False
        assert gate.update(-5.0) is True

    def test_threshold_min_is_absolute_floor(self):
        gate = NoiseGate(AnalysisConfig(noise_floor_alpha=0.5))
        for _ in range(30):
            gate.update(-90.0)

        # Floor near -90 but the open threshold never drops below -65
        assert gate.update(-70.0) is False
        assert gate.update(-60.0) is True

    def test_set_threshold_min(self):
        gate = NoiseGate(AnalysisConfig(noise_floor_alpha=0.5))
        for _ in range(30):
            gate.update(-90.0)
        gate.set_threshold_min(-40.0)

        assert gate.open_threshold == -40.0

    def test_gate_threshold_clamped(self):
        gate = NoiseGate()
        assert gate.set_gate_threshold(-100.0) == -65.0
        assert gate.set_gate_threshold(0.0) == -20.0
        assert gate.set_gate_threshold(-30.0) == -30.0

    def test_reset(self):
        gate = NoiseGate()
        gate.update(-10.0)
        gate.reset()

        assert gate.noise_floor_db == -60.0
        assert gate.is_open is False


class TestHarmonicClassifier:
    """Musical vs noise/voice decisions."""

    @pytest.fixture
    def classifier(self):
        return HarmonicClassifier(AnalysisConfig())

    def frame(self, samples):
        return samples, spectrum_db(samples, 4096)

    def test_low_tone_is_musical(self, classifier):
        samples, spectrum = self.frame(sine_wave(220.0))
        report = classifier.classify(samples, spectrum, PitchCandidate(220.5, 0.97))

        assert report.is_harmonic
        assert report.is_in_musical_range
        assert report.is_not_speech_like
        assert not report.voice_rejected
        assert report.votes >= 3
        assert report.is_musical

    def test_is_musical_shortcut(self, classifier):
        samples, spectrum = self.frame(sine_wave(220.0))
        assert classifier.is_musical(samples, spectrum, PitchCandidate(220.5, 0.97))

    def test_formant_band_tone_is_rejected(self, classifier):
        """A tone inside the first formant band is treated as voice."""
        samples, spectrum = self.frame(sine_wave(500.0))
        report = classifier.classify(samples, spectrum, PitchCandidate(500.0, 0.95))

        assert report.has_voice_formants
        assert not report.is_musical

    def test_white_noise_is_rejected(self, classifier):
        samples, spectrum = self.frame(white_noise(amplitude=0.3))
        report = classifier.classify(samples, spectrum, PitchCandidate(300.0, 0.3))

        assert not report.is_not_speech_like
        assert not report.is_musical

    def test_faint_tone_in_hiss_is_speech_band_noisy(self, classifier):
        """Hiss dominates the waveform while only the tone clears the spectral floor."""
        samples, spectrum = self.frame(white_noise(amplitude=0.02) + sine_wave(400.0, amplitude=0.01))
        report = classifier.classify(samples, spectrum, PitchCandidate(400.0, 0.3))

        assert 150.0 < report.spectral_centroid < 1200.0
        assert report.zero_crossing_rate > 0.12
        assert report.is_speech_band_noisy
        assert report.voice_rejected
        assert not report.is_musical

    def test_clean_tone_in_speech_band_is_not_noisy(self, classifier):
        samples, spectrum = self.frame(sine_wave(300.0))
        report = classifier.classify(samples, spectrum, PitchCandidate(300.0, 0.95))

        assert 150.0 < report.spectral_centroid < 1200.0
        assert report.zero_crossing_rate < 0.12
        assert not report.is_speech_band_noisy

    def test_harmonic_ratio_of_silence(self, classifier):
        spectrum = spectrum_db(np.zeros(4096), 4096)
        assert classifier.harmonic_ratio(spectrum, 220.0) < 0.1
        assert classifier.harmonic_ratio(spectrum, 0.0) == 0.0
        assert classifier.harmonic_ratio(np.zeros(0), 220.0) == 0.0

    def test_stability_needs_three_pitches(self, classifier):
        pitch = PitchCandidate(440.0, 0.9)
        assert classifier.measure_stability(pitch) == 0.0
        assert classifier.measure_stability(pitch) == 0.0
        assert classifier.measure_stability(pitch) == pytest.approx(1.0)

    def test_unstable_pitch(self, classifier):
        for freq in [100.0, 400.0, 100.0, 400.0]:
            stability = classifier.measure_stability(PitchCandidate(freq, 0.9))
        assert stability < 0.5

    def test_sustain(self, classifier):
        for _ in range(3):
            classifier.measure_stability(PitchCandidate(440.0, 0.9))
        assert classifier.is_sustained() is False

        classifier.measure_stability(PitchCandidate(440.0, 0.9))
        assert classifier.is_sustained() is True

    def test_weak_pitches_not_sustained(self, classifier):
        for _ in range(6):
            classifier.measure_stability(PitchCandidate(440.0, 0.2))
        assert classifier.is_sustained() is False

    def test_vibrato(self, classifier):
        for i in range(6):
            freq = 440.0 if i % 2 == 0 else 466.16
            classifier.measure_stability(PitchCandidate(freq, 0.9))
        assert classifier.has_vibrato() is True

    def test_steady_pitch_has_no_vibrato(self, classifier):
        for _ in range(6):
            classifier.measure_stability(PitchCandidate(440.0, 0.9))
        assert classifier.has_vibrato() is False

    def test_vibrato_needs_six_pitches(self, classifier):
        for i in range(5):
            freq = 440.0 if i % 2 == 0 else 466.16
            classifier.measure_stability(PitchCandidate(freq, 0.9))
        assert classifier.has_vibrato() is False

    def test_vibrato_rejects_musical_frame(self, classifier):
        samples, spectrum = self.frame(sine_wave(220.0))
        for i in range(6):
            freq = 220.0 if i % 2 == 0 else 233.08
            report = classifier.classify(samples, spectrum, PitchCandidate(freq, 0.9))

        assert report.has_vibrato
        assert not report.is_musical

    def test_reset(self, classifier):
        samples, spectrum = self.frame(sine_wave(220.0))
        classifier.classify(samples, spectrum, PitchCandidate(220.5, 0.97))
        classifier.reset()

        assert len(classifier.pitch_history) == 0
        assert len(classifier.harmonic_history) == 0
        assert len(classifier.stability_history) == 0
