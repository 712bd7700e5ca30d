"""Integration tests for the per-tick AudioProcessor.

Tests cover:
- State transitions (idle, noise, musical input)
- Melody, chroma and key on a steady tone
- Manual key override
- Reset, timestamps and degenerate input
"""

import logging
from dataclasses import replace

import pytest
import numpy as np
from pathlib import Path
import sys

# Add package root and test helpers to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from keysense.core import (
    AnalysisConfig,
    AudioFrame,
    AudioState,
    ConfigError,
    HarmonyType,
    Mode,
)
from keysense.stream import AudioProcessor
from generate_test_audio import SR, silence, sine_wave, white_noise


def make_frame(samples, timestamp=None, sample_rate=SR):
    return AudioFrame.from_samples(samples, sample_rate=sample_rate, fft_size=4096, timestamp=timestamp)


def run_frames(processor, frame, n, start=0.0, step=16.0):
    """Feed the same frame n times at a steady tick rate."""
    return [
        processor.process(replace(frame, timestamp=start + i * step))
        for i in range(n)
    ]


@pytest.fixture
def processor():
    return AudioProcessor(AnalysisConfig(tick_budget_ms=1e6))


@pytest.fixture
def tone_frame():
    # A3: below the formant bands, so the classifier accepts it
    return make_frame(sine_wave(220.0))


class TestStates:
    """Per-tick state decisions."""

    def test_initial_state(self, processor):
        assert processor.state == AudioState.IDLE
        assert processor.noise_floor_db == -60.0
        assert processor.key_override is None

    def test_silence_is_idle(self, processor):
        result = processor.process(make_frame(silence(), timestamp=0.0))

        assert result.state == AudioState.IDLE
        assert result.noise_gate_open is False
        assert result.amplitude_db == -90.0
        assert result.harmony_analysis.harmony_type == HarmonyType.NONE
        assert result.harmony_analysis.melody_notes == []
        assert result.harmony_analysis.chord_notes == []
        assert result.primary_pitch is None
        assert result.key is None

    def test_idle_ticks_skip_rhythm(self, processor):
        result = processor.process(make_frame(silence(), timestamp=0.0))

        assert result.harmony_analysis.rhythm.tempo_bpm == 120.0
        assert result.harmony_analysis.rhythm.beat_strength == 0.0
        assert len(processor.ctx.rhythm.amplitude_history) == 0

    def test_first_tone_after_silence_is_not_a_beat(self, processor, tone_frame):
        for i in range(5):
            processor.process(make_frame(silence(), timestamp=i * 16.0))
        result = processor.process(replace(tone_frame, timestamp=80.0))

        assert result.state == AudioState.MUSICAL_INPUT
        assert processor.ctx.rhythm.beat_times == []
        assert result.harmony_analysis.rhythm.is_on_beat is False
        assert len(processor.ctx.rhythm.amplitude_history) == 1

    def test_accents_on_tone_give_beats(self, processor):
        quiet = make_frame(sine_wave(220.0, amplitude=0.02))
        loud = make_frame(sine_wave(220.0, amplitude=0.5))
        t = 0.0
        for _ in range(5):
            for _ in range(9):
                processor.process(replace(quiet, timestamp=t))
                t += 50.0
            processor.process(replace(loud, timestamp=t))
            t += 50.0

        beats = processor.ctx.rhythm.beat_times
        assert beats == [450.0, 950.0, 1450.0, 1950.0, 2450.0]
        assert processor.current_tempo == 120.0

    def test_tone_is_musical(self, processor, tone_frame):
        result = processor.process(replace(tone_frame, timestamp=0.0))

        assert result.state == AudioState.MUSICAL_INPUT
        assert processor.state == AudioState.MUSICAL_INPUT
        assert result.noise_gate_open is True
        assert result.primary_pitch.frequency == pytest.approx(220.0, abs=2.0)

    def test_noise_not_musical(self, processor):
        result = processor.process(make_frame(white_noise(amplitude=0.3), timestamp=0.0))

        assert result.noise_gate_open is True
        assert result.state == AudioState.NOISE_DETECTED
        assert result.chroma is None
        assert result.key is None

    def test_voice_band_tone_not_musical(self, processor):
        result = processor.process(make_frame(sine_wave(500.0), timestamp=0.0))
        assert result.state == AudioState.NOISE_DETECTED

    def test_non_finite_input(self, processor):
        frame = AudioFrame(samples=np.full(4096, np.nan), spectrum_db=np.full(2048, np.nan))
        result = processor.process(replace(frame, timestamp=0.0))

        assert result.state == AudioState.IDLE
        assert result.amplitude_db == -90.0

    def test_empty_frame(self, processor):
        frame = AudioFrame(samples=np.zeros(0), spectrum_db=np.zeros(0), timestamp=0.0)
        result = processor.process(frame)
        assert result.state == AudioState.IDLE

    def test_sample_rate_mismatch_ignored(self, processor):
        result = processor.process(make_frame(sine_wave(220.0), timestamp=0.0, sample_rate=22050))
        assert result.state == AudioState.IDLE
        assert result.harmony_analysis.harmony_type == HarmonyType.NONE


class TestSteadyTone:
    """Repeated identical frames give stable results."""

    def test_stable_melody(self, processor, tone_frame):
        results = run_frames(processor, tone_frame, 20)

        assert all(r.state == AudioState.MUSICAL_INPUT for r in results)
        assert all(r.harmony_analysis.melody_notes == ["A"] for r in results)
        assert all(r.harmony_analysis.harmony_type == HarmonyType.MELODY for r in results)
        assert len(processor.melody_sequence) == 20

    def test_chroma_dominant(self, processor, tone_frame):
        result = run_frames(processor, tone_frame, 1)[0]

        assert result.chroma.dominant_name == "A"
        assert result.chroma.vector.sum() == pytest.approx(1.0)

    def test_stable_key(self, processor, tone_frame):
        results = run_frames(processor, tone_frame, 12)
        keys = {(r.key.key, r.key.mode) for r in results}

        assert len(keys) == 1
        assert results[-1].key.is_override is False
        assert len(processor.key_history) == 5
        assert processor.current_key.key == results[-1].key.key

    def test_result_serializable(self, processor, tone_frame):
        data = run_frames(processor, tone_frame, 1)[0].to_dict()

        assert data["state"] == "musical_input"
        assert data["harmony_analysis"]["melody_notes"] == ["A"]
        assert data["chroma"]["dominant"] == "A"


class TestKeyOverride:
    """Manual key selection bypasses estimation."""

    def test_override_reported(self, processor, tone_frame):
        processor.set_key_override("F#", "minor")
        result = run_frames(processor, tone_frame, 1)[0]

        assert result.key.key == "F#"
        assert result.key.mode == Mode.MINOR
        assert result.key.confidence == 1.0
        assert result.key.is_override is True
        assert processor.key_history == []

    def test_override_accepts_mode_enum(self, processor):
        processor.set_key_override("D", Mode.MAJOR)
        assert processor.key_override == ("D", Mode.MAJOR)

    def test_invalid_override(self, processor):
        with pytest.raises(ValueError):
            processor.set_key_override("H", "major")
        with pytest.raises(ValueError):
            processor.set_key_override("C", "dorian")
        assert processor.key_override is None

    def test_clear_override_restarts_history(self, processor, tone_frame):
        run_frames(processor, tone_frame, 4)
        assert processor.key_history

        processor.set_key_override("C", "major")
        processor.clear_key_override()

        assert processor.key_override is None
        assert processor.key_history == []
        result = run_frames(processor, tone_frame, 1, start=1000.0)[0]
        assert result.key.is_override is False
        assert len(processor.key_history) == 1


class TestSessionControl:
    """Reset, settings and timing."""

    def test_reset(self, processor, tone_frame):
        run_frames(processor, tone_frame, 6)
        processor.reset()

        assert processor.state == AudioState.IDLE
        assert processor.key_history == []
        assert processor.melody_sequence == []
        assert processor.noise_floor_db == -60.0
        assert processor.current_tempo == 120.0

        # Next detection is unsmoothed: history holds a single estimate
        result = run_frames(processor, tone_frame, 1, start=5000.0)[0]
        assert len(processor.key_history) == 1
        assert result.key.name == processor.key_history[0].name
        assert result.key.confidence == processor.key_history[0].confidence

    def test_reset_keeps_override_stop_clears_it(self, processor):
        processor.set_key_override("E", "major")
        processor.reset()
        assert processor.key_override == ("E", Mode.MAJOR)

        processor.stop()
        assert processor.key_override is None

    def test_polyphonic_toggle(self, processor):
        assert processor.polyphonic is False
        processor.set_polyphonic_mode(True)
        assert processor.polyphonic is True

    def test_polyphonic_config(self):
        processor = AudioProcessor(AnalysisConfig(polyphonic=True))
        assert processor.polyphonic is True

    def test_gate_threshold(self, processor):
        assert processor.gate_threshold == -35.0
        assert processor.set_gate_threshold(-80.0) == -65.0
        assert processor.gate_threshold == -65.0

    def test_noise_gate_threshold(self, processor):
        processor.set_noise_gate_threshold(-10.0)
        # -17 dB tone no longer clears the raised floor
        result = processor.process(make_frame(sine_wave(220.0, amplitude=0.2), timestamp=0.0))
        assert result.noise_gate_open is False

    def test_clock_used_without_timestamp(self):
        processor = AudioProcessor(clock=lambda: 1234.0)
        result = processor.process(make_frame(silence()))
        assert result.timestamp == 1234.0

    def test_frame_timestamp_wins(self):
        processor = AudioProcessor(clock=lambda: 1234.0)
        result = processor.process(make_frame(silence(), timestamp=42.0))
        assert result.timestamp == 42.0

    def test_invalid_config(self):
        with pytest.raises(ConfigError):
            AudioProcessor(AnalysisConfig(min_freq=2000.0, max_freq=100.0))

    def test_tick_overrun_logged(self, caplog):
        processor = AudioProcessor(AnalysisConfig(tick_budget_ms=0.0))
        with caplog.at_level(logging.WARNING, logger="keysense.stream.processor"):
            processor.process(make_frame(sine_wave(220.0), timestamp=0.0))

        assert processor.overruns == 1
        assert "budget" in caplog.text

    def test_tick_times(self, processor, tone_frame):
        run_frames(processor, tone_frame, 3)
        assert processor.mean_tick_ms > 0.0
        assert processor.overruns == 0

    def test_tick_times_bounded(self, processor):
        frame = make_frame(silence())
        run_frames(processor, frame, 105)

        assert len(processor.ctx.tick_times_ms) == 100
        processor.reset()
        assert len(processor.ctx.tick_times_ms) == 0
