"""Per-tick analysis processor.

Runs the full pipeline synchronously on one frame:

    gate -> pitch candidates -> rhythm -> melody/harmony -> classifier
         -> chroma (musical frames) -> key (estimate or override)

All mutable state lives in one ProcessorState owned by the processor, so
independent sessions need nothing more than independent processors.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from ..analysis.chroma import ChromaAnalyzer
from ..analysis.classifier import ClassifierReport, HarmonicClassifier
from ..analysis.features import FeatureExtractor
from ..analysis.gate import NoiseGate
from ..analysis.pitch import PitchEstimator
from ..analysis.rhythm import RhythmAnalyzer
from ..core.config import AnalysisConfig
from ..core.note import pitch_class_index
from ..core.types import (
    AnalysisResult,
    AudioFrame,
    AudioState,
    ChromaVector,
    HarmonyAnalysis,
    HarmonyType,
    KeyEstimate,
    Mode,
)
from ..inference.harmony import ChordEvent, MelodyEvent, MelodyHarmonySegmenter
from ..inference.key import KeyEstimator

logger = logging.getLogger(__name__)

# Tick durations kept for latency reporting
TICK_TIME_HISTORY = 100


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class ProcessorState:
    """Everything a session mutates from tick to tick."""

    gate: NoiseGate
    rhythm: RhythmAnalyzer
    classifier: HarmonicClassifier
    key_estimator: KeyEstimator
    segmenter: MelodyHarmonySegmenter
    audio_state: AudioState = AudioState.IDLE
    key_override: Optional[Tuple[str, Mode]] = None
    last_key: Optional[KeyEstimate] = None
    last_report: Optional[ClassifierReport] = None
    overruns: int = 0
    tick_times_ms: deque = field(default_factory=lambda: deque(maxlen=TICK_TIME_HISTORY))

    @classmethod
    def create(cls, config: AnalysisConfig) -> "ProcessorState":
        return cls(
            gate=NoiseGate(config),
            rhythm=RhythmAnalyzer(),
            classifier=HarmonicClassifier(config),
            key_estimator=KeyEstimator(min_confidence=config.key_min_confidence),
            segmenter=MelodyHarmonySegmenter(
                polyphonic=config.polyphonic,
                melody_memory_ms=config.melody_memory_ms,
                chord_memory_ms=config.chord_memory_ms,
            ),
        )

    def reset(self) -> None:
        self.gate.reset()
        self.rhythm.reset()
        self.classifier.reset()
        self.key_estimator.reset()
        self.segmenter.reset()
        self.audio_state = AudioState.IDLE
        self.last_key = None
        self.last_report = None
        self.overruns = 0
        self.tick_times_ms.clear()


class AudioProcessor:
    """Stateful single-session analyser: one frame in, one result out.

    Not thread-safe; run one tick at a time per instance.
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        clock: Optional[Callable[[], float]] = None,
        state: Optional[ProcessorState] = None,
    ):
        """
        Initialize AudioProcessor.

        Args:
            config: Session configuration, fixed for the processor's lifetime
            clock: Millisecond clock used when a frame has no timestamp
            state: Pre-built state context (default: fresh state for config)
        """
        self.config = (config or AnalysisConfig()).validate()
        self.clock = clock or _monotonic_ms
        self.features = FeatureExtractor(sr=self.config.sample_rate)
        self.pitch_estimator = PitchEstimator(self.config)
        self.chroma_analyzer = ChromaAnalyzer(self.config)
        self.ctx = state or ProcessorState.create(self.config)

    def process(self, frame: AudioFrame) -> AnalysisResult:
        """
        Analyse one frame.

        Args:
            frame: Samples and dB spectrum for this tick

        Returns:
            AnalysisResult for the tick
        """
        started = time.perf_counter()
        now = frame.timestamp if frame.timestamp is not None else self.clock()

        result = self._run_pipeline(frame, now)

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        self._record_tick_time(elapsed_ms)
        return result

    def _run_pipeline(self, frame: AudioFrame, now: float) -> AnalysisResult:
        ctx = self.ctx

        if frame.sample_rate != self.config.sample_rate:
            logger.warning(
                f"Frame sample rate {frame.sample_rate}Hz differs from session "
                f"rate {self.config.sample_rate}Hz; frame ignored"
            )
            return self._neutral_result(now)

        samples = np.nan_to_num(np.asarray(frame.samples, dtype=np.float64))
        spectrum = np.asarray(frame.spectrum_db, dtype=np.float64)

        amplitude_db = self.features.rms_db(samples)
        gate_open = ctx.gate.update(amplitude_db)

        if not gate_open or frame.is_empty:
            ctx.audio_state = AudioState.IDLE
            return AnalysisResult(
                state=AudioState.IDLE,
                amplitude_db=amplitude_db,
                noise_gate_open=gate_open,
                harmony_analysis=HarmonyAnalysis(),
                key=self._override_estimate(None),
                timestamp=now,
            )

        pitches = self.pitch_estimator.detect(samples, spectrum, now)
        if not pitches:
            ctx.audio_state = AudioState.NOISE_DETECTED
            return AnalysisResult(
                state=AudioState.NOISE_DETECTED,
                amplitude_db=amplitude_db,
                noise_gate_open=True,
                harmony_analysis=HarmonyAnalysis(),
                key=self._override_estimate(None),
                timestamp=now,
            )

        primary = pitches[0]
        rhythm = ctx.rhythm.update(amplitude_db, now)
        harmony = ctx.segmenter.segment(pitches, rhythm, now)

        report = ctx.classifier.classify(samples, spectrum, primary)
        ctx.last_report = report

        chroma: Optional[ChromaVector] = None
        key: Optional[KeyEstimate] = None
        if report.is_musical:
            state = AudioState.MUSICAL_INPUT
            chroma = self.chroma_analyzer.compute(spectrum)
            key = self._estimate_key(chroma)
            logger.debug(
                f"Musical input - melody: [{', '.join(harmony.melody_notes)}], "
                f"chords: [{', '.join(harmony.chord_notes)}], "
                f"tempo: {rhythm.tempo_bpm:.0f} BPM"
            )
        else:
            state = AudioState.NOISE_DETECTED
            key = self._override_estimate(None)

        ctx.audio_state = state
        return AnalysisResult(
            state=state,
            primary_pitch=primary,
            pitches=pitches,
            chroma=chroma,
            key=key,
            amplitude_db=amplitude_db,
            noise_gate_open=True,
            harmony_analysis=harmony,
            timestamp=now,
        )

    def _estimate_key(self, chroma: ChromaVector) -> Optional[KeyEstimate]:
        if self.ctx.key_override is not None:
            return self._override_estimate(chroma)

        estimate = self.ctx.key_estimator.estimate(chroma)
        if estimate is not None:
            self.ctx.last_key = estimate
        return estimate

    def _override_estimate(self, chroma: Optional[ChromaVector]) -> Optional[KeyEstimate]:
        if self.ctx.key_override is None:
            return None
        root, mode = self.ctx.key_override
        return KeyEstimate(
            key=root,
            mode=mode,
            confidence=1.0,
            source_chroma=chroma,
            is_override=True,
        )

    def _neutral_result(self, now: float) -> AnalysisResult:
        self.ctx.audio_state = AudioState.IDLE
        return AnalysisResult(
            state=AudioState.IDLE,
            amplitude_db=self.features.rms_db(np.zeros(0)),
            harmony_analysis=HarmonyAnalysis(harmony_type=HarmonyType.NONE),
            timestamp=now,
        )

    def _record_tick_time(self, elapsed_ms: float) -> None:
        self.ctx.tick_times_ms.append(elapsed_ms)
        if elapsed_ms > self.config.tick_budget_ms:
            self.ctx.overruns += 1
            logger.warning(
                f"Tick took {elapsed_ms:.1f}ms, over the "
                f"{self.config.tick_budget_ms:.0f}ms budget"
            )

    # Session control

    def reset(self) -> None:
        """Clear every history and memory; the key override is kept."""
        logger.debug("Resetting audio processor state")
        self.ctx.reset()

    def stop(self) -> None:
        """End the session: clear all state including the key override."""
        self.ctx.reset()
        self.ctx.key_override = None

    def set_key_override(self, root: str, mode) -> None:
        """
        Force the reported key, bypassing estimation.

        Args:
            root: Pitch-class name (e.g. "F#")
            mode: Mode or "major"/"minor"

        Raises:
            ValueError: On an unknown root or mode
        """
        pitch_class_index(root)
        mode = mode if isinstance(mode, Mode) else Mode(str(mode).lower())
        logger.debug(f"Manual key override: {root} {mode.value}")
        self.ctx.key_override = (root, mode)

    def clear_key_override(self) -> None:
        """Return to automatic detection, starting from an empty key history."""
        if self.ctx.key_override is not None:
            logger.debug("Returning to automatic key detection")
        self.ctx.key_override = None
        self.ctx.key_estimator.reset()
        self.ctx.last_key = None

    def set_polyphonic_mode(self, enabled: bool) -> None:
        self.ctx.segmenter.set_polyphonic(enabled)

    def set_noise_gate_threshold(self, threshold_db: float) -> None:
        self.ctx.gate.set_threshold_min(threshold_db)

    def set_gate_threshold(self, threshold_db: float) -> float:
        return self.ctx.gate.set_gate_threshold(threshold_db)

    # Accessors

    @property
    def key_override(self) -> Optional[Tuple[str, Mode]]:
        return self.ctx.key_override

    @property
    def state(self) -> AudioState:
        return self.ctx.audio_state

    @property
    def noise_floor_db(self) -> float:
        return self.ctx.gate.noise_floor_db

    @property
    def gate_threshold(self) -> float:
        return self.ctx.gate.gate_threshold

    @property
    def polyphonic(self) -> bool:
        return self.ctx.segmenter.polyphonic

    @property
    def current_tempo(self) -> float:
        return self.ctx.rhythm.current_tempo

    @property
    def current_key(self) -> Optional[KeyEstimate]:
        """Override if active, else the last smoothed estimate."""
        return self._override_estimate(None) or self.ctx.last_key

    @property
    def key_history(self) -> List[KeyEstimate]:
        return self.ctx.key_estimator.history

    @property
    def melody_sequence(self) -> List[MelodyEvent]:
        return self.ctx.segmenter.melody_sequence

    @property
    def chord_sequence(self) -> List[ChordEvent]:
        return self.ctx.segmenter.chord_sequence

    @property
    def last_classification(self) -> Optional[ClassifierReport]:
        return self.ctx.last_report

    @property
    def overruns(self) -> int:
        """Ticks that exceeded the latency budget."""
        return self.ctx.overruns

    @property
    def mean_tick_ms(self) -> float:
        times = self.ctx.tick_times_ms
        return float(np.mean(times)) if times else 0.0
