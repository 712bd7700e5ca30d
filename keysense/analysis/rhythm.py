"""Onset, tempo and beat-phase tracking for a live stream."""

import logging
from collections import deque
from typing import List, Optional

import numpy as np

from ..core.constants import (
    AMPLITUDE_HISTORY_SIZE,
    BEAT_HISTORY_SIZE,
    BEATS_PER_BAR,
    DEFAULT_TEMPO,
    MAX_TEMPO,
    MIN_TEMPO,
    TEMPO_HISTORY_SIZE,
)
from ..core.types import RhythmState

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (120.5 -> 121)."""
    return int(np.floor(value + 0.5))


class RhythmAnalyzer:
    """Detect onsets from the level history and derive tempo and beat phase.

    Meter is fixed at 4/4.
    """

    def __init__(
        self,
        onset_min_rise_db: float = 3.0,
        onset_rise_ratio: float = 1.5,
        beat_threshold: float = 0.6,
        min_beat_gap_ms: float = 200.0,
        on_beat_window_ms: float = 100.0,
        min_beats_for_tempo: int = 4,
    ):
        """
        Initialize RhythmAnalyzer.

        Args:
            onset_min_rise_db: Minimum level rise (dB) for an onset
            onset_rise_ratio: Rise must exceed the previous rise by this factor
            beat_threshold: Onset strength needed to register a beat
            min_beat_gap_ms: Minimum time between registered beats
            on_beat_window_ms: A tick is on-beat within this time after a beat
            min_beats_for_tempo: Beats required before tempo is estimated
        """
        self.onset_min_rise_db = onset_min_rise_db
        self.onset_rise_ratio = onset_rise_ratio
        self.beat_threshold = beat_threshold
        self.min_beat_gap_ms = min_beat_gap_ms
        self.on_beat_window_ms = on_beat_window_ms
        self.min_beats_for_tempo = min_beats_for_tempo

        self.amplitude_history: deque = deque(maxlen=AMPLITUDE_HISTORY_SIZE)
        self.beat_history: deque = deque(maxlen=BEAT_HISTORY_SIZE)
        self.tempo_history: deque = deque(maxlen=TEMPO_HISTORY_SIZE)
        self.last_beat_time: Optional[float] = None

    def update(self, amplitude_db: float, now_ms: float) -> RhythmState:
        """
        Feed one frame level and return the current rhythm snapshot.

        Args:
            amplitude_db: Frame level in dB
            now_ms: Frame time in milliseconds

        Returns:
            RhythmState with tempo, onset strength and beat phase
        """
        self.amplitude_history.append(amplitude_db)
        strength = self.onset_strength()

        if strength > self.beat_threshold and self._beat_gap_elapsed(now_ms):
            self.beat_history.append(now_ms)
            self.last_beat_time = now_ms
            logger.debug(f"Beat at {now_ms:.0f}ms (strength {strength:.2f})")

        tempo = self._estimate_tempo()
        current_beat, is_on_beat = self._beat_phase(now_ms, tempo)

        return RhythmState(
            tempo_bpm=float(np.clip(tempo, MIN_TEMPO, MAX_TEMPO)),
            beat_strength=strength,
            current_beat=current_beat,
            is_on_beat=is_on_beat,
        )

    def onset_strength(self) -> float:
        """
        Onset strength from the last three levels.

        A sudden rise of more than onset_min_rise_db that also outpaces the
        previous rise scores rise / 10, clamped to [0, 1].
        """
        if len(self.amplitude_history) < 3:
            return 0.0

        before_previous, previous, current = list(self.amplitude_history)[-3:]
        increase1 = current - previous
        increase2 = previous - before_previous

        if increase1 > self.onset_min_rise_db and increase1 > increase2 * self.onset_rise_ratio:
            return float(min(1.0, max(0.0, increase1 / 10)))
        return 0.0

    def _beat_gap_elapsed(self, now_ms: float) -> bool:
        if self.last_beat_time is None:
            return True
        return now_ms - self.last_beat_time >= self.min_beat_gap_ms

    def _estimate_tempo(self) -> float:
        """Mean-interval BPM smoothed over the tempo history; default before enough beats."""
        if len(self.beat_history) < self.min_beats_for_tempo:
            return DEFAULT_TEMPO

        intervals = np.diff(np.array(self.beat_history, dtype=np.float64))
        avg_interval = intervals.mean()
        if avg_interval <= 0:
            return DEFAULT_TEMPO

        self.tempo_history.append(round_half_up(60000.0 / avg_interval))
        return float(round_half_up(np.mean(self.tempo_history)))

    def _beat_phase(self, now_ms: float, tempo: float):
        """Beat number within the bar (1-4) and whether we are on the beat."""
        if self.last_beat_time is None:
            return 1, False

        since_last = now_ms - self.last_beat_time
        beat_interval = 60000.0 / tempo
        beat = int(np.floor(since_last / beat_interval)) + 1
        return max(1, min(BEATS_PER_BAR, beat)), since_last < self.on_beat_window_ms

    @property
    def current_tempo(self) -> float:
        """Most recent raw tempo estimate, or the default."""
        if not self.tempo_history:
            return DEFAULT_TEMPO
        return float(self.tempo_history[-1])

    @property
    def beat_times(self) -> List[float]:
        return list(self.beat_history)

    def reset(self) -> None:
        self.amplitude_history.clear()
        self.beat_history.clear()
        self.tempo_history.clear()
        self.last_beat_time = None
