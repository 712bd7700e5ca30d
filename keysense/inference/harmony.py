"""Melody/harmony segmentation of per-frame pitch candidates.

Splits the ranked candidates of one tick into a melody line and chord
notes:
- One candidate: melody, with a short debounce against note flicker
- Several candidates forming thirds/fourths/fifths (3+ notes): a chord
- Otherwise: highest note is the melody, the rest accompany it
- Polyphonic mode: every strong candidate is a chord note
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..core.constants import CHORD_SEQUENCE_SIZE, MELODY_SEQUENCE_SIZE
from ..core.note import semitones_between
from ..core.types import HarmonyAnalysis, HarmonyType, PitchCandidate, RhythmState

logger = logging.getLogger(__name__)


@dataclass
class MelodyEvent:
    """A melody note emitted at a point in time."""
    note: str
    time_ms: float


@dataclass
class ChordEvent:
    """A chord note set emitted at a point in time."""
    notes: List[str] = field(default_factory=list)
    time_ms: float = 0.0


def _unique(names: Sequence[str]) -> List[str]:
    """Drop repeated note names, keeping first occurrences in order."""
    result: List[str] = []
    for name in names:
        if name not in result:
            result.append(name)
    return result


class MelodyHarmonySegmenter:
    """Classify ranked pitch candidates into melody and chord notes."""

    # Semitone intervals between neighbouring notes that suggest a chord
    CHORD_INTERVALS = {3, 4, 5, 7}

    # Minimum notes for the interval test to call a chord
    MIN_CHORD_NOTES = 3

    def __init__(
        self,
        polyphonic: bool = False,
        melody_memory_ms: float = 200.0,
        chord_memory_ms: float = 50.0,
        polyphonic_min_confidence: float = 0.05,
    ):
        """
        Initialize MelodyHarmonySegmenter.

        Args:
            polyphonic: Treat all strong candidates as chord notes
            melody_memory_ms: Window in which a changed single note is held back
            chord_memory_ms: Lifetime of the cached polyphonic chord
            polyphonic_min_confidence: Candidate confidence needed in polyphonic mode
        """
        self.polyphonic = polyphonic
        self.melody_memory_ms = melody_memory_ms
        self.chord_memory_ms = chord_memory_ms
        self.polyphonic_min_confidence = polyphonic_min_confidence

        self.last_melody_note: Optional[str] = None
        self.last_melody_time: float = 0.0
        self.last_chord_notes: List[str] = []
        self.last_chord_time: float = 0.0

        self._melody_sequence: deque = deque(maxlen=MELODY_SEQUENCE_SIZE)
        self._chord_sequence: deque = deque(maxlen=CHORD_SEQUENCE_SIZE)

    def set_polyphonic(self, enabled: bool) -> None:
        self.polyphonic = enabled

    def segment(
        self,
        candidates: Sequence[PitchCandidate],
        rhythm: Optional[RhythmState] = None,
        now_ms: float = 0.0,
    ) -> HarmonyAnalysis:
        """
        Segment one tick's candidates.

        Args:
            candidates: Ranked pitch candidates (highest confidence first)
            rhythm: Rhythm snapshot to attach to the result
            now_ms: Tick time in milliseconds

        Returns:
            HarmonyAnalysis for this tick
        """
        rhythm = rhythm or RhythmState()
        notes = [c for c in candidates if c.note_name is not None]

        if self.polyphonic:
            return self._segment_polyphonic(notes, rhythm, now_ms)

        if not notes:
            return HarmonyAnalysis(rhythm=rhythm, harmony_type=HarmonyType.NONE)

        if len(notes) == 1:
            return self._segment_single(notes[0], rhythm, now_ms)

        return self._segment_multiple(notes, rhythm, now_ms)

    def _segment_polyphonic(
        self,
        notes: List[PitchCandidate],
        rhythm: RhythmState,
        now_ms: float,
    ) -> HarmonyAnalysis:
        strong = [c for c in notes if c.confidence > self.polyphonic_min_confidence]
        chord_notes: List[str] = []

        if len(strong) >= 2:
            chord_notes = _unique([c.note_name for c in strong])
            self.last_chord_notes = chord_notes
            self.last_chord_time = now_ms
            logger.debug(f"Polyphonic chord notes: {', '.join(chord_notes)}")
        elif (
            len(self.last_chord_notes) >= 2
            and now_ms - self.last_chord_time < self.chord_memory_ms
        ):
            chord_notes = list(self.last_chord_notes)
            logger.debug(f"Polyphonic chord notes (held): {', '.join(chord_notes)}")

        return HarmonyAnalysis(
            melody_notes=[],
            chord_notes=chord_notes,
            rhythm=rhythm,
            harmony_type=HarmonyType.CHORD,
        )

    def _segment_single(
        self,
        candidate: PitchCandidate,
        rhythm: RhythmState,
        now_ms: float,
    ) -> HarmonyAnalysis:
        detected = candidate.note_name

        if self.last_melody_note is None or self.last_melody_note == detected:
            note = detected
            self.last_melody_note = detected
            self.last_melody_time = now_ms
        elif now_ms - self.last_melody_time < self.melody_memory_ms:
            # Hold the previous note until the change outlasts the window.
            note = self.last_melody_note
        else:
            note = detected
            self.last_melody_note = detected
            self.last_melody_time = now_ms

        self._melody_sequence.append(MelodyEvent(note=note, time_ms=now_ms))

        return HarmonyAnalysis(
            melody_notes=[note],
            chord_notes=[],
            rhythm=rhythm,
            harmony_type=HarmonyType.MELODY,
        )

    def _segment_multiple(
        self,
        notes: List[PitchCandidate],
        rhythm: RhythmState,
        now_ms: float,
    ) -> HarmonyAnalysis:
        by_pitch = sorted(notes, key=lambda c: c.frequency)
        intervals = [
            semitones_between(low.frequency, high.frequency)
            for low, high in zip(by_pitch, by_pitch[1:])
        ]
        has_chord_intervals = any(i in self.CHORD_INTERVALS for i in intervals)

        if has_chord_intervals and len(by_pitch) >= self.MIN_CHORD_NOTES:
            chord_notes = _unique([c.note_name for c in by_pitch])
            self._chord_sequence.append(ChordEvent(notes=chord_notes, time_ms=now_ms))
            logger.debug(
                "Chord notes: "
                + ", ".join(f"{c.note_name} ({c.frequency:.2f} Hz)" for c in by_pitch)
            )
            return HarmonyAnalysis(
                melody_notes=[],
                chord_notes=chord_notes,
                rhythm=rhythm,
                harmony_type=HarmonyType.CHORD,
            )

        melody = by_pitch[-1]
        accompaniment = _unique([c.note_name for c in by_pitch[:-1]])
        logger.debug(
            f"Melody {melody.note_name} over {', '.join(accompaniment)}"
        )
        return HarmonyAnalysis(
            melody_notes=[melody.note_name],
            chord_notes=accompaniment,
            rhythm=rhythm,
            harmony_type=HarmonyType.BOTH,
        )

    @property
    def melody_sequence(self) -> List[MelodyEvent]:
        return list(self._melody_sequence)

    @property
    def chord_sequence(self) -> List[ChordEvent]:
        return list(self._chord_sequence)

    def reset(self) -> None:
        self.last_melody_note = None
        self.last_melody_time = 0.0
        self.last_chord_notes = []
        self.last_chord_time = 0.0
        self._melody_sequence.clear()
        self._chord_sequence.clear()
