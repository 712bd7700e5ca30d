"""Key estimation - Krumhansl-Schmuckler correlation with history smoothing.

Each accepted chroma frame is scored against the 24 major/minor key
profiles. Estimates go into a short FIFO history; once it holds three or
more entries the reported key is the majority vote over the history.
"""

import logging
from collections import Counter, deque
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ..core.constants import KEY_HISTORY_SIZE, PITCH_NAMES
from ..core.types import ChromaVector, KeyEstimate, Mode

logger = logging.getLogger(__name__)


@dataclass
class KeyCandidate:
    """A candidate key with its score."""
    root: str
    mode: Mode
    correlation: float

    @property
    def name(self) -> str:
        return f"{self.root} {self.mode.value}"


class KeyEstimator:
    """Estimate the musical key from a stream of chroma vectors."""

    # Krumhansl-Schmuckler key profiles (cognitive-based)
    KRUMHANSL_MAJOR = np.array(
        [6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88]
    )
    KRUMHANSL_MINOR = np.array(
        [6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17]
    )

    PROFILES = {
        Mode.MAJOR: KRUMHANSL_MAJOR,
        Mode.MINOR: KRUMHANSL_MINOR,
    }

    # Chroma vectors summing to less than this carry no usable information
    MIN_CHROMA_SUM = 0.01

    # History length below which the latest estimate is returned directly
    FAST_START_SIZE = 3

    def __init__(
        self,
        history_size: int = KEY_HISTORY_SIZE,
        min_confidence: float = 0.05,
    ):
        """
        Initialize KeyEstimator.

        Args:
            history_size: Capacity of the estimate history
            min_confidence: Estimates below this confidence are discarded
        """
        self.history_size = history_size
        self.min_confidence = min_confidence
        self._history: deque = deque(maxlen=history_size)

    def estimate(self, chroma: Optional[ChromaVector]) -> Optional[KeyEstimate]:
        """
        Score a chroma frame, record it and return the smoothed key.

        Args:
            chroma: Normalized chroma vector

        Returns:
            Smoothed KeyEstimate, or None when the frame is rejected and
            nothing has been estimated yet
        """
        if chroma is None or len(chroma.vector) != 12:
            return None

        chroma_sum = float(np.sum(chroma.vector))
        if chroma_sum < self.MIN_CHROMA_SUM:
            logger.debug(f"Chroma sum too low: {chroma_sum:.4f}")
            return None

        best = self.best_candidate(chroma.vector)
        confidence = self.normalize_score(best.correlation)

        if confidence < self.min_confidence:
            logger.debug(f"Key confidence too low: {confidence:.3f}")
            return None

        self._history.append(KeyEstimate(
            key=best.root,
            mode=best.mode,
            confidence=confidence,
            source_chroma=chroma,
        ))
        return self.smoothed()

    def score(self, chroma: np.ndarray, root: int, mode: Mode) -> float:
        """
        Pearson correlation between the chroma rotated to `root` and a profile.

        Returns 0.0 when either side has zero variance.
        """
        rotated = np.roll(np.asarray(chroma, dtype=np.float64), -root)
        profile = self.PROFILES[mode]

        chroma_dev = rotated - rotated.mean()
        profile_dev = profile - profile.mean()

        chroma_norm = np.sqrt(np.sum(chroma_dev ** 2))
        profile_norm = np.sqrt(np.sum(profile_dev ** 2))
        if chroma_norm < 1e-12 or profile_norm < 1e-12:
            return 0.0

        corr = float(np.sum(chroma_dev * profile_dev) / (chroma_norm * profile_norm))
        if np.isnan(corr):
            return 0.0
        return corr

    def rank(self, chroma: np.ndarray) -> List[KeyCandidate]:
        """All 24 key candidates, best first."""
        candidates = [
            KeyCandidate(PITCH_NAMES[root], mode, self.score(chroma, root, mode))
            for root in range(12)
            for mode in (Mode.MAJOR, Mode.MINOR)
        ]
        # Stable sort keeps the first-found key on ties.
        candidates.sort(key=lambda c: c.correlation, reverse=True)
        return candidates

    def best_candidate(self, chroma: np.ndarray) -> KeyCandidate:
        return self.rank(chroma)[0]

    @staticmethod
    def normalize_score(correlation: float) -> float:
        """Map a correlation in [-1, 1] to a confidence in [0, 1]."""
        return max(0.0, min(1.0, (correlation + 1) / 2))

    def smoothed(self) -> Optional[KeyEstimate]:
        """
        Current key from the history.

        Fewer than three entries: the latest estimate, unsmoothed.
        Otherwise: the most frequent (root, mode) with confidence
        min(1, votes / history_size * latest confidence).
        """
        if not self._history:
            return None

        latest = self._history[-1]
        if len(self._history) < self.FAST_START_SIZE:
            return latest

        votes = Counter((e.key, e.mode) for e in self._history)
        (key, mode), count = self._most_common(votes)

        confidence = min(1.0, (count / self.history_size) * latest.confidence)
        logger.debug(f"Key vote: {key} {mode.value} ({count}/{len(self._history)})")

        return KeyEstimate(
            key=key,
            mode=mode,
            confidence=confidence,
            source_chroma=latest.source_chroma,
        )

    def _most_common(self, votes: Counter) -> Tuple[Tuple[str, Mode], int]:
        # Counter preserves insertion order, so ties go to the oldest key.
        best_key, best_count = None, 0
        for key_mode, count in votes.items():
            if count > best_count:
                best_key, best_count = key_mode, count
        return best_key, best_count

    @property
    def history(self) -> List[KeyEstimate]:
        return list(self._history)

    def reset(self) -> None:
        self._history.clear()
