"""Narrow host-facing interfaces: where frames come from, where results go."""

from typing import List, Optional, Protocol, runtime_checkable

from ..core.types import AnalysisResult, AudioFrame


@runtime_checkable
class FrameSource(Protocol):
    """Pull-based frame provider."""

    def read(self) -> Optional[AudioFrame]:
        """Return the next frame, or None when the stream has ended."""
        ...


@runtime_checkable
class AnalysisSink(Protocol):
    """Push-based consumer of per-tick results."""

    def emit(self, result: AnalysisResult) -> None:
        ...


class CollectingSink:
    """Keeps every result in memory (tests, offline summaries)."""

    def __init__(self):
        self.results: List[AnalysisResult] = []

    def emit(self, result: AnalysisResult) -> None:
        self.results.append(result)

    def __len__(self) -> int:
        return len(self.results)
