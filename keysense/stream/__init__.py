"""Streaming layer: per-tick processor, frame sources and result sinks."""

from .interfaces import AnalysisSink, CollectingSink, FrameSource
from .processor import AudioProcessor, ProcessorState
from .session import run_session
from .sources import ArrayFrameSource, FileFrameSource

__all__ = [
    "AudioProcessor",
    "ProcessorState",
    "FrameSource",
    "AnalysisSink",
    "CollectingSink",
    "ArrayFrameSource",
    "FileFrameSource",
    "run_session",
]
