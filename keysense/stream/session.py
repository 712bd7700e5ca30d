"""Drive a processor from a frame source into a sink."""

import logging
from typing import Optional

from .interfaces import AnalysisSink, FrameSource
from .processor import AudioProcessor

logger = logging.getLogger(__name__)


def run_session(
    source: FrameSource,
    processor: AudioProcessor,
    sink: AnalysisSink,
    max_frames: Optional[int] = None,
) -> int:
    """
    Pull frames until the source ends, emitting one result per frame.

    Args:
        source: Frame provider; read() returning None ends the session
        processor: Analyser for this session
        sink: Receives every AnalysisResult in order
        max_frames: Stop after this many frames (default: no limit)

    Returns:
        Number of frames processed
    """
    count = 0
    while max_frames is None or count < max_frames:
        frame = source.read()
        if frame is None:
            break
        sink.emit(processor.process(frame))
        count += 1

    logger.debug(
        f"Session processed {count} frames "
        f"({processor.overruns} over budget, mean {processor.mean_tick_ms:.2f}ms)"
    )
    return count
