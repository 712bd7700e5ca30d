"""Frame sources backed by in-memory buffers and audio files."""

from pathlib import Path
from typing import Iterator, Optional, Union

import numpy as np

from ..core.config import AnalysisConfig
from ..core.types import AudioFrame
from ..input.loader import AudioLoader

# Frame cadence of a display-refresh driven host
DEFAULT_TICK_RATE = 60


class ArrayFrameSource:
    """Slice a mono buffer into overlapping analysis frames.

    Each frame carries fft_size samples, the matching dB spectrum and the
    time (ms) of its last sample, so debounce windows behave as they would
    on a live feed ticking every hop_length samples.
    """

    def __init__(
        self,
        audio: np.ndarray,
        config: Optional[AnalysisConfig] = None,
        hop_length: Optional[int] = None,
    ):
        """
        Initialize ArrayFrameSource.

        Args:
            audio: Mono audio at config.sample_rate
            config: Session configuration (sample rate, FFT size)
            hop_length: Samples between frames (default: one 60 Hz tick)
        """
        self.config = config or AnalysisConfig()
        self.audio = np.asarray(audio, dtype=np.float64)
        if self.audio.ndim != 1:
            raise ValueError(f"Expected mono audio, got shape {self.audio.shape}")
        self.frame_size = self.config.fft_size
        self.hop_length = hop_length or max(1, round(self.config.sample_rate / DEFAULT_TICK_RATE))
        if self.hop_length <= 0:
            raise ValueError(f"hop_length must be positive, got {self.hop_length}")
        self._position = 0
        self._exhausted = False

    @property
    def n_frames(self) -> int:
        if len(self.audio) <= self.frame_size:
            return 1 if len(self.audio) else 0
        return 1 + (len(self.audio) - self.frame_size) // self.hop_length

    def read(self) -> Optional[AudioFrame]:
        if self._exhausted or len(self.audio) == 0:
            return None

        start = self._position
        samples = self.audio[start:start + self.frame_size]
        if len(samples) < self.frame_size:
            if start > 0:
                self._exhausted = True
                return None
            samples = np.pad(samples, (0, self.frame_size - len(samples)))
            self._exhausted = True

        self._position += self.hop_length
        end_ms = (start + self.frame_size) / self.config.sample_rate * 1000.0

        return AudioFrame.from_samples(
            samples,
            sample_rate=self.config.sample_rate,
            fft_size=self.config.fft_size,
            timestamp=end_ms,
        )

    def __iter__(self) -> Iterator[AudioFrame]:
        while True:
            frame = self.read()
            if frame is None:
                return
            yield frame


class FileFrameSource(ArrayFrameSource):
    """Frames from an audio file, resampled to the session rate."""

    def __init__(
        self,
        path: Union[str, Path],
        config: Optional[AnalysisConfig] = None,
        hop_length: Optional[int] = None,
        normalize: bool = False,
    ):
        """
        Initialize FileFrameSource.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the format is not supported
        """
        config = config or AnalysisConfig()
        loader = AudioLoader(target_sr=config.sample_rate, normalize=normalize)
        audio, _ = loader.load(str(path))
        self.path = Path(path)
        self.duration = loader.get_duration(audio, config.sample_rate)
        super().__init__(audio, config=config, hop_length=hop_length)
