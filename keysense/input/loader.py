"""Audio file loading for offline sessions."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import librosa
import numpy as np
import soundfile as sf

from ..core.constants import DEFAULT_SR


@dataclass
class AudioInfo:
    """Header information of an audio file, read without decoding it."""
    path: Path
    sample_rate: int
    channels: int
    frames: int
    duration: float
    format: str


class AudioLoader:
    """Loads audio files as mono buffers at the session sample rate."""

    SUPPORTED_FORMATS = {".wav", ".mp3", ".flac", ".ogg", ".m4a", ".mp4"}

    def __init__(self, target_sr: int = DEFAULT_SR, normalize: bool = False):
        """
        Initialize AudioLoader.

        Args:
            target_sr: Session sample rate to resample to
            normalize: Peak-normalize audio to [-1, 1] if True
        """
        self.target_sr = target_sr
        self.normalize = normalize

    def _check_path(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")
        if path.suffix.lower() not in self.SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format: {path.suffix}. "
                f"Supported: {sorted(self.SUPPORTED_FORMATS)}"
            )
        return path

    def load(self, path: Union[str, Path]) -> Tuple[np.ndarray, int]:
        """
        Decode a file, mix to mono and resample to target_sr.

        Args:
            path: Path to audio file

        Returns:
            Tuple of (mono float audio, sample rate)

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the format is not supported
        """
        path = self._check_path(path)
        audio, sr = librosa.load(str(path), sr=self.target_sr, mono=True)

        if self.normalize:
            peak = float(np.max(np.abs(audio))) if len(audio) else 0.0
            if peak > 0:
                audio = audio / peak

        return audio, sr

    def probe(self, path: Union[str, Path]) -> AudioInfo:
        """
        Read sample rate, channel count and length from the file header.

        Only formats libsndfile understands can be probed (wav, flac, ogg,
        and mp3 on recent libsndfile builds).

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the format is not supported
        """
        path = self._check_path(path)
        try:
            info = sf.info(str(path))
        except sf.LibsndfileError as e:
            raise ValueError(f"Cannot read header of {path.name}: {e}") from e

        return AudioInfo(
            path=path,
            sample_rate=info.samplerate,
            channels=info.channels,
            frames=info.frames,
            duration=info.duration,
            format=info.format,
        )

    def get_duration(self, audio: np.ndarray, sr: Optional[int] = None) -> float:
        """Get duration in seconds."""
        sr = sr or self.target_sr
        return len(audio) / sr
