"""Adaptive noise gate."""

import logging
from typing import Optional

from ..core.config import AnalysisConfig
from ..core.types import NoiseGateState

logger = logging.getLogger(__name__)


class NoiseGate:
    """Opens when a frame rises a margin above the tracked ambient floor.

    The floor is an exponential moving average of the frame level and is
    updated on every tick, open or closed.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        config = config or AnalysisConfig()
        self.alpha = config.noise_floor_alpha
        self.margin = config.gate_margin
        self.threshold_min = config.threshold_min
        self.threshold_max = config.threshold_max
        self.initial_floor = config.initial_noise_floor
        self.gate_threshold = max(self.threshold_min, min(self.threshold_max, -35.0))
        self.state = NoiseGateState(noise_floor_db=self.initial_floor)

    @property
    def noise_floor_db(self) -> float:
        return self.state.noise_floor_db

    @property
    def is_open(self) -> bool:
        return self.state.is_open

    @property
    def open_threshold(self) -> float:
        """Level a frame must exceed to open the gate right now."""
        return max(self.state.noise_floor_db + self.margin, self.threshold_min)

    def update(self, amplitude_db: float) -> bool:
        """
        Track the floor and decide whether this frame passes.

        Args:
            amplitude_db: Frame level in dB

        Returns:
            True if the gate is open for this frame
        """
        floor = self.state.noise_floor_db
        self.state.noise_floor_db = floor * (1 - self.alpha) + amplitude_db * self.alpha
        # The open test uses the freshly updated floor.
        self.state.is_open = bool(amplitude_db > self.open_threshold)
        return self.state.is_open

    def set_threshold_min(self, threshold_db: float) -> None:
        """Change the absolute floor of the open threshold."""
        logger.debug(f"Noise gate minimum threshold set to {threshold_db:.1f} dB")
        self.threshold_min = threshold_db

    def set_gate_threshold(self, threshold_db: float) -> float:
        """Store a host-facing gate threshold clamped to [threshold_min, threshold_max]."""
        self.gate_threshold = max(self.threshold_min, min(self.threshold_max, threshold_db))
        return self.gate_threshold

    def reset(self) -> None:
        self.state = NoiseGateState(noise_floor_db=self.initial_floor)
