"""keysense - Live musical key, harmony and rhythm analysis.

Architecture Layers:
    1. core/      - Types, constants, note helpers, configuration
    2. input/     - Audio file loading
    3. analysis/  - Per-frame signal analysis (gate, pitch, classifier, chroma, rhythm)
    4. inference/ - Musical understanding (key estimation, melody/harmony split)
    5. stream/    - Per-tick processor, frame sources and result sinks
"""

__version__ = "0.1.0"

# Core types
from .core import (
    AnalysisConfig,
    AnalysisResult,
    AudioFrame,
    AudioState,
    ConfigError,
    HarmonyType,
    KeyEstimate,
    Mode,
)

# Input layer
from .input import AudioLoader

# Analysis layer
from .analysis import (
    ChromaAnalyzer,
    FeatureExtractor,
    HarmonicClassifier,
    NoiseGate,
    PitchEstimator,
    RhythmAnalyzer,
)

# Inference layer
from .inference import KeyEstimator, MelodyHarmonySegmenter

# Streaming layer
from .stream import (
    ArrayFrameSource,
    AudioProcessor,
    CollectingSink,
    FileFrameSource,
    run_session,
)

__all__ = [
    # Core
    "AnalysisConfig",
    "AnalysisResult",
    "AudioFrame",
    "AudioState",
    "ConfigError",
    "HarmonyType",
    "KeyEstimate",
    "Mode",
    # Input
    "AudioLoader",
    # Analysis
    "ChromaAnalyzer",
    "FeatureExtractor",
    "HarmonicClassifier",
    "NoiseGate",
    "PitchEstimator",
    "RhythmAnalyzer",
    # Inference
    "KeyEstimator",
    "MelodyHarmonySegmenter",
    # Streaming
    "ArrayFrameSource",
    "AudioProcessor",
    "CollectingSink",
    "FileFrameSource",
    "run_session",
]
