"""Global constants for keysense."""

# Pitch names
PITCH_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Audio processing defaults
DEFAULT_SR = 44100
DEFAULT_N_FFT = 4096

# Level floors (dB)
SILENCE_DB = -90.0
SPECTRUM_FLOOR_DB = -160.0

# Musical defaults
DEFAULT_TEMPO = 120.0
MIN_TEMPO = 60.0
MAX_TEMPO = 200.0
DEFAULT_TIME_SIGNATURE = (4, 4)
BEATS_PER_BAR = 4

# Bounded history capacities
PITCH_HISTORY_SIZE = 12
HARMONIC_HISTORY_SIZE = 6
STABILITY_HISTORY_SIZE = 8
AMPLITUDE_HISTORY_SIZE = 100
BEAT_HISTORY_SIZE = 8
TEMPO_HISTORY_SIZE = 5
KEY_HISTORY_SIZE = 5
MELODY_SEQUENCE_SIZE = 20
CHORD_SEQUENCE_SIZE = 10

# Candidate list limits
MAX_SPECTRAL_PEAKS = 8
MAX_PITCH_CANDIDATES = 6

# Reference tuning
A4_FREQ = 440.0
A4_MIDI = 69
