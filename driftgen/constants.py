"""Constants for driftgen.

Velocity is the MIDI attack strength (0-127). Pitches are MIDI note numbers,
with ``0`` reserved as the rest sentinel, so a sounding pitch is 1-127.
"""

# Primary defaults
DEFAULT_VELOCITY = 100          # Note-on and note-off for every voice

# MIDI standard ranges
MIN_VELOCITY = 0
MAX_VELOCITY = 127
MIN_PITCH = 1
MAX_PITCH = 127
MIDI_CHANNELS = 16

# Pitch 0 never sounds.
REST_PITCH = 0

PITCH_CLASSES = 12

# Largest pitch jitter applied by a single mutation, in semitones.
MAX_PITCH_JITTER = 6

# Seconds to wait after shutdown is requested so in-flight note-offs can flush.
DEFAULT_GRACE_PERIOD = 1.0

# Base time unit of the built-in voice profiles, in seconds.
BASE_DURATION = 1.0
