"""
Constants and defaults for audio size fitting.
"""

from typing import Dict, Tuple

# Upload ceiling of the transcription API (25 MiB)
DEFAULT_MAX_SIZE_BYTES = 25 * 1024 * 1024

# Bitrate search defaults (bits per second)
DEFAULT_INITIAL_BITRATE_BPS = 32000
DEFAULT_FLOOR_BITRATE_BPS = 16000
DEFAULT_MAX_ATTEMPTS = 10

# Each retry lowers the bitrate by at least this much
MIN_BITRATE_STEP_BPS = 1000

# codec -> (ffmpeg encoder, container muxer, file extension)
AUDIO_CODEC_MAP: Dict[str, Tuple[str, str, str]] = {
    "aac": ("aac", "ipod", ".m4a"),
    "opus": ("libopus", "ogg", ".ogg"),
    "mp3": ("libmp3lame", "mp3", ".mp3"),
}

# Stall detection for the FFmpeg engine
MIN_STALL_TIMEOUT = 30  # seconds
DEFAULT_STALL_TIMEOUT = 120  # seconds

# Keep at most this many stderr lines per encode
STDERR_TAIL_LINES = 100

# Read size for copying input streams
COPY_CHUNK_SIZE = 64 * 1024


def codec_key(codec) -> str:
    """Normalize a codec enum member or string to its AUDIO_CODEC_MAP key."""
    return str(getattr(codec, "value", codec)).lower()
