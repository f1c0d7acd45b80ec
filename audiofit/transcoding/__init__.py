"""
Transcoding package for audiofit.
FFmpeg-backed audio encodes plus the bridge for listener-style encoders.
"""

from .constants import (
    AUDIO_CODEC_MAP,
    DEFAULT_FLOOR_BITRATE_BPS,
    DEFAULT_INITIAL_BITRATE_BPS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_SIZE_BYTES,
    MIN_BITRATE_STEP_BPS,
)
from .error_classifier import ErrorClassifier, FFmpegError, get_error_classifier
from .encoders import EncoderSelector
from .commands import CommandBuilder
from .engine import EngineConfig, FFmpegEngine, TranscodingEngine, find_ffmpeg
from .adapter import EncodeHandle, EncodeListener, ListenerEncoder, ListenerEngineAdapter

__all__ = [
    # Constants
    "AUDIO_CODEC_MAP",
    "DEFAULT_FLOOR_BITRATE_BPS",
    "DEFAULT_INITIAL_BITRATE_BPS",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_MAX_SIZE_BYTES",
    "MIN_BITRATE_STEP_BPS",
    # Classes
    "ErrorClassifier",
    "FFmpegError",
    "get_error_classifier",
    "EncoderSelector",
    "CommandBuilder",
    "EngineConfig",
    "FFmpegEngine",
    "TranscodingEngine",
    "find_ffmpeg",
    # Listener bridge
    "EncodeHandle",
    "EncodeListener",
    "ListenerEncoder",
    "ListenerEngineAdapter",
]
