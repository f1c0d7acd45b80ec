"""
FFmpeg error classification for audio encodes.

Turns raw FFmpeg stderr into a category and a short description so a
TranscodeFailure can carry a message worth showing upstream:
- input: the source cannot be read or holds no usable audio
- encoder: the requested encoder/muxer is missing or rejected the settings
- resource: the machine ran out of something (disk, memory, descriptors)
- fatal: anything else FFmpeg reported as unrecoverable
"""

from dataclasses import dataclass
from typing import List, Tuple, Optional


@dataclass
class FFmpegError:
    """A known FFmpeg failure signature."""
    pattern: str
    category: str  # 'input', 'encoder', 'resource', 'fatal'
    description: str


FFMPEG_ERROR_MAP: List[FFmpegError] = [
    # === Input problems ===
    FFmpegError("output file #0 does not contain any stream", "input", "Input has no audio stream"),
    FFmpegError("does not contain any stream", "input", "Input has no audio stream"),
    FFmpegError("stream map '0:a:0' matches no streams", "input", "Input has no audio stream"),
    FFmpegError("matches no streams", "input", "Input has no audio stream"),
    FFmpegError("moov atom not found", "input", "Input file is truncated or not a valid MP4"),
    FFmpegError("invalid data found when processing input", "input", "Input is not a recognised media file"),
    FFmpegError("no such file", "input", "Input file not found"),
    FFmpegError("end of file", "input", "Unexpected end of input"),

    # === Encoder / muxer problems ===
    FFmpegError("unknown encoder", "encoder", "Audio encoder not available in this FFmpeg build"),
    FFmpegError("encoder not found", "encoder", "Audio encoder not available in this FFmpeg build"),
    FFmpegError("codec not found", "encoder", "Codec not available in this FFmpeg build"),
    FFmpegError("error while opening encoder", "encoder", "Encoder rejected the requested settings"),
    FFmpegError("invalid bit rate", "encoder", "Encoder rejected the requested bitrate"),
    FFmpegError("requested output format", "encoder", "Output container not supported"),
    FFmpegError("could not write header", "encoder", "Output container could not be written"),

    # === Resource problems ===
    FFmpegError("no space left", "resource", "No disk space left"),
    FFmpegError("disk quota", "resource", "Disk quota exceeded"),
    FFmpegError("out of memory", "resource", "Out of memory"),
    FFmpegError("cannot allocate", "resource", "Memory allocation failed"),
    FFmpegError("too many open files", "resource", "File descriptor limit reached"),

    # === Everything else worth naming ===
    FFmpegError("permission denied", "fatal", "Permission denied"),
    FFmpegError("invalid argument", "fatal", "Invalid argument"),
    FFmpegError("conversion failed", "fatal", "Conversion failed"),
]


class ErrorClassifier:
    """Classifies FFmpeg stderr for audio encode failures."""

    def __init__(self, error_map: Optional[List[FFmpegError]] = None):
        self.error_map = error_map or FFMPEG_ERROR_MAP

    def match(self, stderr: str) -> Optional[FFmpegError]:
        """First known pattern found in stderr (case-insensitive)."""
        haystack = stderr.lower()
        return next((e for e in self.error_map if e.pattern in haystack), None)

    def classify(self, stderr: str) -> Tuple[Optional[FFmpegError], str]:
        """Return (matched_error, category); category is 'unknown' without a match."""
        matched = self.match(stderr)
        return matched, matched.category if matched else "unknown"

    def summarize(self, return_code: int, stderr: str, tail_chars: int = 500) -> str:
        """
        Build a one-line failure message from an FFmpeg exit.

        The description comes first, followed by the tail of stderr so the
        original FFmpeg wording is preserved.
        """
        matched = self.match(stderr)
        description = matched.description if matched else "Unknown error"
        tail = " ".join(stderr.strip().split())[-tail_chars:]
        if not tail:
            return f"{description} (ffmpeg exit {return_code})"
        return f"{description} (ffmpeg exit {return_code}): {tail}"


_classifier: Optional[ErrorClassifier] = None


def get_error_classifier() -> ErrorClassifier:
    """Shared default classifier."""
    global _classifier
    if _classifier is None:
        _classifier = ErrorClassifier()
    return _classifier
