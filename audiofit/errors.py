"""
Error taxonomy for audiofit.

Reaching the floor bitrate while still above the size ceiling is not an
error: callers compare ProcessingResult.processed_file_size_bytes with
their own ceiling (see ProcessingResult.within_ceiling).
"""

from typing import Optional


class AudioFitError(Exception):
    """Base class for all audiofit errors."""


class IoError(AudioFitError):
    """Materialization or filesystem failure (open, copy, delete)."""


class OutputPathBusy(AudioFitError):
    """Another in-flight run already owns the requested output path."""

    def __init__(self, output_path: str):
        super().__init__(f"Output path already in use by another run: {output_path}")
        self.output_path = output_path


class TranscodeFailure(AudioFitError):
    """The transcoding engine reported an error for an attempt."""

    def __init__(self, engine_message: str, bitrate_bps: Optional[int] = None):
        message = f"Transcode failed: {engine_message}"
        if bitrate_bps is not None:
            message = f"Transcode failed at {bitrate_bps} bps: {engine_message}"
        super().__init__(message)
        self.engine_message = engine_message
        self.bitrate_bps = bitrate_bps


class UploadError(AudioFitError):
    """The upload client could not deliver the processed file."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UploadTooLarge(UploadError):
    """The processed file is larger than the upload ceiling."""

    def __init__(self, size_bytes: int, max_size_bytes: int):
        super().__init__(
            f"File is {size_bytes} bytes, larger than the {max_size_bytes} byte upload limit"
        )
        self.size_bytes = size_bytes
        self.max_size_bytes = max_size_bytes
