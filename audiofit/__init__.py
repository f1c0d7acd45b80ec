"""
audiofit - Adaptive audio size-fitting transcoder

Re-encodes arbitrary media to a target audio codec, searching for the
highest bitrate whose output still fits under an upload size ceiling.
"""

__version__ = "1.0.0"

from .errors import AudioFitError, IoError, OutputPathBusy, TranscodeFailure, UploadError, UploadTooLarge
from .models import (
    AudioCodec,
    EncodeAttempt,
    FitConfig,
    ProcessingResult,
    TerminationReason,
)
from .materializer import TemporaryInputMaterializer
from .controller import BitrateSearchController

__all__ = [
    "__version__",
    # Errors
    "AudioFitError",
    "IoError",
    "OutputPathBusy",
    "TranscodeFailure",
    "UploadError",
    "UploadTooLarge",
    # Models
    "AudioCodec",
    "EncodeAttempt",
    "FitConfig",
    "ProcessingResult",
    "TerminationReason",
    # Core
    "TemporaryInputMaterializer",
    "BitrateSearchController",
]
