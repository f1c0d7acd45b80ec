"""
Data models for audiofit
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .transcoding.constants import (
    AUDIO_CODEC_MAP,
    DEFAULT_FLOOR_BITRATE_BPS,
    DEFAULT_INITIAL_BITRATE_BPS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_SIZE_BYTES,
)


class AudioCodec(str, Enum):
    AAC = "aac"
    OPUS = "opus"
    MP3 = "mp3"

    @property
    def encoder(self) -> str:
        return AUDIO_CODEC_MAP[self.value][0]

    @property
    def muxer(self) -> str:
        return AUDIO_CODEC_MAP[self.value][1]

    @property
    def extension(self) -> str:
        return AUDIO_CODEC_MAP[self.value][2]


class TerminationReason(str, Enum):
    """Why a fitting run stopped."""
    SIZE_SATISFIED = "size_satisfied"
    FLOOR_ACCEPTED = "floor_accepted"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    FAILED = "failed"


class FitConfig(BaseModel):
    """Parameters of one fitting run."""
    codec: AudioCodec = AudioCodec.AAC
    initial_bitrate_bps: int = Field(default=DEFAULT_INITIAL_BITRATE_BPS, ge=1)
    floor_bitrate_bps: int = Field(default=DEFAULT_FLOOR_BITRATE_BPS, ge=1)
    max_size_bytes: int = Field(default=DEFAULT_MAX_SIZE_BYTES, ge=1)
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    # Subtracted from max_size_bytes when estimating the next bitrate only
    size_overhead_bytes: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_bitrates(self) -> "FitConfig":
        if self.initial_bitrate_bps < self.floor_bitrate_bps:
            raise ValueError(
                f"initial_bitrate_bps ({self.initial_bitrate_bps}) must not be "
                f"below floor_bitrate_bps ({self.floor_bitrate_bps})"
            )
        if self.size_overhead_bytes >= self.max_size_bytes:
            raise ValueError("size_overhead_bytes must be smaller than max_size_bytes")
        return self


@dataclass
class EncodeAttempt:
    """One encode-and-measure cycle within a run."""
    attempt_number: int
    requested_bitrate_bps: int
    resulting_size_bytes: Optional[int] = None


@dataclass(frozen=True)
class ProcessingResult:
    """
    Outcome of a successful fitting run.

    The caller owns processed_file and must delete it after use.
    """
    processed_file: Path
    original_file_size_bytes: int
    processed_file_size_bytes: int
    original_file_name: Optional[str] = None
    final_bitrate_bps: int = 0
    termination: TerminationReason = TerminationReason.SIZE_SATISFIED
    attempts: List[EncodeAttempt] = field(default_factory=list)

    def within_ceiling(self, max_size_bytes: int) -> bool:
        return self.processed_file_size_bytes <= max_size_bytes

    def to_dict(self) -> dict:
        return {
            "processed_file": str(self.processed_file),
            "original_file_size_bytes": self.original_file_size_bytes,
            "processed_file_size_bytes": self.processed_file_size_bytes,
            "original_file_name": self.original_file_name,
            "final_bitrate_bps": self.final_bitrate_bps,
            "termination": self.termination.value,
            "attempts": [
                {
                    "attempt_number": a.attempt_number,
                    "requested_bitrate_bps": a.requested_bitrate_bps,
                    "resulting_size_bytes": a.resulting_size_bytes,
                }
                for a in self.attempts
            ],
        }
