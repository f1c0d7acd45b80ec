"""
Configuration management for audiofit

Values come from, in increasing priority: built-in defaults, a YAML file
found in the standard locations, and AUDIOFIT_* environment variables
(nested with a double underscore, e.g. AUDIOFIT_FIT__MAX_SIZE_BYTES).
"""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import AudioCodec, FitConfig
from .transcoding.constants import (
    DEFAULT_FLOOR_BITRATE_BPS,
    DEFAULT_INITIAL_BITRATE_BPS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_SIZE_BYTES,
    DEFAULT_STALL_TIMEOUT,
)
from .transcoding.engine import EngineConfig


class FitSection(BaseModel):
    codec: AudioCodec = AudioCodec.AAC
    initial_bitrate_bps: int = DEFAULT_INITIAL_BITRATE_BPS
    floor_bitrate_bps: int = DEFAULT_FLOOR_BITRATE_BPS
    max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    size_overhead_bytes: int = 0  # Deducted when estimating the next bitrate

    def to_fit_config(self) -> FitConfig:
        return FitConfig(**self.model_dump())


class EngineSection(BaseModel):
    ffmpeg_path: str = "auto"
    stall_timeout: int = DEFAULT_STALL_TIMEOUT  # Seconds without progress before FFmpeg is killed
    channels: Optional[int] = None  # e.g. 1 to downmix to mono
    sample_rate: Optional[int] = None
    extra_args: List[str] = Field(default_factory=list)

    def to_engine_config(self, codec: AudioCodec) -> EngineConfig:
        return EngineConfig(
            codec=codec.value,
            ffmpeg_path=self.ffmpeg_path,
            stall_timeout=self.stall_timeout,
            channels=self.channels,
            sample_rate=self.sample_rate,
            extra_args=list(self.extra_args),
        )


class StorageSection(BaseModel):
    work_directory: str = "./audiofit_work"
    cache_directory: Optional[str] = None  # Defaults to <work_directory>/cache
    history_file: Optional[str] = None  # Defaults to <work_directory>/history.jsonl

    @property
    def work_path(self) -> Path:
        return Path(self.work_directory)

    @property
    def cache_path(self) -> Path:
        if self.cache_directory:
            return Path(self.cache_directory)
        return self.work_path / "cache"

    @property
    def history_path(self) -> Path:
        if self.history_file:
            return Path(self.history_file)
        return self.work_path / "history.jsonl"


class UploadSection(BaseModel):
    base_url: str = "https://api.openai.com/v1"
    model: str = "whisper-1"
    api_key: Optional[str] = None  # Falls back to OPENAI_API_KEY
    language: Optional[str] = None
    prompt: Optional[str] = None
    timeout: float = 300.0

    def resolve_api_key(self) -> Optional[str]:
        return self.api_key or os.getenv("OPENAI_API_KEY")


class LoggingSection(BaseModel):
    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    file: Optional[str] = None


class AudioFitConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="AUDIOFIT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    fit: FitSection = Field(default_factory=FitSection)
    engine: EngineSection = Field(default_factory=EngineSection)
    storage: StorageSection = Field(default_factory=StorageSection)
    upload: UploadSection = Field(default_factory=UploadSection)
    logging: LoggingSection = Field(default_factory=LoggingSection)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment beats the YAML file, which arrives as init kwargs
        return env_settings, init_settings, file_secret_settings


def find_config_file() -> Optional[Path]:
    """Find the configuration file in standard locations."""
    search_paths = [
        Path.cwd() / "audiofit.yaml",
        Path.cwd() / "audiofit.yml",
        Path.cwd() / "config" / "audiofit.yaml",
        Path.home() / ".config" / "audiofit" / "audiofit.yaml",
        Path("/etc/audiofit/audiofit.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


def load_config(config_path: Optional[str] = None) -> AudioFitConfig:
    """Load configuration from YAML file and environment, or use defaults."""
    config_file = Path(config_path) if config_path else find_config_file()

    if config_file and config_file.exists():
        with open(config_file, "r") as f:
            yaml_data = yaml.safe_load(f) or {}
        return AudioFitConfig(**yaml_data)

    return AudioFitConfig()


# Global config instance
_config: Optional[AudioFitConfig] = None


def get_config() -> AudioFitConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: AudioFitConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
