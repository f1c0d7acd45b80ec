"""
Tests for configuration loading.
"""

import pytest
import yaml
from pydantic import ValidationError

from audiofit.config import AudioFitConfig, get_config, load_config, set_config
from audiofit.models import AudioCodec, FitConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("AUDIOFIT_FIT__MAX_SIZE_BYTES", "AUDIOFIT_FIT__CODEC", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:

    def test_fit_defaults(self):
        fit = AudioFitConfig().fit.to_fit_config()

        assert fit.codec == AudioCodec.AAC
        assert fit.initial_bitrate_bps == 32000
        assert fit.floor_bitrate_bps == 16000
        assert fit.max_size_bytes == 25 * 1024 * 1024
        assert fit.max_attempts == 10
        assert fit.size_overhead_bytes == 0

    def test_storage_paths_follow_work_directory(self, tmp_path):
        config = AudioFitConfig(storage={"work_directory": str(tmp_path)})

        assert config.storage.cache_path == tmp_path / "cache"
        assert config.storage.history_path == tmp_path / "history.jsonl"

    def test_engine_config_takes_codec(self):
        engine = AudioFitConfig(engine={"channels": 1}).engine.to_engine_config(AudioCodec.OPUS)

        assert engine.codec == "opus"
        assert engine.channels == 1


class TestLoading:

    def test_yaml_file(self, tmp_path):
        path = write_yaml(tmp_path / "audiofit.yaml", {
            "fit": {"codec": "mp3", "max_size_bytes": 10_000_000},
            "upload": {"model": "gpt-4o-transcribe"},
        })

        config = load_config(str(path))

        assert config.fit.codec == AudioCodec.MP3
        assert config.fit.max_size_bytes == 10_000_000
        assert config.upload.model == "gpt-4o-transcribe"

    def test_environment_beats_yaml(self, tmp_path, monkeypatch):
        path = write_yaml(tmp_path / "audiofit.yaml", {"fit": {"max_size_bytes": 10_000_000}})
        monkeypatch.setenv("AUDIOFIT_FIT__MAX_SIZE_BYTES", "5000000")

        config = load_config(str(path))

        assert config.fit.max_size_bytes == 5_000_000

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "audiofit.yaml"
        path.write_text("")
        assert load_config(str(path)).fit.max_attempts == 10


class TestValidation:

    def test_initial_below_floor_rejected(self):
        with pytest.raises(ValidationError):
            FitConfig(initial_bitrate_bps=12000, floor_bitrate_bps=16000)

    def test_overhead_must_be_below_ceiling(self):
        with pytest.raises(ValidationError):
            FitConfig(max_size_bytes=1000, size_overhead_bytes=1000)

    def test_attempt_cap_must_be_positive(self):
        with pytest.raises(ValidationError):
            FitConfig(max_attempts=0)

    def test_bad_yaml_values_surface(self):
        config = AudioFitConfig(fit={"initial_bitrate_bps": 8000})
        with pytest.raises(ValidationError):
            config.fit.to_fit_config()


class TestApiKey:

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        assert AudioFitConfig(upload={"api_key": "sk-file"}).upload.resolve_api_key() == "sk-file"

    def test_falls_back_to_openai_variable(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        assert AudioFitConfig().upload.resolve_api_key() == "sk-env"

    def test_missing(self):
        assert AudioFitConfig().upload.resolve_api_key() is None


class TestGlobalConfig:

    def test_set_then_get(self):
        config = AudioFitConfig(fit={"max_attempts": 3})
        set_config(config)
        try:
            assert get_config() is config
        finally:
            set_config(None)
