"""
Tests for the audiofit command line.
"""

import json
import logging

import pytest
import yaml

from audiofit import __main__ as cli
from audiofit.config import AudioFitConfig
from audiofit.history import HistoryStore, LogCategory

from conftest import FakeEngine


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "audiofit.yaml"
    path.write_text(yaml.safe_dump({
        "storage": {"work_directory": str(tmp_path / "work")},
        "logging": {"level": "WARNING"},
    }))
    yield path
    # main() replaces the root handlers; give pytest a clean slate back
    logging.getLogger().handlers.clear()


class TestParser:

    def test_fit_overrides(self):
        args = cli.build_parser().parse_args(["fit", "in.wav", "--codec", "opus", "--max-size", "1000000"])

        fit = cli.fit_config_from_args(AudioFitConfig(), args)

        assert fit.codec.value == "opus"
        assert fit.max_size_bytes == 1_000_000
        assert fit.initial_bitrate_bps == 32000

    def test_fit_defaults_come_from_config_section(self):
        args = cli.build_parser().parse_args(["fit", "in.wav"])

        fit = cli.fit_config_from_args(AudioFitConfig(fit={"max_attempts": 4, "codec": "mp3"}), args)

        assert fit.max_attempts == 4
        assert fit.codec.value == "mp3"

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestMain:

    def test_logs_prints_history(self, config_file, tmp_path, capsys):
        HistoryStore(tmp_path / "work" / "history.jsonl").append(
            LogCategory.FILE_OP, "run_started", "Starting audio file processing"
        )

        assert cli.main(["-c", str(config_file), "logs"]) == 0
        assert "Starting audio file processing" in capsys.readouterr().out

    def test_logs_clear(self, config_file, tmp_path):
        history_path = tmp_path / "work" / "history.jsonl"
        HistoryStore(history_path).append(LogCategory.FILE_OP, "run_started", "x")

        assert cli.main(["-c", str(config_file), "logs", "--clear"]) == 0
        assert not history_path.exists()

    def test_fit_prints_result(self, config_file, source_file, monkeypatch, capsys):
        real_build = cli.build_controller
        monkeypatch.setattr(
            cli, "build_controller",
            lambda config: real_build(config, engine=FakeEngine(lambda b: 800)),
        )

        code = cli.main(["-c", str(config_file), "fit", str(source_file), "--max-size", "1000"])

        assert code == 0
        result = json.loads(capsys.readouterr().out)
        assert result["termination"] == "size_satisfied"
        assert result["original_file_name"] == "interview.wav"

    def test_missing_input_fails(self, config_file, tmp_path, monkeypatch, capsys):
        real_build = cli.build_controller
        monkeypatch.setattr(
            cli, "build_controller",
            lambda config: real_build(config, engine=FakeEngine(lambda b: 800)),
        )

        code = cli.main(["-c", str(config_file), "fit", str(tmp_path / "missing.wav")])

        assert code == 1
        assert "error:" in capsys.readouterr().err

    def test_invalid_bitrates_fail(self, config_file, capsys):
        code = cli.main(["-c", str(config_file), "fit", "x.wav", "--initial-bitrate", "8000"])
        assert code == 1
