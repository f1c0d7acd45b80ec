"""
Command line entry point for audiofit.

Usage:
    audiofit fit INPUT [-o OUTPUT] [--codec aac] [--max-size BYTES] ...
    audiofit transcribe INPUT [--model whisper-1] [--language en] [--prompt TEXT]
    audiofit logs [--clear]
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import AudioFitConfig, FitSection, load_config, set_config
from .errors import AudioFitError
from .logs import setup_logging
from .models import AudioCodec, FitConfig
from .pipeline import build_controller, build_history, build_upload_client, transcribe_input

logger = logging.getLogger(__name__)


def _add_fit_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", help="Input file path or http(s)/file URI")
    parser.add_argument("--codec", choices=[c.value for c in AudioCodec])
    parser.add_argument("--max-size", type=int, dest="max_size_bytes", help="Size ceiling in bytes")
    parser.add_argument("--initial-bitrate", type=int, dest="initial_bitrate_bps")
    parser.add_argument("--floor-bitrate", type=int, dest="floor_bitrate_bps")
    parser.add_argument("--max-attempts", type=int, dest="max_attempts")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audiofit",
        description="Re-encode audio to fit under an upload size ceiling",
    )
    parser.add_argument("--version", action="version", version=f"audiofit {__version__}")
    parser.add_argument("-c", "--config", help="Path to audiofit.yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    fit = sub.add_parser("fit", help="Fit a file under the size ceiling")
    _add_fit_args(fit)
    fit.add_argument("-o", "--output", help="Output file path")

    transcribe = sub.add_parser("transcribe", help="Fit, upload and print the transcription")
    _add_fit_args(transcribe)
    transcribe.add_argument("--model")
    transcribe.add_argument("--language")
    transcribe.add_argument("--prompt")

    logs = sub.add_parser("logs", help="Show the run history")
    logs.add_argument("--clear", action="store_true", help="Delete the run history")

    return parser


def fit_config_from_args(config: AudioFitConfig, args: argparse.Namespace) -> FitConfig:
    overrides = {
        key: getattr(args, key)
        for key in ("codec", "max_size_bytes", "initial_bitrate_bps", "floor_bitrate_bps", "max_attempts")
        if getattr(args, key, None) is not None
    }
    return FitSection.model_validate({**config.fit.model_dump(), **overrides}).to_fit_config()


async def _run_fit(config: AudioFitConfig, args: argparse.Namespace) -> int:
    fit_config = fit_config_from_args(config, args)
    config.fit.codec = fit_config.codec
    controller = build_controller(config)
    result = await controller.fit(args.input, fit_config, output_path=args.output)
    print(json.dumps(result.to_dict(), indent=2))
    return 0


async def _run_transcribe(config: AudioFitConfig, args: argparse.Namespace) -> int:
    fit_config = fit_config_from_args(config, args)
    config.fit.codec = fit_config.codec
    controller = build_controller(config)
    upload_client = build_upload_client(config)
    outcome = await transcribe_input(
        controller,
        upload_client,
        args.input,
        fit_config,
        language=args.language or config.upload.language,
        prompt=args.prompt or config.upload.prompt,
        model=args.model,
    )
    print(outcome.transcription.text)
    return 0


def _run_logs(config: AudioFitConfig, args: argparse.Namespace) -> int:
    history = build_history(config)
    if args.clear:
        history.clear()
        return 0
    text = history.as_text()
    if text:
        print(text)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    set_config(config)
    setup_logging(config.logging)

    try:
        if args.command == "logs":
            return _run_logs(config, args)
        if args.command == "fit":
            return asyncio.run(_run_fit(config, args))
        return asyncio.run(_run_transcribe(config, args))
    except (AudioFitError, ValueError, RuntimeError) as e:
        logger.error(str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
