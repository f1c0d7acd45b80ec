"""
FFmpeg transcoding engine for audio size fitting.

The engine performs exactly one encode per call. Retrying at a different
bitrate is the controller's job; the engine only reports success or a
TranscodeFailure carrying FFmpeg's own diagnostics.
"""

import asyncio
import logging
import re
import shutil
import signal
import subprocess
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from ..errors import TranscodeFailure
from .commands import CommandBuilder
from .constants import DEFAULT_STALL_TIMEOUT, MIN_STALL_TIMEOUT, STDERR_TAIL_LINES
from .encoders import EncoderSelector
from .error_classifier import ErrorClassifier, get_error_classifier

logger = logging.getLogger(__name__)


@runtime_checkable
class TranscodingEngine(Protocol):
    """
    Anything that can encode one file to another at a requested bitrate.

    Engines that always produce one codec may expose it as a ``codec``
    attribute; the controller then refuses runs asking for another codec.
    """

    async def encode(self, input_path: Path, output_path: Path, bitrate_bps: int) -> None:
        """Encode input_path to output_path; raise TranscodeFailure on error."""
        ...


@dataclass
class EngineConfig:
    """Explicit engine settings, passed to the engine at construction."""
    codec: str = "aac"
    ffmpeg_path: str = "auto"
    stall_timeout: float = DEFAULT_STALL_TIMEOUT
    channels: Optional[int] = None
    sample_rate: Optional[int] = None
    extra_args: List[str] = field(default_factory=list)


def find_ffmpeg(ffmpeg_path: str = "auto") -> str:
    """Resolve the ffmpeg executable."""
    if ffmpeg_path != "auto":
        return ffmpeg_path

    ffmpeg = shutil.which("ffmpeg")
    if ffmpeg:
        return ffmpeg

    raise RuntimeError("FFmpeg not found")


class FFmpegEngine:
    """Runs one FFmpeg audio encode per encode() call."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        classifier: Optional[ErrorClassifier] = None,
    ):
        self.config = config or EngineConfig()
        self.ffmpeg_path = find_ffmpeg(self.config.ffmpeg_path)
        self.classifier = classifier or get_error_classifier()
        self.encoder_selector = EncoderSelector(self.ffmpeg_path)
        self.command_builder = CommandBuilder(
            self.ffmpeg_path,
            self.encoder_selector,
            channels=self.config.channels,
            sample_rate=self.config.sample_rate,
            extra_args=self.config.extra_args,
        )

    @property
    def codec(self) -> str:
        return self.config.codec

    @property
    def stall_timeout(self) -> float:
        return max(MIN_STALL_TIMEOUT, self.config.stall_timeout)

    async def encode(self, input_path: Path, output_path: Path, bitrate_bps: int) -> None:
        """
        Encode input_path to output_path at bitrate_bps.

        Raises:
            TranscodeFailure: FFmpeg could not start, exited non-zero,
                stalled, or produced no output.
            asyncio.CancelledError: the caller was cancelled; FFmpeg has
                been terminated before this propagates.
        """
        try:
            cmd = self.command_builder.build_encode_command(
                Path(input_path), Path(output_path), self.config.codec, bitrate_bps
            )
        except ValueError as e:
            raise TranscodeFailure(str(e), bitrate_bps) from e

        return_code, error_output, stalled = await self._run_ffmpeg(cmd)

        if stalled:
            raise TranscodeFailure(
                f"FFmpeg produced no progress for {self.stall_timeout:.0f}s",
                bitrate_bps,
            )

        if return_code != 0:
            _, category = self.classifier.classify(error_output)
            message = self.classifier.summarize(return_code, error_output)
            logger.warning(f"[Engine] FFmpeg failed at {bitrate_bps} bps ({category}): {message[:200]}")
            raise TranscodeFailure(message, bitrate_bps)

        is_valid, validation_error = self._validate_output(Path(output_path))
        if not is_valid:
            raise TranscodeFailure(f"Validation failed: {validation_error}", bitrate_bps)

    def _validate_output(self, output_path: Path) -> Tuple[bool, str]:
        """Check that FFmpeg left a non-empty output file."""
        if not output_path.exists():
            return False, "Output file not found"

        if output_path.stat().st_size == 0:
            return False, "Output file is empty"

        return True, ""

    async def _graceful_terminate(self, process: asyncio.subprocess.Process) -> None:
        """
        Terminate FFmpeg, escalating SIGINT -> SIGTERM -> SIGKILL.

        SIGINT (CTRL_BREAK_EVENT on Windows) lets FFmpeg close the file
        cleanly before the harder signals are tried.
        """
        if process.returncode is not None:
            return

        try:
            if sys.platform == "win32":
                process.send_signal(signal.CTRL_BREAK_EVENT)
            else:
                process.send_signal(signal.SIGINT)
        except (ProcessLookupError, OSError):
            pass

        try:
            await asyncio.wait_for(process.wait(), timeout=5.0)
            logger.debug("[Engine] FFmpeg terminated gracefully")
            return
        except asyncio.TimeoutError:
            pass

        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=3.0)
            logger.debug("[Engine] FFmpeg terminated with SIGTERM")
            return
        except (asyncio.TimeoutError, ProcessLookupError, OSError):
            pass

        try:
            process.kill()
            await process.wait()
            logger.warning("[Engine] FFmpeg killed forcefully")
        except (ProcessLookupError, OSError):
            pass

    async def _run_ffmpeg(self, cmd: List[str]) -> Tuple[int, str, bool]:
        """
        Run FFmpeg, watching stderr for progress.

        Returns:
            Tuple of (return_code, error_output, stalled). Return code is -1
            if the process failed to start or never reported one.
        """
        logger.info(f"[Engine] Running FFmpeg: {' '.join(cmd[:12])}...")

        kwargs: Dict[str, Any] = {
            "stdout": asyncio.subprocess.DEVNULL,
            "stderr": asyncio.subprocess.PIPE,
        }
        if sys.platform == "win32":
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP

        try:
            process = await asyncio.create_subprocess_exec(*cmd, **kwargs)
        except OSError as e:
            logger.error(f"[Engine] Failed to start FFmpeg: {e}")
            return -1, str(e), False

        stderr_lines: List[str] = []
        last_progress_time = time.monotonic()
        stalled = False
        stall_timeout = self.stall_timeout

        async def read_stderr():
            """Collect stderr; FFmpeg ends progress lines with \\r, not \\n."""
            nonlocal last_progress_time
            buffer = ""
            while True:
                chunk = await process.stderr.read(4096)
                if not chunk:
                    break
                buffer += chunk.decode("utf-8", errors="ignore")
                *lines, buffer = re.split(r"[\r\n]", buffer)
                for line in lines:
                    if not line.strip():
                        continue
                    if "size=" in line or "time=" in line:
                        last_progress_time = time.monotonic()
                        continue
                    stderr_lines.append(line + "\n")
                    if len(stderr_lines) > STDERR_TAIL_LINES:
                        stderr_lines.pop(0)
            if buffer.strip():
                stderr_lines.append(buffer)

        async def monitor_stall():
            nonlocal stalled
            while process.returncode is None:
                if time.monotonic() - last_progress_time > stall_timeout:
                    stalled = True
                    logger.error(f"[Engine] FFmpeg stalled for {stall_timeout:.0f}s, terminating")
                    await self._graceful_terminate(process)
                    return
                await asyncio.sleep(1.0)

        stderr_task = asyncio.create_task(read_stderr())
        monitor_task = asyncio.create_task(monitor_stall())

        try:
            await process.wait()
            await stderr_task
        except asyncio.CancelledError:
            logger.info("[Engine] Encode cancelled, terminating FFmpeg")
            await self._graceful_terminate(process)
            stderr_task.cancel()
            raise
        finally:
            monitor_task.cancel()

        return_code = process.returncode
        if return_code is None:
            return_code = -1

        return return_code, "".join(stderr_lines), stalled
