"""
Bitrate search controller.

Encodes the input at a starting bitrate and, while the output is larger than
the size ceiling, deletes it and retries at a proportionally lower bitrate.
The search stops when the output fits, when the bitrate reaches the floor
(the oversized file is then accepted as a best-effort result), or when the
attempt cap is hit.
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import List, Optional, Set, Union

from .errors import IoError, OutputPathBusy, TranscodeFailure
from .history import HistoryStore, LogCategory
from .materializer import InputHandle, TemporaryInputMaterializer
from .models import EncodeAttempt, FitConfig, ProcessingResult, TerminationReason
from .transcoding.constants import MIN_BITRATE_STEP_BPS, codec_key
from .transcoding.engine import TranscodingEngine

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_KEY = "transcription_audio"


def next_bitrate(current_bitrate: int, current_size: int, config: FitConfig) -> int:
    """
    Estimate the next bitrate after an oversized encode.

    Output size is roughly proportional to bitrate for constant-bitrate
    audio, so the bitrate is scaled by max_size / current_size. The result
    drops by at least MIN_BITRATE_STEP_BPS and never goes below the floor.
    """
    budget = config.max_size_bytes - config.size_overhead_bytes
    target = current_bitrate * budget // current_size
    stepped = min(target, current_bitrate - MIN_BITRATE_STEP_BPS)
    return max(config.floor_bitrate_bps, stepped)


class BitrateSearchController:
    """
    Runs fitting searches against one engine.

    Runs are independent, but two concurrent runs may not share an output
    path: the second one fails with OutputPathBusy instead of overwriting
    the first one's candidate.
    """

    def __init__(
        self,
        engine: TranscodingEngine,
        materializer: TemporaryInputMaterializer,
        work_dir: Union[str, Path],
        history: Optional[HistoryStore] = None,
    ):
        self.engine = engine
        self.materializer = materializer
        self.work_dir = Path(work_dir)
        self.history = history
        self._active_outputs: Set[Path] = set()

    def output_path_for(self, key: str, config: Optional[FitConfig] = None) -> Path:
        """Fixed, reusable output path for a caller-chosen key."""
        config = config or FitConfig()
        return self.work_dir / f"{key}{config.codec.extension}"

    async def fit(
        self,
        input_handle: InputHandle,
        config: Optional[FitConfig] = None,
        output_path: Optional[Union[str, Path]] = None,
    ) -> ProcessingResult:
        """
        Encode input_handle so that it fits under config.max_size_bytes.

        Returns:
            ProcessingResult owning the final output file. Its size may
            still exceed the ceiling when the floor bitrate was reached.

        Raises:
            IoError: the input could not be copied or a file operation failed.
            TranscodeFailure: the engine failed an attempt; no retry is made.
            OutputPathBusy: another run of this controller owns output_path.
            ValueError: config.codec differs from the codec the engine encodes.
        """
        config = config or FitConfig()
        self._check_codec(config)
        output = Path(output_path) if output_path else self.output_path_for(DEFAULT_OUTPUT_KEY, config)
        output_key = output.resolve()

        if output_key in self._active_outputs:
            raise OutputPathBusy(str(output))
        self._active_outputs.add(output_key)

        run_id = uuid.uuid4().hex[:8]
        input_path: Optional[Path] = None
        try:
            self._record(
                LogCategory.FILE_OP, "run_started",
                f"Starting audio file processing ({run_id})",
                run_id=run_id, output=str(output),
                initial_bitrate_bps=config.initial_bitrate_bps,
                floor_bitrate_bps=config.floor_bitrate_bps,
                max_size_bytes=config.max_size_bytes,
            )
            logger.info(f"[Fit] {run_id}: starting, ceiling {config.max_size_bytes} bytes")

            input_path = await self.materializer.materialize(input_handle)
            original_size = input_path.stat().st_size
            original_name = self.materializer.best_effort_display_name(input_handle)
            self._record(
                LogCategory.FILE_OP, "input_materialized",
                f"Copied input file: {input_path.name}, size: {original_size} bytes",
                run_id=run_id, original_file_name=original_name, size_bytes=original_size,
            )

            output.parent.mkdir(parents=True, exist_ok=True)
            self._delete(output)

            return await self._search(run_id, input_path, output, config, original_size, original_name)

        except TranscodeFailure as e:
            self._discard(output)
            self._record_failure(run_id, str(e), bitrate_bps=e.bitrate_bps)
            raise
        except IoError as e:
            self._discard(output)
            self._record_failure(run_id, str(e))
            raise
        except OSError as e:
            self._discard(output)
            self._record_failure(run_id, str(e))
            raise IoError(f"File operation failed: {e}") from e
        except asyncio.CancelledError:
            self._discard(output)
            self._record_failure(run_id, "Cancelled")
            raise
        except Exception as e:
            self._discard(output)
            self._record_failure(run_id, f"Unexpected engine error: {e}")
            raise TranscodeFailure(str(e) or type(e).__name__) from e
        finally:
            if input_path is not None:
                self._discard(input_path)
            self._active_outputs.discard(output_key)
            self._record(
                LogCategory.FILE_OP, "teardown_completed",
                "Cleaned up temporary input file",
                run_id=run_id,
            )

    async def _search(
        self,
        run_id: str,
        input_path: Path,
        output: Path,
        config: FitConfig,
        original_size: int,
        original_name: Optional[str],
    ) -> ProcessingResult:
        bitrate = config.initial_bitrate_bps
        attempts: List[EncodeAttempt] = []
        termination = TerminationReason.ATTEMPTS_EXHAUSTED

        while len(attempts) < config.max_attempts:
            attempt = EncodeAttempt(attempt_number=len(attempts) + 1, requested_bitrate_bps=bitrate)
            attempts.append(attempt)

            await self.engine.encode(input_path, output, bitrate)

            current_size = output.stat().st_size
            attempt.resulting_size_bytes = current_size
            self._record(
                LogCategory.REENCODE, "attempt_completed",
                f"Attempt {attempt.attempt_number}: {bitrate} bps -> {current_size} bytes",
                run_id=run_id, attempt=attempt.attempt_number,
                bitrate_bps=bitrate, size_bytes=current_size,
            )

            if current_size <= config.max_size_bytes:
                termination = TerminationReason.SIZE_SATISFIED
                break
            if bitrate <= config.floor_bitrate_bps:
                termination = TerminationReason.FLOOR_ACCEPTED
                break
            if len(attempts) >= config.max_attempts:
                # The last candidate stays as the final output
                break

            self._delete(output)
            bitrate = next_bitrate(bitrate, current_size, config)
            logger.info(
                f"[Fit] {run_id}: attempt {attempt.attempt_number} too large "
                f"({current_size} bytes), reducing bitrate to {bitrate} bps"
            )

        processed_size = output.stat().st_size
        self._record(
            LogCategory.REENCODE, "run_terminated",
            f"Audio re-encoding completed in {len(attempts)} attempt(s). "
            f"Output size: {processed_size} bytes, bitrate: {bitrate} bps",
            run_id=run_id, reason=termination.value,
            attempts=len(attempts), bitrate_bps=bitrate, size_bytes=processed_size,
        )
        if termination is not TerminationReason.SIZE_SATISFIED:
            logger.warning(
                f"[Fit] {run_id}: finished {termination.value} with {processed_size} bytes "
                f"(ceiling {config.max_size_bytes})"
            )
        else:
            logger.info(f"[Fit] {run_id}: {processed_size} bytes at {bitrate} bps")

        return ProcessingResult(
            processed_file=output,
            original_file_size_bytes=original_size,
            processed_file_size_bytes=processed_size,
            original_file_name=original_name,
            final_bitrate_bps=bitrate,
            termination=termination,
            attempts=attempts,
        )

    def _check_codec(self, config: FitConfig) -> None:
        """The output extension comes from config.codec, so the engine must encode the same codec."""
        engine_codec = getattr(self.engine, "codec", None)
        if engine_codec is not None and codec_key(engine_codec) != config.codec.value:
            raise ValueError(
                f"Run codec {config.codec.value!r} does not match the engine codec {codec_key(engine_codec)!r}"
            )

    def _delete(self, path: Path) -> None:
        """Delete path; failure ends the run."""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise IoError(f"Could not delete {path}: {e}") from e

    def _discard(self, path: Path) -> None:
        """Best-effort delete used on teardown paths."""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"[Fit] Could not remove {path}: {e}")

    def _record_failure(self, run_id: str, message: str, **data) -> None:
        logger.error(f"[Fit] {run_id}: {message}")
        self._record(
            LogCategory.ERROR, "run_terminated",
            f"Audio file processing failed: {message}",
            run_id=run_id, reason=TerminationReason.FAILED.value, **data,
        )

    def _record(self, category: LogCategory, event: str, message: str, **data) -> None:
        if self.history is not None:
            self.history.append(category, event, message, **data)
