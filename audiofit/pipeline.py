"""
End-to-end pipeline: fit an input under the upload ceiling, upload it for
transcription, then delete the processed file.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import AudioFitConfig
from .controller import BitrateSearchController
from .errors import AudioFitError, UploadTooLarge
from .history import HistoryStore, LogCategory
from .materializer import InputHandle, TemporaryInputMaterializer
from .models import FitConfig, ProcessingResult
from .transcoding.engine import FFmpegEngine, TranscodingEngine
from .upload import TranscriptionResult, UploadClient

logger = logging.getLogger(__name__)


@dataclass
class TranscriptionOutcome:
    transcription: TranscriptionResult
    processing: ProcessingResult


def build_history(config: AudioFitConfig) -> HistoryStore:
    return HistoryStore(config.storage.history_path)


def build_controller(
    config: AudioFitConfig,
    engine: Optional[TranscodingEngine] = None,
    history: Optional[HistoryStore] = None,
) -> BitrateSearchController:
    """Wire a controller from configuration."""
    if engine is None:
        engine = FFmpegEngine(config.engine.to_engine_config(config.fit.codec))
    materializer = TemporaryInputMaterializer(config.storage.cache_path)
    return BitrateSearchController(
        engine,
        materializer,
        config.storage.work_path,
        history=history if history is not None else build_history(config),
    )


def build_upload_client(config: AudioFitConfig) -> UploadClient:
    return UploadClient(
        api_key=config.upload.resolve_api_key() or "",
        base_url=config.upload.base_url,
        model=config.upload.model,
        max_upload_bytes=config.fit.max_size_bytes,
        timeout=config.upload.timeout,
    )


async def transcribe_input(
    controller: BitrateSearchController,
    upload_client: UploadClient,
    input_handle: InputHandle,
    fit_config: Optional[FitConfig] = None,
    language: Optional[str] = None,
    prompt: Optional[str] = None,
    model: Optional[str] = None,
) -> TranscriptionOutcome:
    """
    Fit, upload and clean up.

    The processed file is deleted whether or not the upload succeeds. An
    oversized best-effort result is rejected here with UploadTooLarge rather
    than sent to a server that would refuse it.
    """
    fit_config = fit_config or FitConfig()
    history = controller.history

    processing = await controller.fit(input_handle, fit_config)
    try:
        if not processing.within_ceiling(fit_config.max_size_bytes):
            raise UploadTooLarge(processing.processed_file_size_bytes, fit_config.max_size_bytes)

        if history is not None:
            history.append(
                LogCategory.API_CALL, "upload_started",
                f"Uploading {processing.processed_file_size_bytes} bytes for transcription",
                model=model or upload_client.model,
            )
        transcription = await upload_client.transcribe(
            processing.processed_file,
            language=language,
            prompt=prompt,
            model=model,
            file_name=processing.original_file_name,
        )
        if history is not None:
            history.append(
                LogCategory.API_CALL, "upload_completed",
                f"Transcription received ({len(transcription.text)} characters)",
                model=transcription.model,
            )
        return TranscriptionOutcome(transcription=transcription, processing=processing)
    except AudioFitError as e:
        if history is not None:
            history.append(LogCategory.ERROR, "upload_failed", f"Transcription failed: {e}")
        raise
    finally:
        _remove(processing.processed_file)


def _remove(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.error(f"[Pipeline] Could not remove {path}: {e}")
