"""
Upload client for OpenAI-compatible transcription endpoints.

Sends a processed audio file to ``POST {base_url}/audio/transcriptions`` as
multipart form data (file, model, optional language and prompt) and returns
the transcribed text.
"""

import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx
from pydantic import BaseModel

from .errors import UploadError, UploadTooLarge
from .transcoding.constants import DEFAULT_MAX_SIZE_BYTES

logger = logging.getLogger(__name__)

MODEL_WHISPER = "whisper-1"
MODEL_GPT_4O_TRANSCRIBE = "gpt-4o-transcribe"
MODEL_GPT_4O_MINI_TRANSCRIBE = "gpt-4o-mini-transcribe"


class TranscriptionResult(BaseModel):
    text: str
    language: Optional[str] = None
    duration: Optional[float] = None
    model: Optional[str] = None


def _error_detail(response: httpx.Response) -> str:
    """Best error text the server gave us."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.text[:500]


class UploadClient:
    """Posts finished audio files for transcription."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = MODEL_WHISPER,
        max_upload_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ValueError("API key not configured. Set AUDIOFIT_UPLOAD__API_KEY or OPENAI_API_KEY.")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.max_upload_bytes = max_upload_bytes
        self.timeout = timeout
        self.transport = transport

    async def transcribe(
        self,
        file_path: Union[str, Path],
        language: Optional[str] = None,
        prompt: Optional[str] = None,
        model: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> TranscriptionResult:
        """
        Upload file_path and return its transcription.

        Raises:
            UploadTooLarge: the file exceeds max_upload_bytes; nothing is sent.
            UploadError: the request failed or the server rejected it.
        """
        path = Path(file_path)
        size = path.stat().st_size
        if size > self.max_upload_bytes:
            raise UploadTooLarge(size, self.max_upload_bytes)

        model = model or self.model
        data: Dict[str, Any] = {"model": model, "response_format": "json"}
        if language:
            data["language"] = language
        if prompt:
            data["prompt"] = prompt

        name = file_name or path.name
        # Keep the real container extension so the server can sniff the format
        if Path(name).suffix.lower() != path.suffix.lower():
            name = f"{Path(name).stem}{path.suffix}"
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        content = await asyncio.to_thread(path.read_bytes)

        logger.info(f"[Upload] Sending {size} bytes to {self.base_url} (model={model})")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/audio/transcriptions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    data=data,
                    files={"file": (name, content, mime_type)},
                )
        except httpx.RequestError as e:
            raise UploadError(f"Upload failed: {e}") from e

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.warning(f"[Upload] Server returned {response.status_code}: {detail[:200]}")
            raise UploadError(f"Transcription request failed ({response.status_code}): {detail}",
                              status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise UploadError("Transcription response was not JSON") from e

        if not isinstance(body, dict) or "text" not in body:
            raise UploadError("Transcription response has no text")

        return TranscriptionResult(
            text=body["text"],
            language=body.get("language"),
            duration=body.get("duration"),
            model=model,
        )
