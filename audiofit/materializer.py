"""
Temporary input materialization.

Copies an opaque input handle (local path, file:// or http(s):// URI, or a
binary file-like object) into a private, uniquely named cache file so the
encoder always reads from a plain local path.
"""

import asyncio
import logging
import os
import re
import shutil
import time
import uuid
from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional, Union
from urllib.parse import unquote, urlparse

import httpx

from .errors import IoError
from .transcoding.constants import COPY_CHUNK_SIZE

logger = logging.getLogger(__name__)

InputHandle = Union[str, os.PathLike, BinaryIO]

TEMP_PREFIX = "temp_audio_"

_FILENAME_STAR_RE = re.compile(r"filename\*\s*=\s*[^']*'[^']*'([^;]+)", re.IGNORECASE)
_FILENAME_RE = re.compile(r'filename\s*=\s*"?([^";]+)"?', re.IGNORECASE)


def _is_http(handle: Any) -> bool:
    return isinstance(handle, str) and handle.lower().startswith(("http://", "https://"))


def _is_file_uri(handle: Any) -> bool:
    return isinstance(handle, str) and handle.lower().startswith("file://")


def _is_stream(handle: Any) -> bool:
    return hasattr(handle, "read") and not isinstance(handle, (str, bytes, os.PathLike))


def _local_path(handle: Union[str, os.PathLike]) -> Path:
    if _is_file_uri(handle):
        return Path(unquote(urlparse(str(handle)).path))
    return Path(handle)


def _identifier(handle: Any) -> Optional[str]:
    """String identifier of a handle, if it has one."""
    if isinstance(handle, (str, os.PathLike)):
        return os.fspath(handle)
    name = getattr(handle, "name", None)
    if isinstance(name, str):
        return name
    return None


def last_path_segment(identifier: Optional[str]) -> Optional[str]:
    """Last non-empty path segment of a path or URI."""
    if not identifier:
        return None
    path = urlparse(identifier).path if "://" in identifier else identifier
    segments = [s for s in re.split(r"[\\/]", unquote(path)) if s]
    return segments[-1] if segments else None


def filename_from_content_disposition(header: Optional[str]) -> Optional[str]:
    """Extract the filename from a Content-Disposition header."""
    if not header:
        return None
    match = _FILENAME_STAR_RE.search(header) or _FILENAME_RE.search(header)
    if not match:
        return None
    name = unquote(match.group(1).strip())
    return name or None


class TemporaryInputMaterializer:
    """Copies input handles into a private cache directory."""

    def __init__(
        self,
        cache_dir: Union[str, Path],
        http_timeout: float = 60.0,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cache_dir = Path(cache_dir)
        self.http_timeout = http_timeout
        self.http_transport = http_transport
        # Display names seen in response metadata, keyed by URL
        self._observed_names: Dict[str, str] = {}

    def _new_temp_path(self) -> Path:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        return self.cache_dir / f"{TEMP_PREFIX}{time.time_ns()}_{uuid.uuid4().hex[:8]}"

    async def materialize(self, input_handle: InputHandle) -> Path:
        """
        Copy input_handle verbatim into a fresh temp file.

        Returns:
            Path of the temp file. The caller deletes it.

        Raises:
            IoError: the input could not be opened or the copy failed. No
                partial temp file is left behind.
        """
        try:
            temp_path = self._new_temp_path()
        except OSError as e:
            raise IoError(f"Could not create cache directory {self.cache_dir}: {e}") from e

        try:
            if _is_http(input_handle):
                await self._download(str(input_handle), temp_path)
            elif _is_stream(input_handle):
                await asyncio.to_thread(self._copy_stream, input_handle, temp_path)
            elif isinstance(input_handle, (str, os.PathLike)):
                await asyncio.to_thread(self._copy_file, _local_path(input_handle), temp_path)
            else:
                raise IoError(f"Unsupported input handle type: {type(input_handle).__name__}")
        except BaseException as e:
            self._discard(temp_path)
            if isinstance(e, IoError):
                raise
            if isinstance(e, (OSError, httpx.HTTPError)):
                raise IoError(f"Could not copy input: {e}") from e
            raise

        logger.info(f"[Materialize] Copied input to {temp_path.name} ({temp_path.stat().st_size} bytes)")
        return temp_path

    def best_effort_display_name(self, input_handle: InputHandle) -> Optional[str]:
        """
        Advisory display name for input_handle, or None.

        Metadata first (a response's Content-Disposition filename, a
        file object's name), then the last segment of the identifier.
        """
        try:
            identifier = _identifier(input_handle)
            if identifier and identifier in self._observed_names:
                return self._observed_names[identifier]
            return last_path_segment(identifier)
        except (TypeError, ValueError) as e:
            logger.debug(f"[Materialize] Display name lookup failed: {e}")
            return None

    def _copy_file(self, source: Path, temp_path: Path) -> None:
        with open(source, "rb") as src, open(temp_path, "wb") as dst:
            shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)

    def _copy_stream(self, stream: BinaryIO, temp_path: Path) -> None:
        with open(temp_path, "wb") as dst:
            while True:
                chunk = stream.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                dst.write(chunk)

    async def _download(self, url: str, temp_path: Path) -> None:
        async with httpx.AsyncClient(
            timeout=self.http_timeout,
            follow_redirects=True,
            transport=self.http_transport,
        ) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                name = filename_from_content_disposition(response.headers.get("content-disposition"))
                if name:
                    self._observed_names[url] = name
                dst = await asyncio.to_thread(open, temp_path, "wb")
                try:
                    async for chunk in response.aiter_bytes(COPY_CHUNK_SIZE):
                        await asyncio.to_thread(dst.write, chunk)
                finally:
                    await asyncio.to_thread(dst.close)

    @staticmethod
    def _discard(temp_path: Path) -> None:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"[Materialize] Could not remove partial copy {temp_path}: {e}")
