"""
Bridge from listener-style encoders to the awaitable TranscodingEngine API.

Some encoders (embedded SDKs, thread-pool based wrappers) do not expose a
coroutine. They start an export and later call back exactly one of
``on_completed()`` or ``on_error(exc)``, possibly from a foreign thread.
ListenerEngineAdapter turns one such export into a single awaitable call.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol

from ..errors import TranscodeFailure

logger = logging.getLogger(__name__)


class EncodeListener(Protocol):
    def on_completed(self) -> None: ...

    def on_error(self, error: BaseException) -> None: ...


class EncodeHandle(Protocol):
    def cancel(self) -> None: ...


class ListenerEncoder(Protocol):
    """One-shot, callback-driven encoder."""

    def start(
        self,
        input_path: Path,
        output_path: Path,
        bitrate_bps: int,
        listener: EncodeListener,
    ) -> Optional[EncodeHandle]:
        ...


class _FutureListener:
    """Resolves a future exactly once, from any thread."""

    def __init__(self, loop: asyncio.AbstractEventLoop, future: asyncio.Future):
        self._loop = loop
        self._future = future

    def on_completed(self) -> None:
        self._loop.call_soon_threadsafe(self._resolve, None)

    def on_error(self, error: BaseException) -> None:
        self._loop.call_soon_threadsafe(self._resolve, error)

    def _resolve(self, error: Optional[BaseException]) -> None:
        if self._future.done():
            # Second callback, or the awaiting side was cancelled
            logger.debug("[Adapter] Ignoring late encoder callback")
            return
        if error is None:
            self._future.set_result(None)
        else:
            self._future.set_exception(error)


class ListenerEngineAdapter:
    """
    Awaitable encode() over a ListenerEncoder.

    On cancellation the handle is cancelled and the adapter waits up to
    cancel_grace seconds for the encoder's final callback, so the encoder
    has stopped writing before the caller cleans up the output.
    """

    def __init__(self, encoder: ListenerEncoder, cancel_grace: float = 5.0):
        self.encoder = encoder
        self.cancel_grace = cancel_grace

    async def encode(self, input_path: Path, output_path: Path, bitrate_bps: int) -> None:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        listener = _FutureListener(loop, future)

        try:
            handle = self.encoder.start(Path(input_path), Path(output_path), bitrate_bps, listener)
        except Exception as e:
            raise TranscodeFailure(f"Encoder failed to start: {e}", bitrate_bps) from e

        try:
            await asyncio.shield(future)
        except asyncio.CancelledError:
            if handle is not None:
                logger.info("[Adapter] Cancelling in-flight encode")
                handle.cancel()
                await self._wait_stopped(future)
            future.cancel()
            raise
        except TranscodeFailure:
            raise
        except Exception as e:
            raise TranscodeFailure(str(e) or type(e).__name__, bitrate_bps) from e

    async def _wait_stopped(self, future: asyncio.Future) -> None:
        """Wait for the callback that follows handle.cancel()."""
        done, _ = await asyncio.wait({future}, timeout=self.cancel_grace)
        if not done:
            logger.warning(f"[Adapter] Encoder did not stop within {self.cancel_grace:.1f}s of cancel")
        elif not future.cancelled():
            # Outcome is discarded
            future.exception()
