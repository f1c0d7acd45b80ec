"""
audiofit Test Configuration and Fixtures

Provides:
- Scripted fake engines (no FFmpeg needed for the search logic)
- Auto-generated test audio for the FFmpeg tests
- Per-test work/cache directories that pytest cleans up
"""

import asyncio
import os
import shutil
import subprocess
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from audiofit.controller import BitrateSearchController
from audiofit.errors import TranscodeFailure
from audiofit.history import HistoryStore
from audiofit.materializer import TemporaryInputMaterializer

MB = 1024 * 1024


# =============================================================================
# FAKE ENGINES
# =============================================================================

class FakeEngine:
    """
    Writes an output whose size is size_for(bitrate).

    Files are created sparse with truncate(), so multi-megabyte outputs
    cost nothing. Every call is recorded for assertions.
    """

    def __init__(
        self,
        size_for: Callable[[int], int],
        fail_on_attempt: Optional[int] = None,
        failure_message: str = "encoder exploded",
    ):
        self.size_for = size_for
        self.fail_on_attempt = fail_on_attempt
        self.failure_message = failure_message
        self.bitrates: List[int] = []
        self.output_existed_at_start: List[bool] = []
        self.inputs_seen: List[Path] = []

    async def encode(self, input_path: Path, output_path: Path, bitrate_bps: int) -> None:
        self.bitrates.append(bitrate_bps)
        self.inputs_seen.append(Path(input_path))
        self.output_existed_at_start.append(Path(output_path).exists())
        assert Path(input_path).exists()

        if self.fail_on_attempt == len(self.bitrates):
            # Leave a partial file behind like a real encoder would
            Path(output_path).write_bytes(b"partial")
            raise TranscodeFailure(self.failure_message, bitrate_bps)

        with open(output_path, "wb") as f:
            f.truncate(self.size_for(bitrate_bps))


class BlockingEngine:
    """Writes a partial output, then waits until released or cancelled."""

    def __init__(self, size: int = 1000):
        self.size = size
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.cancelled = False

    async def encode(self, input_path: Path, output_path: Path, bitrate_bps: int) -> None:
        Path(output_path).write_bytes(b"partial")
        self.started.set()
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        with open(output_path, "wb") as f:
            f.truncate(self.size)


def linear_size(bytes_at_bitrate: int, bitrate: int) -> Callable[[int], int]:
    """Size model where output size is proportional to bitrate."""
    return lambda b: b * bytes_at_bitrate // bitrate


# =============================================================================
# PYTEST FIXTURES
# =============================================================================

@pytest.fixture
def work_dir(tmp_path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def cache_dir(work_dir) -> Path:
    return work_dir / "cache"


@pytest.fixture
def materializer(cache_dir) -> TemporaryInputMaterializer:
    return TemporaryInputMaterializer(cache_dir)


@pytest.fixture
def history(tmp_path) -> HistoryStore:
    return HistoryStore(tmp_path / "history.jsonl")


@pytest.fixture
def source_file(tmp_path) -> Path:
    """A small input file; its content is irrelevant to fake engines."""
    path = tmp_path / "interview.wav"
    path.write_bytes(os.urandom(4096))
    return path


@pytest.fixture
def make_controller(materializer, work_dir, history):
    def factory(engine) -> BitrateSearchController:
        return BitrateSearchController(engine, materializer, work_dir, history=history)
    return factory


def leftover_files(directory: Path) -> List[Path]:
    if not directory.exists():
        return []
    return [p for p in directory.rglob("*") if p.is_file()]


# =============================================================================
# TEST MEDIA GENERATION
# =============================================================================

class TestMediaGenerator:
    """
    Generates test audio with FFmpeg's lavfi sine source.
    No external downloads.
    """

    __test__ = False

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self._ffmpeg = shutil.which("ffmpeg")

    @property
    def has_ffmpeg(self) -> bool:
        return self._ffmpeg is not None

    def generate_test_audio(self, name: str = "tone", duration: int = 20) -> Optional[Path]:
        if not self.has_ffmpeg:
            return None

        output_path = self.output_dir / f"{name}.wav"
        cmd = [
            self._ffmpeg,
            "-y",
            "-f", "lavfi",
            "-i", f"sine=frequency=440:duration={duration}",
            "-ac", "1",
            str(output_path),
        ]

        try:
            result = subprocess.run(cmd, capture_output=True, timeout=60)
            if result.returncode == 0 and output_path.exists():
                return output_path
        except (subprocess.TimeoutExpired, OSError) as e:
            print(f"Failed to generate test audio: {e}")

        return None


@pytest.fixture(scope="session")
def test_media_dir(tmp_path_factory) -> Path:
    return tmp_path_factory.mktemp("audiofit_test_media")


@pytest.fixture(scope="session")
def test_tone(test_media_dir) -> Path:
    generator = TestMediaGenerator(test_media_dir)
    if not generator.has_ffmpeg:
        pytest.skip("FFmpeg not available for test media generation")
    path = generator.generate_test_audio()
    if path is None:
        pytest.skip("Failed to generate test audio")
    return path


# =============================================================================
# SKIP CONDITIONS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "requires_ffmpeg: marks tests that require FFmpeg"
    )


@pytest.fixture
def requires_ffmpeg():
    """Skip test if FFmpeg not available."""
    if not shutil.which("ffmpeg"):
        pytest.skip("FFmpeg not available")
