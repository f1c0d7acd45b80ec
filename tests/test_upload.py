"""
Tests for the transcription upload client.
"""

import httpx
import pytest

from audiofit.errors import UploadError, UploadTooLarge
from audiofit.upload import UploadClient


class RecordingHandler:
    """MockTransport handler that remembers the requests it saw."""

    def __init__(self, status=200, body=None):
        self.status = status
        self.body = body if body is not None else {"text": "hello world", "language": "en"}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)


def make_client(handler, **kwargs) -> UploadClient:
    return UploadClient(
        api_key="sk-test",
        base_url="https://api.example.com/v1/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "transcription_audio.m4a"
    path.write_bytes(b"\x00" * 2048)
    return path


class TestTranscribe:

    @pytest.mark.asyncio
    async def test_success(self, audio_file):
        handler = RecordingHandler()

        result = await make_client(handler).transcribe(audio_file, language="en")

        assert result.text == "hello world"
        assert result.language == "en"
        assert result.model == "whisper-1"

        request = handler.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.example.com/v1/audio/transcriptions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = request.content
        assert b'name="model"' in body and b"whisper-1" in body
        assert b'name="language"' in body
        assert b'filename="transcription_audio.m4a"' in body

    @pytest.mark.asyncio
    async def test_display_name_keeps_container_extension(self, audio_file):
        handler = RecordingHandler()

        await make_client(handler).transcribe(audio_file, file_name="Board Meeting.wav", model="gpt-4o-transcribe")

        body = handler.requests[0].content
        assert b'filename="Board Meeting.m4a"' in body
        assert b"gpt-4o-transcribe" in body

    @pytest.mark.asyncio
    async def test_server_error_message(self, audio_file):
        handler = RecordingHandler(status=400, body={"error": {"message": "Invalid file format."}})

        with pytest.raises(UploadError) as exc_info:
            await make_client(handler).transcribe(audio_file)

        assert exc_info.value.status_code == 400
        assert "Invalid file format." in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_response_without_text(self, audio_file):
        with pytest.raises(UploadError):
            await make_client(RecordingHandler(body={"result": "?"})).transcribe(audio_file)

    @pytest.mark.asyncio
    async def test_network_error(self, audio_file):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UploadError):
            await make_client(handler).transcribe(audio_file)

    @pytest.mark.asyncio
    async def test_oversized_file_is_not_sent(self, audio_file):
        handler = RecordingHandler()

        with pytest.raises(UploadTooLarge) as exc_info:
            await make_client(handler, max_upload_bytes=1024).transcribe(audio_file)

        assert handler.requests == []
        assert exc_info.value.size_bytes == 2048


class TestClientSetup:

    def test_missing_key(self):
        with pytest.raises(ValueError):
            UploadClient(api_key="")

    def test_base_url_trailing_slash(self):
        assert UploadClient(api_key="k", base_url="http://localhost:8000/v1/").base_url == "http://localhost:8000/v1"
