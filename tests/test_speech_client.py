"""Tests for HttpSpeechClient."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from errors import ProviderError, RequestTimeoutError, UnknownError
from models import FLAC, MPEG, WAV, AudioResource, VoiceParams
from speech_client import DEFAULT_BASE_URL, HttpSpeechClient, encoding_for_content_type


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _response(status: int = 200, json_body=None, content: bytes = b"", headers=None, reason: str = ""):  # noqa: ANN001
    response = MagicMock()
    response.status_code = status
    response.content = content
    response.headers = headers or {}
    response.reason = reason
    if json_body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = json_body
    return response


def _client(response=None, error: Exception | None = None) -> tuple[HttpSpeechClient, MagicMock]:  # noqa: ANN001
    session = MagicMock()
    if error is not None:
        session.request.side_effect = error
    else:
        session.request.return_value = response
    return HttpSpeechClient(base_url="http://voice.test/", session=session), session


# ---------------------------------------------------------------
# transcribe
# ---------------------------------------------------------------

def test_transcribe_posts_multipart_audio() -> None:
    client, session = _client(_response(json_body={"transcription": "ndewo"}))
    audio = AudioResource(b"fLaCdata", FLAC)

    text = client.transcribe(audio, "igbo", timeout_s=12)

    assert text == "ndewo"
    method, url = session.request.call_args.args
    kwargs = session.request.call_args.kwargs
    assert (method, url) == ("POST", "http://voice.test/transcribe/igbo")
    assert kwargs["timeout"] == 12
    assert kwargs["files"] == {"audio_file": ("recording.flac", b"fLaCdata", "audio/flac")}


def test_transcribe_falls_back_to_text_field() -> None:
    client, _ = _client(_response(json_body={"text": "hello", "language": "english"}))
    assert client.transcribe(AudioResource(b"x"), "english") == "hello"


def test_transcribe_missing_field_returns_empty() -> None:
    client, _ = _client(_response(json_body={"language": "english"}))
    assert client.transcribe(AudioResource(b"x"), "english") == ""


def test_transcribe_invalid_json_is_unknown_error() -> None:
    client, _ = _client(_response(json_body=None))
    with pytest.raises(UnknownError):
        client.transcribe(AudioResource(b"x"), "english")


# ---------------------------------------------------------------
# synthesize
# ---------------------------------------------------------------

def test_synthesize_sends_json_and_wraps_audio() -> None:
    client, session = _client(
        _response(content=b"RIFFwav", headers={"Content-Type": "audio/wav"})
    )

    audio = client.synthesize("hello", "english", "idera", VoiceParams())

    assert audio.data == b"RIFFwav"
    assert audio.encoding == WAV
    method, url = session.request.call_args.args
    assert (method, url) == ("POST", "http://voice.test/tts/english")
    assert session.request.call_args.kwargs["json"] == {
        "text": "hello",
        "language": "english",
        "speaker_name": "idera",
        "temperature": 0.1,
        "repetition_penalty": 1.1,
        "max_length": 4000,
    }
    assert session.request.call_args.kwargs["timeout"] == 60.0


def test_content_type_drives_reply_encoding() -> None:
    assert encoding_for_content_type("audio/mpeg") == MPEG
    assert encoding_for_content_type("audio/flac; rate=16000") == FLAC
    assert encoding_for_content_type("application/octet-stream") == WAV
    assert encoding_for_content_type("") == WAV


# ---------------------------------------------------------------
# Errors
# ---------------------------------------------------------------

def test_non_2xx_keeps_detail_and_message() -> None:
    client, _ = _client(
        _response(status=400, json_body={"detail": "Unsupported language", "message": "bad"})
    )

    with pytest.raises(ProviderError) as info:
        client.synthesize("hi", "french", "idera", VoiceParams())

    assert info.value.status == 400
    assert info.value.detail == "Unsupported language"
    assert info.value.display_message == "Unsupported language"


def test_validation_error_list_is_flattened() -> None:
    client, _ = _client(
        _response(status=422, json_body={"detail": [{"loc": ["body", "text"], "msg": "field required"}]})
    )

    with pytest.raises(ProviderError) as info:
        client.synthesize("", "english", "idera", VoiceParams())
    assert info.value.display_message == "field required"


def test_non_json_error_uses_reason() -> None:
    client, _ = _client(_response(status=503, reason="Service Unavailable"))

    with pytest.raises(ProviderError) as info:
        client.transcribe(AudioResource(b"x"), "hausa")
    assert info.value.detail == ""
    assert info.value.display_message == "Service Unavailable"


def test_timeout_maps_to_request_timeout() -> None:
    client, _ = _client(error=requests.Timeout("read timed out"))
    with pytest.raises(RequestTimeoutError):
        client.synthesize("hi", "english", "idera", VoiceParams(), timeout_s=1)


def test_connection_failure_maps_to_unknown_error() -> None:
    client, _ = _client(error=requests.ConnectionError("name resolution failed"))
    with pytest.raises(UnknownError, match="name resolution failed"):
        client.transcribe(AudioResource(b"x"), "english")


def test_no_retry_on_failure() -> None:
    client, session = _client(_response(status=500, json_body={"message": "boom"}))
    with pytest.raises(ProviderError):
        client.synthesize("hi", "english", "idera", VoiceParams())
    assert session.request.call_count == 1


# ---------------------------------------------------------------
# Base URL and service checks
# ---------------------------------------------------------------

def test_base_url_is_normalised_and_validated() -> None:
    client = HttpSpeechClient()
    assert client.base_url == DEFAULT_BASE_URL

    client.base_url = "  http://localhost:8000//  "
    assert client.base_url == "http://localhost:8000"

    with pytest.raises(ValueError):
        client.base_url = "   "
    assert client.base_url == "http://localhost:8000"


def test_health_and_service_info() -> None:
    client, session = _client(_response(json_body={"status": "healthy"}))

    assert client.health() == {"status": "healthy"}
    assert session.request.call_args.args == ("GET", "http://voice.test/health")

    client.service_info()
    assert session.request.call_args.args == ("GET", "http://voice.test/")
