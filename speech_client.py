"""HTTP adapter for the multi-voice speech service.

Two calls matter to the conversation: ``POST /transcribe/{language}`` takes a
multipart audio upload and answers JSON, ``POST /tts/{language}`` takes JSON
and answers raw audio.  Every call is a single attempt; timeouts and error
policy belong to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from errors import ProviderError, RequestTimeoutError, UnknownError
from models import FLAC, MPEG, OGG_VORBIS, WAV, AudioEncoding, AudioResource, VoiceParams

try:
    import requests
except Exception:  # pragma: no cover
    requests = None  # type: ignore

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://nexusbert-multi-voice-system.hf.space"

_CONTENT_TYPES = {
    "audio/wav": WAV,
    "audio/x-wav": WAV,
    "audio/wave": WAV,
    "audio/mpeg": MPEG,
    "audio/ogg": OGG_VORBIS,
    "audio/flac": FLAC,
}


def encoding_for_content_type(content_type: str) -> AudioEncoding:
    base = content_type.split(";", 1)[0].strip().lower()
    return _CONTENT_TYPES.get(base, WAV)


class HttpSpeechClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        request_timeout_s: float = 60.0,
        session: Any = None,
    ) -> None:
        self.base_url = base_url
        self._request_timeout_s = request_timeout_s
        self._session = session

    @property
    def base_url(self) -> str:
        return self._base_url

    @base_url.setter
    def base_url(self, value: str) -> None:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("base URL must not be empty")
        self._base_url = value

    def transcribe(
        self,
        audio: AudioResource,
        language: str,
        timeout_s: Optional[float] = None,
    ) -> str:
        url = f"{self.base_url}/transcribe/{language}"
        files = {"audio_file": (audio.filename, audio.data, audio.encoding.mime_type)}
        logger.info("transcribe: %s (%d bytes, %s)", url, audio.size, audio.encoding.name)
        response = self._post(url, timeout_s, files=files)
        payload = self._json(response)
        if not isinstance(payload, dict):
            raise UnknownError("transcription response is not a JSON object")
        text = payload.get("transcription")
        if text is None:
            text = payload.get("text", "")
        return str(text or "")

    def synthesize(
        self,
        text: str,
        language: str,
        speaker: str,
        params: VoiceParams,
        timeout_s: Optional[float] = None,
    ) -> AudioResource:
        url = f"{self.base_url}/tts/{language}"
        body = {
            "text": text,
            "language": language,
            "speaker_name": speaker,
            "temperature": params.temperature,
            "repetition_penalty": params.repetition_penalty,
            "max_length": params.max_length,
        }
        logger.info("synthesize: %s speaker=%s (%d chars)", url, speaker, len(text))
        response = self._post(url, timeout_s, json=body)
        encoding = encoding_for_content_type(response.headers.get("Content-Type", ""))
        return AudioResource(response.content, encoding)

    def health(self, timeout_s: Optional[float] = None) -> dict:
        return self._get_json(f"{self.base_url}/health", timeout_s)

    def service_info(self, timeout_s: Optional[float] = None) -> dict:
        return self._get_json(f"{self.base_url}/", timeout_s)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _get_json(self, url: str, timeout_s: Optional[float]) -> dict:
        response = self._send("GET", url, timeout_s)
        payload = self._json(response)
        return payload if isinstance(payload, dict) else {"result": payload}

    def _post(self, url: str, timeout_s: Optional[float], **kwargs: Any) -> Any:
        return self._send("POST", url, timeout_s, **kwargs)

    def _send(self, method: str, url: str, timeout_s: Optional[float], **kwargs: Any) -> Any:
        if requests is None:
            raise UnknownError("requests is not installed")
        timeout = timeout_s if timeout_s is not None else self._request_timeout_s
        sender = self._session or requests
        try:
            response = sender.request(method, url, timeout=timeout, **kwargs)
        except requests.Timeout as exc:
            raise RequestTimeoutError(f"no answer from {url} within {timeout:g}s") from exc
        except requests.RequestException as exc:
            raise UnknownError(f"request to {url} failed: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise self._to_provider_error(response)
        return response

    def _json(self, response: Any) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise UnknownError("speech service returned invalid JSON") from exc

    def _to_provider_error(self, response: Any) -> ProviderError:
        """Map a non-2xx response to ProviderError, keeping detail/message."""
        detail = ""
        message = ""
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            detail = _as_text(payload.get("detail"))
            message = _as_text(payload.get("message"))
        if not message:
            message = (getattr(response, "reason", "") or "").strip()
        logger.warning("speech service answered %s: %s", response.status_code, detail or message)
        return ProviderError(status=response.status_code, detail=detail, message=message)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    # FastAPI validation errors arrive as a list of {loc, msg, type}.
    if isinstance(value, list):
        parts = [str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in value]
        return "; ".join(parts)
    return str(value)
