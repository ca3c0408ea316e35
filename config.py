"""Simple JSON-based preference store.

The service base URL is intentionally not stored here; it lives on the
speech client for the lifetime of the session only.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from models import DEFAULT_LANGUAGE, LANGUAGES, VoiceParams

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 60.0


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "voice_chat" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_language(self) -> str:
        value = str(self._read_all().get("language", DEFAULT_LANGUAGE))
        return value if value in LANGUAGES else DEFAULT_LANGUAGE

    def set_language(self, language: str) -> None:
        if language not in LANGUAGES:
            raise ValueError(f"unsupported language: {language}")
        self._update(language=language)

    def get_voice_params(self) -> VoiceParams:
        raw = self._read_all().get("voice_params", {})
        defaults = VoiceParams()
        if not isinstance(raw, dict):
            return defaults
        try:
            return VoiceParams(
                temperature=float(raw.get("temperature", defaults.temperature)),
                repetition_penalty=float(
                    raw.get("repetition_penalty", defaults.repetition_penalty)
                ),
                max_length=int(raw.get("max_length", defaults.max_length)),
            )
        except (TypeError, ValueError):
            return defaults

    def set_voice_params(self, params: VoiceParams) -> None:
        self._update(
            voice_params={
                "temperature": params.temperature,
                "repetition_penalty": params.repetition_penalty,
                "max_length": params.max_length,
            }
        )

    def get_transcription_timeout_s(self) -> float:
        return self._get_float("transcription_timeout_s", DEFAULT_TIMEOUT_S)

    def get_synthesis_timeout_s(self) -> float:
        return self._get_float("synthesis_timeout_s", DEFAULT_TIMEOUT_S)

    def get_log_level(self) -> str:
        return str(self._read_all().get("log_level", "INFO")).upper()

    def _get_float(self, key: str, default: float) -> float:
        try:
            value = float(self._read_all().get(key, default))
        except (TypeError, ValueError):
            return default
        return value if value > 0 else default

    def _update(self, **values: object) -> None:
        data = self._read_all()
        data.update(values)
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("ignoring unreadable config %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
