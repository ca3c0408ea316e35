"""Core data models for the app."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

LANGUAGES = ("english", "yoruba", "igbo", "hausa")
DEFAULT_LANGUAGE = "english"

DEFAULT_SPEAKER = "idera"
DEFAULT_SPEAKERS = {
    "english": "idera",
    "yoruba": "idera",
    "igbo": "chinenye",
    "hausa": "zainab",
}


def speaker_for(language: str) -> str:
    return DEFAULT_SPEAKERS.get(language, DEFAULT_SPEAKER)


class RecorderState(str, Enum):
    IDLE = "IDLE"
    CAPTURING = "CAPTURING"
    FINALIZING = "FINALIZING"


class SessionState(str, Enum):
    IDLE = "IDLE"
    CAPTURING = "CAPTURING"
    TRANSCRIBING = "TRANSCRIBING"
    SYNTHESIZING = "SYNTHESIZING"
    SETTLED = "SETTLED"
    FAILED = "FAILED"


class EntryKind(str, Enum):
    USER_AUDIO = "user_audio"
    USER_TEXT = "user_text"
    TRANSCRIPTION = "transcription"
    SYNTHESIZED_REPLY = "synthesized_reply"
    ERROR = "error"


class PlaybackEvent(str, Enum):
    STARTED = "started"
    PAUSED = "paused"
    RESUMED = "resumed"
    STOPPED = "stopped"
    ENDED = "ended"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass(frozen=True)
class AudioEncoding:
    """Container/codec pair; ``format``/``subtype`` use soundfile names."""

    name: str
    mime_type: str
    extension: str
    format: str
    subtype: str

    @property
    def capability(self) -> str:
        return f"{self.format}/{self.subtype}"


OGG_OPUS = AudioEncoding("ogg-opus", "audio/ogg; codecs=opus", "ogg", "OGG", "OPUS")
OGG_VORBIS = AudioEncoding("ogg-vorbis", "audio/ogg; codecs=vorbis", "ogg", "OGG", "VORBIS")
FLAC = AudioEncoding("flac", "audio/flac", "flac", "FLAC", "PCM_16")
WAV = AudioEncoding("wav", "audio/wav", "wav", "WAV", "PCM_16")
MPEG = AudioEncoding("mpeg", "audio/mpeg", "mp3", "MP3", "MPEG_LAYER_III")

ENCODING_PREFERENCES = (OGG_OPUS, OGG_VORBIS, FLAC, WAV)

_handle_ids = itertools.count(1)


class AudioResource:
    """Locally materialised audio owned by exactly one transcript entry.

    ``handle`` is what the UI refers to; after ``revoke()`` the bytes are
    released and the handle must not be played again.
    """

    def __init__(self, data: bytes, encoding: AudioEncoding = WAV) -> None:
        self._data: Optional[bytes] = data
        self.encoding = encoding
        self.handle = f"audio-{next(_handle_ids)}"

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise ValueError(f"audio handle {self.handle} was revoked")
        return self._data

    @property
    def is_revoked(self) -> bool:
        return self._data is None

    @property
    def size(self) -> int:
        return 0 if self._data is None else len(self._data)

    @property
    def filename(self) -> str:
        return f"recording.{self.encoding.extension}"

    def revoke(self) -> None:
        self._data = None

    def __repr__(self) -> str:
        state = "revoked" if self.is_revoked else f"{self.size} bytes"
        return f"AudioResource({self.handle}, {self.encoding.name}, {state})"


@dataclass(frozen=True)
class ConversationEntry:
    id: int
    kind: EntryKind
    language: str
    text: str = ""
    audio: Optional[AudioResource] = None
    related_text: str = ""
    created_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class VoiceParams:
    temperature: float = 0.1
    repetition_penalty: float = 1.1
    max_length: int = 4000
