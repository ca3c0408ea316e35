"""Microphone recorder adapter.

Captures int16 PCM slices from the default input device and, on ``end()``,
hands back one finished ``AudioResource`` in the best container the
platform's libsndfile build supports.
"""

from __future__ import annotations

import io
import logging
import threading
import time
import wave
from typing import Any, Iterable, Optional

from errors import (
    AlreadyRecordingError,
    DeviceUnavailableError,
    NotRecordingError,
    PermissionDeniedError,
    VoiceChatError,
)
from models import ENCODING_PREFERENCES, WAV, AudioEncoding, AudioFrame, AudioResource, RecorderState

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

try:
    import soundfile as sf
except Exception:  # pragma: no cover
    sf = None  # type: ignore

logger = logging.getLogger(__name__)

_PERMISSION_HINTS = ("permission", "not permitted", "denied", "not authorized")


def probe_capabilities() -> frozenset[str]:
    """Return the ``FORMAT/SUBTYPE`` pairs this machine can write."""
    caps = {WAV.capability}
    if sf is None or np is None:
        return frozenset(caps)
    for fmt in sf.available_formats():
        for subtype in sf.available_subtypes(fmt):
            caps.add(f"{fmt}/{subtype}")
    return frozenset(caps)


def negotiate_encoding(
    capabilities: Iterable[str],
    preferences: Iterable[AudioEncoding] = ENCODING_PREFERENCES,
) -> AudioEncoding:
    caps = set(capabilities)
    for encoding in preferences:
        if encoding.capability in caps:
            return encoding
    return WAV


def encode_pcm(
    pcm: bytes,
    encoding: AudioEncoding,
    sample_rate: int = 16000,
    channels: int = 1,
) -> bytes:
    """Wrap raw int16 PCM into ``encoding``'s container."""
    if not pcm:
        return b""
    if encoding == WAV:
        buf = io.BytesIO()
        with wave.open(buf, "wb") as wf:
            wf.setnchannels(channels)
            wf.setsampwidth(2)
            wf.setframerate(sample_rate)
            wf.writeframes(pcm)
        return buf.getvalue()
    if sf is None or np is None:
        raise DeviceUnavailableError(f"cannot encode {encoding.name}: soundfile is not installed")
    samples = np.frombuffer(pcm, dtype=np.int16).reshape(-1, channels)
    buf = io.BytesIO()
    sf.write(buf, samples, sample_rate, format=encoding.format, subtype=encoding.subtype)
    return buf.getvalue()


def _device_error(exc: Exception) -> VoiceChatError:
    low = str(exc).lower()
    if any(hint in low for hint in _PERMISSION_HINTS):
        return PermissionDeniedError(str(exc))
    return DeviceUnavailableError(str(exc))


class SoundDeviceRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        device: Optional[int] = None,
        capabilities: Optional[Iterable[str]] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.device = device
        self._capabilities = frozenset(capabilities) if capabilities is not None else None
        self._stream: Any = None
        self._state = RecorderState.IDLE
        self._lock = threading.Lock()
        self._chunks: list[AudioFrame] = []
        self._device_lost = False
        self.encoding: Optional[AudioEncoding] = None

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def buffered_bytes(self) -> int:
        return sum(len(chunk.pcm16_bytes) for chunk in self._chunks)

    def begin(self) -> None:
        with self._lock:
            if self._state != RecorderState.IDLE:
                raise AlreadyRecordingError()
            if sd is None:
                raise DeviceUnavailableError("sounddevice is not installed")
            caps = self._capabilities if self._capabilities is not None else probe_capabilities()
            encoding = negotiate_encoding(caps)
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))

            self._chunks = []
            self._device_lost = False
            self._state = RecorderState.CAPTURING
            try:
                stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    device=self.device,
                    callback=self._on_audio,
                    finished_callback=self._on_stream_finished,
                )
                stream.start()
            except Exception as exc:
                self._state = RecorderState.IDLE
                error = _device_error(exc)
                logger.warning("microphone unavailable (%s): %s", error.code, exc)
                raise error from exc
            self._stream = stream
            self.encoding = encoding
            logger.debug("capture started, encoding=%s blocksize=%d", encoding.name, blocksize)

    def end(self) -> AudioResource:
        with self._lock:
            if self._state != RecorderState.CAPTURING:
                raise NotRecordingError()
            self._state = RecorderState.FINALIZING
            device_lost = self._device_lost
            if not self._release_stream():
                device_lost = True
            chunks, self._chunks = self._chunks, []
            encoding = self.encoding or WAV
            try:
                if device_lost:
                    raise DeviceUnavailableError("input device disconnected during recording")
                pcm = b"".join(chunk.pcm16_bytes for chunk in chunks)
                data = encode_pcm(pcm, encoding, self.sample_rate, self.channels)
                logger.debug("capture finished: %d slices, %d bytes", len(chunks), len(data))
                return AudioResource(data, encoding)
            finally:
                self.encoding = None
                self._state = RecorderState.IDLE

    def abort(self) -> None:
        """Drop an in-progress capture without producing a resource."""
        with self._lock:
            if self._state != RecorderState.CAPTURING:
                return
            self._state = RecorderState.FINALIZING
            self._release_stream()
            self._chunks = []
            self.encoding = None
            self._state = RecorderState.IDLE

    def _release_stream(self) -> bool:
        stream, self._stream = self._stream, None
        if stream is None:
            return True
        try:
            stream.stop()
            stream.close()
        except Exception as exc:
            logger.warning("failed to close input stream: %s", exc)
            return False
        return True

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if self._state != RecorderState.CAPTURING:
            return
        if np is None:
            return
        if status:
            logger.debug("input status: %s", status)
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        self._chunks.append(
            AudioFrame(
                pcm16_bytes=payload,
                sample_rate=self.sample_rate,
                channels=self.channels,
                timestamp_ms=int(time.time() * 1000),
            )
        )

    def _on_stream_finished(self) -> None:
        # Only a stream that dies while we still capture counts as lost.
        if self._state == RecorderState.CAPTURING:
            logger.warning("input stream finished unexpectedly")
            self._device_lost = True
