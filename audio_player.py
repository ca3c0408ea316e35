"""Speaker output for recorded and synthesized audio."""

from __future__ import annotations

import io
import logging
import threading
from typing import Any, Callable, Optional

from models import AudioResource

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

try:
    import soundfile as sf
except Exception:  # pragma: no cover
    sf = None  # type: ignore

logger = logging.getLogger(__name__)


class SoundDevicePlayer:
    """Decodes a resource with soundfile and feeds it to an OutputStream.

    ``on_finished`` fires only when the audio runs out, never after
    ``pause()`` or ``stop()``, and always from a fresh thread so callers may
    take their own locks.
    """

    def __init__(self, blocksize: int = 1024, device: Optional[int] = None) -> None:
        self.blocksize = blocksize
        self.device = device
        self._lock = threading.Lock()
        self._stream: Any = None
        self._samples: Any = None
        self._pos = 0
        self._paused = False
        self._stopped = True
        self._generation = 0

    def play(self, audio: AudioResource, on_finished: Callable[[], None]) -> None:
        self.stop()
        if sd is None or sf is None:
            raise RuntimeError("sounddevice/soundfile are not installed")
        samples, samplerate = sf.read(io.BytesIO(audio.data), dtype="float32", always_2d=True)
        with self._lock:
            self._samples = samples
            self._pos = 0
            self._paused = False
            self._stopped = False
            generation = self._generation
        self._stream = sd.OutputStream(
            samplerate=samplerate,
            channels=samples.shape[1],
            dtype="float32",
            blocksize=self.blocksize,
            device=self.device,
            callback=self._callback,
            finished_callback=lambda: self._on_stream_finished(generation, on_finished),
        )
        self._stream.start()

    def pause(self) -> None:
        if self._stream is None or self._paused:
            return
        self._paused = True
        self._stream.stop()

    def resume(self) -> None:
        if self._stream is None or not self._paused:
            return
        self._paused = False
        self._stream.start()

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            self._generation += 1
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.abort()
                stream.close()
            except Exception as exc:
                logger.warning("failed to close output stream: %s", exc)
        with self._lock:
            self._samples = None

    def _callback(self, outdata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.debug("output status: %s", status)
        with self._lock:
            if self._samples is None:
                outdata.fill(0)
                raise sd.CallbackStop
            chunk = self._samples[self._pos:self._pos + frames]
            self._pos += len(chunk)
        outdata[:len(chunk)] = chunk
        if len(chunk) < frames:
            outdata[len(chunk):] = 0
            raise sd.CallbackStop

    def _on_stream_finished(self, generation: int, callback: Callable[[], None]) -> None:
        # a replaced or stopped stream never reports
        with self._lock:
            if self._paused or self._stopped or generation != self._generation:
                return
        threading.Thread(target=callback, daemon=True).start()
