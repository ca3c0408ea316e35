"""Single playback slot shared by every audio entry in the transcript."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from interfaces import AudioPlayer
from models import AudioResource, PlaybackEvent
from transcript import TranscriptStore

logger = logging.getLogger(__name__)

PlaybackCallback = Callable[[int, PlaybackEvent], None]


class PlaybackCoordinator:
    """Makes sure at most one entry is audible at a time.

    The coordinator only points at entries' audio; the resources themselves
    belong to the transcript.
    """

    def __init__(
        self,
        player: AudioPlayer,
        transcript: TranscriptStore,
        on_event: Optional[PlaybackCallback] = None,
    ) -> None:
        self._player = player
        self._transcript = transcript
        self._on_event = on_event
        self._lock = threading.RLock()
        self._current: Optional[int] = None
        self._paused = False
        # Bumped on every start/stop so late finish callbacks can be told apart.
        self._token = 0

    @property
    def current_entry_id(self) -> Optional[int]:
        return self._current

    @property
    def is_paused(self) -> bool:
        return self._paused

    def is_playing(self, entry_id: int) -> bool:
        return self._current == entry_id and not self._paused

    def request(self, entry_id: int) -> None:
        with self._lock:
            audio = self._playable_audio(entry_id)
            self._stop_current()
            self._token += 1
            token = self._token
            self._current = entry_id
            self._paused = False
            try:
                self._player.play(audio, lambda: self._on_finished(entry_id, token))
            except Exception:
                self._current = None
                raise
            logger.debug("playing entry %d (%s)", entry_id, audio.handle)
            self._emit(entry_id, PlaybackEvent.STARTED)

    def toggle_pause(self, entry_id: int) -> None:
        with self._lock:
            if self._current != entry_id:
                self.request(entry_id)
                return
            if self._paused:
                self._player.resume()
                self._paused = False
                self._emit(entry_id, PlaybackEvent.RESUMED)
            else:
                self._player.pause()
                self._paused = True
                self._emit(entry_id, PlaybackEvent.PAUSED)

    def stop(self) -> None:
        with self._lock:
            self._stop_current()

    def _stop_current(self) -> None:
        if self._current is None:
            return
        entry_id = self._current
        self._current = None
        self._paused = False
        self._token += 1
        self._player.stop()
        self._emit(entry_id, PlaybackEvent.STOPPED)

    def _on_finished(self, entry_id: int, token: int) -> None:
        with self._lock:
            if token != self._token or self._current != entry_id:
                return
            self._current = None
            self._paused = False
        logger.debug("entry %d finished playing", entry_id)
        self._emit(entry_id, PlaybackEvent.ENDED)

    def _playable_audio(self, entry_id: int) -> AudioResource:
        entry = self._transcript.get(entry_id)
        if entry.audio is None:
            raise ValueError(f"entry {entry_id} has no audio")
        if entry.audio.is_revoked:
            raise ValueError(f"audio of entry {entry_id} was released")
        return entry.audio

    def _emit(self, entry_id: int, event: PlaybackEvent) -> None:
        if self._on_event:
            self._on_event(entry_id, event)
