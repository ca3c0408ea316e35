"""Protocol interfaces used by ConversationController and PlaybackCoordinator."""

from __future__ import annotations

from typing import Callable, Optional, Protocol

from models import AudioResource, RecorderState, VoiceParams


class Recorder(Protocol):
    @property
    def state(self) -> RecorderState: ...

    def begin(self) -> None: ...

    def end(self) -> AudioResource: ...

    def abort(self) -> None: ...


class SpeechProvider(Protocol):
    def transcribe(
        self,
        audio: AudioResource,
        language: str,
        timeout_s: Optional[float] = None,
    ) -> str: ...

    def synthesize(
        self,
        text: str,
        language: str,
        speaker: str,
        params: VoiceParams,
        timeout_s: Optional[float] = None,
    ) -> AudioResource: ...


class AudioPlayer(Protocol):
    def play(self, audio: AudioResource, on_finished: Callable[[], None]) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def stop(self) -> None: ...

