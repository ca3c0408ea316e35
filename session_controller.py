"""State-machine based conversation orchestration.

One interaction at a time runs through
``IDLE -> CAPTURING -> TRANSCRIBING -> SYNTHESIZING -> SETTLED -> IDLE``
(typed text skips the first two steps). Any pipeline failure appends a
single ERROR entry and goes ``FAILED -> IDLE``.

The user's own message is appended before any remote call starts, so the
transcript shows it while the network is still working.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, TypeVar

from errors import (
    AlreadyRecordingError,
    EmptyTranscriptionError,
    NotRecordingError,
    RequestTimeoutError,
    SessionBusyError,
    UnknownError,
    VoiceChatError,
)
from interfaces import Recorder, SpeechProvider
from models import (
    DEFAULT_LANGUAGE,
    LANGUAGES,
    AudioResource,
    ConversationEntry,
    EntryKind,
    SessionState,
    VoiceParams,
    speaker_for,
)
from playback import PlaybackCoordinator
from transcript import TranscriptStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

StateCallback = Callable[[SessionState, SessionState], None]
ErrorCallback = Callable[[str, str], None]


class ConversationController:
    def __init__(
        self,
        recorder: Recorder,
        provider: SpeechProvider,
        transcript: Optional[TranscriptStore] = None,
        playback: Optional[PlaybackCoordinator] = None,
        language: str = DEFAULT_LANGUAGE,
        voice_params: Optional[VoiceParams] = None,
        transcription_timeout_s: float = 60.0,
        synthesis_timeout_s: float = 60.0,
        on_state_change: Optional[StateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        if language not in LANGUAGES:
            raise ValueError(f"unsupported language: {language}")
        self._recorder = recorder
        self._provider = provider
        self.transcript = transcript if transcript is not None else TranscriptStore()
        self._playback = playback
        self._language = language
        self.voice_params = voice_params or VoiceParams()
        self.transcription_timeout_s = transcription_timeout_s
        self.synthesis_timeout_s = synthesis_timeout_s
        self._on_state_change = on_state_change
        self._on_error = on_error

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._interaction_language = language

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def language(self) -> str:
        return self._language

    @property
    def is_busy(self) -> bool:
        return self._state != SessionState.IDLE

    def set_language(self, language: str) -> None:
        """Applies to the next interaction; an in-flight one keeps its own."""
        if language not in LANGUAGES:
            raise ValueError(f"unsupported language: {language}")
        self._language = language

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def start_recording(self) -> None:
        with self._lock:
            self._ensure_idle()
            try:
                self._recorder.begin()
            except VoiceChatError as exc:
                self._emit_error(exc.code, exc.display_message)
                raise
            self._interaction_language = self._language
            self._transition(SessionState.CAPTURING)

    def stop_recording(self) -> Optional[ConversationEntry]:
        """Finish capture and run transcribe -> synthesize.

        Blocks until the interaction settles; returns the last entry appended.
        """
        with self._lock:
            if self._state != SessionState.CAPTURING:
                raise NotRecordingError()
            language = self._interaction_language
            try:
                audio = self._recorder.end()
            except Exception as exc:
                self._transition(SessionState.IDLE)
                if isinstance(exc, VoiceChatError):
                    self._emit_error(exc.code, exc.display_message)
                    raise
                logger.exception("finishing the recording failed")
                error = UnknownError(str(exc))
                self._emit_error(error.code, error.display_message)
                raise error from exc
            self._transition(SessionState.TRANSCRIBING)

        return self._run_pipeline(language, audio=audio)

    def send_text(self, text: str) -> Optional[ConversationEntry]:
        text = text.strip()
        if not text:
            return None
        with self._lock:
            self._ensure_idle()
            language = self._language
            self._interaction_language = language
            self._transition(SessionState.SYNTHESIZING)

        return self._run_pipeline(language, text=text)

    def close(self) -> None:
        """End of session: drop capture, silence playback, release audio."""
        with self._lock:
            if self._state == SessionState.CAPTURING:
                self._recorder.abort()
                self._transition(SessionState.IDLE)
        if self._playback is not None:
            self._playback.stop()
        self.transcript.close()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _run_pipeline(
        self,
        language: str,
        audio: Optional[AudioResource] = None,
        text: str = "",
    ) -> Optional[ConversationEntry]:
        try:
            if audio is not None:
                self.transcript.append(EntryKind.USER_AUDIO, language=language, audio=audio)
                text = self._transcribe(audio, language)
                self.transcript.append(EntryKind.TRANSCRIPTION, language=language, text=text)
                self._transition(SessionState.SYNTHESIZING)
            else:
                self.transcript.append(EntryKind.USER_TEXT, language=language, text=text)
            reply = self._synthesize(text, language)
            entry = self.transcript.append(
                EntryKind.SYNTHESIZED_REPLY,
                language=language,
                audio=reply,
                related_text=text,
            )
        except Exception as exc:
            return self._fail(exc, language)
        self._transition(SessionState.SETTLED)
        self._transition(SessionState.IDLE)
        return entry

    def _transcribe(self, audio: AudioResource, language: str) -> str:
        text = self._call_with_timeout(
            lambda: self._provider.transcribe(audio, language, self.transcription_timeout_s),
            self.transcription_timeout_s,
            "transcription",
        )
        text = (text or "").strip()
        if not text:
            raise EmptyTranscriptionError()
        return text

    def _synthesize(self, text: str, language: str) -> AudioResource:
        speaker = speaker_for(language)
        return self._call_with_timeout(
            lambda: self._provider.synthesize(
                text, language, speaker, self.voice_params, self.synthesis_timeout_s
            ),
            self.synthesis_timeout_s,
            "synthesis",
        )

    def _call_with_timeout(self, call: Callable[[], T], timeout_s: float, what: str) -> T:
        """Run ``call`` on a worker thread and wait at most ``timeout_s``.

        A call that misses the deadline keeps running; its result is dropped.
        """
        done = threading.Event()
        outcome: dict = {}

        def worker() -> None:
            try:
                outcome["value"] = call()
            except BaseException as exc:  # re-raised on the caller's thread
                outcome["error"] = exc
            finally:
                done.set()

        threading.Thread(target=worker, name=f"{what}-call", daemon=True).start()
        if not done.wait(timeout=timeout_s):
            raise RequestTimeoutError(f"{what} timed out after {timeout_s:g}s")
        if "error" in outcome:
            raise outcome["error"]
        return outcome["value"]

    def _fail(self, exc: Exception, language: str) -> Optional[ConversationEntry]:
        if self.transcript.closed:
            # session ended under us; nothing left to report into
            logger.info("interaction dropped, transcript closed: %s", exc)
            self._transition(SessionState.IDLE)
            return None
        error = exc if isinstance(exc, VoiceChatError) else UnknownError(str(exc))
        if error is exc:
            logger.warning("interaction failed (%s): %s", error.code, error.display_message)
        else:
            logger.exception("interaction failed unexpectedly")
        self._transition(SessionState.FAILED)
        entry = self.transcript.append(
            EntryKind.ERROR,
            language=language,
            text=error.display_message,
        )
        self._transition(SessionState.IDLE)
        return entry

    def _ensure_idle(self) -> None:
        if self._state == SessionState.IDLE:
            return
        if self._state == SessionState.CAPTURING:
            error: VoiceChatError = AlreadyRecordingError()
        else:
            error = SessionBusyError()
        self._emit_error(error.code, error.display_message)
        raise error

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _transition(self, to_state: SessionState) -> None:
        with self._lock:
            from_state = self._state
            if from_state == to_state:
                return
            self._state = to_state
        logger.debug("session %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
