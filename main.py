"""Application entrypoint."""

from __future__ import annotations

import logging
import sys
import threading
from typing import Callable

from audio_player import SoundDevicePlayer
from chat_window import ChatWindow
from config import JsonConfigStore
from errors import VoiceChatError
from models import ConversationEntry, PlaybackEvent, SessionState
from playback import PlaybackCoordinator
from recorder import SoundDeviceRecorder
from session_controller import ConversationController
from speech_client import HttpSpeechClient
from transcript import TranscriptStore

try:
    from PySide6.QtCore import QObject, Signal
    from PySide6.QtWidgets import QApplication
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


class UIBridge(QObject):
    entry_signal = Signal(object)
    state_signal = Signal(str, str)  # from_state, to_state
    error_signal = Signal(str)
    info_signal = Signal(str)
    playback_signal = Signal(int, str)  # entry_id, PlaybackEvent value


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.config_store = JsonConfigStore()
        logging.basicConfig(
            level=self.config_store.get_log_level(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        self.ui = UIBridge()
        self.ui.entry_signal.connect(self._on_entry_ui)
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.info_signal.connect(self._on_info_ui)
        self.ui.playback_signal.connect(self._on_playback_ui)

        self.client = HttpSpeechClient()
        self.transcript = TranscriptStore()
        self.transcript.subscribe(self._on_entry)
        self.playback = PlaybackCoordinator(
            player=SoundDevicePlayer(),
            transcript=self.transcript,
            on_event=self._on_playback_event,
        )
        self.controller = ConversationController(
            recorder=SoundDeviceRecorder(),
            provider=self.client,
            transcript=self.transcript,
            playback=self.playback,
            language=self.config_store.get_language(),
            voice_params=self.config_store.get_voice_params(),
            transcription_timeout_s=self.config_store.get_transcription_timeout_s(),
            synthesis_timeout_s=self.config_store.get_synthesis_timeout_s(),
            on_state_change=self._on_state_change,
            on_error=self._on_error,
        )

        self.window = ChatWindow(language=self.controller.language, base_url=self.client.base_url)
        self.window.record_clicked.connect(self._on_record_clicked)
        self.window.text_submitted.connect(self._on_text_submitted)
        self.window.play_clicked.connect(self._on_play_clicked)
        self.window.language_changed.connect(self._on_language_changed)
        self.window.base_url_submitted.connect(self._on_base_url_submitted)
        self.window.check_service_clicked.connect(self._on_check_service)
        self.app.aboutToQuit.connect(self.controller.close)

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_entry(self, entry: ConversationEntry) -> None:
        self.ui.entry_signal.emit(entry)

    def _on_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(message)

    def _on_playback_event(self, entry_id: int, event: PlaybackEvent) -> None:
        self.ui.playback_signal.emit(entry_id, event.value)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_entry_ui(self, entry: ConversationEntry) -> None:
        self.window.add_entry(entry)

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        self.window.set_state(SessionState(to_state))

    def _on_error_ui(self, message: str) -> None:
        self.window.show_error(message)

    def _on_info_ui(self, message: str) -> None:
        self.window.show_info(message)

    def _on_playback_ui(self, entry_id: int, event: str) -> None:
        playing = event in (PlaybackEvent.STARTED.value, PlaybackEvent.RESUMED.value)
        self.window.set_playing(entry_id, playing)

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def _on_record_clicked(self) -> None:
        if self.controller.state == SessionState.CAPTURING:
            # stop_recording waits on the network; keep it off the Qt thread
            self._in_background(self.controller.stop_recording)
            return
        try:
            self.controller.start_recording()
        except VoiceChatError as exc:
            logger.info("record rejected: %s", exc.code)

    def _on_text_submitted(self, text: str) -> None:
        self._in_background(lambda: self.controller.send_text(text))

    def _on_play_clicked(self, entry_id: int) -> None:
        try:
            self.playback.toggle_pause(entry_id)
        except Exception as exc:
            self.window.show_error(f"Cannot play audio: {exc}")

    def _on_language_changed(self, language: str) -> None:
        self.controller.set_language(language)
        self.config_store.set_language(language)

    def _on_base_url_submitted(self, url: str) -> None:
        try:
            self.client.base_url = url
        except ValueError as exc:
            self.window.show_error(str(exc))
            return
        self.window.show_info(f"Using {self.client.base_url}")

    def _on_check_service(self) -> None:
        def check() -> None:
            try:
                status = self.client.health(timeout_s=10.0)
            except VoiceChatError as exc:
                self.ui.error_signal.emit(f"Service check failed: {exc.display_message}")
                return
            self.ui.info_signal.emit(f"Service: {status.get('status', status)}")

        threading.Thread(target=check, daemon=True).start()

    def _in_background(self, target: Callable[[], object]) -> None:
        def run() -> None:
            try:
                target()
            except VoiceChatError as exc:
                logger.info("gesture rejected: %s", exc.code)
            except Exception:
                logger.exception("background gesture failed")

        threading.Thread(target=run, daemon=True).start()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.window.show()
        return self.app.exec()


def main() -> int:
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
