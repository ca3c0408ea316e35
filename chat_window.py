"""Conversation window: transcript, record/send controls and settings row."""

from __future__ import annotations

from models import LANGUAGES, ConversationEntry, EntryKind, SessionState

try:
    from PySide6.QtCore import Qt, QTimer, Signal
    from PySide6.QtWidgets import (
        QComboBox,
        QHBoxLayout,
        QLabel,
        QLineEdit,
        QListWidget,
        QListWidgetItem,
        QPushButton,
        QVBoxLayout,
        QWidget,
    )
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    Signal = lambda *args: None  # type: ignore  # noqa: E731
    QComboBox = object  # type: ignore
    QHBoxLayout = object  # type: ignore
    QLabel = object  # type: ignore
    QLineEdit = object  # type: ignore
    QListWidget = object  # type: ignore
    QListWidgetItem = object  # type: ignore
    QPushButton = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore


_KIND_LABELS = {
    EntryKind.USER_AUDIO: "🎙️ You (voice)",
    EntryKind.USER_TEXT: "⌨️ You",
    EntryKind.TRANSCRIPTION: "📝 Heard",
    EntryKind.SYNTHESIZED_REPLY: "🔊 Reply",
    EntryKind.ERROR: "⚠️ Error",
}

_STATUS_TEXT = {
    SessionState.IDLE: "Ready",
    SessionState.CAPTURING: "Listening...",
    SessionState.TRANSCRIBING: "Transcribing...",
    SessionState.SYNTHESIZING: "Generating speech...",
    SessionState.SETTLED: "Done",
    SessionState.FAILED: "Failed",
}


class EntryRow(QWidget):
    def __init__(self, entry: ConversationEntry, on_play) -> None:  # noqa: ANN001
        super().__init__()
        self.entry_id = entry.id
        layout = QHBoxLayout()
        layout.setContentsMargins(6, 4, 6, 4)

        text = entry.text
        if entry.kind == EntryKind.SYNTHESIZED_REPLY:
            text = entry.related_text
        label = QLabel(f"<b>{_KIND_LABELS[entry.kind]}</b> [{entry.language}]  {text}")
        label.setWordWrap(True)
        if entry.kind == EntryKind.ERROR:
            label.setStyleSheet("color: #D64545;")
        layout.addWidget(label, 1)

        self._button: QPushButton | None = None
        if entry.audio is not None:
            self._button = QPushButton("▶")
            self._button.setFixedWidth(36)
            self._button.clicked.connect(lambda: on_play(entry.id))
            layout.addWidget(self._button)
        self.setLayout(layout)

    def set_playing(self, playing: bool) -> None:
        if self._button is not None:
            self._button.setText("⏸" if playing else "▶")


class ChatWindow(QWidget):
    record_clicked = Signal()
    text_submitted = Signal(str)
    play_clicked = Signal(int)
    language_changed = Signal(str)
    base_url_submitted = Signal(str)
    check_service_clicked = Signal()

    def __init__(self, language: str, base_url: str) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowTitle("Voice Chat")
        self.resize(640, 720)
        self._rows: dict[int, EntryRow] = {}

        self._language = QComboBox()
        for name in LANGUAGES:
            self._language.addItem(name.capitalize(), name)
        self._language.setCurrentIndex(LANGUAGES.index(language))
        self._language.currentIndexChanged.connect(
            lambda index: self.language_changed.emit(self._language.itemData(index))
        )

        self._base_url = QLineEdit(base_url)
        self._base_url.returnPressed.connect(
            lambda: self.base_url_submitted.emit(self._base_url.text())
        )
        check_button = QPushButton("Check")
        check_button.clicked.connect(self.check_service_clicked.emit)

        settings_row = QHBoxLayout()
        settings_row.addWidget(QLabel("Language"))
        settings_row.addWidget(self._language)
        settings_row.addWidget(QLabel("Service"))
        settings_row.addWidget(self._base_url, 1)
        settings_row.addWidget(check_button)

        self._list = QListWidget()

        self._input = QLineEdit()
        self._input.setPlaceholderText("Type a message...")
        self._input.returnPressed.connect(self._submit_text)
        self._send = QPushButton("Send")
        self._send.clicked.connect(self._submit_text)
        self._record = QPushButton("🎙️ Record")
        self._record.clicked.connect(self.record_clicked.emit)

        input_row = QHBoxLayout()
        input_row.addWidget(self._input, 1)
        input_row.addWidget(self._send)
        input_row.addWidget(self._record)

        self._status = QLabel(_STATUS_TEXT[SessionState.IDLE])
        self._status_timer: QTimer | None = None

        layout = QVBoxLayout()
        layout.addLayout(settings_row)
        layout.addWidget(self._list, 1)
        layout.addLayout(input_row)
        layout.addWidget(self._status)
        self.setLayout(layout)

    def add_entry(self, entry: ConversationEntry) -> None:
        row = EntryRow(entry, self.play_clicked.emit)
        item = QListWidgetItem()
        item.setSizeHint(row.sizeHint())
        self._list.addItem(item)
        self._list.setItemWidget(item, row)
        self._list.scrollToBottom()
        self._rows[entry.id] = row

    def set_playing(self, entry_id: int, playing: bool) -> None:
        row = self._rows.get(entry_id)
        if row is not None:
            row.set_playing(playing)

    def set_state(self, state: SessionState) -> None:
        """Disable inputs while an interaction is in flight."""
        self.show_info(_STATUS_TEXT[state])
        idle = state == SessionState.IDLE
        capturing = state == SessionState.CAPTURING
        self._record.setEnabled(idle or capturing)
        self._record.setText("⏹ Stop" if capturing else "🎙️ Record")
        self._send.setEnabled(idle)
        self._input.setEnabled(idle)
        self._language.setEnabled(idle)

    def show_error(self, text: str, reset_after_ms: int = 4000) -> None:
        self._status.setStyleSheet("color: #D64545;")
        self._set_status(f"⚠️ {text}")
        self._cancel_status_timer()
        self._status_timer = QTimer()
        self._status_timer.setSingleShot(True)
        self._status_timer.timeout.connect(self._reset_status)
        self._status_timer.start(reset_after_ms)

    def show_info(self, text: str) -> None:
        self._cancel_status_timer()
        self._status.setStyleSheet("")
        self._set_status(text)

    def _submit_text(self) -> None:
        text = self._input.text().strip()
        if not text:
            return
        self._input.clear()
        self.text_submitted.emit(text)

    def _set_status(self, text: str) -> None:
        self._status.setText(text)

    def _reset_status(self) -> None:
        self._status.setStyleSheet("")
        self._status.setText(_STATUS_TEXT[SessionState.IDLE])

    def _cancel_status_timer(self) -> None:
        if self._status_timer is not None:
            self._status_timer.stop()
            self._status_timer = None
