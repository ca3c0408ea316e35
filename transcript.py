"""Append-only conversation log."""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Callable, Optional

from models import AudioResource, ConversationEntry, EntryKind

logger = logging.getLogger(__name__)

EntryListener = Callable[[ConversationEntry], None]


class TranscriptStore:
    """Ordered, append-only sequence of ConversationEntry.

    Insertion order is display order. Entries are never removed or edited;
    ``close()`` only revokes their audio handles at the end of the session.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[ConversationEntry] = []
        self._by_id: dict[int, ConversationEntry] = {}
        self._ids = itertools.count(1)
        self._listeners: list[EntryListener] = []
        self._closed = False

    def append(
        self,
        kind: EntryKind,
        *,
        language: str,
        text: str = "",
        audio: Optional[AudioResource] = None,
        related_text: str = "",
    ) -> ConversationEntry:
        with self._lock:
            if self._closed:
                raise RuntimeError("transcript is closed")
            entry = ConversationEntry(
                id=next(self._ids),
                kind=kind,
                language=language,
                text=text,
                audio=audio,
                related_text=related_text,
            )
            self._entries.append(entry)
            self._by_id[entry.id] = entry
            listeners = list(self._listeners)
        logger.debug("entry %d appended: %s", entry.id, kind.value)
        for listener in listeners:
            listener(entry)
        return entry

    def entries(self) -> tuple[ConversationEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def get(self, entry_id: int) -> ConversationEntry:
        with self._lock:
            try:
                return self._by_id[entry_id]
            except KeyError:
                raise KeyError(f"no transcript entry with id {entry_id}") from None

    def last(self) -> Optional[ConversationEntry]:
        with self._lock:
            return self._entries[-1] if self._entries else None

    def subscribe(self, listener: EntryListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def close(self) -> None:
        """Release every entry's audio handle."""
        with self._lock:
            self._closed = True
            entries = list(self._entries)
        for entry in entries:
            if entry.audio is not None:
                entry.audio.revoke()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
