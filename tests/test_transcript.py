from __future__ import annotations

import threading

import pytest

from models import AudioResource, EntryKind
from transcript import TranscriptStore


def test_append_assigns_increasing_ids_in_order() -> None:
    store = TranscriptStore()

    first = store.append(EntryKind.USER_TEXT, language="english", text="hello")
    second = store.append(EntryKind.SYNTHESIZED_REPLY, language="english", related_text="hello")

    assert (first.id, second.id) == (1, 2)
    assert [e.kind for e in store.entries()] == [EntryKind.USER_TEXT, EntryKind.SYNTHESIZED_REPLY]
    assert store.last() is second
    assert len(store) == 2


def test_entries_snapshot_is_not_affected_by_later_appends() -> None:
    store = TranscriptStore()
    store.append(EntryKind.USER_TEXT, language="english", text="a")

    snapshot = store.entries()
    store.append(EntryKind.USER_TEXT, language="english", text="b")

    assert len(snapshot) == 1
    assert len(store.entries()) == 2


def test_entries_are_immutable() -> None:
    store = TranscriptStore()
    entry = store.append(EntryKind.USER_TEXT, language="yoruba", text="bawo")

    with pytest.raises(AttributeError):
        entry.text = "changed"  # type: ignore[misc]


def test_get_unknown_id_raises_key_error() -> None:
    store = TranscriptStore()
    with pytest.raises(KeyError):
        store.get(42)


def test_listeners_receive_each_entry() -> None:
    store = TranscriptStore()
    seen: list[int] = []
    store.subscribe(lambda entry: seen.append(entry.id))

    store.append(EntryKind.USER_TEXT, language="english", text="a")
    store.append(EntryKind.ERROR, language="english", text="boom")

    assert seen == [1, 2]


def test_concurrent_appends_keep_unique_ids() -> None:
    store = TranscriptStore()

    def writer() -> None:
        for _ in range(100):
            store.append(EntryKind.USER_TEXT, language="english", text="x")

    threads = [threading.Thread(target=writer) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    ids = [entry.id for entry in store.entries()]
    assert ids == sorted(ids)
    assert len(set(ids)) == 400


def test_close_revokes_audio_handles() -> None:
    store = TranscriptStore()
    audio = AudioResource(b"RIFF....")
    store.append(EntryKind.USER_AUDIO, language="igbo", audio=audio)

    store.close()

    assert audio.is_revoked
    with pytest.raises(ValueError):
        _ = audio.data
    with pytest.raises(RuntimeError):
        store.append(EntryKind.USER_TEXT, language="igbo", text="late")
