"""Tests for the note cache and bulk loader."""

from __future__ import annotations

import asyncio

import pytest

from eth_notes.cache import NoteCache, NoteLoader
from eth_notes.exceptions import NotesLoadFailed
from eth_notes.types import ContractHandle, Note

from ._fakes import ALICE, BOB, CONTRACT_ADDRESS, FakeContract, FakeLedger


def _handle(ledger: FakeLedger) -> ContractHandle:
    return ContractHandle(
        address=CONTRACT_ADDRESS,
        contract=FakeContract(ledger, CONTRACT_ADDRESS),
        bound_to="signer",
        valid=True,
    )


class TestNoteCache:
    def test_insert_patch_remove(self):
        cache = NoteCache()

        async def scenario() -> None:
            await cache.insert(Note(1, "first"))
            await cache.insert(Note(2, "second", "body"))
            await cache.patch(1, content="hello")
            await cache.patch(99, content="ignored")
            await cache.remove(2)

        asyncio.run(scenario())

        assert cache.notes == [Note(1, "first", "hello")]
        assert 1 in cache
        assert 99 not in cache
        assert len(cache) == 1

    def test_reconciliation_during_load_survives_commit(self):
        cache = NoteCache()

        async def scenario() -> None:
            token = cache.begin_load()
            # A create and an edit settle while the load is fetching.
            await cache.insert(Note(7, "new"))
            await cache.patch(1, title="edited")
            committed = await cache.commit_load(token, [Note(1, "stale"), Note(2, "other")])
            assert committed

        asyncio.run(scenario())

        assert cache.get(7) == Note(7, "new")
        assert cache.get(1) == Note(1, "edited")
        assert cache.get(2) == Note(2, "other")

    def test_delete_during_load_is_not_resurrected(self):
        cache = NoteCache()

        async def scenario() -> None:
            await cache.insert(Note(3, "doomed"))
            token = cache.begin_load()
            await cache.remove(3)
            await cache.commit_load(token, [Note(3, "doomed")])

        asyncio.run(scenario())
        assert 3 not in cache

    def test_clear_discards_in_flight_load(self):
        cache = NoteCache()

        async def scenario() -> None:
            token = cache.begin_load()
            await cache.clear()
            assert not await cache.commit_load(token, [Note(1, "previous session")])

        asyncio.run(scenario())
        assert cache.notes == []

    def test_aborted_load_stops_journaling(self):
        cache = NoteCache()
        token = cache.begin_load()
        cache.abort_load(token)

        assert not asyncio.run(cache.commit_load(token, [Note(1, "x")]))


class TestNoteLoader:
    def test_loads_owned_notes(self):
        ledger = FakeLedger()
        first = ledger.seed(ALICE, "Groceries", "milk")
        ledger.seed(BOB, "Not mine")
        second = ledger.seed(ALICE, "Ideas")
        cache = NoteCache()

        notes = asyncio.run(NoteLoader(cache, request_timeout=0.5).load(_handle(ledger), ALICE))

        assert notes == [Note(first, "Groceries", "milk"), Note(second, "Ideas", "")]
        assert cache.notes == notes

    def test_failing_note_is_dropped(self):
        ledger = FakeLedger()
        kept = ledger.seed(ALICE, "kept")
        broken = ledger.seed(ALICE, "broken")
        ledger.fail_notes.add(broken)
        cache = NoteCache()

        asyncio.run(NoteLoader(cache, request_timeout=0.5).load(_handle(ledger), ALICE))

        assert [note.id for note in cache.notes] == [kept]

    def test_list_failure_raises_and_keeps_cache(self):
        ledger = FakeLedger()
        ledger.fail_reads.add("getUserNotes")
        cache = NoteCache()

        async def scenario() -> None:
            await cache.insert(Note(1, "cached"))
            await NoteLoader(cache, request_timeout=0.5).load(_handle(ledger), ALICE)

        with pytest.raises(NotesLoadFailed) as exc_info:
            asyncio.run(scenario())

        assert exc_info.value.details["account"] == ALICE
        assert cache.notes == [Note(1, "cached")]

    def test_reload_replaces_removed_notes(self):
        ledger = FakeLedger()
        note_id = ledger.seed(ALICE, "gone soon")
        cache = NoteCache()
        loader = NoteLoader(cache, request_timeout=0.5)

        async def scenario() -> None:
            await loader.load(_handle(ledger), ALICE)
            assert [note.id for note in cache.notes] == [note_id]
            del ledger.notes[note_id]
            await loader.load(_handle(ledger), ALICE)

        asyncio.run(scenario())
        assert cache.notes == []
