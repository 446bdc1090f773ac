"""In-memory mirror of the user's notes and the bulk loader that fills it."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

from .exceptions import NotesLoadFailed
from .types import ContractHandle, Note, NoteId

logger = logging.getLogger(__name__)

_Mutation = Callable[[dict[NoteId, Note]], None]


class NoteCache:
    """Notes keyed by id, written under one lock.

    Reconciliations that land while a bulk load is fetching are journaled
    and replayed over the loaded snapshot, so a settling mutation is never
    overwritten by a reload that started before it.
    """

    def __init__(self) -> None:
        self._notes: dict[NoteId, Note] = {}
        self._lock = asyncio.Lock()
        self._journals: dict[int, list[_Mutation]] = {}
        self._next_token = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    @property
    def notes(self) -> list[Note]:
        return list(self._notes.values())

    def get(self, note_id: NoteId) -> Note | None:
        return self._notes.get(note_id)

    def __contains__(self, note_id: object) -> bool:
        return note_id in self._notes

    def __len__(self) -> int:
        return len(self._notes)

    # ------------------------------------------------------------------
    # Reconciliation writes
    # ------------------------------------------------------------------
    async def insert(self, note: Note) -> None:
        def mutation(notes: dict[NoteId, Note]) -> None:
            notes[note.id] = note

        await self._apply(mutation)

    async def patch(self, note_id: NoteId, **fields: Any) -> None:
        def mutation(notes: dict[NoteId, Note]) -> None:
            current = notes.get(note_id)
            if current is not None:
                notes[note_id] = replace(current, **fields)

        await self._apply(mutation)

    async def remove(self, note_id: NoteId) -> None:
        def mutation(notes: dict[NoteId, Note]) -> None:
            notes.pop(note_id, None)

        await self._apply(mutation)

    async def clear(self) -> None:
        async with self._lock:
            self._notes.clear()
            # Loads started before the clear belong to a torn-down session.
            self._journals.clear()

    async def _apply(self, mutation: _Mutation) -> None:
        async with self._lock:
            mutation(self._notes)
            for journal in self._journals.values():
                journal.append(mutation)

    # ------------------------------------------------------------------
    # Bulk load writes
    # ------------------------------------------------------------------
    def begin_load(self) -> int:
        self._next_token += 1
        token = self._next_token
        self._journals[token] = []
        return token

    def abort_load(self, token: int) -> None:
        self._journals.pop(token, None)

    async def commit_load(self, token: int, notes: Iterable[Note]) -> bool:
        async with self._lock:
            journal = self._journals.pop(token, None)
            if journal is None:
                logger.debug("Discarding stale note load %d", token)
                return False

            snapshot = {note.id: note for note in notes}
            for mutation in journal:
                mutation(snapshot)
            self._notes = snapshot
            return True


class NoteLoader:
    """Fetch every note owned by the session account into a :class:`NoteCache`."""

    def __init__(self, cache: NoteCache, *, request_timeout: float) -> None:
        self._cache = cache
        self._request_timeout = request_timeout

    async def load(self, handle: ContractHandle, account: str) -> list[Note]:
        token = self._cache.begin_load()
        functions = handle.contract.functions
        try:
            note_ids = await asyncio.wait_for(
                functions.getUserNotes().call({"from": account}), self._request_timeout
            )
        except Exception as exc:
            self._cache.abort_load(token)
            raise NotesLoadFailed(
                f"Failed to load notes: {exc or type(exc).__name__}",
                details={"account": account, "error": str(exc)},
            ) from exc

        results = await asyncio.gather(
            *(self._fetch_note(handle, account, int(note_id)) for note_id in note_ids)
        )
        loaded = [note for note in results if note is not None]
        await self._cache.commit_load(token, loaded)
        logger.info("Loaded %d of %d note(s) for %s", len(loaded), len(note_ids), account)
        return self._cache.notes

    async def _fetch_note(
        self, handle: ContractHandle, account: str, note_id: NoteId
    ) -> Note | None:
        try:
            title, content = await asyncio.wait_for(
                handle.contract.functions.getNote(note_id).call({"from": account}),
                self._request_timeout,
            )
        except Exception as exc:
            logger.warning("Error fetching note %s: %s", note_id, exc)
            return None
        return Note(id=note_id, title=title, content=content)
