"""Shared fixtures: building Anki packages in-process."""

import io
import json
import sqlite3
import tempfile
import zipfile
from pathlib import Path

import pytest

_SCHEMA = """
CREATE TABLE col (
    id INTEGER PRIMARY KEY,
    crt INTEGER NOT NULL,
    mod INTEGER NOT NULL DEFAULT 0,
    decks TEXT NOT NULL DEFAULT ''
);
CREATE TABLE notes (
    id INTEGER PRIMARY KEY,
    mid INTEGER NOT NULL DEFAULT 1,
    tags TEXT NOT NULL DEFAULT '',
    flds TEXT NOT NULL
);
CREATE TABLE cards (
    id INTEGER PRIMARY KEY,
    nid INTEGER NOT NULL,
    did INTEGER NOT NULL,
    ord INTEGER NOT NULL DEFAULT 0,
    type INTEGER NOT NULL DEFAULT 0,
    queue INTEGER NOT NULL DEFAULT 0,
    due INTEGER NOT NULL DEFAULT 0,
    ivl INTEGER NOT NULL DEFAULT 0,
    factor INTEGER NOT NULL DEFAULT 0,
    reps INTEGER NOT NULL DEFAULT 0,
    lapses INTEGER NOT NULL DEFAULT 0
);
"""


def build_collection(
    notes: list[dict],
    cards: list[dict],
    decks: dict[int, str] | None = None,
    deck_rows: list[tuple[int, str]] | None = None,
    crt: int = 0,
) -> bytes:
    """Bytes of a minimal Anki collection database.

    ``decks`` goes into ``col.decks`` as JSON; ``deck_rows`` creates the
    newer ``decks`` table instead.
    """
    decks_json = ""
    if decks:
        decks_json = json.dumps({str(k): {"id": k, "name": v} for k, v in decks.items()})
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "collection.anki2"
        conn = sqlite3.connect(path)
        conn.executescript(_SCHEMA)
        conn.execute("INSERT INTO col (id, crt, decks) VALUES (1, ?, ?)", (crt, decks_json))
        if deck_rows is not None:
            conn.execute("CREATE TABLE decks (id INTEGER PRIMARY KEY, name TEXT NOT NULL)")
            conn.executemany("INSERT INTO decks (id, name) VALUES (?, ?)", deck_rows)
        for note in notes:
            conn.execute(
                "INSERT INTO notes (id, tags, flds) VALUES (?, ?, ?)",
                (note["id"], note.get("tags", ""), "\x1f".join(note["fields"])),
            )
        for card in cards:
            conn.execute(
                "INSERT INTO cards (id, nid, did, type, due, ivl, factor, reps, lapses) "
                "VALUES (:id, :nid, :did, :type, :due, :ivl, :factor, :reps, :lapses)",
                {
                    "did": 1,
                    "type": 0,
                    "due": 0,
                    "ivl": 0,
                    "factor": 0,
                    "reps": 0,
                    "lapses": 0,
                    **card,
                },
            )
        conn.commit()
        conn.close()
        return path.read_bytes()


def build_apkg(entries: dict[str, bytes]) -> bytes:
    """Zip archive bytes holding the given entries."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def make_apkg():
    """Factory: make_apkg(notes, cards, media=False, collection_name=..., **collection_kwargs)."""

    def _make(
        notes: list[dict],
        cards: list[dict],
        media: bool = False,
        collection_name: str = "collection.anki2",
        **kwargs,
    ) -> bytes:
        entries = {collection_name: build_collection(notes, cards, **kwargs)}
        if media:
            entries["media"] = b"{}"
        return build_apkg(entries)

    return _make
