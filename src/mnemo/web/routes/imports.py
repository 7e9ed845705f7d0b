"""Import routes. Files are sent as the raw request body."""

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from mnemo.core.models import Deck, ImportResult
from mnemo.core.storage import Storage
from mnemo.io.anki import AnkiImporter
from mnemo.io.container import ContainerReader
from mnemo.io.phase6 import DEFAULT_DECK_NAME, import_from_csv, import_from_xml
from mnemo.web.dependencies import get_reader, get_storage

router = APIRouter()


class ImportSummary(BaseModel):
    success: bool
    decks: list[Deck]
    card_count: int
    saved: int
    errors: list[str]
    warnings: list[str]


def _finish(result: ImportResult, storage: Storage, dry_run: bool) -> ImportSummary:
    saved = storage.save_import(result) if result.success and not dry_run else 0
    return ImportSummary(
        success=result.success,
        decks=result.decks,
        card_count=len(result.cards),
        saved=saved,
        errors=result.errors,
        warnings=result.warnings,
    )


@router.post("/apkg")
async def import_apkg(
    request: Request,
    dry_run: bool = False,
    storage: Storage = Depends(get_storage),
    reader: ContainerReader = Depends(get_reader),
) -> ImportSummary:
    """Import an Anki package."""
    result = AnkiImporter(reader=reader).import_from_apkg(await request.body())
    return _finish(result, storage, dry_run)


@router.post("/phase6")
async def import_phase6(
    request: Request,
    fmt: str = Query("xml", alias="format", pattern="^(xml|csv)$"),
    deck_name: str = DEFAULT_DECK_NAME,
    dry_run: bool = False,
    storage: Storage = Depends(get_storage),
) -> ImportSummary:
    """Import a Phase6 XML or CSV export into a new deck."""
    text = (await request.body()).decode("utf-8-sig", errors="replace")
    result = import_from_xml(text, deck_name) if fmt == "xml" else import_from_csv(text, deck_name)
    return _finish(result, storage, dry_run)
