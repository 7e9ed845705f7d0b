"""Deck listing and export routes."""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from mnemo.core.models import Card, Deck
from mnemo.core.storage import Storage
from mnemo.io.transfer import export_to_delimited_text, export_to_json
from mnemo.web.dependencies import get_storage

router = APIRouter()


def _require_deck(storage: Storage, deck_id: str) -> Deck:
    deck = storage.decks.get_deck(deck_id)
    if deck is None:
        raise HTTPException(status_code=404, detail=f"Deck not found: {deck_id}")
    return deck


@router.get("/")
async def list_decks(storage: Storage = Depends(get_storage)) -> list[dict]:
    """All decks with their card counts."""
    return [
        {**deck.model_dump(mode="json"), "card_count": storage.cards.get_card_count(deck.id)}
        for deck in storage.decks.get_all_decks()
    ]


@router.get("/{deck_id}/cards")
async def deck_cards(deck_id: str, storage: Storage = Depends(get_storage)) -> list[Card]:
    _require_deck(storage, deck_id)
    return storage.cards.get_cards_by_deck(deck_id)


@router.get("/{deck_id}/export")
async def export_deck(
    deck_id: str,
    fmt: str = Query("json", alias="format", pattern="^(json|csv)$"),
    storage: Storage = Depends(get_storage),
) -> Response:
    """Download a deck as JSON (full schedule) or CSV (content only)."""
    deck = _require_deck(storage, deck_id)
    cards = storage.cards.get_cards_by_deck(deck_id)
    if fmt == "csv":
        return Response(export_to_delimited_text(cards, deck), media_type="text/csv")
    return Response(export_to_json(cards, deck), media_type="application/json")
