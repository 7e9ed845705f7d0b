"""Statistics route."""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from mnemo.core.stats import calculate_statistics, progress_summary
from mnemo.core.storage import Storage
from mnemo.web.dependencies import get_storage

router = APIRouter()


@router.get("/")
async def stats(deck_id: str | None = None, storage: Storage = Depends(get_storage)) -> dict:
    """Study statistics, optionally for a single deck."""
    cards = storage.cards.get_cards_by_deck(deck_id) if deck_id else storage.cards.get_all_cards()
    card_ids = {c.id for c in cards}
    logs = [log for log in storage.logs.get_all_logs() if log.card_id in card_ids]
    result = calculate_statistics(cards, logs=logs)
    return {**asdict(result), "summary": progress_summary(result)}
