"""Card preview and review routes."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from mnemo.core.errors import CardNotFoundError
from mnemo.core.models import Card
from mnemo.core.scheduler import SchedulingEngine
from mnemo.core.session import ReviewService
from mnemo.core.storage import Storage
from mnemo.web.dependencies import get_engine, get_storage

router = APIRouter()


class ReviewRequest(BaseModel):
    rating: int


class ReviewResponse(BaseModel):
    card: Card
    persisted: bool


def _load(storage: Storage, card_id: str) -> Card:
    card = storage.cards.get_card(card_id)
    if card is None:
        raise CardNotFoundError(f"Card not found: {card_id}")
    return card


@router.get("/{card_id}")
async def get_card(card_id: str, storage: Storage = Depends(get_storage)) -> Card:
    return _load(storage, card_id)


@router.get("/{card_id}/preview")
async def preview_card(
    card_id: str,
    storage: Storage = Depends(get_storage),
    engine: SchedulingEngine = Depends(get_engine),
) -> dict:
    """Projected outcome of each rating; the card itself is not changed."""
    card = _load(storage, card_id)
    return {
        rating.name.lower(): {
            "interval": option.interval,
            "card": option.card.model_dump(mode="json"),
        }
        for rating, option in engine.preview(card).items()
    }


@router.post("/{card_id}/review")
async def review_card(
    card_id: str,
    body: ReviewRequest,
    storage: Storage = Depends(get_storage),
    engine: SchedulingEngine = Depends(get_engine),
) -> ReviewResponse:
    """Record a review and return the rescheduled card."""
    service = ReviewService(engine, storage.cards, storage.logs)
    outcome = service.review(card_id, body.rating)
    return ReviewResponse(card=outcome.card, persisted=outcome.persisted)
