"""Web routes for Mnemo."""

from mnemo.web.routes.cards import router as cards_router
from mnemo.web.routes.decks import router as decks_router
from mnemo.web.routes.imports import router as imports_router
from mnemo.web.routes.stats import router as stats_router

__all__ = ["cards_router", "decks_router", "imports_router", "stats_router"]
