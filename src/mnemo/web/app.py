"""FastAPI application for the Mnemo JSON API."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mnemo import __version__
from mnemo.core.errors import CardNotFoundError, InvalidInputError
from mnemo.web.routes import cards_router, decks_router, imports_router, stats_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Mnemo",
        description="Spaced-repetition flashcards with third-party import",
        version=__version__,
    )

    # Routes
    app.include_router(decks_router, prefix="/decks", tags=["decks"])
    app.include_router(cards_router, prefix="/cards", tags=["cards"])
    app.include_router(stats_router, prefix="/stats", tags=["stats"])
    app.include_router(imports_router, prefix="/import", tags=["import"])

    @app.exception_handler(CardNotFoundError)
    async def card_not_found(request: Request, exc: CardNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidInputError)
    async def invalid_input(request: Request, exc: InvalidInputError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


# Create the app instance for uvicorn
app = create_app()
