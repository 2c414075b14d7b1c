from fastapi import FastAPI
from contextlib import asynccontextmanager
from typing import Optional
from deckforge.core.config import settings
from deckforge.core.db.base import async_session_maker, engine
from deckforge.core.logging import setup_logging
from deckforge.apis.decks.main import router as decks_router
from deckforge.apis.credits.main import router as credits_router
from deckforge.modules.decks.main import DeckService, build_db_service

import uvicorn
from fastapi.middleware.cors import CORSMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "deck_service", None) is None:
        app.state.deck_service = build_db_service(async_session_maker)
    try:
        yield
    finally:
        await engine.dispose()


def create_app(deck_service: Optional[DeckService] = None) -> FastAPI:
    setup_logging()
    app = FastAPI(
        title=settings.app.name, version=settings.app.version, lifespan=lifespan
    )
    # One service per process: the admission gate must be shared by all requests
    app.state.deck_service = deck_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(decks_router)
    app.include_router(credits_router)

    @app.get("/")
    async def root():
        return {
            "status": "ok",
            "app": settings.app.name,
            "version": settings.app.version,
        }

    return app


app = create_app()


if __name__ == "__main__":
    try:
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.app.port,
            reload=not settings.app.is_production,
        )
    except Exception as e:
        print(f"An error occurred when starting the server: {e}.")
