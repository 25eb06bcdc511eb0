"""
Voosh - Application Entry Point
=================================
FastAPI application factory.

On startup the lifespan builds the ``ServiceContainer`` from ``Settings``
(one shared httpx client, one motor client), ensures the transcript
indexes and publishes the container as ``app.state.services``.  At
shutdown the network handles are closed.

Tests (and embedders of the app) may pass a ready ``ServiceContainer``;
the lifespan then neither builds nor closes anything.

Usage:
    python -m voosh.src.main
    uvicorn voosh.src.main:create_app --factory
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from voosh.config.settings import Settings
from voosh.src.api.routes import router
from voosh.src.container import ServiceContainer, build_services
from voosh.src.database.session_store import MongoSessionManager
from voosh.src.utils.logger import get_logger, quiet_third_party

logger = get_logger(__name__)


def create_app(settings: Settings | None = None, services: ServiceContainer | None = None) -> FastAPI:
    """Build the FastAPI app; *services* short-circuits the production wiring."""
    quiet_third_party()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services is not None:
            yield
            return

        container = build_services(settings or Settings())
        if isinstance(container.sessions, MongoSessionManager):
            try:
                await container.sessions.ensure_indexes()
            except PyMongoError as exc:
                logger.warning("Could not ensure transcript indexes: %s", exc)

        app.state.services = container
        logger.info("Voosh API ready.")
        try:
            yield
        finally:
            await container.aclose()

    app = FastAPI(title="Voosh News RAG", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.include_router(router)
    if services is not None:
        app.state.services = services
    return app


def main() -> None:
    import uvicorn

    settings = Settings()
    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT, log_level="debug" if settings.ENV == "dev" else "warning")


if __name__ == "__main__":
    main()
