"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..adapters.base import IdentityProvider
from ..adapters.discord import DiscordAdapter
from ..config import Settings, load_settings
from ..core.guilds import MutualGuildResolver
from ..core.sessions import IdentitySessionManager
from ..core.storage import ConsistencyReporter, GuildConfigStore
from ..data.store import DocumentStore, JSONDocumentStore
from ..errors import DashboardError
from ..logging_config import setup_logging
from .routes import router

log = logging.getLogger("lunor.web")


def build_store(settings: Settings) -> DocumentStore:
    """Return the Mongo store when ``MONGODB_URI`` is set, else the JSON store."""
    if settings.mongodb_uri:
        from ..data.mongo import MongoDocumentStore

        return MongoDocumentStore(settings.mongodb_uri, settings.mongodb_database)
    return JSONDocumentStore(path=settings.data_path)


def build_provider(settings: Settings) -> IdentityProvider:
    return DiscordAdapter(
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        redirect_uri=settings.redirect_uri,
        bot_token=settings.bot_token,
    )


async def _dashboard_error_handler(request: Request, exc: DashboardError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error(
            "%s %s failed (%s): %s", request.method, request.url.path, exc.code, exc.message
        )
    else:
        log.info("%s %s -> %s", request.method, request.url.path, exc.status_code)
    return JSONResponse(
        {"success": False, "error": exc.code, "message": exc.message},
        status_code=exc.status_code,
    )


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("%s %s raised an unexpected error", request.method, request.url.path)
    return JSONResponse(
        {"success": False, "error": "internal_error", "message": "Internal server error"},
        status_code=500,
    )


def create_app(
    settings: Settings | None = None,
    *,
    store: DocumentStore | None = None,
    provider: IdentityProvider | None = None,
) -> FastAPI:
    """Wire the core services into a FastAPI application.

    ``store`` and ``provider`` default to the backends selected by
    ``settings``; tests pass in-memory fakes instead.
    """
    setup_logging()
    settings = settings or load_settings()
    store = store or build_store(settings)
    provider = provider or build_provider(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        await sessions.prepare()
        log.info("Dashboard started")
        yield
        await provider.close()
        await store.close()
        log.info("Dashboard stopped")

    app = FastAPI(title="Lunor Dashboard", lifespan=lifespan)
    app.state.settings = settings
    sessions = IdentitySessionManager(
        store,
        provider,
        ttl_seconds=settings.session_ttl_seconds,
        dashboard_path=settings.dashboard_path,
        landing_path=settings.landing_path,
    )
    app.state.sessions = sessions
    app.state.guilds = MutualGuildResolver(provider)
    app.state.configs = GuildConfigStore(store)
    app.state.reporter = ConsistencyReporter(store)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_exception_handler(DashboardError, _dashboard_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)
    app.include_router(router)
    return app
