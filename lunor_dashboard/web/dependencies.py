"""Request-scoped access to the services attached to the application."""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.responses import Response

from ..config import Settings
from ..core.guilds import MutualGuildResolver
from ..core.models import Identity
from ..core.sessions import IdentitySessionManager
from ..core.storage import ConsistencyReporter, GuildConfigStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_sessions(request: Request) -> IdentitySessionManager:
    return request.app.state.sessions


def get_guild_resolver(request: Request) -> MutualGuildResolver:
    return request.app.state.guilds


def get_config_store(request: Request) -> GuildConfigStore:
    return request.app.state.configs


def get_reporter(request: Request) -> ConsistencyReporter:
    return request.app.state.reporter


def session_id_from(request: Request) -> str | None:
    return request.cookies.get(request.app.state.settings.cookie_name)


async def get_current_identity(
    request: Request,
    sessions: IdentitySessionManager = Depends(get_sessions),
) -> Identity:
    """Resolve the session cookie to an identity; 401 when there is none."""
    return await sessions.current_identity(session_id_from(request))


def set_session_cookie(
    response: Response, settings: Settings, session_id: str, max_age: int
) -> None:
    response.set_cookie(
        key=settings.cookie_name,
        value=session_id,
        max_age=max(1, max_age),
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(key=settings.cookie_name, path="/")
