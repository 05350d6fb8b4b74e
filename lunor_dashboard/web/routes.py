"""HTTP routes of the dashboard API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from pydantic import AliasChoices, BaseModel, Field

from ..config import Settings
from ..core.guilds import MutualGuildResolver
from ..core.models import Identity
from ..core.sessions import STATE_TTL_SECONDS, IdentitySessionManager
from ..core.storage import ConsistencyReporter, GuildConfigStore
from .dependencies import (
    clear_session_cookie,
    get_config_store,
    get_current_identity,
    get_guild_resolver,
    get_reporter,
    get_sessions,
    get_settings,
    session_id_from,
    set_session_cookie,
)

router = APIRouter()


class WelcomeChannelRequest(BaseModel):
    channel_ref: str = Field(
        validation_alias=AliasChoices("channelRef", "channelId", "channel_ref"),
    )


@router.get("/", response_class=PlainTextResponse)
async def health() -> str:
    return "Lunor Dashboard is running!"


# ----------------------------------------------------------------------
# Authentication
# ----------------------------------------------------------------------
@router.get("/auth/login")
async def login(
    request: Request,
    settings: Settings = Depends(get_settings),
    sessions: IdentitySessionManager = Depends(get_sessions),
) -> RedirectResponse:
    redirect = await sessions.begin_authentication(session_id_from(request))
    response = RedirectResponse(redirect.url)
    set_session_cookie(response, settings, redirect.session_id, STATE_TTL_SECONDS)
    return response


@router.get("/auth/callback")
async def oauth_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    settings: Settings = Depends(get_settings),
    sessions: IdentitySessionManager = Depends(get_sessions),
) -> RedirectResponse:
    outcome = await sessions.complete_authentication(
        session_id_from(request), code, state
    )
    response = RedirectResponse(outcome.redirect)
    if outcome.authenticated and outcome.session_id:
        set_session_cookie(
            response, settings, outcome.session_id, settings.session_ttl_seconds
        )
    else:
        clear_session_cookie(response, settings)
    return response


@router.api_route("/auth/logout", methods=["GET", "POST"])
async def logout(
    request: Request,
    settings: Settings = Depends(get_settings),
    sessions: IdentitySessionManager = Depends(get_sessions),
) -> JSONResponse:
    await sessions.end_session(session_id_from(request))
    response = JSONResponse({"success": True})
    clear_session_cookie(response, settings)
    return response


# ----------------------------------------------------------------------
# Identity and guilds
# ----------------------------------------------------------------------
@router.get("/api/user")
async def current_user(
    identity: Identity = Depends(get_current_identity),
) -> dict[str, Any]:
    return identity.public_view()


@router.get("/api/guilds")
async def mutual_guilds(
    identity: Identity = Depends(get_current_identity),
    resolver: MutualGuildResolver = Depends(get_guild_resolver),
) -> list[dict[str, Any]]:
    guilds = await resolver.mutual_guilds(identity)
    return [g.model_dump(by_alias=True) for g in guilds]


@router.get("/api/guilds/{guild_id}/channels")
async def guild_channels(
    guild_id: str,
    identity: Identity = Depends(get_current_identity),
    resolver: MutualGuildResolver = Depends(get_guild_resolver),
) -> list[dict[str, Any]]:
    channels = await resolver.guild_channels(identity, guild_id)
    return [c.model_dump(by_alias=True) for c in channels]


# ----------------------------------------------------------------------
# Guild configuration
# ----------------------------------------------------------------------
@router.get("/api/guilds/{guild_id}/config")
async def get_guild_config(
    guild_id: str,
    identity: Identity = Depends(get_current_identity),
    configs: GuildConfigStore = Depends(get_config_store),
) -> dict[str, Any]:
    config = await configs.get_or_create(identity, guild_id)
    return config.model_dump(by_alias=True)


@router.post("/api/guilds/{guild_id}/config")
async def update_guild_config(
    guild_id: str,
    payload: dict[str, Any] = Body(...),
    identity: Identity = Depends(get_current_identity),
    configs: GuildConfigStore = Depends(get_config_store),
) -> dict[str, Any]:
    # Accept either {"settings": {...}} or the settings object itself.
    nested = payload.get("settings")
    partial = nested if isinstance(nested, dict) else payload
    await configs.update_settings(identity, guild_id, partial)
    return {"success": True}


@router.post("/api/guilds/{guild_id}/welcome-channel")
async def set_welcome_channel(
    guild_id: str,
    body: WelcomeChannelRequest,
    identity: Identity = Depends(get_current_identity),
    configs: GuildConfigStore = Depends(get_config_store),
) -> dict[str, Any]:
    update = await configs.set_welcome_channel(identity, guild_id, body.channel_ref)
    return {"success": True, **update.model_dump(by_alias=True)}


@router.get(
    "/api/debug/welcome-channels", dependencies=[Depends(get_current_identity)]
)
async def welcome_channel_report(
    reporter: ConsistencyReporter = Depends(get_reporter),
) -> dict[str, Any]:
    report = await reporter.compare_welcome_channel_state()
    return report.model_dump(by_alias=True)
