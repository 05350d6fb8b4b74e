"""Discord implementation of :class:`~lunor_dashboard.adapters.base.IdentityProvider`.

It uses :mod:`httpx` to talk to Discord's HTTP API and
:func:`discord.utils.oauth_url` to build the login URL. Every transport error
or non-2xx response is raised as
:class:`~lunor_dashboard.errors.UpstreamUnavailable`; nothing is retried.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import httpx
from discord.utils import oauth_url
from pydantic import ValidationError

from ..core.models import GuildChannel, GuildMembership
from ..errors import UpstreamUnavailable
from .base import IdentityProvider

log = logging.getLogger("lunor.discord")

OAUTH_SCOPES = ("identify", "guilds")


class DiscordAdapter(IdentityProvider):
    """Adapter that sends requests directly to the Discord HTTP API."""

    api_base = "https://discord.com/api"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        bot_token: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Store OAuth credentials, the bot ``bot_token`` and an optional ``client``."""
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.bot_token = bot_token
        self.client = client or httpx.AsyncClient(timeout=15.0)

    # ------------------------------------------------------------------
    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.api_base}{path}"
        try:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            log.error(
                "Discord API %s %s returned %s", method, path, exc.response.status_code
            )
            raise UpstreamUnavailable(
                f"Discord API error ({exc.response.status_code})"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            log.error("Discord API %s %s failed: %s", method, path, exc)
            raise UpstreamUnavailable("Discord API unreachable") from exc

    def _bot_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bot {self.bot_token}"}

    @staticmethod
    def _bearer_headers(access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    # ------------------------------------------------------------------
    def authorization_url(self, state: str) -> str:
        """Build the OAuth2 authorize URL carrying ``state``."""
        url = oauth_url(
            self.client_id, redirect_uri=self.redirect_uri, scopes=OAUTH_SCOPES
        )
        return f"{url}&{urlencode({'state': state})}"

    async def exchange_code(self, code: str) -> str:
        """Exchange an authorization code for an access token.

        Parameters
        ----------
        code:
            The ``code`` query parameter Discord sent to the redirect URI.

        """
        form = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        }
        data = await self._request("POST", "/oauth2/token", data=form)
        token = str((data or {}).get("access_token") or "")
        if not token:
            raise UpstreamUnavailable("OAuth did not return an access_token")
        return token

    async def fetch_user(self, access_token: str) -> dict[str, Any]:
        data = await self._request(
            "GET", "/users/@me", headers=self._bearer_headers(access_token)
        )
        if not isinstance(data, dict):
            raise UpstreamUnavailable("Discord returned an invalid user payload")
        return data

    async def fetch_user_guilds(self, access_token: str) -> list[GuildMembership]:
        data = await self._request(
            "GET", "/users/@me/guilds", headers=self._bearer_headers(access_token)
        )
        return _parse_list(data, GuildMembership, "guilds")

    async def fetch_bot_guilds(self) -> list[GuildMembership]:
        data = await self._request(
            "GET", "/users/@me/guilds", headers=self._bot_headers()
        )
        return _parse_list(data, GuildMembership, "guilds")

    async def fetch_guild_channels(self, guild_id: str) -> list[GuildChannel]:
        data = await self._request(
            "GET", f"/guilds/{guild_id}/channels", headers=self._bot_headers()
        )
        return _parse_list(data, GuildChannel, "channels")

    async def close(self) -> None:
        """Close the underlying :class:`httpx.AsyncClient`."""
        await self.client.aclose()


def _parse_list(data: Any, model: type, what: str) -> list:
    if not isinstance(data, list):
        raise UpstreamUnavailable(f"Discord returned an invalid {what} payload")
    try:
        return [model.model_validate(item) for item in data if isinstance(item, dict)]
    except ValidationError as exc:
        raise UpstreamUnavailable(f"Discord returned an invalid {what} payload") from exc
