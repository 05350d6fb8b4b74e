"""Base interface for the external identity provider."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..core.models import GuildChannel, GuildMembership


class IdentityProvider(ABC):
    """Abstract OAuth identity provider and guild listing API."""

    @abstractmethod
    def authorization_url(self, state: str) -> str:
        """Return the URL the browser is redirected to for login."""

    @abstractmethod
    async def exchange_code(self, code: str) -> str:
        """Exchange an authorization ``code`` for an access token."""

    @abstractmethod
    async def fetch_user(self, access_token: str) -> dict[str, Any]:
        """Return the profile of the token's owner."""

    @abstractmethod
    async def fetch_user_guilds(self, access_token: str) -> list[GuildMembership]:
        """Return the guilds the token's owner belongs to."""

    @abstractmethod
    async def fetch_bot_guilds(self) -> list[GuildMembership]:
        """Return the guilds the bot account belongs to."""

    @abstractmethod
    async def fetch_guild_channels(self, guild_id: str) -> list[GuildChannel]:
        """Return the channels of ``guild_id`` visible to the bot."""

    async def close(self) -> None:
        """Release network resources."""
