"""Guild listings shared between the user and the bot."""

from __future__ import annotations

import logging

from ..adapters.base import IdentityProvider
from .models import GuildChannel, GuildMembership, Identity
from .permissions import require_administrator

log = logging.getLogger("lunor.guilds")


class MutualGuildResolver:
    """Resolve guilds the user shares with the bot.

    Every call goes to the provider; results are not cached and failures
    propagate as :class:`~lunor_dashboard.errors.UpstreamUnavailable`.
    """

    def __init__(self, provider: IdentityProvider) -> None:
        self.provider = provider

    async def mutual_guilds(self, identity: Identity) -> list[GuildMembership]:
        """Return the identity's memberships for guilds the bot is also in.

        Order follows ``identity.guild_memberships`` and the returned entries
        are the user's own, so they carry the user's permission bitmask.
        """
        bot_guilds = await self.provider.fetch_bot_guilds()
        bot_ids = {g.guild_id for g in bot_guilds}
        mutual = [m for m in identity.guild_memberships if m.guild_id in bot_ids]
        log.debug(
            "user=%s mutual guilds=%d of %d",
            identity.id,
            len(mutual),
            len(identity.guild_memberships),
        )
        return mutual

    async def guild_channels(
        self, identity: Identity, guild_id: str
    ) -> list[GuildChannel]:
        """Return the channels of an administered guild."""
        require_administrator(identity, guild_id)
        return await self.provider.fetch_guild_channels(guild_id)
