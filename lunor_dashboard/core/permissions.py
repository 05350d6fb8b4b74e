"""Guild administration checks based on the membership permission bitmask."""

from __future__ import annotations

from ..errors import AuthorizationDenied, GuildNotFound
from .models import GuildMembership, Identity

# Discord's MANAGE_GUILD permission (1 << 5)
MANAGE_GUILD_BIT = 0x20


def find_membership(identity: Identity, guild_id: str) -> GuildMembership | None:
    """Return the identity's membership entry for ``guild_id``, if any."""
    guild_id = str(guild_id)
    return next(
        (m for m in identity.guild_memberships if m.guild_id == guild_id),
        None,
    )


def has_manage_guild(permissions: int) -> bool:
    return (permissions & MANAGE_GUILD_BIT) != 0


def can_administer(identity: Identity, guild_id: str) -> bool:
    """Whether ``identity`` may change the configuration of ``guild_id``."""
    membership = find_membership(identity, guild_id)
    if membership is None:
        return False
    return has_manage_guild(membership.permissions)


def require_administrator(identity: Identity, guild_id: str) -> GuildMembership:
    """Return the membership for ``guild_id`` or raise.

    Raises :class:`GuildNotFound` when the identity is not in the guild and
    :class:`AuthorizationDenied` when it is but lacks the manage-guild bit.
    """
    membership = find_membership(identity, guild_id)
    if membership is None:
        raise GuildNotFound(f"Guild {guild_id} is not in your guild list")
    if not has_manage_guild(membership.permissions):
        raise AuthorizationDenied(f"Manage Server permission required for {guild_id}")
    return membership
