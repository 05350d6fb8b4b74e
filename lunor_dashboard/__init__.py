"""Core package for the Lunor dashboard.

This module exposes the data models, the permission gate and the guild
configuration layer so that consumers of the package can simply import them
from ``lunor_dashboard``.
"""

from .core.models import GuildConfiguration, GuildMembership, Identity, LegacyWelcomeMap
from .core.permissions import MANAGE_GUILD_BIT, can_administer
from .core.storage import ConsistencyReporter, GuildConfigStore

__all__ = [
    "GuildConfiguration",
    "GuildMembership",
    "Identity",
    "LegacyWelcomeMap",
    "MANAGE_GUILD_BIT",
    "can_administer",
    "ConsistencyReporter",
    "GuildConfigStore",
]
