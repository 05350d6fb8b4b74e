"""Guild configuration persistence in its two schemas.

Per-guild documents in ``guild_configs`` are what the dashboard reads and
writes. The worker process reads welcome channels from the singleton
``bot_settings/welcome_channels`` document instead, and
:meth:`GuildConfigStore.set_welcome_channel` writes only there. The two are
never written together; :class:`ConsistencyReporter` shows where they differ.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..data.store import DocumentStore
from ..errors import GuildNotFound
from .models import (
    DashboardWelcomeChannel,
    GuildConfiguration,
    GuildSettings,
    Identity,
    LegacyWelcomeMap,
    WelcomeChannelReport,
    WelcomeChannelUpdate,
)
from .permissions import require_administrator

log = logging.getLogger("lunor.storage")

GUILD_CONFIGS = "guild_configs"
BOT_SETTINGS = "bot_settings"
WELCOME_CHANNELS_KEY = "welcome_channels"

# Both the snake_case name and the camelCase alias map to the field name.
_SETTING_FIELDS: dict[str, str] = {}
for _name, _info in GuildSettings.model_fields.items():
    _SETTING_FIELDS[_name] = _name
    _SETTING_FIELDS[_info.alias or _name] = _name


def _flatten(document: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in document.items():
        path = f"{prefix}{key}"
        if isinstance(value, Mapping) and value:
            flat.update(_flatten(value, prefix=f"{path}."))
        else:
            flat[path] = value
    return flat


def _setting_value(value: Any) -> str:
    return "" if value is None else str(value)


def _map_key(guild_id: str) -> str:
    """Return ``guild_id`` if it can be used as a single map key."""
    # The id is one segment of a dotted path in the worker map.
    if not guild_id or "." in guild_id or guild_id.startswith("$"):
        raise GuildNotFound("Invalid guild id")
    return guild_id


class GuildConfigStore:
    """Guild configuration operations gated on the manage-guild permission."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Internal helpers
    def _seed(
        self, guild_id: str, name: str, icon: str | None
    ) -> GuildConfiguration:
        return GuildConfiguration(guild_id=guild_id, name=name, icon=icon)

    # ------------------------------------------------------------------
    # Per-guild documents
    async def get_or_create(
        self,
        identity: Identity,
        guild_id: str,
        fallback_name: str | None = None,
        fallback_icon: str | None = None,
    ) -> GuildConfiguration:
        """Return the guild's configuration, creating it with defaults if absent.

        ``fallback_name`` and ``fallback_icon`` seed a new document and
        default to the identity's membership entry for the guild.
        """
        membership = require_administrator(identity, guild_id)
        doc = await self.store.find_one(GUILD_CONFIGS, guild_id)
        if doc is None:
            seed = self._seed(
                guild_id,
                fallback_name if fallback_name is not None else membership.name,
                fallback_icon if fallback_icon is not None else membership.icon,
            )
            doc = await self.store.insert_if_absent(
                GUILD_CONFIGS, guild_id, seed.model_dump()
            )
            log.info("guild=%s configuration created by user=%s", guild_id, identity.id)
        return GuildConfiguration.model_validate(doc)

    async def update_settings(
        self,
        identity: Identity,
        guild_id: str,
        partial_settings: Mapping[str, Any],
    ) -> GuildConfiguration:
        """Set only the recognised fields of ``partial_settings``.

        Unknown keys are ignored and fields not named are left as they are.
        The document is created with defaults if it does not exist yet.
        """
        membership = require_administrator(identity, guild_id)
        fields = {
            f"settings.{_SETTING_FIELDS[key]}": _setting_value(value)
            for key, value in partial_settings.items()
            if key in _SETTING_FIELDS
        }
        seed = _flatten(
            self._seed(guild_id, membership.name, membership.icon).model_dump()
        )
        on_insert = {path: value for path, value in seed.items() if path not in fields}
        doc = await self.store.upsert_fields(GUILD_CONFIGS, guild_id, fields, on_insert)
        log.info(
            "guild=%s settings updated by user=%s fields=%s",
            guild_id,
            identity.id,
            sorted(fields),
        )
        return GuildConfiguration.model_validate(doc)

    # ------------------------------------------------------------------
    # Legacy welcome map
    async def set_welcome_channel(
        self, identity: Identity, guild_id: str, channel_ref: str
    ) -> WelcomeChannelUpdate:
        """Write the welcome channel to the worker's map only.

        The guild's dashboard document is not touched.
        """
        require_administrator(identity, guild_id)
        key = _map_key(guild_id)
        channel_ref = _setting_value(channel_ref)
        await self.store.upsert_fields(
            BOT_SETTINGS,
            WELCOME_CHANNELS_KEY,
            {f"channels.{key}": channel_ref},
        )
        log.info(
            "guild=%s legacy welcome channel set to %r by user=%s",
            guild_id,
            channel_ref,
            identity.id,
        )
        return WelcomeChannelUpdate(guild_id=guild_id, channel_ref=channel_ref)

    async def read_legacy_welcome_map(self) -> LegacyWelcomeMap:
        doc = await self.store.find_one(BOT_SETTINGS, WELCOME_CHANNELS_KEY)
        return LegacyWelcomeMap.model_validate(doc or {})

    async def all_configurations(self) -> list[GuildConfiguration]:
        docs = await self.store.find_all(GUILD_CONFIGS)
        return [GuildConfiguration.model_validate(d) for d in docs]


class ConsistencyReporter:
    """Read-only comparison of the two welcome channel schemas."""

    def __init__(self, store: DocumentStore) -> None:
        self.configs = GuildConfigStore(store)

    async def compare_welcome_channel_state(self) -> WelcomeChannelReport:
        legacy = await self.configs.read_legacy_welcome_map()
        configs = await self.configs.all_configurations()
        dashboard = [
            DashboardWelcomeChannel(
                guild_id=c.guild_id, welcome_channel=c.settings.welcome_channel
            )
            for c in configs
        ]
        dashboard_values = {d.guild_id: d.welcome_channel for d in dashboard}
        guild_ids = set(dashboard_values) | set(legacy.channels)
        drifted = sorted(
            gid
            for gid in guild_ids
            if dashboard_values.get(gid, "") != legacy.channels.get(gid, "")
        )
        if drifted:
            log.warning("welcome channel drift in %d guild(s): %s", len(drifted), drifted)
        return WelcomeChannelReport(legacy=legacy, dashboard=dashboard, drifted=drifted)
