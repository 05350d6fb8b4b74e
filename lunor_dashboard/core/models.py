"""Data models for the dashboard's identities and guild configuration.

The models are implemented using :mod:`pydantic` so that they provide
runtime validation and convenient serialisation to and from the documents
kept by the store. JSON payloads use camelCase while Python code uses
snake_case; both spellings are accepted on input.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GuildMembership(_Model):
    """One guild the identity belongs to, as reported at login time.

    Attributes
    ----------
    guild_id:
        Discord snowflake of the guild, kept as a string.
    name:
        Guild name at login time.
    icon:
        Icon hash, or ``None`` for guilds without one.
    permissions:
        The member's permission bitmask in that guild.

    """

    guild_id: str = Field(alias="id")
    name: str = ""
    icon: str | None = None
    permissions: int = 0

    @field_validator("guild_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("permissions", mode="before")
    @classmethod
    def _coerce_permissions(cls, value: Any) -> int:
        # Discord sends the bitmask as a decimal string
        if value is None or value == "":
            return 0
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0


class Identity(_Model):
    """The authenticated user attached to a session.

    ``access_token`` lives only inside the session record; use
    :meth:`public_view` for anything sent to a client.
    """

    id: str
    username: str = ""
    guild_memberships: list[GuildMembership] = Field(default_factory=list)
    access_token: str = ""

    def public_view(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "guilds": [
                m.model_dump(by_alias=True) for m in self.guild_memberships
            ],
        }


class GuildSettings(_Model):
    """Bot settings for one guild. Empty references mean "unset"."""

    prefix: str = "!"
    mute_role: str = ""
    welcome_channel: str = ""
    leave_channel: str = ""
    log_channel: str = ""


class GuildConfiguration(_Model):
    """Per-guild configuration document used by the dashboard."""

    guild_id: str
    name: str = ""
    icon: str | None = None
    settings: GuildSettings = Field(default_factory=GuildSettings)


class LegacyWelcomeMap(_Model):
    """Singleton map of guild id to welcome channel read by the worker."""

    channels: dict[str, str] = Field(default_factory=dict)


class WelcomeChannelUpdate(_Model):
    guild_id: str
    channel_ref: str


class DashboardWelcomeChannel(_Model):
    guild_id: str
    welcome_channel: str


class WelcomeChannelReport(_Model):
    """Side-by-side view of the two welcome channel schemas."""

    legacy: LegacyWelcomeMap
    dashboard: list[DashboardWelcomeChannel] = Field(default_factory=list)
    drifted: list[str] = Field(default_factory=list)


class GuildChannel(_Model):
    id: str
    name: str = ""
    type: int = 0

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)
