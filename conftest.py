"""Test configuration: package imports and shared fakes."""

import os
import sys

# Add the repository root (the directory containing this file) to ``sys.path``
# if it is not already present.  This mirrors the behaviour of running the
# tests via ``python -m pytest`` where the working directory is automatically on
# the import path.
ROOT_DIR = os.path.abspath(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

import pytest  # noqa: E402

from lunor_dashboard.adapters.base import IdentityProvider  # noqa: E402
from lunor_dashboard.core.models import (  # noqa: E402
    GuildChannel,
    GuildMembership,
    Identity,
)
from lunor_dashboard.data.store import MemoryDocumentStore  # noqa: E402
from lunor_dashboard.errors import UpstreamUnavailable  # noqa: E402


class FakeProvider(IdentityProvider):
    """In-memory identity provider recording every call."""

    def __init__(self) -> None:
        self.user = {"id": "42", "username": "alice"}
        self.user_guilds = [
            GuildMembership(guild_id="G1", name="Guild One", permissions=0x28),
            GuildMembership(guild_id="G2", name="Guild Two", permissions=0x8),
        ]
        self.bot_guilds = [GuildMembership(guild_id="G1", name="Guild One")]
        self.channels = [GuildChannel(id="100", name="welcome")]
        self.fail = False
        self.calls: list[str] = []

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        if self.fail:
            raise UpstreamUnavailable("provider down")

    def authorization_url(self, state: str) -> str:
        return f"https://provider.test/authorize?state={state}"

    async def exchange_code(self, code: str) -> str:
        self._maybe_fail("exchange_code")
        return f"token-{code}"

    async def fetch_user(self, access_token: str) -> dict:
        self._maybe_fail("fetch_user")
        return dict(self.user)

    async def fetch_user_guilds(self, access_token: str) -> list[GuildMembership]:
        self._maybe_fail("fetch_user_guilds")
        return list(self.user_guilds)

    async def fetch_bot_guilds(self) -> list[GuildMembership]:
        self._maybe_fail("fetch_bot_guilds")
        return list(self.bot_guilds)

    async def fetch_guild_channels(self, guild_id: str) -> list[GuildChannel]:
        self._maybe_fail("fetch_guild_channels")
        return list(self.channels)


def make_identity(*memberships: tuple[str, int], user_id: str = "42") -> Identity:
    """Build an identity from ``(guild_id, permissions)`` pairs."""
    return Identity(
        id=user_id,
        username="alice",
        guild_memberships=[
            GuildMembership(guild_id=gid, name=f"Guild {gid}", permissions=perms)
            for gid, perms in memberships
        ],
        access_token="secret-token",
    )


@pytest.fixture
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
