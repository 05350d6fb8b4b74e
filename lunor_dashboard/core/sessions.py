"""Login sessions kept in the document store.

The browser only holds an opaque session id. The record behind it is either
*pending* (an OAuth exchange in flight, carrying the ``state`` to verify) or
*authenticated* (carrying the :class:`~lunor_dashboard.core.models.Identity`).
A successful login always issues a fresh id; the pending record is deleted
whether the exchange succeeds or not.

Every record carries an ``expires_at`` UTC datetime. Expired records are
swept whenever a login starts or completes, and stores that support it
(MongoDB) also drop them on their own via a TTL index.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..adapters.base import IdentityProvider
from ..data.store import DocumentStore, as_utc
from ..errors import StoreUnavailable, Unauthenticated, UpstreamUnavailable
from .models import Identity

log = logging.getLogger("lunor.sessions")

SESSIONS = "sessions"
PENDING = "pending"
AUTHENTICATED = "authenticated"
STATE_TTL_SECONDS = 600
EXPIRES_AT = "expires_at"


@dataclass(frozen=True)
class AuthRedirect:
    url: str
    session_id: str


@dataclass(frozen=True)
class AuthOutcome:
    authenticated: bool
    redirect: str
    session_id: str | None = None


def _is_expired(record: dict, now: datetime) -> bool:
    expires_at = record.get(EXPIRES_AT)
    if not isinstance(expires_at, datetime):
        return True
    return as_utc(expires_at) <= now


class IdentitySessionManager:
    """Create, resolve and destroy login sessions."""

    def __init__(
        self,
        store: DocumentStore,
        provider: IdentityProvider,
        *,
        ttl_seconds: int = 21600,
        dashboard_path: str = "/dashboard",
        landing_path: str = "/",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.provider = provider
        self.ttl_seconds = ttl_seconds
        self.dashboard_path = dashboard_path
        self.landing_path = landing_path
        self.clock = clock

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)

    async def prepare(self) -> None:
        """Ask the store to expire session records by itself."""
        await self.store.ensure_expiry(SESSIONS, EXPIRES_AT)

    async def purge_expired(self) -> int:
        """Delete every expired session record, read or not."""
        removed = await self.store.delete_expired(SESSIONS, self._now(), EXPIRES_AT)
        if removed:
            log.debug("purged %d expired session(s)", removed)
        return removed

    # ------------------------------------------------------------------
    async def begin_authentication(
        self, previous_session_id: str | None = None
    ) -> AuthRedirect:
        """Start an OAuth exchange and return where to send the browser.

        A session the browser already holds is discarded, since its cookie
        is about to be replaced.
        """
        await self.purge_expired()
        if previous_session_id:
            await self.store.delete(SESSIONS, previous_session_id)
        session_id = secrets.token_urlsafe(32)
        state = secrets.token_urlsafe(24)
        now = self._now()
        await self.store.insert_if_absent(
            SESSIONS,
            session_id,
            {
                "status": PENDING,
                "state": state,
                "created_at": now,
                EXPIRES_AT: now + timedelta(seconds=STATE_TTL_SECONDS),
            },
        )
        return AuthRedirect(url=self.provider.authorization_url(state), session_id=session_id)

    async def complete_authentication(
        self, session_id: str | None, code: str | None, state: str | None
    ) -> AuthOutcome:
        """Finish the exchange started by :meth:`begin_authentication`.

        Any failure sends the browser back to the anonymous landing page;
        the attempt is not retried.
        """
        failure = AuthOutcome(authenticated=False, redirect=self.landing_path)
        pending = await self._take_pending(session_id)
        await self.purge_expired()
        if pending is None:
            log.warning("OAuth callback without a pending login")
            return failure
        expected = str(pending.get("state") or "")
        if not code or not state or not secrets.compare_digest(expected, state):
            log.warning("OAuth callback rejected: missing code or state mismatch")
            return failure
        if _is_expired(pending, self._now()):
            log.warning("OAuth callback rejected: login attempt expired")
            return failure

        try:
            access_token = await self.provider.exchange_code(code)
            user = await self.provider.fetch_user(access_token)
            memberships = await self.provider.fetch_user_guilds(access_token)
        except UpstreamUnavailable as exc:
            log.warning("OAuth exchange failed: %s", exc.message)
            return failure

        user_id = str(user.get("id") or "")
        if not user_id:
            log.warning("OAuth profile did not include a user id")
            return failure

        identity = Identity(
            id=user_id,
            username=str(user.get("global_name") or user.get("username") or ""),
            guild_memberships=memberships,
            access_token=access_token,
        )
        new_id = secrets.token_urlsafe(32)
        now = self._now()
        try:
            await self.store.insert_if_absent(
                SESSIONS,
                new_id,
                {
                    "status": AUTHENTICATED,
                    "identity": identity.model_dump(),
                    "created_at": now,
                    EXPIRES_AT: now + timedelta(seconds=self.ttl_seconds),
                },
            )
        except StoreUnavailable as exc:
            log.warning("user=%s login not saved: %s", user_id, exc.message)
            return failure
        log.info("user=%s logged in with %d guild(s)", user_id, len(memberships))
        return AuthOutcome(authenticated=True, redirect=self.dashboard_path, session_id=new_id)

    async def _take_pending(self, session_id: str | None) -> dict | None:
        if not session_id:
            return None
        record = await self.store.find_one(SESSIONS, session_id)
        if record is None or record.get("status") != PENDING:
            return None
        await self.store.delete(SESSIONS, session_id)
        return record

    # ------------------------------------------------------------------
    async def current_identity(self, session_id: str | None) -> Identity:
        """Return the identity behind ``session_id`` or raise ``Unauthenticated``."""
        if not session_id:
            raise Unauthenticated("Not authenticated")
        record = await self.store.find_one(SESSIONS, session_id)
        if record is None or record.get("status") != AUTHENTICATED:
            raise Unauthenticated("Not authenticated")
        if _is_expired(record, self._now()):
            await self.store.delete(SESSIONS, session_id)
            raise Unauthenticated("Session expired")
        return Identity.model_validate(record["identity"])

    async def end_session(self, session_id: str | None) -> None:
        """Delete the session. Succeeds if it is already gone."""
        if not session_id:
            return
        removed = await self.store.delete(SESSIONS, session_id)
        log.debug("session ended removed=%s", removed)
