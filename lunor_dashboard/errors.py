"""Error taxonomy shared by the core, the adapters and the web layer.

Every failure the dashboard can report to a client is a subclass of
:class:`DashboardError`. The web layer maps them to a JSON payload using the
``status_code`` and ``code`` class attributes, so core code never needs to
know about HTTP.
"""

from __future__ import annotations


class DashboardError(Exception):
    """Base class for errors surfaced at the request boundary."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class Unauthenticated(DashboardError):
    """No valid session is attached to the request."""

    status_code = 401
    code = "unauthenticated"


class AuthorizationDenied(DashboardError):
    """The identity is a member of the guild but lacks the manage-guild bit."""

    status_code = 403
    code = "forbidden"


class GuildNotFound(DashboardError):
    """The guild is not in the identity's membership list."""

    status_code = 404
    code = "not_found"


class UpstreamUnavailable(DashboardError):
    """The identity provider or guild listing API failed."""

    status_code = 500
    code = "upstream_unavailable"


class StoreUnavailable(DashboardError):
    """The document store failed to read or write."""

    status_code = 500
    code = "store_unavailable"
