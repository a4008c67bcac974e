"""Request-scoped binding of the Slack workspace (tenant) being served."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

from structlog.contextvars import bind_contextvars, unbind_contextvars


_current_team_id: ContextVar[str | None] = ContextVar("current_team_id", default=None)


class UnknownTenantError(LookupError):
    """Raised when no workspace can be resolved for an operation."""


@contextmanager
def tenant_scope(team_id: str) -> Iterator[str]:
    """Bind *team_id* as the current tenant for the duration of the block.

    Context variables are per thread and per copied context, so concurrent
    requests never observe each other's tenant.
    """

    if not team_id:
        raise UnknownTenantError("A team id is required to enter a tenant scope.")
    token = _current_team_id.set(team_id)
    bind_contextvars(team_id=team_id)
    try:
        yield team_id
    finally:
        _current_team_id.reset(token)
        unbind_contextvars("team_id")


def current_team_id() -> str | None:
    """Return the bound tenant or None outside of a tenant scope."""

    return _current_team_id.get()


def resolve_team_id(team_id: str | None = None) -> str:
    """Prefer an explicit *team_id*, falling back to the bound tenant."""

    resolved = team_id or _current_team_id.get()
    if not resolved:
        raise UnknownTenantError("No tenant bound to the current context.")
    return resolved
