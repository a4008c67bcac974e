"""Persistence of workspace credentials created by the OAuth install flow."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import List

from sqlalchemy import select

from slack_grocery_bot.db import session_scope
from slack_grocery_bot.models import Workspace
from slack_grocery_bot.tenant import UnknownTenantError


def upsert_workspace(team_id: str, bot_token: str, signing_secret: str) -> None:
    """Insert a workspace or rotate the credentials of an existing one."""

    with session_scope() as session:
        workspace = session.get(Workspace, team_id)
        if workspace is None:
            session.add(
                Workspace(
                    team_id=team_id,
                    bot_token=bot_token,
                    signing_secret=signing_secret,
                    created_at=datetime.now(UTC),
                )
            )
            return
        workspace.bot_token = bot_token
        workspace.signing_secret = signing_secret


def get_bot_token(team_id: str) -> str:
    """Return the bot token installed for *team_id*."""

    with session_scope() as session:
        token = session.execute(
            select(Workspace.bot_token).where(Workspace.team_id == team_id)
        ).scalar_one_or_none()
    if token is None:
        raise UnknownTenantError(f"No workspace found for team_id {team_id}")
    return token


def list_team_ids() -> List[str]:
    """Return every installed workspace id, oldest install first."""

    with session_scope() as session:
        rows = session.execute(
            select(Workspace.team_id).order_by(Workspace.created_at, Workspace.team_id)
        ).scalars()
        return list(rows)
