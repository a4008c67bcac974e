"""Per-workspace default grocery items."""

from __future__ import annotations

from typing import Dict

from sqlalchemy import delete, select

from slack_grocery_bot.db import session_scope
from slack_grocery_bot.models import DefaultItem


def list_defaults(team_id: str) -> Dict[str, int]:
    """Return ``item -> quantity`` in the order the items were first added."""

    with session_scope() as session:
        rows = session.execute(
            select(DefaultItem.item_name, DefaultItem.quantity)
            .where(DefaultItem.team_id == team_id)
            .order_by(DefaultItem.id)
        ).all()
    return {name: quantity for name, quantity in rows}


def upsert_default(team_id: str, item_name: str, quantity: int) -> None:
    """Add *item_name* or update its quantity in place.

    Updating keeps the original row, so the item does not move in the listing.
    """

    if quantity < 1:
        raise ValueError("Default quantity must be at least 1")
    with session_scope() as session:
        existing = session.execute(
            select(DefaultItem).where(
                DefaultItem.team_id == team_id,
                DefaultItem.item_name == item_name,
            )
        ).scalar_one_or_none()
        if existing is None:
            session.add(DefaultItem(team_id=team_id, item_name=item_name, quantity=quantity))
        else:
            existing.quantity = quantity


def delete_default(team_id: str, item_name: str) -> bool:
    """Remove *item_name*; returns False when it was not present."""

    with session_scope() as session:
        result = session.execute(
            delete(DefaultItem).where(
                DefaultItem.team_id == team_id,
                DefaultItem.item_name == item_name,
            )
        )
        return result.rowcount > 0
