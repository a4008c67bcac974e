"""Append-only storage of order messages and reactions, partitioned by tenant."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from slack_grocery_bot.db import session_scope
from slack_grocery_bot.models import StoredMessage, StoredReaction


@dataclass(frozen=True)
class MessageEvent:
    team_id: str
    channel_id: str
    user_id: str
    text: str
    ts: str


@dataclass(frozen=True)
class ReactionEvent:
    """A reaction; ``ts`` is the timestamp of the message that was reacted to."""

    team_id: str
    channel_id: str
    user_id: str
    reaction: str
    ts: str


def ts_to_epoch(ts: str) -> float:
    """Return the numeric epoch of a Slack ``ts`` string."""

    return float(ts)


def _to_message(row: StoredMessage) -> MessageEvent:
    return MessageEvent(
        team_id=row.team_id,
        channel_id=row.channel_id,
        user_id=row.user_id,
        text=row.text,
        ts=row.ts,
    )


def _to_reaction(row: StoredReaction) -> ReactionEvent:
    return ReactionEvent(
        team_id=row.team_id,
        channel_id=row.channel_id,
        user_id=row.user_id,
        reaction=row.reaction,
        ts=row.ts,
    )


def save_message(event: MessageEvent) -> bool:
    """Persist *event*; returns False when the message was already stored.

    Slack retries deliveries, so a replay of the same ``(team, channel, ts)`` is
    ignored rather than treated as an error.
    """

    epoch = ts_to_epoch(event.ts)
    try:
        with session_scope() as session:
            existing = session.execute(
                select(StoredMessage.id).where(
                    StoredMessage.team_id == event.team_id,
                    StoredMessage.channel_id == event.channel_id,
                    StoredMessage.ts == event.ts,
                )
            ).scalar_one_or_none()
            if existing is not None:
                return False
            session.add(
                StoredMessage(
                    team_id=event.team_id,
                    channel_id=event.channel_id,
                    user_id=event.user_id,
                    text=event.text,
                    ts=event.ts,
                    ts_epoch=epoch,
                )
            )
    except IntegrityError:
        # A concurrent delivery of the same message won the insert.
        return False
    return True


def save_reaction(event: ReactionEvent) -> None:
    """Append a reaction. Repeats are kept; the summary counts raw occurrences."""

    with session_scope() as session:
        session.add(
            StoredReaction(
                team_id=event.team_id,
                channel_id=event.channel_id,
                user_id=event.user_id,
                reaction=event.reaction,
                ts=event.ts,
                ts_epoch=ts_to_epoch(event.ts),
            )
        )


def fetch_messages_since(team_id: str, from_ts: str) -> List[MessageEvent]:
    """Return messages with ``ts >= from_ts`` in ascending ``ts`` order."""

    with session_scope() as session:
        rows = session.execute(
            select(StoredMessage)
            .where(
                StoredMessage.team_id == team_id,
                StoredMessage.ts_epoch >= ts_to_epoch(from_ts),
            )
            .order_by(StoredMessage.ts_epoch, StoredMessage.id)
        ).scalars()
        return [_to_message(row) for row in rows]


def fetch_reactions_since(team_id: str, from_ts: str) -> List[ReactionEvent]:
    """Return reactions targeting messages with ``ts >= from_ts``, ascending."""

    with session_scope() as session:
        rows = session.execute(
            select(StoredReaction)
            .where(
                StoredReaction.team_id == team_id,
                StoredReaction.ts_epoch >= ts_to_epoch(from_ts),
            )
            .order_by(StoredReaction.ts_epoch, StoredReaction.id)
        ).scalars()
        return [_to_reaction(row) for row in rows]


def fetch_messages_for_team(team_id: str) -> List[MessageEvent]:
    with session_scope() as session:
        rows = session.execute(
            select(StoredMessage)
            .where(StoredMessage.team_id == team_id)
            .order_by(StoredMessage.ts_epoch, StoredMessage.id)
        ).scalars()
        return [_to_message(row) for row in rows]


def fetch_reactions_for_team(team_id: str) -> List[ReactionEvent]:
    with session_scope() as session:
        rows = session.execute(
            select(StoredReaction)
            .where(StoredReaction.team_id == team_id)
            .order_by(StoredReaction.ts_epoch, StoredReaction.id)
        ).scalars()
        return [_to_reaction(row) for row in rows]


def prune_before(team_id: str, cutoff_ts: str) -> int:
    """Delete messages and reactions of *team_id* strictly older than *cutoff_ts*.

    Returns the number of rows removed across both tables.
    """

    cutoff = ts_to_epoch(cutoff_ts)
    with session_scope() as session:
        messages = session.execute(
            delete(StoredMessage).where(
                StoredMessage.team_id == team_id,
                StoredMessage.ts_epoch < cutoff,
            )
        )
        reactions = session.execute(
            delete(StoredReaction).where(
                StoredReaction.team_id == team_id,
                StoredReaction.ts_epoch < cutoff,
            )
        )
        return messages.rowcount + reactions.rowcount
