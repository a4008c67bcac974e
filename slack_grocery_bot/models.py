"""SQLAlchemy models for workspaces, defaults, schedules and recorded events."""

from __future__ import annotations

from datetime import UTC, datetime, time

from sqlalchemy import DateTime, Float, Index, Integer, String, Text, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from slack_grocery_bot.db import Base


class Workspace(Base):
    """Credentials of a Slack workspace that installed the bot."""

    __tablename__ = "workspace"

    team_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    bot_token: Mapped[str] = mapped_column(String(255), nullable=False)
    signing_secret: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )


class DefaultItem(Base):
    """A default grocery item and quantity; ``id`` preserves insertion order."""

    __tablename__ = "default_item"
    __table_args__ = (
        UniqueConstraint("team_id", "item_name", name="uq_default_item_team_item"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[str] = mapped_column(String(32), nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class ScheduleSetting(Base):
    """Weekly open/close moments configured by a workspace admin."""

    __tablename__ = "schedule_settings"

    team_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    open_day: Mapped[str] = mapped_column(String(3), nullable=False)
    open_time: Mapped[time] = mapped_column(Time, nullable=False)
    close_day: Mapped[str] = mapped_column(String(3), nullable=False)
    close_time: Mapped[time] = mapped_column(Time, nullable=False)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class StoredMessage(Base):
    """An order message that mentioned the bot."""

    __tablename__ = "message_event"
    __table_args__ = (
        UniqueConstraint("team_id", "channel_id", "ts", name="uq_message_event_team_channel_ts"),
        Index("ix_message_event_team_ts_epoch", "team_id", "ts_epoch"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[str] = mapped_column(String(32), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    ts: Mapped[str] = mapped_column(String(32), nullable=False)
    ts_epoch: Mapped[float] = mapped_column(Float, nullable=False)


class StoredReaction(Base):
    """A reaction added to a message; ``ts`` identifies the target message."""

    __tablename__ = "reaction_event"
    __table_args__ = (
        Index("ix_reaction_event_team_ts_epoch", "team_id", "ts_epoch"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[str] = mapped_column(String(32), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    reaction: Mapped[str] = mapped_column(String(64), nullable=False)
    ts: Mapped[str] = mapped_column(String(32), nullable=False)
    ts_epoch: Mapped[float] = mapped_column(Float, nullable=False)
