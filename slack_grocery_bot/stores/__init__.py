"""Tenant-scoped persistence for the grocery bot."""

from .credentials import get_bot_token, list_team_ids, upsert_workspace
from .defaults import delete_default, list_defaults, upsert_default
from .events import (
    MessageEvent,
    ReactionEvent,
    fetch_messages_for_team,
    fetch_messages_since,
    fetch_reactions_for_team,
    fetch_reactions_since,
    prune_before,
    save_message,
    save_reaction,
)
from .schedule import (
    DAY_CODES,
    DAY_LABELS,
    ScheduleSettings,
    default_schedule,
    get_schedule,
    get_schedule_or_default,
    upsert_schedule,
)

__all__ = [
    "DAY_CODES",
    "DAY_LABELS",
    "MessageEvent",
    "ReactionEvent",
    "ScheduleSettings",
    "default_schedule",
    "delete_default",
    "fetch_messages_for_team",
    "fetch_messages_since",
    "fetch_reactions_for_team",
    "fetch_reactions_since",
    "get_bot_token",
    "get_schedule",
    "get_schedule_or_default",
    "list_defaults",
    "list_team_ids",
    "prune_before",
    "save_message",
    "save_reaction",
    "upsert_default",
    "upsert_schedule",
    "upsert_workspace",
]
