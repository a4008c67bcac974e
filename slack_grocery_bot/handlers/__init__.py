"""Business logic invoked by the webhook dispatcher."""

from .commands import ACK_TEXT, SUMMARY_ADMIN_COMMAND, CommandHandlers
from .events import EventHandlers
from .interactions import InteractionHandlers

__all__ = [
    "ACK_TEXT",
    "SUMMARY_ADMIN_COMMAND",
    "CommandHandlers",
    "EventHandlers",
    "InteractionHandlers",
]
