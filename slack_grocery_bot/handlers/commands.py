"""Slash command handling."""

from __future__ import annotations

import structlog

from slack_grocery_bot.scheduler import NO_ORDERS_MESSAGE, WeeklyOrderScheduler
from slack_grocery_bot.slack_client import SlackClient

from .common import notify_user

SUMMARY_ADMIN_COMMAND = "/grocery-summary-admin"
ACK_TEXT = "📨 Got it! Generating your summary.."
NOT_ADMIN_TEXT = "Only workspace admins can run this command."
NO_THREAD_TEXT = "No active grocery thread to summarize."
FAILURE_TEXT = "Something went wrong generating your summary."


class CommandHandlers:
    def __init__(self, *, slack: SlackClient, scheduler: WeeklyOrderScheduler) -> None:
        self._slack = slack
        self._scheduler = scheduler

    def supports(self, command: str) -> bool:
        return command == SUMMARY_ADMIN_COMMAND

    def summary_admin(self, *, team_id: str, user_id: str) -> None:
        """DM the requesting admin the summary of the current thread."""

        log = structlog.get_logger().bind(user_id=user_id, command=SUMMARY_ADMIN_COMMAND)
        try:
            if not self._slack.is_workspace_admin(user_id, team_id=team_id):
                log.warning("summary_command_denied")
                notify_user(self._slack, team_id=team_id, user_id=user_id, text=NOT_ADMIN_TEXT)
                return
            thread = self._scheduler.current_thread(team_id)
            if thread is None:
                notify_user(self._slack, team_id=team_id, user_id=user_id, text=NO_THREAD_TEXT)
                return
            summary = self._scheduler.thread_summary(team_id, thread)
            notify_user(self._slack, team_id=team_id, user_id=user_id, text=summary or NO_ORDERS_MESSAGE)
            log.info("summary_command_completed", thread_ts=thread.ts)
        except Exception:
            log.exception("summary_command_failed")
            notify_user(self._slack, team_id=team_id, user_id=user_id, text=FAILURE_TEXT)
