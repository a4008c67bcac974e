"""Helpers shared by the event, interaction and command handlers."""

from __future__ import annotations

import structlog

from slack_grocery_bot.config import AppSettings
from slack_grocery_bot.home.views import build_admin_home_view, build_user_home_view
from slack_grocery_bot.orders.summary import summarize
from slack_grocery_bot.slack_client import SlackApiFailure, SlackClient
from slack_grocery_bot.stores import defaults as defaults_store
from slack_grocery_bot.stores import events as event_store
from slack_grocery_bot.stores import schedule as schedule_store

NOT_ADMIN_SETTINGS_TEXT = "Only workspace admins can change these settings."


def live_summary(team_id: str) -> str:
    """Summary over every order message currently stored for *team_id*."""

    return summarize(
        event_store.fetch_messages_for_team(team_id),
        event_store.fetch_reactions_for_team(team_id),
    )


def build_admin_view(team_id: str) -> dict:
    return build_admin_home_view(
        defaults=defaults_store.list_defaults(team_id),
        schedule=schedule_store.get_schedule_or_default(team_id),
        summary_text=live_summary(team_id),
    )


def build_member_view(slack: SlackClient, settings: AppSettings, team_id: str) -> dict:
    channel_id = None
    try:
        channel_id = slack.resolve_channel_id_by_name(settings.order_channel, team_id=team_id)
    except SlackApiFailure as exc:
        structlog.get_logger().warning(
            "order_channel_lookup_failed", channel=settings.order_channel, error=exc.error
        )
    return build_user_home_view(
        order_channel=settings.order_channel,
        channel_id=channel_id,
        summary_text=live_summary(team_id),
    )


def publish_home(
    slack: SlackClient,
    settings: AppSettings,
    *,
    team_id: str,
    user_id: str,
    is_admin: bool | None = None,
) -> None:
    """Render the admin or member Home tab for *user_id* and publish it."""

    log = structlog.get_logger().bind(team_id=team_id, user_id=user_id)
    if is_admin is None:
        is_admin = slack.is_workspace_admin(user_id, team_id=team_id)
    view = build_admin_view(team_id) if is_admin else build_member_view(slack, settings, team_id)
    slack.publish_home_view(user_id, view, team_id=team_id)
    log.info("app_home_published", admin=is_admin, blocks=len(view["blocks"]))


def notify_user(slack: SlackClient, *, team_id: str, user_id: str, text: str) -> bool:
    """Best-effort DM to *user_id*; failures are logged and reported as False."""

    try:
        slack.send_direct_message(user_id, text, team_id=team_id)
    except SlackApiFailure as exc:
        structlog.get_logger().warning("user_notification_failed", user_id=user_id, error=exc.error)
        return False
    return True
