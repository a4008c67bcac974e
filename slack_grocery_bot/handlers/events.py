"""Handlers for Events API callbacks."""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping

import structlog

from slack_grocery_bot.config import AppSettings
from slack_grocery_bot.orders.parser import parse_orders
from slack_grocery_bot.orders.summary import ACK_REACTION, format_entries
from slack_grocery_bot.slack_client import SlackApiFailure, SlackClient
from slack_grocery_bot.stores import events as event_store
from slack_grocery_bot.stores.events import MessageEvent, ReactionEvent

from .common import publish_home

NO_ITEMS_TEXT = "I couldn't find any items in that message. Try `2 apples, 1 milk`."


def acknowledgement_text(user_id: str, text: str) -> str:
    orders = parse_orders(text)
    if not orders:
        return NO_ITEMS_TEXT
    return f"Got it <@{user_id}>! {format_entries(orders)}"


class EventHandlers:
    """Business logic for ``app_home_opened``, ``app_mention`` and ``reaction_added``."""

    def __init__(self, *, slack: SlackClient, settings: AppSettings) -> None:
        self._slack = slack
        self._settings = settings

    def routes(self) -> Dict[str, Callable[..., None]]:
        return {
            "app_home_opened": self.app_home_opened,
            "app_mention": self.app_mention,
            "reaction_added": self.reaction_added,
        }

    def app_home_opened(self, event: Mapping[str, Any], *, team_id: str) -> None:
        user_id = event.get("user")
        if not user_id:
            structlog.get_logger().warning("app_home_opened_missing_user")
            return
        if event.get("tab") not in (None, "home"):
            return
        try:
            publish_home(self._slack, self._settings, team_id=team_id, user_id=user_id)
        except SlackApiFailure as exc:
            structlog.get_logger().error(
                "app_home_publish_failed", user_id=user_id, error=exc.error, method=exc.method
            )

    def app_mention(self, event: Mapping[str, Any], *, team_id: str) -> None:
        """Record an order message, then acknowledge it in the thread."""

        user_id = event.get("user")
        channel_id = event.get("channel")
        ts = event.get("ts")
        text = event.get("text") or ""
        log = structlog.get_logger().bind(user_id=user_id, channel_id=channel_id, ts=ts)
        if not (user_id and channel_id and ts):
            log.warning("app_mention_incomplete")
            return

        stored = event_store.save_message(
            MessageEvent(team_id=team_id, channel_id=channel_id, user_id=user_id, text=text, ts=ts)
        )
        if not stored:
            log.info("order_replay_ignored")
            return
        log.info("order_recorded", items=len(parse_orders(text)))

        thread_ts = event.get("thread_ts") or ts
        try:
            self._slack.send_message_in_thread(
                channel_id, acknowledgement_text(user_id, text), thread_ts, team_id=team_id
            )
        except SlackApiFailure as exc:
            log.warning("order_ack_failed", error=exc.error)
        try:
            self._slack.add_reaction(channel_id, ts, ACK_REACTION, team_id=team_id)
        except SlackApiFailure as exc:
            log.warning("order_ack_reaction_failed", error=exc.error)

    def reaction_added(self, event: Mapping[str, Any], *, team_id: str) -> None:
        reaction = event.get("reaction")
        item = event.get("item") or {}
        if reaction == ACK_REACTION:
            return
        if item.get("type", "message") != "message" or not item.get("ts") or not reaction:
            return
        event_store.save_reaction(
            ReactionEvent(
                team_id=team_id,
                channel_id=item.get("channel") or "",
                user_id=event.get("user") or "",
                reaction=reaction,
                ts=item["ts"],
            )
        )
        structlog.get_logger().info("reaction_recorded", reaction=reaction, target_ts=item["ts"])
