"""Handlers for Home tab block actions and the default-item modal."""

from __future__ import annotations

from typing import Any, Mapping

import structlog

from slack_grocery_bot.config import AppSettings
from slack_grocery_bot.home.actions import (
    ADD_DEFAULT_ACTION_ID,
    CLOSE_DAY_ACTION_ID,
    CLOSE_TIME_ACTION_ID,
    DEFAULT_ITEM_ACTIONS_ID,
    DEFAULT_MODAL_CALLBACK_ID,
    HOME_ACTION_IDS,
    ITEM_NAME_ACTION_ID,
    ITEM_NAME_BLOCK_ID,
    MAX_ITEM_NAME_LENGTH,
    MODE_DELETE,
    MODE_EDIT,
    OPEN_DAY_ACTION_ID,
    OPEN_TIME_ACTION_ID,
    QUANTITY_ACTION_ID,
    QUANTITY_BLOCK_ID,
    SAVE_SCHEDULE_ACTION_ID,
    build_default_item_modal,
    decode_item_action,
)
from slack_grocery_bot.scheduler import WeeklyOrderScheduler
from slack_grocery_bot.slack_client import SlackApiFailure, SlackClient
from slack_grocery_bot.stores import defaults as defaults_store

from .common import NOT_ADMIN_SETTINGS_TEXT, notify_user, publish_home

_SCHEDULE_FIELDS = {
    OPEN_DAY_ACTION_ID: "open_day",
    OPEN_TIME_ACTION_ID: "open_time",
    CLOSE_DAY_ACTION_ID: "close_day",
    CLOSE_TIME_ACTION_ID: "close_time",
}


def _action_value(action: Mapping[str, Any]) -> str | None:
    """Return the value carried by a select, timepicker, overflow or button."""

    option = action.get("selected_option")
    if option:
        return option.get("value")
    if action.get("selected_time"):
        return action["selected_time"]
    return action.get("value")


def parse_quantity(raw: str | None) -> int:
    """Parse a modal quantity; anything unusable becomes 1."""

    try:
        quantity = int((raw or "").strip())
    except ValueError:
        return 1
    return quantity if quantity >= 1 else 1


def _state_value(view: Mapping[str, Any], block_id: str, action_id: str) -> str | None:
    values = (view.get("state") or {}).get("values") or {}
    return ((values.get(block_id) or {}).get(action_id) or {}).get("value")


class InteractionHandlers:
    """Admin dashboard mutations: schedule pickers and default items."""

    def __init__(
        self,
        *,
        slack: SlackClient,
        scheduler: WeeklyOrderScheduler,
        settings: AppSettings,
    ) -> None:
        self._slack = slack
        self._scheduler = scheduler
        self._settings = settings

    def _ensure_admin(self, *, team_id: str, user_id: str) -> bool:
        if self._slack.is_workspace_admin(user_id, team_id=team_id):
            return True
        structlog.get_logger().warning("admin_action_denied", user_id=user_id)
        notify_user(self._slack, team_id=team_id, user_id=user_id, text=NOT_ADMIN_SETTINGS_TEXT)
        return False

    def _refresh_home(self, *, team_id: str, user_id: str) -> None:
        try:
            publish_home(self._slack, self._settings, team_id=team_id, user_id=user_id, is_admin=True)
        except SlackApiFailure as exc:
            structlog.get_logger().error("app_home_publish_failed", user_id=user_id, error=exc.error)

    def block_actions(self, payload: Mapping[str, Any], *, team_id: str) -> None:
        user_id = (payload.get("user") or {}).get("id")
        actions = payload.get("actions") or []
        if not user_id or not actions:
            structlog.get_logger().warning("block_action_incomplete")
            return
        action = actions[0]
        action_id = action.get("action_id")
        log = structlog.get_logger().bind(user_id=user_id, action_id=action_id)
        if action_id not in HOME_ACTION_IDS:
            log.info("block_action_ignored")
            return
        if not self._ensure_admin(team_id=team_id, user_id=user_id):
            return

        value = _action_value(action)
        log.info("block_action_received", value=value)

        if action_id in _SCHEDULE_FIELDS:
            try:
                self._scheduler.update_schedule(team_id, **{_SCHEDULE_FIELDS[action_id]: value or ""})
            except ValueError as exc:
                log.warning("schedule_update_rejected", error=str(exc))
        elif action_id == SAVE_SCHEDULE_ACTION_ID:
            self._scheduler.apply(team_id)
        elif action_id == ADD_DEFAULT_ACTION_ID:
            self._slack.open_modal(payload.get("trigger_id"), build_default_item_modal(), team_id=team_id)
            return
        elif action_id == DEFAULT_ITEM_ACTIONS_ID:
            mode, item_name = decode_item_action(value)
            if mode == MODE_EDIT:
                quantity = defaults_store.list_defaults(team_id).get(item_name)
                self._slack.open_modal(
                    payload.get("trigger_id"),
                    build_default_item_modal(item_name=item_name, quantity=quantity),
                    team_id=team_id,
                )
                return
            if mode == MODE_DELETE:
                removed = defaults_store.delete_default(team_id, item_name)
                log.info("default_item_deleted", item=item_name, removed=removed)
            else:
                log.warning("default_item_action_unknown", value=value)
                return

        self._refresh_home(team_id=team_id, user_id=user_id)

    def view_submission(self, payload: Mapping[str, Any], *, team_id: str) -> None:
        """Save the add/edit default modal; a rename deletes the original row first."""

        view = payload.get("view") or {}
        user_id = (payload.get("user") or {}).get("id")
        log = structlog.get_logger().bind(user_id=user_id, callback_id=view.get("callback_id"))
        if view.get("callback_id") != DEFAULT_MODAL_CALLBACK_ID:
            log.info("view_submission_ignored")
            return
        if not user_id or not self._ensure_admin(team_id=team_id, user_id=user_id):
            return

        mode, original_name = decode_item_action(view.get("private_metadata"))
        item_name = (_state_value(view, ITEM_NAME_BLOCK_ID, ITEM_NAME_ACTION_ID) or "").strip()
        quantity = parse_quantity(_state_value(view, QUANTITY_BLOCK_ID, QUANTITY_ACTION_ID))
        if not item_name:
            log.warning("default_item_missing_name")
            return
        if len(item_name) > MAX_ITEM_NAME_LENGTH:
            log.warning("default_item_name_truncated", length=len(item_name))
            item_name = item_name[:MAX_ITEM_NAME_LENGTH].rstrip()

        if mode == MODE_EDIT and original_name and original_name != item_name:
            defaults_store.delete_default(team_id, original_name)
        defaults_store.upsert_default(team_id, item_name, quantity)
        log.info("default_item_saved", mode=mode, item=item_name, quantity=quantity, renamed_from=original_name or None)

        self._refresh_home(team_id=team_id, user_id=user_id)
