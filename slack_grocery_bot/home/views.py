"""Builders for Slack App Home views."""

from __future__ import annotations

from typing import Mapping

from slack_grocery_bot.stores.schedule import DAY_CODES, DAY_LABELS, ScheduleSettings

from .actions import (
    ADD_DEFAULT_ACTION_ID,
    CLOSE_DAY_ACTION_ID,
    CLOSE_TIME_ACTION_ID,
    DEFAULT_ITEM_ACTIONS_ID,
    MODE_DELETE,
    MODE_EDIT,
    OPEN_DAY_ACTION_ID,
    OPEN_TIME_ACTION_ID,
    SAVE_SCHEDULE_ACTION_ID,
    encode_item_action,
)

WELCOME_TITLE = "👋 Welcome to GrocFriend! Your best grocery friend"
EMPTY_SUMMARY_TEXT = "_No orders yet this week._"
SECTION_TEXT_LIMIT = 3000


def _divider() -> dict:
    """Return a reusable divider block."""

    return {"type": "divider"}


def _section(text: str) -> dict:
    """Return a simple mrkdwn section block."""

    return {
        "type": "section",
        "text": {
            "type": "mrkdwn",
            "text": text,
        },
    }


def _header(text: str) -> dict:
    return {"type": "header", "text": {"type": "plain_text", "text": text, "emoji": True}}


def _button(text: str, action_id: str, *, style: str | None = "primary") -> dict:
    button = {
        "type": "button",
        "text": {"type": "plain_text", "text": text, "emoji": True},
        "action_id": action_id,
    }
    if style:
        button["style"] = style
    return button


def _day_option(code: str) -> dict:
    return {"text": {"type": "plain_text", "text": DAY_LABELS[code], "emoji": True}, "value": code}


def _day_picker(block_id: str, action_id: str, label: str, selected: str) -> dict:
    return {
        "type": "input",
        "block_id": block_id,
        "dispatch_action": True,
        "label": {"type": "plain_text", "text": label, "emoji": True},
        "element": {
            "type": "static_select",
            "action_id": action_id,
            "initial_option": _day_option(selected),
            "options": [_day_option(code) for code in DAY_CODES],
        },
    }


def _time_picker(block_id: str, action_id: str, selected: str) -> dict:
    return {
        "type": "input",
        "block_id": block_id,
        "dispatch_action": True,
        "label": {"type": "plain_text", "text": "Time", "emoji": True},
        "element": {"type": "timepicker", "action_id": action_id, "initial_time": selected},
    }


def _default_item_block(item_name: str, quantity: int) -> dict:
    block = _section(f"• *{item_name}* — {quantity}")
    block["accessory"] = {
        "type": "overflow",
        "action_id": DEFAULT_ITEM_ACTIONS_ID,
        "options": [
            {
                "text": {"type": "plain_text", "text": "Edit", "emoji": True},
                "value": encode_item_action(MODE_EDIT, item_name),
            },
            {
                "text": {"type": "plain_text", "text": "Delete", "emoji": True},
                "value": encode_item_action(MODE_DELETE, item_name),
            },
        ],
    }
    return block


def _chunk_lines(text: str, limit: int = SECTION_TEXT_LIMIT) -> list[str]:
    """Split *text* on line boundaries into pieces of at most *limit* characters.

    A single line longer than *limit* is cut into fixed-size pieces.
    """

    chunks: list[str] = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            candidate = line
        current = candidate
    if current:
        chunks.append(current)
    return chunks


def _summary_blocks(summary_text: str) -> list[dict]:
    blocks = [_section("*This week's orders so far:*")]
    blocks.extend(_section(chunk) for chunk in _chunk_lines(summary_text or EMPTY_SUMMARY_TEXT))
    return blocks


def build_admin_home_view(
    *,
    defaults: Mapping[str, int],
    schedule: ScheduleSettings,
    summary_text: str = "",
) -> dict:
    """Build the admin dashboard: schedule pickers, defaults, and the live summary."""

    blocks: list[dict] = [
        _header(WELCOME_TITLE),
        _section("Hello admin, below is your dashboard."),
        _divider(),
        _day_picker("open_day_block", OPEN_DAY_ACTION_ID, "Order thread opens on", schedule.open_day),
        _time_picker("open_time_block", OPEN_TIME_ACTION_ID, schedule.open_time),
        _day_picker("close_day_block", CLOSE_DAY_ACTION_ID, "Order thread closes on", schedule.close_day),
        _time_picker("close_time_block", CLOSE_TIME_ACTION_ID, schedule.close_time),
        {"type": "actions", "elements": [_button("Apply Changes", SAVE_SCHEDULE_ACTION_ID)]},
        _divider(),
        _section("*Current Defaults:*"),
    ]
    if defaults:
        blocks.extend(_default_item_block(name, quantity) for name, quantity in defaults.items())
    else:
        blocks.append(_section("_No default items yet._"))
    blocks.append({"type": "actions", "elements": [_button("➕ Add New Default", ADD_DEFAULT_ACTION_ID)]})
    blocks.append(_divider())
    blocks.extend(_summary_blocks(summary_text))
    return {"type": "home", "blocks": blocks}


def build_user_home_view(
    *,
    order_channel: str,
    channel_id: str | None = None,
    summary_text: str = "",
) -> dict:
    """Build the read-only Home tab shown to regular members.

    Without a resolved ``channel_id`` the channel button is replaced by a text hint.
    """

    blocks: list[dict] = [
        _header(WELCOME_TITLE),
        _section(
            f"To place your weekly grocery orders, go to #{order_channel} and mention "
            "@GrocFriend in the weekly thread; `@GrocFriend 2 apples, 3 bananas`."
        ),
        _divider(),
    ]
    if channel_id:
        blocks.append(
            {
                "type": "actions",
                "elements": [
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": f"🏠 Go to #{order_channel}", "emoji": True},
                        "url": f"https://slack.com/app_redirect?channel={channel_id}",
                    }
                ],
            }
        )
    else:
        blocks.append(_section(f"Look for the pinned thread in #{order_channel}."))
    blocks.append(_divider())
    blocks.extend(_summary_blocks(summary_text))
    return {"type": "home", "blocks": blocks}
