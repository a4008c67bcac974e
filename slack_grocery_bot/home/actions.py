"""Constants and builders for the admin App Home interactions."""

from __future__ import annotations

OPEN_DAY_ACTION_ID = "open_day_picker"
OPEN_TIME_ACTION_ID = "open_time_picker"
CLOSE_DAY_ACTION_ID = "close_day_picker"
CLOSE_TIME_ACTION_ID = "close_time_picker"
SAVE_SCHEDULE_ACTION_ID = "save_schedule"
ADD_DEFAULT_ACTION_ID = "add_default"
DEFAULT_ITEM_ACTIONS_ID = "default_item_actions"

SCHEDULE_ACTION_IDS = frozenset(
    {
        OPEN_DAY_ACTION_ID,
        OPEN_TIME_ACTION_ID,
        CLOSE_DAY_ACTION_ID,
        CLOSE_TIME_ACTION_ID,
        SAVE_SCHEDULE_ACTION_ID,
    }
)
HOME_ACTION_IDS = SCHEDULE_ACTION_IDS | {ADD_DEFAULT_ACTION_ID, DEFAULT_ITEM_ACTIONS_ID}

DEFAULT_MODAL_CALLBACK_ID = "add_edit_default_modal"
ITEM_NAME_BLOCK_ID = "item_name_block"
ITEM_NAME_ACTION_ID = "item_name"
QUANTITY_BLOCK_ID = "quantity_block"
QUANTITY_ACTION_ID = "quantity"

MODE_ADD = "ADD"
MODE_EDIT = "EDIT"
MODE_DELETE = "DELETE"

# Overflow option values are limited to 150 characters, "DELETE|" included.
MAX_ITEM_NAME_LENGTH = 150 - len(f"{MODE_DELETE}|")


def encode_item_action(mode: str, item_name: str = "") -> str:
    """Return ``"MODE|item"``, the format used by overflow values and modal metadata."""

    return f"{mode}|{item_name}"


def decode_item_action(value: str | None) -> tuple[str, str]:
    """Split ``"MODE|item"``; item names may themselves contain ``|``."""

    mode, _, item_name = (value or "").partition("|")
    return mode.strip().upper(), item_name


def _text_input(
    block_id: str,
    action_id: str,
    label: str,
    placeholder: str,
    initial: str | None,
    max_length: int | None = None,
) -> dict:
    element: dict = {
        "type": "plain_text_input",
        "action_id": action_id,
        "placeholder": {"type": "plain_text", "text": placeholder},
    }
    if max_length:
        element["max_length"] = max_length
    if initial:
        element["initial_value"] = initial
    return {
        "type": "input",
        "block_id": block_id,
        "label": {"type": "plain_text", "text": label, "emoji": True},
        "element": element,
    }


def build_default_item_modal(*, item_name: str | None = None, quantity: int | None = None) -> dict:
    """Return the add/edit modal; prefilled and tagged ``EDIT|name`` when editing."""

    editing = bool(item_name)
    metadata = encode_item_action(MODE_EDIT, item_name) if editing else encode_item_action(MODE_ADD)
    return {
        "type": "modal",
        "callback_id": DEFAULT_MODAL_CALLBACK_ID,
        "private_metadata": metadata,
        "title": {"type": "plain_text", "text": "Edit Default" if editing else "Add Default", "emoji": True},
        "submit": {"type": "plain_text", "text": "Save", "emoji": True},
        "close": {"type": "plain_text", "text": "Cancel", "emoji": True},
        "blocks": [
            _text_input(
                ITEM_NAME_BLOCK_ID,
                ITEM_NAME_ACTION_ID,
                "Item Name",
                "e.g. Apple",
                item_name,
                max_length=MAX_ITEM_NAME_LENGTH,
            ),
            _text_input(
                QUANTITY_BLOCK_ID,
                QUANTITY_ACTION_ID,
                "Quantity",
                "e.g. 2",
                str(quantity) if quantity is not None else None,
            ),
        ],
    }
