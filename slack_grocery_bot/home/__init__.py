"""App Home views and modal builders for the grocery bot."""

from .actions import (
    ADD_DEFAULT_ACTION_ID,
    CLOSE_DAY_ACTION_ID,
    CLOSE_TIME_ACTION_ID,
    DEFAULT_ITEM_ACTIONS_ID,
    DEFAULT_MODAL_CALLBACK_ID,
    HOME_ACTION_IDS,
    OPEN_DAY_ACTION_ID,
    OPEN_TIME_ACTION_ID,
    SAVE_SCHEDULE_ACTION_ID,
    build_default_item_modal,
    decode_item_action,
)
from .views import build_admin_home_view, build_user_home_view

__all__ = [
    "ADD_DEFAULT_ACTION_ID",
    "CLOSE_DAY_ACTION_ID",
    "CLOSE_TIME_ACTION_ID",
    "DEFAULT_ITEM_ACTIONS_ID",
    "DEFAULT_MODAL_CALLBACK_ID",
    "HOME_ACTION_IDS",
    "OPEN_DAY_ACTION_ID",
    "OPEN_TIME_ACTION_ID",
    "SAVE_SCHEDULE_ACTION_ID",
    "build_admin_home_view",
    "build_default_item_modal",
    "build_user_home_view",
    "decode_item_action",
]
