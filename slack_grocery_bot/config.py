"""Pydantic-based configuration helpers for the grocery bot."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Iterable, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, ValidationError, field_validator


DEFAULT_ORDER_CHANNEL = "office-grocery"
DEFAULT_TIMEZONE = "Asia/Jerusalem"


class AppSettings(BaseModel):
    """Settings required to serve Slack webhooks and run the weekly schedule."""

    signing_secret: str = Field(..., alias="SLACK_SIGNING_SECRET")
    client_id: str = Field(..., alias="SLACK_CLIENT_ID")
    client_secret: str = Field(..., alias="SLACK_CLIENT_SECRET")
    database_url: str = Field(..., alias="DATABASE_URL")
    order_channel: str = Field(DEFAULT_ORDER_CHANNEL, alias="ORDER_CHANNEL")
    admin_channel: str | None = Field(None, alias="ADMIN_CHANNEL")
    schedule_timezone: str = Field(DEFAULT_TIMEZONE, alias="SCHEDULE_TIMEZONE")
    slack_api_timeout: int = Field(10, alias="SLACK_API_TIMEOUT")
    max_request_bytes: int = Field(1024 * 1024, alias="MAX_REQUEST_BYTES")
    scheduler_workers: int = Field(2, alias="SCHEDULER_WORKERS")
    scheduler_autostart: bool = Field(True, alias="SCHEDULER_AUTOSTART")

    @field_validator("order_channel")
    @classmethod
    def _strip_channel_prefix(cls, value: str) -> str:
        value = value.strip().lstrip("#")
        if not value:
            raise ValueError("Order channel must not be empty")
        return value

    @field_validator("admin_channel", mode="before")
    @classmethod
    def _blank_as_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("schedule_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("slack_api_timeout", "max_request_bytes")
    @classmethod
    def _ensure_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Value must be greater than zero")
        return value

    @field_validator("scheduler_workers")
    @classmethod
    def _ensure_pool_size(cls, value: int) -> int:
        if value < 2:
            raise ValueError("The scheduler needs at least two worker threads")
        return value


def _format_missing(fields: Iterable[str]) -> str:
    """Return a human-friendly comma-separated list of missing env vars."""

    unique: List[str] = []
    for field in fields:
        if field not in unique:
            unique.append(field)
    return ", ".join(unique)


@lru_cache()
def get_settings() -> AppSettings:
    """Fetch and cache settings from environment variables."""

    try:
        return AppSettings.model_validate(os.environ)
    except ValidationError as exc:
        missing = [str(error["loc"][0]) for error in exc.errors() if error["type"] == "missing"]
        if missing:
            message = (
                "Missing required environment variables: "
                f"{_format_missing(missing)}"
            )
        else:
            message = f"Invalid configuration: {exc}"
        raise RuntimeError(message) from exc
