"""Per-workspace weekly open/close schedule."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import UTC, datetime, time
from typing import Optional

from sqlalchemy import select

from slack_grocery_bot.db import session_scope
from slack_grocery_bot.models import ScheduleSetting

DAY_CODES = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")
DAY_LABELS = {
    "MON": "Monday",
    "TUE": "Tuesday",
    "WED": "Wednesday",
    "THU": "Thursday",
    "FRI": "Friday",
    "SAT": "Saturday",
    "SUN": "Sunday",
}

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def normalize_day(value: str) -> str:
    """Return the upper-case three letter code for *value* or raise ``ValueError``."""

    code = (value or "").strip().upper()[:3]
    if code not in DAY_CODES:
        raise ValueError(f"Unknown day of week: {value!r}")
    return code


def normalize_time(value: str) -> str:
    """Return *value* as zero-padded ``HH:MM`` or raise ``ValueError``."""

    match = _TIME_PATTERN.match((value or "").strip())
    if not match:
        raise ValueError(f"Time must be HH:MM, got {value!r}")
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def parse_time(value: str) -> time:
    hour, minute = normalize_time(value).split(":")
    return time(int(hour), int(minute))


@dataclass(frozen=True)
class ScheduleSettings:
    """Weekly window in which the order thread is open.

    ``timezone`` is stored for future per-workspace zones; the scheduler applies
    the configured regional zone to every workspace.
    """

    open_day: str
    open_time: str
    close_day: str
    close_time: str
    timezone: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "open_day", normalize_day(self.open_day))
        object.__setattr__(self, "close_day", normalize_day(self.close_day))
        object.__setattr__(self, "open_time", normalize_time(self.open_time))
        object.__setattr__(self, "close_time", normalize_time(self.close_time))

    def with_changes(self, **changes: str) -> "ScheduleSettings":
        """Return a copy with *changes* applied; values are validated."""

        return replace(self, **changes)


def default_schedule() -> ScheduleSettings:
    return ScheduleSettings(open_day="MON", open_time="09:00", close_day="THU", close_time="17:00")


def _format_time(value: time) -> str:
    return value.strftime("%H:%M")


def get_schedule(team_id: str) -> Optional[ScheduleSettings]:
    """Return the stored schedule for *team_id* or ``None`` if none was saved."""

    with session_scope() as session:
        row = session.execute(
            select(ScheduleSetting).where(ScheduleSetting.team_id == team_id)
        ).scalar_one_or_none()
        if row is None:
            return None
        return ScheduleSettings(
            open_day=row.open_day,
            open_time=_format_time(row.open_time),
            close_day=row.close_day,
            close_time=_format_time(row.close_time),
            timezone=row.timezone,
        )


def get_schedule_or_default(team_id: str) -> ScheduleSettings:
    return get_schedule(team_id) or default_schedule()


def upsert_schedule(team_id: str, settings: ScheduleSettings) -> None:
    """Insert or replace the single schedule row of *team_id*."""

    with session_scope() as session:
        row = session.get(ScheduleSetting, team_id)
        if row is None:
            row = ScheduleSetting(team_id=team_id)
            session.add(row)
        row.open_day = settings.open_day
        row.open_time = parse_time(settings.open_time)
        row.close_day = settings.close_day
        row.close_time = parse_time(settings.close_time)
        row.timezone = settings.timezone
        row.updated_at = datetime.now(UTC)
