"""Tests for the weekly open/close scheduler."""

from datetime import datetime
from pathlib import Path
import sys
from zoneinfo import ZoneInfo

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from slack_grocery_bot import config  # noqa: E402
from slack_grocery_bot.db import get_engine, get_session_factory, init_db  # noqa: E402
from slack_grocery_bot.scheduler import (  # noqa: E402
    NO_ORDERS_MESSAGE,
    OPENING_MESSAGE,
    OpenThread,
    WeeklyOrderScheduler,
    close_job_id,
    open_job_id,
)
from slack_grocery_bot.slack_client import SlackApiFailure  # noqa: E402
from slack_grocery_bot.stores.credentials import upsert_workspace  # noqa: E402
from slack_grocery_bot.stores.events import (  # noqa: E402
    MessageEvent,
    ReactionEvent,
    fetch_messages_for_team,
    fetch_reactions_for_team,
    save_message,
    save_reaction,
)
from slack_grocery_bot.stores.schedule import ScheduleSettings, get_schedule  # noqa: E402

OPEN_TS = "1700000100.000100"


@pytest.fixture(autouse=True)
def override_database(monkeypatch, tmp_path):
    monkeypatch.setenv("SLACK_SIGNING_SECRET", "test-secret")
    monkeypatch.setenv("SLACK_CLIENT_ID", "client-id")
    monkeypatch.setenv("SLACK_CLIENT_SECRET", "client-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.delenv("ADMIN_CHANNEL", raising=False)
    monkeypatch.delenv("ORDER_CHANNEL", raising=False)
    config.get_settings.cache_clear()
    get_engine.cache_clear()
    get_session_factory.cache_clear()
    init_db()
    yield
    config.get_settings.cache_clear()
    get_engine.cache_clear()
    get_session_factory.cache_clear()


class FakeJob:
    def __init__(self, job_id, func, trigger, args):
        self.id = job_id
        self.func = func
        self.trigger = trigger
        self.args = args
        self.removed = 0

    def remove(self):
        self.removed += 1


class FakeJobScheduler:
    def __init__(self):
        self.jobs = []
        self.running = False

    def add_job(self, func, trigger=None, args=None, id=None, **kwargs):
        job = FakeJob(id, func, trigger, args)
        self.jobs.append(job)
        return job

    def start(self):
        self.running = True

    def shutdown(self, wait=True):
        self.running = False


class DummySlack:
    def __init__(self):
        self.calls = []
        self.fail_post = False
        self.fail_thread_post = False
        self.fail_pin = False

    def send_message(self, channel_id, text, *, team_id=None):
        self.calls.append(("send_message", channel_id, text, team_id))
        if self.fail_post:
            raise SlackApiFailure("not_in_channel", method="chat.postMessage")
        return {"ok": True, "channel": "C1", "ts": OPEN_TS}

    def send_message_in_thread(self, channel_id, text, thread_ts, *, team_id=None):
        self.calls.append(("send_message_in_thread", channel_id, text, thread_ts, team_id))
        if self.fail_thread_post:
            raise SlackApiFailure("ratelimited", method="chat.postMessage")
        return {"ok": True, "channel": channel_id, "ts": "1700000999.000000"}

    def pin_message(self, channel_id, ts, *, team_id=None):
        self.calls.append(("pin_message", channel_id, ts, team_id))
        if self.fail_pin:
            raise SlackApiFailure("already_pinned", method="pins.add")


def _field_values(trigger):
    return {field.name: str(field) for field in trigger.fields}


def _scheduler(slack=None, jobs=None):
    return WeeklyOrderScheduler(
        slack=slack or DummySlack(),
        settings=config.get_settings(),
        job_scheduler=jobs if jobs is not None else FakeJobScheduler(),
    )


def _message(ts, text, *, user="U1", channel="C1"):
    return MessageEvent(team_id="T1", channel_id=channel, user_id=user, text=text, ts=ts)


def test_open_then_close_lifecycle():
    slack = DummySlack()
    scheduler = _scheduler(slack)
    save_message(_message("1700000000.000000", "5 old things"))
    save_reaction(ReactionEvent("T1", "C1", "U9", "+1", "1700000000.000000"))

    thread = scheduler.open_for("T1")

    assert thread == OpenThread(channel_id="C1", ts=OPEN_TS)
    assert slack.calls == [
        ("send_message", "office-grocery", OPENING_MESSAGE, "T1"),
        ("pin_message", "C1", OPEN_TS, "T1"),
    ]
    assert scheduler.current_thread_ts("T1") == OPEN_TS

    save_message(_message("1700000200.000000", "2 apples"))
    save_message(_message("1700000300.000000", "1 milk", user="U2"))
    save_message(_message("1700000400.000000", "3 beers", channel="C-OTHER"))
    save_reaction(ReactionEvent("T1", "C1", "U9", "+1", "1700000200.000000"))

    assert scheduler.close_for("T1") is True

    posted = slack.calls[-1]
    assert posted[0] == "send_message_in_thread"
    assert posted[1] == "C1"
    assert posted[3] == OPEN_TS
    assert "• <@U1>: 2× apples (1× 👍)" in posted[2]
    assert "• <@U2>: 1× milk" in posted[2]
    assert "beers" not in posted[2]
    assert "old things" not in posted[2]

    remaining = [event.ts for event in fetch_messages_for_team("T1")]
    assert "1700000000.000000" not in remaining
    assert "1700000200.000000" in remaining
    assert [event.ts for event in fetch_reactions_for_team("T1")] == ["1700000200.000000"]
    assert scheduler.current_thread_ts("T1") is None


def test_close_without_open_thread_does_nothing():
    slack = DummySlack()
    scheduler = _scheduler(slack)

    assert scheduler.close_for("T1") is False
    assert slack.calls == []


def test_empty_week_posts_no_orders_message():
    slack = DummySlack()
    scheduler = _scheduler(slack)
    scheduler.open_for("T1")

    assert scheduler.close_for("T1") is True
    assert slack.calls[-1] == ("send_message_in_thread", "C1", NO_ORDERS_MESSAGE, OPEN_TS, "T1")
    assert scheduler.current_thread("T1") is None


def test_summary_is_copied_to_admin_channel(monkeypatch):
    monkeypatch.setenv("ADMIN_CHANNEL", "grocery-admins")
    config.get_settings.cache_clear()
    slack = DummySlack()
    scheduler = _scheduler(slack)
    scheduler.open_for("T1")
    save_message(_message("1700000200.000000", "2 apples"))

    scheduler.close_for("T1")

    channel, text = slack.calls[-1][1], slack.calls[-1][2]
    assert slack.calls[-1][0] == "send_message"
    assert channel == "grocery-admins"
    assert text.startswith("Summary:\n*Weekly Grocery Summary:*\n")


def test_failed_summary_post_keeps_thread_and_events():
    slack = DummySlack()
    scheduler = _scheduler(slack)
    save_message(_message("1700000000.000000", "5 old things"))
    scheduler.open_for("T1")
    slack.fail_thread_post = True

    assert scheduler.close_for("T1") is False
    assert scheduler.current_thread_ts("T1") == OPEN_TS
    assert len(fetch_messages_for_team("T1")) == 1


def test_failed_open_records_no_thread():
    slack = DummySlack()
    slack.fail_post = True
    scheduler = _scheduler(slack)

    assert scheduler.open_for("T1") is None
    assert scheduler.current_thread("T1") is None
    assert [call[0] for call in slack.calls] == ["send_message"]


def test_pin_failure_is_not_fatal():
    slack = DummySlack()
    slack.fail_pin = True
    scheduler = _scheduler(slack)

    assert scheduler.open_for("T1") is not None
    assert scheduler.current_thread_ts("T1") == OPEN_TS


def test_reopening_replaces_the_current_thread():
    slack = DummySlack()
    scheduler = _scheduler(slack)
    scheduler.open_for("T1")
    scheduler.open_for("T1")

    assert scheduler.current_thread("T1") == OpenThread("C1", OPEN_TS)
    assert [call[0] for call in slack.calls].count("send_message") == 2


def test_threads_are_tracked_per_team():
    scheduler = _scheduler()
    scheduler.open_for("T1")

    assert scheduler.current_thread_ts("T1") == OPEN_TS
    assert scheduler.current_thread_ts("T2") is None


def test_register_uses_default_schedule_and_explicit_team():
    jobs = FakeJobScheduler()
    scheduler = _scheduler(jobs=jobs)

    scheduler.register_tenant("T1")

    open_job, close_job = jobs.jobs
    assert open_job.id == open_job_id("T1")
    assert close_job.id == close_job_id("T1")
    assert open_job.args == ["T1"] and close_job.args == ["T1"]
    assert open_job.func == scheduler.open_for
    assert close_job.func == scheduler.close_for
    assert _field_values(open_job.trigger)["day_of_week"] == "mon"
    assert _field_values(open_job.trigger)["hour"] == "9"
    assert _field_values(open_job.trigger)["minute"] == "0"
    assert _field_values(open_job.trigger)["second"] == "0"
    assert _field_values(close_job.trigger)["day_of_week"] == "thu"
    assert _field_values(close_job.trigger)["hour"] == "17"
    assert str(open_job.trigger.timezone) == "Asia/Jerusalem"


def test_reregistration_cancels_once_and_installs_once():
    jobs = FakeJobScheduler()
    scheduler = _scheduler(jobs=jobs)

    scheduler.register_tenant("T1")
    scheduler.register_tenant("T1")

    assert len(jobs.jobs) == 4
    assert [job.removed for job in jobs.jobs] == [1, 1, 0, 0]
    assert scheduler.jobs_for("T1") == (jobs.jobs[2], jobs.jobs[3])


def test_update_schedule_persists_and_reregisters():
    jobs = FakeJobScheduler()
    scheduler = _scheduler(jobs=jobs)
    scheduler.register_tenant("T1")

    updated = scheduler.update_schedule("T1", open_day="TUE", open_time="08:30")

    assert updated == ScheduleSettings("TUE", "08:30", "THU", "17:00")
    assert get_schedule("T1") == updated
    open_job, _ = scheduler.jobs_for("T1")
    assert _field_values(open_job.trigger)["day_of_week"] == "tue"
    assert _field_values(open_job.trigger)["hour"] == "8"
    assert _field_values(open_job.trigger)["minute"] == "30"
    assert [job.removed for job in jobs.jobs] == [1, 1, 0, 0]


def test_invalid_update_changes_nothing():
    jobs = FakeJobScheduler()
    scheduler = _scheduler(jobs=jobs)
    scheduler.register_tenant("T1")

    with pytest.raises(ValueError):
        scheduler.update_schedule("T1", close_time="25:61")

    assert get_schedule("T1") is None
    assert len(jobs.jobs) == 2
    assert all(job.removed == 0 for job in jobs.jobs)


def test_apply_is_idempotent():
    jobs = FakeJobScheduler()
    scheduler = _scheduler(jobs=jobs)

    first = scheduler.apply("T1")
    second = scheduler.apply("T1")

    assert first == second == get_schedule("T1")
    assert len(jobs.jobs) == 4
    assert [job.removed for job in jobs.jobs] == [1, 1, 0, 0]


def test_bootstrap_registers_every_installed_workspace():
    upsert_workspace("T1", "xoxb-1", "secret")
    upsert_workspace("T2", "xoxb-2", "secret")
    jobs = FakeJobScheduler()
    scheduler = _scheduler(jobs=jobs)

    assert scheduler.bootstrap() == 2
    assert sorted(job.id for job in jobs.jobs) == sorted(
        [open_job_id("T1"), close_job_id("T1"), open_job_id("T2"), close_job_id("T2")]
    )


def test_start_and_shutdown_toggle_running():
    scheduler = _scheduler()

    scheduler.start()
    assert scheduler.running is True
    scheduler.shutdown()
    assert scheduler.running is False


def test_real_cron_trigger_fires_at_configured_wall_clock():
    scheduler = WeeklyOrderScheduler(slack=DummySlack(), settings=config.get_settings())
    scheduler.register_tenant("T1")
    open_job, close_job = scheduler.jobs_for("T1")
    zone = ZoneInfo("Asia/Jerusalem")

    # 2024-01-01 is a Monday.
    now = datetime(2024, 1, 1, 8, 0, tzinfo=zone)
    assert open_job.trigger.get_next_fire_time(None, now) == datetime(2024, 1, 1, 9, 0, tzinfo=zone)
    assert close_job.trigger.get_next_fire_time(None, now) == datetime(2024, 1, 4, 17, 0, tzinfo=zone)

    later = datetime(2024, 1, 1, 9, 0, 1, tzinfo=zone)
    assert open_job.trigger.get_next_fire_time(None, later) == datetime(2024, 1, 8, 9, 0, tzinfo=zone)

    scheduler.register_tenant("T1")
    assert scheduler.jobs_for("T1")[0] is not open_job
