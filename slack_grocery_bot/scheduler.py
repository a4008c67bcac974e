"""Weekly open/close jobs for every installed workspace."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

import structlog
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from slack_grocery_bot.config import AppSettings
from slack_grocery_bot.orders.summary import summarize
from slack_grocery_bot.slack_client import SlackApiFailure, SlackClient
from slack_grocery_bot.stores import credentials as credential_store
from slack_grocery_bot.stores import events as event_store
from slack_grocery_bot.stores import schedule as schedule_store
from slack_grocery_bot.stores.schedule import ScheduleSettings
from slack_grocery_bot.tenant import UnknownTenantError

OPENING_MESSAGE = (
    "*🛒 New Grocery Order Thread! Please add your items*.\n\n"
    "Mention me, then list your items :\n```@GrocFriend 2 apples, 1.5 kg sugar, banana```\n\n"
    "Supported formats:\n"
    "  – Integers or decimals (e.g. `2`, `1.5`)\n"
    "  – Commas/semicolons/periods to separate items\n"
    "  – Multi-word items (e.g. `2 green apples`)\n"
    "  – Default quantity of `1` if omitted\n"
    "  – Special characters supported (e.g. `crème fraîche`)\n\n"
    "React with 👍 to encourage an order.\n"
    "Items quantity with same name will be aggregated per user.\n"
    "You can find the real-time grocery list in the *GrocFriend*  home tab.\n"
)
NO_ORDERS_MESSAGE = "No orders were placed this week."
ADMIN_SUMMARY_PREFIX = "Summary:\n"


@dataclass(frozen=True)
class OpenThread:
    """The opening post of the current weekly thread."""

    channel_id: str
    ts: str


def open_job_id(team_id: str) -> str:
    return f"open:{team_id}"


def close_job_id(team_id: str) -> str:
    return f"close:{team_id}"


def build_job_scheduler(settings: AppSettings) -> BackgroundScheduler:
    """Return a background scheduler with its own worker pool for cron jobs."""

    return BackgroundScheduler(
        timezone=ZoneInfo(settings.schedule_timezone),
        executors={"default": ThreadPoolExecutor(settings.scheduler_workers)},
        job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 300},
    )


class WeeklyOrderScheduler:
    """Register, re-register and run the weekly open/close jobs per workspace.

    Jobs always receive the ``team_id`` explicitly; they never read the request
    tenant. The open thread of each workspace lives in memory only.
    """

    def __init__(
        self,
        *,
        slack: SlackClient,
        settings: AppSettings,
        job_scheduler: Any | None = None,
    ) -> None:
        self._slack = slack
        self._settings = settings
        self._zone = ZoneInfo(settings.schedule_timezone)
        self._jobs = job_scheduler if job_scheduler is not None else build_job_scheduler(settings)
        self._open_jobs: Dict[str, Any] = {}
        self._close_jobs: Dict[str, Any] = {}
        self._threads: Dict[str, OpenThread] = {}
        self._guard = threading.Lock()
        self._registry_locks: Dict[str, threading.RLock] = {}
        self._run_locks: Dict[str, threading.Lock] = {}

    # -- locks -----------------------------------------------------------------

    def _registry_lock(self, team_id: str) -> threading.RLock:
        with self._guard:
            return self._registry_locks.setdefault(team_id, threading.RLock())

    def _run_lock(self, team_id: str) -> threading.Lock:
        with self._guard:
            return self._run_locks.setdefault(team_id, threading.Lock())

    # -- lifecycle -------------------------------------------------------------

    @property
    def running(self) -> bool:
        return bool(getattr(self._jobs, "running", False))

    def start(self) -> None:
        if not self.running:
            self._jobs.start()
            structlog.get_logger().info("scheduler_started", timezone=self._settings.schedule_timezone)

    def shutdown(self) -> None:
        if self.running:
            self._jobs.shutdown(wait=False)
            structlog.get_logger().info("scheduler_stopped")

    def bootstrap(self) -> int:
        """Register jobs for every installed workspace; returns how many succeeded."""

        registered = 0
        for team_id in credential_store.list_team_ids():
            try:
                self.register_tenant(team_id)
            except Exception:
                structlog.get_logger().exception("schedule_bootstrap_failed", team_id=team_id)
                continue
            registered += 1
        structlog.get_logger().info("scheduler_bootstrapped", tenants=registered)
        return registered

    # -- registration ----------------------------------------------------------

    def _trigger(self, day: str, hh_mm: str) -> CronTrigger:
        hour, minute = hh_mm.split(":")
        return CronTrigger(
            day_of_week=day.lower(),
            hour=int(hour),
            minute=int(minute),
            second=0,
            timezone=self._zone,
        )

    def _cancel(self, team_id: str) -> None:
        for registry in (self._open_jobs, self._close_jobs):
            job = registry.pop(team_id, None)
            if job is None:
                continue
            try:
                job.remove()
            except JobLookupError:
                structlog.get_logger().debug("schedule_job_already_gone", team_id=team_id, job_id=job.id)

    def register_tenant(self, team_id: str, schedule: ScheduleSettings | None = None) -> ScheduleSettings:
        """Cancel the workspace's jobs, then install new ones from *schedule*.

        A fire already in progress completes with the old settings.
        """

        with self._registry_lock(team_id):
            settings = schedule or schedule_store.get_schedule_or_default(team_id)
            self._cancel(team_id)
            self._open_jobs[team_id] = self._jobs.add_job(
                self.open_for,
                trigger=self._trigger(settings.open_day, settings.open_time),
                args=[team_id],
                id=open_job_id(team_id),
                name=f"open weekly thread for {team_id}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self._close_jobs[team_id] = self._jobs.add_job(
                self.close_for,
                trigger=self._trigger(settings.close_day, settings.close_time),
                args=[team_id],
                id=close_job_id(team_id),
                name=f"close weekly thread for {team_id}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        structlog.get_logger().info(
            "schedule_registered",
            team_id=team_id,
            open=f"{settings.open_day} {settings.open_time}",
            close=f"{settings.close_day} {settings.close_time}",
        )
        return settings

    def update_schedule(self, team_id: str, **changes: str) -> ScheduleSettings:
        """Persist the changed fields and re-register the workspace's jobs.

        Raises ``ValueError`` for an unknown day or malformed time; nothing is
        stored in that case.
        """

        with self._registry_lock(team_id):
            current = schedule_store.get_schedule_or_default(team_id)
            updated = current.with_changes(**changes)
            schedule_store.upsert_schedule(team_id, updated)
            return self.register_tenant(team_id, updated)

    def apply(self, team_id: str) -> ScheduleSettings:
        """Persist the effective schedule and re-register jobs; safe to repeat."""

        with self._registry_lock(team_id):
            current = schedule_store.get_schedule_or_default(team_id)
            schedule_store.upsert_schedule(team_id, current)
            return self.register_tenant(team_id, current)

    def jobs_for(self, team_id: str) -> tuple[Any | None, Any | None]:
        with self._registry_lock(team_id):
            return self._open_jobs.get(team_id), self._close_jobs.get(team_id)

    # -- thread state ----------------------------------------------------------

    def current_thread(self, team_id: str) -> Optional[OpenThread]:
        with self._guard:
            return self._threads.get(team_id)

    def current_thread_ts(self, team_id: str) -> Optional[str]:
        thread = self.current_thread(team_id)
        return thread.ts if thread else None

    def thread_summary(self, team_id: str, thread: OpenThread) -> str:
        """Summarise the messages posted in *thread*'s channel since it opened."""

        messages = [
            message
            for message in event_store.fetch_messages_since(team_id, thread.ts)
            if message.channel_id == thread.channel_id
        ]
        reactions = [
            reaction
            for reaction in event_store.fetch_reactions_since(team_id, thread.ts)
            if reaction.channel_id == thread.channel_id
        ]
        return summarize(messages, reactions)

    # -- jobs ------------------------------------------------------------------

    def open_for(self, team_id: str) -> Optional[OpenThread]:
        """Post and pin the weekly prompt; records the new thread on success."""

        log = structlog.get_logger().bind(team_id=team_id, job="open")
        with self._run_lock(team_id):
            try:
                response = self._slack.send_message(
                    self._settings.order_channel, OPENING_MESSAGE, team_id=team_id
                )
            except (SlackApiFailure, UnknownTenantError) as exc:
                log.error("thread_open_failed", error=getattr(exc, "error", str(exc)))
                return None

            ts = response.get("ts")
            if not ts:
                log.warning("thread_open_missing_ts", response_keys=list(response.keys()))
                return None
            thread = OpenThread(channel_id=response.get("channel") or self._settings.order_channel, ts=ts)

            with self._guard:
                previous = self._threads.get(team_id)
                self._threads[team_id] = thread
            if previous is not None:
                log.warning("thread_replaced", previous_ts=previous.ts)

            try:
                self._slack.pin_message(thread.channel_id, thread.ts, team_id=team_id)
            except SlackApiFailure as exc:
                log.warning("thread_pin_failed", error=exc.error)

            log.info("thread_opened", channel_id=thread.channel_id, thread_ts=thread.ts)
            return thread

    def close_for(self, team_id: str) -> bool:
        """Post the weekly summary in the open thread, prune old events, clear state.

        Returns False when no thread was open or the summary could not be posted;
        in the latter case the thread stays open so a manual close can retry.
        """

        log = structlog.get_logger().bind(team_id=team_id, job="close")
        with self._run_lock(team_id):
            thread = self.current_thread(team_id)
            if thread is None:
                log.info("thread_close_skipped", reason="no_open_thread")
                return False

            summary = self.thread_summary(team_id, thread)
            try:
                self._slack.send_message_in_thread(
                    thread.channel_id,
                    summary or NO_ORDERS_MESSAGE,
                    thread.ts,
                    team_id=team_id,
                )
            except (SlackApiFailure, UnknownTenantError) as exc:
                log.error("thread_summary_failed", error=getattr(exc, "error", str(exc)))
                return False

            admin_channel = self._settings.admin_channel
            if summary and admin_channel:
                try:
                    self._slack.send_message(admin_channel, ADMIN_SUMMARY_PREFIX + summary, team_id=team_id)
                except SlackApiFailure as exc:
                    log.warning("admin_summary_failed", channel=admin_channel, error=exc.error)

            pruned = event_store.prune_before(team_id, thread.ts)
            with self._guard:
                if self._threads.get(team_id) == thread:
                    del self._threads[team_id]
            log.info("thread_closed", thread_ts=thread.ts, pruned=pruned, empty=not summary)
            return True
