"""Demultiplex verified Slack webhooks into handler calls."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Mapping
from urllib.parse import parse_qs

import structlog

from slack_grocery_bot.background import run_async
from slack_grocery_bot.handlers import (
    ACK_TEXT,
    SUMMARY_ADMIN_COMMAND,
    CommandHandlers,
    EventHandlers,
    InteractionHandlers,
)
from slack_grocery_bot.tenant import tenant_scope


@dataclass(frozen=True)
class DispatchResult:
    """Status code and ``text/plain`` body for the webhook response."""

    status: int
    body: str = ""


OK = DispatchResult(200, "")


def _bad_request(reason: str) -> DispatchResult:
    structlog.get_logger().warning("webhook_rejected", reason=reason)
    return DispatchResult(400, reason)


def _nested_id(payload: Mapping[str, Any], key: str) -> str | None:
    """Return ``payload[key]["id"]`` when it is a non-empty string."""

    section = payload.get(key)
    if not isinstance(section, Mapping):
        return None
    value = section.get("id")
    return value if isinstance(value, str) and value else None


def _decode(raw_body: bytes | str) -> str:
    if isinstance(raw_body, bytes):
        return raw_body.decode("utf-8")
    return raw_body


def parse_form(raw_body: bytes | str) -> dict[str, str]:
    """Decode a form-urlencoded body, keeping the first value of each field."""

    if isinstance(raw_body, bytes):
        raw_body = raw_body.decode("utf-8", errors="replace")
    parsed = parse_qs(raw_body, keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items() if values}


class SlackDispatcher:
    """Validate payload shape, bind the tenant and hand off to the handlers.

    Handling runs through *submit* (the background executor by default), so the
    webhook is acknowledged before any Slack or database work happens. Handler
    failures are logged and never change the response.
    """

    def __init__(
        self,
        *,
        events: EventHandlers,
        interactions: InteractionHandlers,
        commands: CommandHandlers,
        submit: Callable[..., Any] = run_async,
    ) -> None:
        self._events = events
        self._interactions = interactions
        self._commands = commands
        self._submit = submit

    def _run_for_tenant(self, team_id: str, name: str, handler: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        def task() -> None:
            with tenant_scope(team_id):
                try:
                    handler(*args, team_id=team_id, **kwargs)
                except Exception:
                    structlog.get_logger().exception("handler_failed", handler=name)

        self._submit(task)

    # -- events ----------------------------------------------------------------

    def dispatch_event(self, raw_body: bytes | str) -> DispatchResult:
        if not raw_body:
            return _bad_request("Missing body")
        try:
            payload = json.loads(_decode(raw_body))
        except (ValueError, UnicodeDecodeError):
            return _bad_request("Invalid JSON body")
        if not isinstance(payload, Mapping):
            return _bad_request("Invalid JSON body")

        payload_type = payload.get("type")
        if payload_type == "url_verification":
            challenge = payload.get("challenge")
            if not isinstance(challenge, str):
                return _bad_request("Missing challenge")
            return DispatchResult(200, challenge)

        if payload_type != "event_callback":
            structlog.get_logger().info("event_payload_ignored", payload_type=payload_type)
            return OK

        team_id = payload.get("team_id")
        event = payload.get("event")
        if not isinstance(team_id, str) or not team_id:
            return _bad_request("Missing team_id")
        if not isinstance(event, Mapping):
            return _bad_request("Missing event")

        event_type = event.get("type")
        log = structlog.get_logger().bind(team_id=team_id, event_type=event_type)
        if event.get("bot_id"):
            log.debug("bot_event_ignored")
            return OK

        handler = self._events.routes().get(event_type) if isinstance(event_type, str) else None
        if handler is None:
            log.info("event_type_ignored")
            return OK

        log.info("event_received", event_id=payload.get("event_id"))
        self._run_for_tenant(team_id, event_type, handler, event)
        return OK

    # -- interactions ----------------------------------------------------------

    def dispatch_interaction(self, raw_body: bytes | str) -> DispatchResult:
        form = parse_form(raw_body or b"")
        raw_payload = form.get("payload")
        if not raw_payload:
            return _bad_request("Missing payload")
        try:
            payload = json.loads(raw_payload)
        except ValueError:
            return _bad_request("Invalid payload")
        if not isinstance(payload, Mapping):
            return _bad_request("Invalid payload")

        team_id = _nested_id(payload, "team")
        if not team_id:
            return _bad_request("Missing team id")

        interaction_type = payload.get("type")
        if interaction_type == "block_actions":
            handler = self._interactions.block_actions
        elif interaction_type == "view_submission":
            handler = self._interactions.view_submission
        else:
            structlog.get_logger().info("interaction_ignored", interaction_type=interaction_type)
            return OK

        structlog.get_logger().info(
            "interaction_received",
            team_id=team_id,
            interaction_type=interaction_type,
            user_id=_nested_id(payload, "user"),
        )
        self._run_for_tenant(team_id, interaction_type, handler, payload)
        return OK

    # -- slash commands --------------------------------------------------------

    def dispatch_command(self, raw_body: bytes | str) -> DispatchResult:
        form = parse_form(raw_body or b"")
        command = form.get("command")
        user_id = form.get("user_id")
        if not command or not user_id:
            return _bad_request("Required parameters 'command' and 'user_id' are missing")
        if not self._commands.supports(command):
            return _bad_request(f"Unknown command: {command}")
        team_id = form.get("team_id")
        if not team_id:
            return _bad_request("Required parameter 'team_id' is missing")

        structlog.get_logger().info("slash_command_received", command=command, team_id=team_id, user_id=user_id)
        if command == SUMMARY_ADMIN_COMMAND:
            self._run_for_tenant(team_id, "summary_admin", self._commands.summary_admin, user_id=user_id)
        return DispatchResult(200, ACK_TEXT)
