"""Application entry point for the Slack grocery order bot."""

from __future__ import annotations

import atexit
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from flask import Flask, Response, g, jsonify, request
from sqlalchemy import text
from werkzeug.exceptions import HTTPException
import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars

from slack_grocery_bot.background import run_async
from slack_grocery_bot.config import AppSettings, get_settings
from slack_grocery_bot.db import init_db, session_scope
from slack_grocery_bot.dispatcher import DispatchResult, SlackDispatcher
from slack_grocery_bot.handlers import CommandHandlers, EventHandlers, InteractionHandlers
from slack_grocery_bot.logging_config import configure_logging
from slack_grocery_bot.scheduler import WeeklyOrderScheduler
from slack_grocery_bot.security import (
    SLACK_SIGNATURE_HEADER,
    SLACK_TIMESTAMP_HEADER,
    is_valid_slack_request,
)
from slack_grocery_bot.slack_client import SlackApiFailure, SlackClient, exchange_oauth_code
from slack_grocery_bot.stores.credentials import upsert_workspace


_LOGGING_CONFIGURED = False
EXTENSION_KEY = "grocery_bot"


@dataclass
class GroceryBotServices:
    settings: AppSettings
    slack: SlackClient
    scheduler: WeeklyOrderScheduler
    dispatcher: SlackDispatcher


def _load_version() -> str:
    version_file = Path(__file__).resolve().parent / "VERSION"
    if version_file.exists():
        return version_file.read_text(encoding="utf-8").strip()
    return "unknown"


def _submit_background(func) -> None:
    run_async(func)


def _text_response(body: str, status: int = 200) -> Response:
    return Response(body, status=status, mimetype="text/plain")


def _dispatch_response(result: DispatchResult) -> Response:
    return _text_response(result.body, result.status)


def _register_error_handlers(flask_app: Flask) -> None:
    """Register a JSON error handler that attaches a trace identifier."""

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):  # type: ignore[override]
        if isinstance(error, HTTPException):
            return error
        trace_id = getattr(g, "trace_id", None) or str(uuid4())
        structlog.get_logger().error("unhandled_error", trace_id=trace_id, exc_info=error)
        response = jsonify({"error": "internal_server_error", "trace_id": trace_id})
        response.status_code = 500
        return response


def _register_request_hooks(flask_app: Flask, settings: AppSettings) -> None:
    """Bind a trace id to every request and verify signatures on Slack webhooks."""

    @flask_app.before_request
    def bind_trace_and_verify():
        g.trace_id = str(uuid4())
        bind_contextvars(trace_id=g.trace_id)

        if request.method != "POST" or not request.path.startswith("/slack/"):
            return None

        log = structlog.get_logger().bind(path=request.path)
        if (request.content_length or 0) > settings.max_request_bytes:
            log.warning("webhook_body_too_large", content_length=request.content_length)
            return _text_response("Request body too large", 400)
        raw_body = request.get_data(cache=True)
        if len(raw_body) > settings.max_request_bytes:
            log.warning("webhook_body_too_large", content_length=len(raw_body))
            return _text_response("Request body too large", 400)

        if not is_valid_slack_request(
            signing_secret=settings.signing_secret,
            timestamp=request.headers.get(SLACK_TIMESTAMP_HEADER),
            body=raw_body,
            signature=request.headers.get(SLACK_SIGNATURE_HEADER),
        ):
            log.warning("webhook_signature_invalid")
            return _text_response("Invalid signature", 401)

        g.raw_body = raw_body
        return None

    @flask_app.teardown_request
    def unbind_trace(_exc):
        unbind_contextvars("trace_id")


def _build_services(settings: AppSettings) -> GroceryBotServices:
    slack = SlackClient(timeout=settings.slack_api_timeout)
    scheduler = WeeklyOrderScheduler(slack=slack, settings=settings)
    dispatcher = SlackDispatcher(
        events=EventHandlers(slack=slack, settings=settings),
        interactions=InteractionHandlers(slack=slack, scheduler=scheduler, settings=settings),
        commands=CommandHandlers(slack=slack, scheduler=scheduler),
        submit=_submit_background,
    )
    return GroceryBotServices(settings=settings, slack=slack, scheduler=scheduler, dispatcher=dispatcher)


def create_app() -> Flask:
    """Create and configure the Flask application."""

    global _LOGGING_CONFIGURED
    if not _LOGGING_CONFIGURED:
        configure_logging()
        _LOGGING_CONFIGURED = True

    settings = get_settings()
    init_db()
    services = _build_services(settings)
    scheduler = services.scheduler
    dispatcher = services.dispatcher

    flask_app = Flask(__name__)
    flask_app.config["APP_VERSION"] = _load_version()
    flask_app.extensions[EXTENSION_KEY] = services

    _register_error_handlers(flask_app)
    _register_request_hooks(flask_app, settings)

    if settings.scheduler_autostart:
        scheduler.start()
        scheduler.bootstrap()
        atexit.register(scheduler.shutdown)

    @flask_app.route("/slack/events", methods=["POST"])
    def slack_events():
        return _dispatch_response(dispatcher.dispatch_event(g.raw_body))

    @flask_app.route("/slack/interact", methods=["POST"])
    @flask_app.route("/slack/interact/<path:subpath>", methods=["POST"])
    def slack_interactions(subpath: str | None = None):
        return _dispatch_response(dispatcher.dispatch_interaction(g.raw_body))

    @flask_app.route("/slack/commands", methods=["POST"])
    def slack_commands():
        return _dispatch_response(dispatcher.dispatch_command(g.raw_body))

    @flask_app.route("/oauth/callback", methods=["GET"])
    def oauth_callback():
        log = structlog.get_logger()
        error = request.args.get("error")
        if error:
            return _text_response(f"OAuth failed: {error}", 400)
        code = request.args.get("code")
        if not code:
            return _text_response("Missing code", 400)
        try:
            team_id, bot_token = exchange_oauth_code(
                client_id=settings.client_id,
                client_secret=settings.client_secret,
                code=code,
            )
        except SlackApiFailure as exc:
            log.warning("oauth_exchange_failed", error=exc.error)
            return _text_response(f"OAuth failed: {exc.error}", 400)

        upsert_workspace(team_id, bot_token, settings.signing_secret)
        log.info("workspace_installed", team_id=team_id)
        try:
            scheduler.register_tenant(team_id)
        except Exception:
            log.exception("schedule_registration_failed", team_id=team_id)
        return _text_response(f"App successfully installed for team {team_id}")

    @flask_app.route("/slack/test/open", methods=["GET"])
    def force_open():
        team_id = request.args.get("teamId")
        if not team_id:
            return _text_response("Missing teamId", 400)
        thread = scheduler.open_for(team_id)
        if thread is None:
            return _text_response(f"Failed to open thread for team {team_id}", 502)
        return _text_response(f"Opened thread at ts={thread.ts}")

    @flask_app.route("/slack/test/close", methods=["GET"])
    def force_close():
        team_id = request.args.get("teamId")
        if not team_id:
            return _text_response("Missing teamId", 400)
        thread_ts = scheduler.current_thread_ts(team_id)
        if thread_ts is None:
            return _text_response(f"No open thread for team {team_id}", 409)
        if not scheduler.close_for(team_id):
            return _text_response(f"Failed to close thread that started at ts={thread_ts}", 502)
        return _text_response(f"Closed thread that started at ts={thread_ts}")

    @flask_app.route("/healthz", methods=["GET"])
    def healthz():
        health: dict[str, object] = {"ok": True}
        health["version"] = flask_app.config.get("APP_VERSION", "unknown")

        try:
            get_settings()
            health["config"] = "valid"
        except Exception as exc:  # pragma: no cover
            health["config"] = "invalid"
            health["config_error"] = str(exc)
            health["ok"] = False

        try:
            with session_scope() as session:
                session.execute(text("SELECT 1"))
            health["db"] = "up"
        except Exception as exc:
            health["db"] = "down"
            health["db_error"] = str(exc)
            health["ok"] = False

        health["scheduler"] = "running" if scheduler.running else "stopped"
        if settings.scheduler_autostart and not scheduler.running:
            health["ok"] = False

        status = 200 if health["ok"] else 503
        return jsonify(health), status

    return flask_app


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    application = create_app()
    application.run(host="0.0.0.0", port=3000, threaded=True)
