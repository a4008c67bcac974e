"""Tests for the Flask application factory and its webhook routes."""

import json
from pathlib import Path
import sys
from types import SimpleNamespace
from urllib.parse import urlencode

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:  # pragma: no cover
    sys.path.insert(0, str(ROOT))

import app as app_module  # noqa: E402
from slack_grocery_bot import config, security  # noqa: E402
from slack_grocery_bot.db import get_engine, get_session_factory  # noqa: E402
from slack_grocery_bot.handlers import ACK_TEXT, SUMMARY_ADMIN_COMMAND  # noqa: E402
from slack_grocery_bot.scheduler import OPENING_MESSAGE  # noqa: E402
from slack_grocery_bot.slack_client import SlackApiFailure  # noqa: E402
from slack_grocery_bot.stores.credentials import get_bot_token  # noqa: E402
from slack_grocery_bot.stores.events import fetch_messages_for_team  # noqa: E402

TIMESTAMP = "1700000000"
OPEN_TS = "1700000100.000100"


class DummySlackClient:
    """Stands in for ``SlackClient``; records every outbound call."""

    instances = []

    def __init__(self, *, timeout=None, **_kwargs):
        self.timeout = timeout
        self.calls = []
        self.fail_open = False
        DummySlackClient.instances.append(self)

    def send_message(self, channel_id, text, *, team_id=None):
        self.calls.append(("send_message", channel_id, text, team_id))
        if self.fail_open:
            raise SlackApiFailure("not_in_channel", method="chat.postMessage")
        return {"ok": True, "channel": "C1", "ts": OPEN_TS}

    def send_message_in_thread(self, channel_id, text, thread_ts, *, team_id=None):
        self.calls.append(("send_message_in_thread", channel_id, text, thread_ts, team_id))
        return {"ok": True, "channel": channel_id, "ts": "1700000300.000100"}

    def pin_message(self, channel_id, ts, *, team_id=None):
        self.calls.append(("pin_message", channel_id, ts, team_id))

    def add_reaction(self, channel_id, ts, name, *, team_id=None):
        self.calls.append(("add_reaction", channel_id, ts, name, team_id))

    def is_workspace_admin(self, user_id, *, team_id=None):
        return True

    def send_direct_message(self, user_id, text, *, team_id=None):
        self.calls.append(("send_direct_message", user_id, text, team_id))


@pytest.fixture(autouse=True)
def seeded_env(monkeypatch, tmp_path):
    monkeypatch.setenv("SLACK_SIGNING_SECRET", "secret")
    monkeypatch.setenv("SLACK_CLIENT_ID", "client-id")
    monkeypatch.setenv("SLACK_CLIENT_SECRET", "client-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'app.db'}")
    monkeypatch.setenv("SCHEDULER_AUTOSTART", "false")
    monkeypatch.delenv("ORDER_CHANNEL", raising=False)
    monkeypatch.delenv("ADMIN_CHANNEL", raising=False)
    monkeypatch.delenv("MAX_REQUEST_BYTES", raising=False)
    config.get_settings.cache_clear()
    get_engine.cache_clear()
    get_session_factory.cache_clear()

    DummySlackClient.instances = []
    monkeypatch.setattr(app_module, "SlackClient", DummySlackClient)
    monkeypatch.setattr(app_module, "run_async", lambda func, *args, **kwargs: func(*args, **kwargs))
    monkeypatch.setattr(security, "time", SimpleNamespace(time=lambda: int(TIMESTAMP)))
    yield
    config.get_settings.cache_clear()
    get_engine.cache_clear()
    get_session_factory.cache_clear()


def _signed_headers(body, *, secret="secret", timestamp=TIMESTAMP):
    return {
        security.SLACK_SIGNATURE_HEADER: security.compute_signature(secret, timestamp, body),
        security.SLACK_TIMESTAMP_HEADER: timestamp,
    }


def _post(client, path, body, content_type="application/json", headers=None):
    return client.post(
        path,
        data=body,
        content_type=content_type,
        headers=headers if headers is not None else _signed_headers(body),
    )


def _slack():
    return DummySlackClient.instances[-1]


def test_url_verification_echoes_challenge():
    flask_app = app_module.create_app()
    body = '{"type":"url_verification","challenge":"xyz"}'

    response = _post(flask_app.test_client(), "/slack/events", body)

    assert response.status_code == 200
    assert response.mimetype == "text/plain"
    assert response.get_data(as_text=True) == "xyz"


def test_altered_signature_is_rejected():
    flask_app = app_module.create_app()
    body = '{"type":"url_verification","challenge":"xyz"}'
    headers = _signed_headers(body)
    signature = headers[security.SLACK_SIGNATURE_HEADER]
    last = signature[-1]
    headers[security.SLACK_SIGNATURE_HEADER] = signature[:-1] + ("0" if last != "0" else "1")

    response = _post(flask_app.test_client(), "/slack/events", body, headers=headers)

    assert response.status_code == 401
    assert response.get_data(as_text=True) == "Invalid signature"


def test_unsigned_and_stale_requests_are_rejected():
    flask_app = app_module.create_app()
    client = flask_app.test_client()
    body = "{}"

    assert _post(client, "/slack/events", body, headers={}).status_code == 401
    stale = _signed_headers(body, timestamp=str(int(TIMESTAMP) - 301))
    assert _post(client, "/slack/events", body, headers=stale).status_code == 401


def test_oversized_body_is_rejected_before_parsing(monkeypatch):
    monkeypatch.setenv("MAX_REQUEST_BYTES", "64")
    config.get_settings.cache_clear()
    flask_app = app_module.create_app()
    body = json.dumps({"type": "url_verification", "challenge": "x" * 100})

    response = _post(flask_app.test_client(), "/slack/events", body)

    assert response.status_code == 400
    assert response.get_data(as_text=True) == "Request body too large"


def test_malformed_event_is_bad_request():
    flask_app = app_module.create_app()

    response = _post(flask_app.test_client(), "/slack/events", "not json")

    assert response.status_code == 400
    assert response.get_data(as_text=True) == "Invalid JSON body"


def test_interaction_with_malformed_team_is_bad_request():
    flask_app = app_module.create_app()
    body = urlencode({"payload": json.dumps({"type": "block_actions", "team": "T1"})})

    response = _post(flask_app.test_client(), "/slack/interact", body, "application/x-www-form-urlencoded")

    assert response.status_code == 400
    assert response.get_data(as_text=True) == "Missing team id"


def test_slash_command_is_acknowledged_immediately():
    flask_app = app_module.create_app()
    body = urlencode({"command": SUMMARY_ADMIN_COMMAND, "user_id": "U1", "team_id": "T1"})

    response = _post(flask_app.test_client(), "/slack/commands", body, "application/x-www-form-urlencoded")

    assert response.status_code == 200
    assert response.get_data(as_text=True) == ACK_TEXT
    assert ("send_direct_message", "U1", "No active grocery thread to summarize.", "T1") in _slack().calls


def test_interaction_path_suffix_is_accepted():
    flask_app = app_module.create_app()
    body = urlencode({"payload": json.dumps({"type": "shortcut", "team": {"id": "T1"}})})

    response = _post(flask_app.test_client(), "/slack/interact/anything", body, "application/x-www-form-urlencoded")

    assert response.status_code == 200


def test_oauth_callback_installs_workspace(monkeypatch):
    captured = {}

    def fake_exchange(*, client_id, client_secret, code):
        captured.update(client_id=client_id, client_secret=client_secret, code=code)
        return "T9", "xoxb-9"

    monkeypatch.setattr(app_module, "exchange_oauth_code", fake_exchange)
    flask_app = app_module.create_app()

    response = flask_app.test_client().get("/oauth/callback?code=abc")

    assert response.status_code == 200
    assert response.get_data(as_text=True) == "App successfully installed for team T9"
    assert captured == {"client_id": "client-id", "client_secret": "client-secret", "code": "abc"}
    assert get_bot_token("T9") == "xoxb-9"
    open_job, close_job = flask_app.extensions[app_module.EXTENSION_KEY].scheduler.jobs_for("T9")
    assert open_job is not None and close_job is not None


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ("error=access_denied", "OAuth failed: access_denied"),
        ("", "Missing code"),
        ("code=bad", "OAuth failed: invalid_code"),
    ],
)
def test_oauth_callback_failures(monkeypatch, query, expected):
    def failing_exchange(**_kwargs):
        raise SlackApiFailure("invalid_code", method="oauth.v2.access")

    monkeypatch.setattr(app_module, "exchange_oauth_code", failing_exchange)
    flask_app = app_module.create_app()

    response = flask_app.test_client().get(f"/oauth/callback?{query}")

    assert response.status_code == 400
    assert response.get_data(as_text=True) == expected


def test_manual_open_mention_and_close_round_trip():
    flask_app = app_module.create_app()
    client = flask_app.test_client()

    opened = client.get("/slack/test/open?teamId=T1")
    assert opened.status_code == 200
    assert opened.get_data(as_text=True) == f"Opened thread at ts={OPEN_TS}"

    event = {
        "type": "event_callback",
        "team_id": "T1",
        "event_id": "Ev1",
        "event": {
            "type": "app_mention",
            "user": "U1",
            "text": "<@UBOT> 2 apples, 1 milk",
            "channel": "C1",
            "ts": "1700000200.000100",
            "thread_ts": OPEN_TS,
        },
    }
    body = json.dumps(event)
    assert _post(client, "/slack/events", body).status_code == 200
    assert [message.text for message in fetch_messages_for_team("T1")] == ["<@UBOT> 2 apples, 1 milk"]

    closed = client.get("/slack/test/close?teamId=T1")
    assert closed.status_code == 200
    assert closed.get_data(as_text=True) == f"Closed thread that started at ts={OPEN_TS}"

    calls = _slack().calls
    assert calls[0] == ("send_message", "office-grocery", OPENING_MESSAGE, "T1")
    assert ("pin_message", "C1", OPEN_TS, "T1") in calls
    summary_posts = [call for call in calls if call[0] == "send_message_in_thread" and call[3] == OPEN_TS]
    assert summary_posts[-1][2] == "*Weekly Grocery Summary:*\n• <@U1>: 2× apples, 1× milk"
    assert len(fetch_messages_for_team("T1")) == 1

    again = client.get("/slack/test/close?teamId=T1")
    assert again.status_code == 409
    assert again.get_data(as_text=True) == "No open thread for team T1"


def test_manual_endpoints_validate_team_and_report_failures():
    flask_app = app_module.create_app()
    client = flask_app.test_client()

    assert client.get("/slack/test/open").status_code == 400
    assert client.get("/slack/test/close").get_data(as_text=True) == "Missing teamId"

    _slack().fail_open = True
    failed = client.get("/slack/test/open?teamId=T1")
    assert failed.status_code == 502


def test_unhandled_errors_return_json_with_trace_id(monkeypatch):
    flask_app = app_module.create_app()

    services = flask_app.extensions[app_module.EXTENSION_KEY]

    def explode(_team_id):
        raise RuntimeError("boom")

    monkeypatch.setattr(services.scheduler, "open_for", explode)

    response = flask_app.test_client().get("/slack/test/open?teamId=T1")

    assert response.status_code == 500
    data = response.get_json()
    assert data["error"] == "internal_server_error"
    assert data["trace_id"]
