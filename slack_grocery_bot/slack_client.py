"""Tenant-aware wrapper around the Slack WebClient."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Tuple

import structlog
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError, SlackClientError

from slack_grocery_bot.stores.credentials import get_bot_token
from slack_grocery_bot.tenant import resolve_team_id


class SlackApiFailure(Exception):
    """A Slack Web API call failed, either in transport or with ``ok: false``."""

    def __init__(self, error: str, *, method: str) -> None:
        super().__init__(f"{method} failed: {error}")
        self.error = error
        self.method = method


def _api_method_name(attribute: str) -> str:
    return attribute.replace("_", ".")


def _call_web_api(client: WebClient, attribute: str, **kwargs: Any) -> Mapping[str, Any]:
    """Invoke ``client.<attribute>(**kwargs)`` and normalise every failure."""

    method = _api_method_name(attribute)
    try:
        return getattr(client, attribute)(**kwargs)
    except SlackApiError as exc:
        error = exc.response.get("error") if getattr(exc, "response", None) else str(exc)
        structlog.get_logger().warning("slack_call_failed", method=method, error=error)
        raise SlackApiFailure(error or "unknown_error", method=method) from exc
    except (SlackClientError, OSError) as exc:
        structlog.get_logger().warning("slack_call_failed", method=method, error=str(exc))
        raise SlackApiFailure(str(exc) or exc.__class__.__name__, method=method) from exc


class SlackClient:
    """Encapsulate Slack WebClient interactions for easier testing.

    Every call resolves the bot token of a workspace: the explicit ``team_id``
    keyword when given, otherwise the workspace bound to the current request.
    """

    def __init__(
        self,
        *,
        token_lookup: Callable[[str], str] = get_bot_token,
        client_factory: Callable[[str], WebClient] | None = None,
        timeout: int = 10,
    ) -> None:
        self._token_lookup = token_lookup
        self._timeout = timeout
        self._client_factory = client_factory or self._default_client

    def _default_client(self, token: str) -> WebClient:
        return WebClient(token=token, timeout=self._timeout)

    def client_for(self, team_id: str | None = None) -> WebClient:
        """Return a WebClient authorised with the workspace's bot token."""

        resolved = resolve_team_id(team_id)
        return self._client_factory(self._token_lookup(resolved))

    def _call(self, attribute: str, team_id: str | None, **kwargs: Any) -> Mapping[str, Any]:
        return _call_web_api(self.client_for(team_id), attribute, **kwargs)

    def send_message(self, channel_id: str, text: str, *, team_id: str | None = None) -> Mapping[str, Any]:
        """Post *text* to a channel; the response carries ``channel`` and ``ts``."""

        return self._call("chat_postMessage", team_id, channel=channel_id, text=text)

    def send_message_in_thread(
        self,
        channel_id: str,
        text: str,
        thread_ts: str,
        *,
        team_id: str | None = None,
    ) -> Mapping[str, Any]:
        return self._call(
            "chat_postMessage",
            team_id,
            channel=channel_id,
            text=text,
            thread_ts=thread_ts,
        )

    def pin_message(self, channel_id: str, ts: str, *, team_id: str | None = None) -> None:
        self._call("pins_add", team_id, channel=channel_id, timestamp=ts)

    def open_im(self, user_id: str, *, team_id: str | None = None) -> str:
        """Open (or reuse) a direct message channel with *user_id*."""

        response = self._call("conversations_open", team_id, users=user_id)
        channel = response.get("channel") or {}
        channel_id = channel.get("id")
        if not channel_id:
            raise SlackApiFailure("missing_channel_id", method="conversations.open")
        return channel_id

    def send_direct_message(self, user_id: str, text: str, *, team_id: str | None = None) -> Mapping[str, Any]:
        channel_id = self.open_im(user_id, team_id=team_id)
        return self.send_message(channel_id, text, team_id=team_id)

    def is_workspace_admin(self, user_id: str, *, team_id: str | None = None) -> bool:
        """Return True for workspace admins and owners."""

        response = self._call("users_info", team_id, user=user_id)
        user = response.get("user") or {}
        return bool(user.get("is_admin") or user.get("is_owner"))

    def publish_home_view(
        self,
        user_id: str,
        view: Mapping[str, Any],
        *,
        team_id: str | None = None,
    ) -> None:
        self._call("views_publish", team_id, user_id=user_id, view=dict(view))

    def open_modal(
        self,
        trigger_id: str,
        view: Mapping[str, Any],
        *,
        team_id: str | None = None,
    ) -> None:
        self._call("views_open", team_id, trigger_id=trigger_id, view=dict(view))

    def add_reaction(self, channel_id: str, ts: str, name: str, *, team_id: str | None = None) -> None:
        self._call("reactions_add", team_id, channel=channel_id, timestamp=ts, name=name)

    def resolve_channel_id_by_name(self, name: str, *, team_id: str | None = None) -> str:
        """Look up a channel id by name, following ``conversations.list`` pagination."""

        wanted = name.lstrip("#")
        client = self.client_for(team_id)
        cursor = None
        while True:
            kwargs: dict[str, Any] = {
                "types": "public_channel,private_channel",
                "exclude_archived": True,
                "limit": 200,
            }
            if cursor:
                kwargs["cursor"] = cursor
            response = _call_web_api(client, "conversations_list", **kwargs)
            for channel in response.get("channels") or []:
                if channel.get("name") == wanted or channel.get("id") == wanted:
                    return channel["id"]
            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                break
        raise SlackApiFailure("channel_not_found", method="conversations.list")


def exchange_oauth_code(
    *,
    client_id: str,
    client_secret: str,
    code: str,
    client: WebClient | None = None,
) -> Tuple[str, str]:
    """Exchange an OAuth ``code`` for ``(team_id, bot_token)``."""

    response = _call_web_api(
        client or WebClient(),
        "oauth_v2_access",
        client_id=client_id,
        client_secret=client_secret,
        code=code,
    )
    team_id = (response.get("team") or {}).get("id")
    token = response.get("access_token")
    if not team_id or not token:
        raise SlackApiFailure("invalid_oauth_response", method="oauth.v2.access")
    return team_id, token
