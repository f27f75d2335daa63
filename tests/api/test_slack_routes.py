"""Tests for the Slack command and interactivity endpoints."""

import json
import time
from urllib.parse import urlencode

from fastapi.testclient import TestClient
from slack_sdk.signature import SignatureVerifier

from standup.api.main import create_app
from standup.api.routes.slack import parse_form
from standup.slack.interactions import ACTION_CONNECT_JIRA

FORM = {"Content-Type": "application/x-www-form-urlencoded"}
RESPONSE_URL = "https://hooks.slack.com/commands/T0001/1/abc"


def _command(command: str, **extra) -> bytes:
    fields = {
        "command": command,
        "user_id": "U024BE7LH",
        "user_name": "ada",
        "team_id": "T0001",
        "trigger_id": "trigger-1",
        "response_url": RESPONSE_URL,
        **extra,
    }
    return urlencode(fields).encode()


def _interaction(payload: dict) -> bytes:
    return urlencode({"payload": json.dumps(payload)}).encode()


class TestParseForm:
    def test_first_value_and_blanks(self):
        assert parse_form(b"a=1&a=2&b=&c=%2Fcmd") == {"a": "1", "b": "", "c": "/cmd"}


class TestSlashCommands:
    """Tests for POST /slack/commands."""

    def test_setup_command_opens_modal(self, client, slack_api):
        response = client.post("/slack/commands", content=_command("/standup-setup"), headers=FORM)

        assert response.status_code == 200
        opened = slack_api.calls("views_open")
        assert len(opened) == 1
        assert opened[0]["trigger_id"] == "trigger-1"
        assert "Connect Jira Account" in json.dumps(opened[0]["view"], ensure_ascii=False)

    def test_report_command_unconnected_user(self, client, slack_api):
        """The report runs in the background and replies through response_url."""
        response = client.post("/slack/commands", content=_command("/weekly-standup"), headers=FORM)

        assert response.status_code == 200
        urls = {url for url, _ in slack_api.replies}
        assert urls == {RESPONSE_URL}
        first, last = slack_api.replies[0][1], slack_api.replies[-1][1]
        assert first["text"].startswith("⏳")
        assert first["response_type"] == "ephemeral"
        assert last["replace_original"] is True
        assert "Jira not connected." in last["text"]
        assert "`/standup-setup`" in last["text"]
        slack_api.web.chat_postMessage.assert_not_awaited()

    def test_unknown_command(self, client, upstream, slack_api):
        response = client.post("/slack/commands", content=_command("/other"), headers=FORM)

        assert response.status_code == 200
        assert response.json() == {
            "response_type": "ephemeral",
            "text": "Unknown command `/other`.",
        }
        assert upstream.requests == []
        assert slack_api.untouched

    def test_missing_user_id(self, client):
        body = urlencode({"command": "/standup-setup"}).encode()
        response = client.post("/slack/commands", content=body, headers=FORM)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PAYLOAD"


class TestInteractions:
    """Tests for POST /slack/interactions."""

    def test_connect_button_shows_authorization_link(self, client, slack_api):
        client.post("/slack/commands", content=_command("/standup-setup"), headers=FORM)
        payload = {
            "type": "block_actions",
            "user": {"id": "U024BE7LH", "name": "ada"},
            "team": {"id": "T0001"},
            "view": {"id": "V-opened"},
            "actions": [{"action_id": ACTION_CONNECT_JIRA}],
        }

        response = client.post("/slack/interactions", content=_interaction(payload), headers=FORM)

        assert response.status_code == 200
        updates = slack_api.calls("views_update")
        assert updates[0]["view_id"] == "V-opened"
        view_text = json.dumps(updates[0]["view"])
        assert "https://auth.atlassian.com/authorize?" in view_text
        assert "client_id=client-id" in view_text

    def test_unhandled_action_is_acknowledged(self, client, slack_api):
        payload = {
            "type": "block_actions",
            "user": {"id": "U024BE7LH"},
            "view": {"id": "V1"},
            "actions": [{"action_id": "something_else"}],
        }

        response = client.post("/slack/interactions", content=_interaction(payload), headers=FORM)

        assert response.status_code == 200
        assert slack_api.untouched

    def test_missing_payload(self, client):
        response = client.post("/slack/interactions", content=b"foo=bar", headers=FORM)
        assert response.status_code == 400

    def test_payload_not_json(self, client):
        body = urlencode({"payload": "{not json"}).encode()
        response = client.post("/slack/interactions", content=body, headers=FORM)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PAYLOAD"


class TestSignatureVerification:
    """Requests are verified when a signing secret is configured."""

    SECRET = "signing-secret"

    def _signed_client(self, container) -> TestClient:
        container.settings = container.settings.model_copy(
            update={"slack_signing_secret": self.SECRET}
        )
        return TestClient(create_app(container))

    def _headers(self, body: bytes, timestamp: str) -> dict[str, str]:
        signature = SignatureVerifier(self.SECRET).generate_signature(
            timestamp=timestamp, body=body
        )
        return {
            **FORM,
            "X-Slack-Request-Timestamp": timestamp,
            "X-Slack-Signature": signature,
        }

    def test_valid_signature_accepted(self, container):
        client = self._signed_client(container)
        body = _command("/other")

        response = client.post(
            "/slack/commands", content=body, headers=self._headers(body, str(int(time.time())))
        )

        assert response.status_code == 200

    def test_bad_signature_rejected(self, container, slack_api):
        client = self._signed_client(container)

        response = client.post(
            "/slack/commands",
            content=_command("/standup-setup"),
            headers={
                **FORM,
                "X-Slack-Request-Timestamp": str(int(time.time())),
                "X-Slack-Signature": "v0=deadbeef",
            },
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"
        assert slack_api.untouched

    def test_tampered_body_rejected(self, container):
        client = self._signed_client(container)
        timestamp = str(int(time.time()))
        headers = self._headers(_command("/other"), timestamp)

        response = client.post(
            "/slack/commands", content=_command("/standup-setup"), headers=headers
        )

        assert response.status_code == 401

    def test_stale_timestamp_rejected(self, container):
        client = self._signed_client(container)
        body = _command("/other")
        stale = str(int(time.time()) - 10 * 60)

        response = client.post("/slack/commands", content=body, headers=self._headers(body, stale))

        assert response.status_code == 401

    def test_non_numeric_timestamp_rejected(self, container):
        client = self._signed_client(container)

        response = client.post(
            "/slack/commands",
            content=_command("/other"),
            headers={**FORM, "X-Slack-Request-Timestamp": "soon", "X-Slack-Signature": "v0=x"},
        )

        assert response.status_code == 401

    def test_unsigned_interaction_rejected(self, container):
        client = self._signed_client(container)

        response = client.post(
            "/slack/interactions", content=_interaction({"type": "block_actions"}), headers=FORM
        )

        assert response.status_code == 401


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
