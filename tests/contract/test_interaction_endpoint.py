"""
Contract test for the Slack interactive message endpoint.

Validates status codes, the synchronous acknowledgement body and the
follow-up message posted after the response.
"""

from typing import Any, Dict, Optional

import pytest
from fastapi.testclient import TestClient
from freezegun import freeze_time

from conftest import (
    OTHER_USER_ID,
    OWNER_ID,
    ROOM_A,
    ROOM_B,
    VERIFICATION_TOKEN,
    interaction_body,
    jst,
    make_slot,
)
from rescheduler.main import create_app
from rescheduler.models.meeting import Room

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}

TARGET_TOKEN = "1001,Weekly sync"
TIME_TOKEN = "1001,2019-01-07T10:00:00+09:00,2019-01-07T11:00:00+09:00,11"


def payload(
    action_name: str,
    value: Optional[str],
    user_id: str = OWNER_ID,
    token: str = VERIFICATION_TOKEN
) -> Dict[str, Any]:
    action: Dict[str, Any] = {"name": action_name, "type": "select"}
    if value is not None:
        action["selected_options"] = [{"value": value}]

    return {
        "type": "interactive_message",
        "token": token,
        "callback_id": "target",
        "user": {"id": user_id, "name": "alice"},
        "channel": {"id": "C0001", "name": "general"},
        "original_message": {
            "text": "",
            "attachments": [{
                "title": "Which schedule do you intend? :calendar:",
                "color": "#32cd32",
                "callback_id": "target",
                "actions": [
                    {
                        "name": action_name if action_name != "cancel" else "selectTarget",
                        "type": "select",
                        "options": [{"text": "option", "value": value or TARGET_TOKEN}],
                    },
                    {"name": "cancel", "text": "Cancel", "type": "button", "style": "danger"},
                ],
            }],
        },
        "actions": [action],
    }


class TestInteractionEndpoint:
    """Test /interaction contract"""

    @pytest.fixture
    def client(self, config, garoon, sender) -> TestClient:
        return TestClient(create_app(config, garoon=garoon, sender=sender))

    def post(self, client: TestClient, body: Dict[str, Any]):
        return client.post("/interaction", content=interaction_body(body), headers=FORM_HEADERS)

    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
    def test_non_post_rejected(self, client, method):
        response = client.request(method, "/interaction")

        assert response.status_code == 405

    @pytest.mark.parametrize("body", [b"", b"payload=%7Bbroken", b"payload=" + b"%7B%7D"])
    def test_undecodable_body(self, client, sender, body):
        response = client.post("/interaction", content=body, headers=FORM_HEADERS)

        assert response.status_code == 500
        assert sender.posts == []

    @pytest.mark.parametrize("token", ["forged", "偽トークン", ""])
    def test_invalid_verification_token(self, client, garoon, sender, token):
        response = self.post(client, payload("selectTarget", TARGET_TOKEN, token=token))

        assert response.status_code == 401
        assert sender.posts == []
        assert garoon.queries == []

    def test_target_selection(self, client, garoon, sender):
        garoon.available_times = [
            make_slot(jst(2019, 1, 7, 10), jst(2019, 1, 7, 11), ROOM_B),
            make_slot(jst(2019, 1, 7, 10), jst(2019, 1, 7, 11), ROOM_A),
        ]

        with freeze_time("2019-01-04 00:00:00", real_asyncio=True):
            response = self.post(client, payload("selectTarget", TARGET_TOKEN))

        assert response.status_code == 200
        ack = response.json()
        assert ack["replace_original"] is True
        assert ack["response_type"] == "in_channel"
        assert ack["attachments"][0]["text"] == ":ok: Weekly sync was selected.\nPlease wait."
        assert ack["attachments"][0]["actions"] == []

        # レスポンス後のバックグラウンド処理で候補が投稿される
        attachment = sender.last_attachment
        assert attachment.title == "Which schedule would you like?"
        assert attachment.text == "2019-01-07 10:00 Room A\n2019-01-07 10:00 Room B\n"
        assert attachment.actions[0].name == "selectTime"

    def test_non_owner_target_selection(self, client, garoon, sender):
        garoon.available_times = [
            make_slot(jst(2019, 1, 7, 10), jst(2019, 1, 7, 11), ROOM_A),
            make_slot(jst(2019, 1, 7, 12), jst(2019, 1, 7, 13), ROOM_B),
            make_slot(jst(2019, 1, 8, 10), jst(2019, 1, 8, 11), ROOM_A),
        ]

        with freeze_time("2019-01-04 00:00:00", real_asyncio=True):
            response = self.post(client, payload("selectTarget", TARGET_TOKEN, user_id=OTHER_USER_ID))

        assert response.status_code == 200
        assert sender.last_attachment.title == "3 schedules found."
        assert sender.last_attachment.actions == []

    def test_owner_time_selection_reschedules(self, client, garoon, sender):
        response = self.post(client, payload("selectTime", TIME_TOKEN))

        assert response.status_code == 200
        assert response.json()["attachments"][0]["text"] == ":ok: 2019-01-07 10:00 was selected.\nPlease wait."
        assert sender.last_attachment.title == "The schedule has been rescheduled! :white_check_mark:"

        meeting = garoon.events["1001"]
        assert meeting.start_time == jst(2019, 1, 7, 10)
        assert meeting.end_time == jst(2019, 1, 7, 11)
        assert meeting.rooms == [Room(room_id="11")]

    def test_non_owner_time_selection(self, client, garoon, sender):
        response = self.post(client, payload("selectTime", TIME_TOKEN, user_id=OTHER_USER_ID))

        assert response.status_code == 200
        assert sender.last_attachment.title == ":x: You are not permitted."
        assert garoon.updated == []

    def test_cancel(self, client, sender):
        response = self.post(client, payload("cancel", None))

        assert response.status_code == 200
        assert response.content == b""
        assert sender.last_attachment.title == "@alice canceled."

    def test_unknown_action(self, client, sender):
        response = self.post(client, payload("archive", TARGET_TOKEN))

        assert response.status_code == 200
        assert response.content == b""
        assert sender.posts == []

    def test_value_not_offered(self, client, garoon, sender):
        body = payload("selectTarget", TARGET_TOKEN)
        body["actions"][0]["selected_options"] = [{"value": "2002,Someone else's meeting"}]

        response = self.post(client, body)

        assert response.status_code == 200
        assert response.content == b""
        assert sender.posts == []

    def test_malformed_time_token(self, client, sender):
        response = self.post(client, payload("selectTime", "1001,not-a-date"))

        assert response.status_code == 500
        assert sender.posts == []

    def test_healthz(self, client):
        response = client.get("/healthz")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
