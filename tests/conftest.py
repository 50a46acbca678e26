"""
Shared fixtures: in-memory Garoon client and recording Slack sender.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus
from zoneinfo import ZoneInfo

import pytest

from rescheduler.config import RescheduleConfig
from rescheduler.errors import NotFoundError, UpstreamError
from rescheduler.integrations.garoon import AvailableTimeQuery
from rescheduler.integrations.slack_handler import Attachment
from rescheduler.models.meeting import Attendee, AvailableSlot, Meeting, Room

JST = ZoneInfo("Asia/Tokyo")

OWNER_ID = "UOWNER0001"
OTHER_USER_ID = "UOTHER0002"
BOT_ID = "UBOT000003"
VERIFICATION_TOKEN = "verification-token"

ROOM_A = Room(room_id="10", name="Room A", code="A", facility_group_id="G1")
ROOM_B = Room(room_id="11", name="Room B", code="B", facility_group_id="G1")
ROOM_X = Room(room_id="19", name="Room X", code="X", facility_group_id="G1")


def jst(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=JST)


def make_meeting(**overrides) -> Meeting:
    values: Dict[str, Any] = dict(
        meeting_id="1001",
        subject="Weekly sync",
        start_time=jst(2019, 1, 4, 14),
        end_time=jst(2019, 1, 4, 15),
        attendees=[Attendee(attendee_id="1"), Attendee(attendee_id="2")],
        rooms=[Room(room_id="10", name="Room A", code="A")],
    )
    values.update(overrides)
    return Meeting(**values)


def make_slot(start: datetime, end: datetime, room: Room = ROOM_A) -> AvailableSlot:
    return AvailableSlot(start_time=start, end_time=end, room=room)


def interaction_body(payload: Dict[str, Any]) -> bytes:
    """Slackが送るURLエンコード済みの payload= 形式"""
    return ("payload=" + quote_plus(json.dumps(payload))).encode("utf-8")


class FakeGaroonClient:
    """In-memory Garoon backend used across unit and contract tests."""

    def __init__(self):
        self.events: Dict[str, Meeting] = {}
        self.facilities: List[Room] = []
        self.groups: Dict[str, List[Room]] = {}
        self.available_times: List[AvailableSlot] = []

        self.queries: List[AvailableTimeQuery] = []
        self.updated: List[Meeting] = []
        self.searched: List[tuple] = []
        self.closed = False

        self.fail_update = False
        self.fail_group_listing = False
        self.fail_available_times = False
        self.fail_search = False

    def add_event(self, meeting: Meeting) -> Meeting:
        self.events[meeting.meeting_id] = meeting
        return meeting

    async def find_event(self, event_id: str) -> Meeting:
        if event_id not in self.events:
            raise NotFoundError(f"event {event_id} not found", status_code=404)
        return self.events[event_id]

    async def update_event(self, meeting: Meeting) -> Meeting:
        if self.fail_update:
            raise UpstreamError("update rejected", status_code=409)
        self.updated.append(meeting)
        self.events[meeting.meeting_id] = meeting
        return meeting

    async def search_events(self, keyword: str, range_start: datetime) -> List[Meeting]:
        self.searched.append((keyword, range_start))
        if self.fail_search:
            raise UpstreamError("search failed", status_code=500)
        return [meeting for meeting in self.events.values() if keyword in meeting.subject]

    async def search_available_times(self, query: AvailableTimeQuery) -> List[AvailableSlot]:
        self.queries.append(query)
        if self.fail_available_times:
            raise UpstreamError("availability failed", status_code=500)

        window = query.time_ranges[0]
        return [
            slot for slot in self.available_times
            if window.start <= slot.start_time and slot.end_time <= window.end
        ]

    async def get_facilities(self, name: Optional[str] = None) -> List[Room]:
        return [room for room in self.facilities if name is None or room.name == name]

    async def get_facilities_by_group(self, facility_group_id: str) -> List[Room]:
        if self.fail_group_listing:
            raise UpstreamError("group listing failed", status_code=500)
        return self.groups.get(facility_group_id, [])

    async def aclose(self) -> None:
        self.closed = True


class RecordingSender:
    """Captures outbound Slack posts instead of calling chat.postMessage."""

    def __init__(self):
        self.posts: List[Dict[str, Any]] = []

    async def post_attachments(self, channel_id: str, attachments: List[Attachment], text: str = "") -> bool:
        self.posts.append({"channel": channel_id, "attachments": attachments, "text": text})
        return True

    @property
    def last_attachment(self) -> Attachment:
        return self.posts[-1]["attachments"][0]


@pytest.fixture
def garoon() -> FakeGaroonClient:
    """Garoon backend with one meeting in Room A and a three-room facility group."""
    client = FakeGaroonClient()
    client.add_event(make_meeting())
    client.facilities = [ROOM_A]
    client.groups = {"G1": [ROOM_A, ROOM_B, ROOM_X]}
    return client


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def config() -> RescheduleConfig:
    return RescheduleConfig(
        slack_bot_token="xoxb-test",
        slack_verification_token=VERIFICATION_TOKEN,
        slack_bot_id=BOT_ID,
        slack_user_id=OWNER_ID,
        garoon_subdomain="example",
        garoon_user="bot",
        garoon_password="secret",
        garoon_excluding_facility_code="X",
    )
