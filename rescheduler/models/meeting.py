"""
Meeting エンティティモデル

Garoonの予定、参加者、施設（会議室）、空き時間を表現します。
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_TIME_ZONE = "Asia/Tokyo"


def parse_garoon_datetime(value: str) -> datetime:
    """Garoonの日時文字列をタイムゾーン付きdatetimeに変換"""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def format_garoon_datetime(value: datetime) -> str:
    """datetimeをGaroonの日時文字列（秒精度・オフセット付き）に変換"""
    return value.isoformat(timespec="seconds")


class Attendee(BaseModel):
    """予定の参加者"""
    model_config = ConfigDict(frozen=True)

    attendee_id: str = Field(..., description="参加者ID")
    attendee_type: str = Field(default="USER", description="参加者タイプ（USER/ORGANIZATION）")
    code: Optional[str] = Field(None, description="ログイン名・組織コード")
    name: Optional[str] = Field(None, description="表示名")

    def to_api(self) -> Dict[str, Any]:
        return {"type": self.attendee_type, "id": self.attendee_id}

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Attendee":
        return cls(
            attendee_id=str(data["id"]),
            attendee_type=data.get("type", "USER"),
            code=data.get("code"),
            name=data.get("name"),
        )


class Room(BaseModel):
    """施設（会議室）"""
    model_config = ConfigDict(frozen=True)

    room_id: str = Field(..., description="施設ID")
    name: str = Field(default="", description="施設名")
    code: str = Field(default="", description="施設コード（除外判定に使用）")
    facility_group_id: Optional[str] = Field(None, description="施設グループID")

    def to_api(self) -> Dict[str, Any]:
        return {"id": self.room_id}

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Room":
        group = data.get("facilityGroup")
        return cls(
            room_id=str(data["id"]),
            name=data.get("name", ""),
            code=data.get("code", ""),
            facility_group_id=str(group) if group is not None else None,
        )


class TimeWindow(BaseModel):
    """検索対象の時間帯（1営業日分）"""
    model_config = ConfigDict(frozen=True)

    start: datetime = Field(..., description="開始時刻")
    end: datetime = Field(..., description="終了時刻")

    @field_validator("end")
    @classmethod
    def validate_end(cls, v, info):
        """終了時刻の検証"""
        start = info.data.get("start")
        if start is not None and v <= start:
            raise ValueError("終了時刻は開始時刻より後である必要があります")
        return v

    def to_api(self) -> Dict[str, str]:
        return {
            "start": format_garoon_datetime(self.start),
            "end": format_garoon_datetime(self.end),
        }


class AvailableSlot(BaseModel):
    """空き時間（開始・終了・会議室）"""
    model_config = ConfigDict(frozen=True)

    start_time: datetime
    end_time: datetime
    room: Room

    def duration_minutes(self) -> int:
        return int(round((self.end_time - self.start_time).total_seconds() / 60))

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AvailableSlot":
        return cls(
            start_time=parse_garoon_datetime(data["start"]["dateTime"]),
            end_time=parse_garoon_datetime(data["end"]["dateTime"]),
            room=Room.from_api(data["facility"]),
        )


class Meeting(BaseModel):
    """Garoonの予定"""

    meeting_id: str = Field(..., description="予定ID")
    subject: str = Field(default="", description="件名")
    event_type: str = Field(default="REGULAR", description="予定タイプ")
    start_time: datetime = Field(..., description="開始日時")
    end_time: Optional[datetime] = Field(None, description="終了日時（開始のみの予定ではNone）")
    time_zone: str = Field(default=DEFAULT_TIME_ZONE, description="タイムゾーン")
    is_all_day: bool = Field(default=False, description="終日予定か")
    is_start_only: bool = Field(default=False, description="開始時刻のみの予定か")
    attendees: List[Attendee] = Field(default_factory=list, description="参加者")
    rooms: List[Room] = Field(default_factory=list, description="施設（会議室）")

    def duration_minutes(self) -> int:
        """所要時間（分、四捨五入）"""
        if self.end_time is None:
            raise ValueError(f"終了日時のない予定です: {self.meeting_id}")
        return int(round((self.end_time - self.start_time).total_seconds() / 60))

    def to_api(self) -> Dict[str, Any]:
        """予定更新用のペイロード"""
        payload: Dict[str, Any] = {
            "eventType": self.event_type,
            "subject": self.subject,
            "isAllDay": self.is_all_day,
            "isStartOnly": self.is_start_only,
            "start": {
                "dateTime": format_garoon_datetime(self.start_time),
                "timeZone": self.time_zone,
            },
            "attendees": [attendee.to_api() for attendee in self.attendees],
            "facilities": [room.to_api() for room in self.rooms],
        }

        if self.end_time is not None:
            payload["end"] = {
                "dateTime": format_garoon_datetime(self.end_time),
                "timeZone": self.time_zone,
            }

        return payload

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Meeting":
        """Garoonの予定JSONから Meeting インスタンスを作成"""
        start = data["start"]
        end = data.get("end")

        return cls(
            meeting_id=str(data["id"]),
            subject=data.get("subject", ""),
            event_type=data.get("eventType", "REGULAR"),
            start_time=parse_garoon_datetime(start["dateTime"]),
            end_time=parse_garoon_datetime(end["dateTime"]) if end and end.get("dateTime") else None,
            time_zone=start.get("timeZone", DEFAULT_TIME_ZONE),
            is_all_day=data.get("isAllDay", False),
            is_start_only=data.get("isStartOnly", False),
            attendees=[Attendee.from_api(a) for a in data.get("attendees", [])],
            rooms=[Room.from_api(f) for f in data.get("facilities", [])],
        )
