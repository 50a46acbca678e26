"""
選択トークンとインタラクション段階

Slackのメニュー・ボタンの value に埋め込む状態のエンコード/デコードを扱います。
サーバー側にセッションは持たず、状態はメッセージと一緒に往復します。
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..errors import InvalidSelectionTokenError
from .meeting import format_garoon_datetime


# Slackアタッチメントのアクション名
ACTION_SELECT_TARGET = "selectTarget"
ACTION_SELECT_TIME = "selectTime"
ACTION_CANCEL = "cancel"

TOKEN_SEPARATOR = ","


class InteractionStage(str, Enum):
    """インタラクション段階"""
    AWAITING_TARGET_SELECTION = "awaiting_target_selection"  # 対象予定の選択待ち
    AWAITING_TIME_SELECTION = "awaiting_time_selection"      # 候補日時の選択待ち
    CANCELLED = "cancelled"                                  # キャンセル
    COMPLETED = "completed"                                  # 完了

    @classmethod
    def from_action(cls, action_name: str) -> Optional["InteractionStage"]:
        """受信したアクション名から、応答対象の段階を判定"""
        return {
            ACTION_SELECT_TARGET: cls.AWAITING_TARGET_SELECTION,
            ACTION_SELECT_TIME: cls.AWAITING_TIME_SELECTION,
            ACTION_CANCEL: cls.CANCELLED,
        }.get(action_name)


class TargetSelection(BaseModel):
    """対象予定の選択トークン: (予定ID, 件名)"""
    meeting_id: str = Field(..., description="予定ID")
    subject: str = Field(default="", description="件名")

    def encode(self) -> str:
        if not self.meeting_id or TOKEN_SEPARATOR in self.meeting_id:
            raise InvalidSelectionTokenError(f"予定IDをトークン化できません: {self.meeting_id!r}")
        return f"{self.meeting_id}{TOKEN_SEPARATOR}{self.subject}"

    @classmethod
    def decode(cls, token: str) -> "TargetSelection":
        # 件名にはカンマが含まれ得るため、最初の区切りでのみ分割する
        parts = token.split(TOKEN_SEPARATOR, 1)
        if len(parts) != 2 or not parts[0]:
            raise InvalidSelectionTokenError(f"対象予定トークンの形式が不正です: {token!r}")
        return cls(meeting_id=parts[0], subject=parts[1])


class TimeSelection(BaseModel):
    """候補日時の選択トークン: (予定ID, 開始, 終了, 施設ID)"""
    meeting_id: str = Field(..., description="予定ID")
    start_time: datetime = Field(..., description="新しい開始日時")
    end_time: datetime = Field(..., description="新しい終了日時")
    room_id: str = Field(..., description="新しい施設ID")

    def encode(self) -> str:
        for value in (self.meeting_id, self.room_id):
            if not value or TOKEN_SEPARATOR in value:
                raise InvalidSelectionTokenError(f"IDをトークン化できません: {value!r}")

        return TOKEN_SEPARATOR.join([
            self.meeting_id,
            format_garoon_datetime(self.start_time),
            format_garoon_datetime(self.end_time),
            self.room_id,
        ])

    @classmethod
    def decode(cls, token: str) -> "TimeSelection":
        parts = token.split(TOKEN_SEPARATOR)
        if len(parts) != 4 or not parts[0] or not parts[3]:
            raise InvalidSelectionTokenError(f"候補日時トークンの形式が不正です: {token!r}")

        meeting_id, start, end, room_id = parts
        try:
            start_time = datetime.fromisoformat(start)
            end_time = datetime.fromisoformat(end)
        except ValueError as e:
            raise InvalidSelectionTokenError(f"候補日時トークンの日時が不正です: {token!r}") from e

        if start_time.tzinfo is None or end_time.tzinfo is None:
            raise InvalidSelectionTokenError(f"候補日時トークンにオフセットがありません: {token!r}")

        return cls(meeting_id=meeting_id, start_time=start_time, end_time=end_time, room_id=room_id)
