"""
データモデル - Garoon Rescheduler

予定・会議室・空き時間と、Slack上で往復する選択トークンのモデルが含まれています。
"""

from .meeting import Attendee, AvailableSlot, Meeting, Room, TimeWindow
from .selection import (
    ACTION_CANCEL,
    ACTION_SELECT_TARGET,
    ACTION_SELECT_TIME,
    InteractionStage,
    TargetSelection,
    TimeSelection,
)

__all__ = [
    # Meeting関連
    "Meeting",
    "Attendee",
    "Room",
    "TimeWindow",
    "AvailableSlot",

    # 選択トークン関連
    "TargetSelection",
    "TimeSelection",
    "InteractionStage",
    "ACTION_SELECT_TARGET",
    "ACTION_SELECT_TIME",
    "ACTION_CANCEL",
]
