"""
リスケジュール候補の提示
"""

from datetime import tzinfo
from typing import List, Optional, Sequence

from pydantic import BaseModel

from ..integrations.slack_handler import MAX_SELECT_OPTIONS, READ_FORMAT, ActionOption
from ..models.meeting import AvailableSlot
from ..models.selection import TimeSelection


NO_CANDIDATES_TITLE = "Could not find a date to reschedule."
SELECT_TIME_TITLE = "Which schedule would you like?"


class CandidatePresentation(BaseModel):
    """候補の提示内容"""
    title: str
    text: str = ""
    options: Optional[List[ActionOption]] = None

    @property
    def is_selectable(self) -> bool:
        return bool(self.options)


def slot_label(slot: AvailableSlot, tz: Optional[tzinfo] = None) -> str:
    start = slot.start_time.astimezone(tz) if tz is not None else slot.start_time
    return f"{start.strftime(READ_FORMAT)} {slot.room.name}"


def present_candidates(
    meeting_id: str,
    slots: Sequence[AvailableSlot],
    acting_user_id: str,
    owner_id: str,
    tz: Optional[tzinfo] = None
) -> CandidatePresentation:
    """
    候補一覧を作成

    選択肢はオーナー本人が操作した場合のみ付与します。
    それ以外のユーザーには件数と一覧のみを返します。
    tz を指定すると日時をそのタイムゾーンで表示します。
    """
    if not slots:
        return CandidatePresentation(title=NO_CANDIDATES_TITLE)

    text = "".join(f"{slot_label(slot, tz)}\n" for slot in slots)

    if acting_user_id != owner_id:
        return CandidatePresentation(title=f"{len(slots)} schedules found.", text=text)

    options = [
        ActionOption(
            text=slot_label(slot, tz),
            value=TimeSelection(
                meeting_id=meeting_id,
                start_time=slot.start_time,
                end_time=slot.end_time,
                room_id=slot.room.room_id
            ).encode()
        )
        for slot in slots[:MAX_SELECT_OPTIONS]
    ]

    return CandidatePresentation(title=SELECT_TIME_TITLE, text=text, options=options)
