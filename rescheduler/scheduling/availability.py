"""
空き時間検索

検索時間帯ごとにGaroonへ空き時間検索を行い、結果をまとめて並べ替えます。
"""

import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence

from ..integrations.garoon import AvailableTimeQuery
from ..models.meeting import AvailableSlot, Meeting, Room, TimeWindow
from .rooms import RoomResolver
from .time_windows import TimeWindowPlanner

logger = logging.getLogger(__name__)


def sort_slots(slots: Iterable[AvailableSlot]) -> List[AvailableSlot]:
    """開始時刻の昇順、同時刻は施設コードの昇順"""
    return sorted(slots, key=lambda slot: (slot.start_time, slot.room.code))


class AvailabilitySearcher:
    """
    空き時間検索
    - 検索時間帯ごとに1回ずつ問い合わせ（順次実行、最初の失敗で中断）
    - 参加者全員と候補会議室のいずれか1つが空いている時間を集約
    """

    def __init__(self, garoon: Any, room_resolver: RoomResolver, planner: TimeWindowPlanner):
        self.garoon = garoon
        self.room_resolver = room_resolver
        self.planner = planner

    async def search_for_meeting(self, meeting: Meeting, now: Optional[datetime] = None) -> List[AvailableSlot]:
        """予定の会議室と終了日時から候補を検索"""
        rooms = await self.room_resolver.resolve(meeting.rooms)
        windows = self.planner.plan(meeting.end_time, now)
        return await self.search(meeting, rooms, windows)

    async def search(
        self,
        meeting: Meeting,
        rooms: Sequence[Room],
        windows: Iterable[TimeWindow]
    ) -> List[AvailableSlot]:
        if not rooms:
            # 会議室のない予定は検索対象の施設がない
            logger.info(f"候補会議室がないため検索しません: {meeting.meeting_id}")
            return []

        duration = meeting.duration_minutes()
        slots: List[AvailableSlot] = []

        for window in windows:
            query = AvailableTimeQuery(
                time_ranges=[window],
                time_interval=duration,
                attendees=meeting.attendees,
                facilities=list(rooms),
                facility_search_condition="OR"
            )
            found = await self.garoon.search_available_times(query)
            logger.debug(f"空き時間検索: {window.start.isoformat()} - {len(found)}件")

            for slot in found:
                if slot.duration_minutes() != duration:
                    logger.warning(
                        f"所要時間が一致しない空き時間を除外: {slot.start_time.isoformat()} "
                        f"{slot.room.code} ({slot.duration_minutes()}分 != {duration}分)"
                    )
                    continue
                slots.append(slot)

        logger.info(f"空き時間検索完了: {meeting.meeting_id} - {len(slots)}件")
        return sort_slots(slots)
