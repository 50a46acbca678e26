"""
リスケジュール実行
"""

import logging
from typing import Any

from ..errors import NotFoundError, UpdateFailedError, UpstreamError
from ..models.meeting import Meeting, Room
from ..models.selection import TimeSelection

logger = logging.getLogger(__name__)


class RescheduleExecutor:
    """予定を取得し直し、開始・終了・会議室を上書きして更新します。"""

    def __init__(self, garoon: Any):
        self.garoon = garoon

    async def execute(self, selection: TimeSelection) -> Meeting:
        try:
            meeting = await self.garoon.find_event(selection.meeting_id)
        except UpstreamError as e:
            raise NotFoundError(
                f"予定が見つかりません: {selection.meeting_id}",
                status_code=e.status_code
            ) from e

        updated = meeting.model_copy(update={
            "start_time": selection.start_time,
            "end_time": selection.end_time,
            "rooms": [Room(room_id=selection.room_id)],
        })

        try:
            result = await self.garoon.update_event(updated)
        except UpstreamError as e:
            raise UpdateFailedError(
                f"予定を更新できません: {selection.meeting_id}",
                status_code=e.status_code
            ) from e

        logger.info(
            f"リスケジュール完了: {selection.meeting_id} -> "
            f"{selection.start_time.isoformat()} 施設 {selection.room_id}"
        )
        return result
