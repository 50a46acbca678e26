"""
代替会議室の解決
"""

import logging
from typing import Any, Iterable, List, Sequence

from ..errors import GroupLookupFailedError, NotFoundError, UpstreamError
from ..models.meeting import Room

logger = logging.getLogger(__name__)


class RoomResolver:
    """
    予定の会議室と同じ施設グループに属する会議室を、代替候補として解決します。
    除外コードに一致する会議室は候補に含めません。
    """

    def __init__(self, garoon: Any, excluded_codes: Iterable[str] = ()):
        self.garoon = garoon
        self.excluded_codes = {code for code in excluded_codes if code}

    async def resolve(self, current_rooms: Sequence[Room]) -> List[Room]:
        if not current_rooms:
            return []

        name = current_rooms[0].name
        matches = await self.garoon.get_facilities(name=name)
        if not matches:
            raise NotFoundError(f"対象の施設が見つかりません: {name}")

        group_id = matches[0].facility_group_id
        if not group_id:
            raise GroupLookupFailedError(f"施設グループが設定されていません: {name}")

        try:
            rooms = await self.garoon.get_facilities_by_group(group_id)
        except UpstreamError as e:
            raise GroupLookupFailedError(
                f"施設グループの施設一覧を取得できません: {group_id}",
                status_code=e.status_code
            ) from e

        candidates = [room for room in rooms if room.code not in self.excluded_codes]
        logger.info(f"代替会議室: グループ {group_id} - {len(candidates)}/{len(rooms)}件")
        return candidates
