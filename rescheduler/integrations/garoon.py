"""
Garoon REST API 統合
"""

import base64
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from ..errors import NotFoundError, UpstreamError
from ..models.meeting import (
    Attendee,
    AvailableSlot,
    Meeting,
    Room,
    TimeWindow,
    format_garoon_datetime,
)

logger = logging.getLogger(__name__)


class GaroonConfig(BaseModel):
    """Garoon接続設定"""
    subdomain: str
    user: str
    password: str
    base_url: Optional[str] = None
    timeout_seconds: float = 30.0
    page_size: int = 100

    @property
    def api_base(self) -> str:
        if self.base_url:
            return self.base_url.rstrip("/")
        return f"https://{self.subdomain}.cybozu.com/g/api/v1"

    @property
    def authorization(self) -> str:
        """X-Cybozu-Authorization ヘッダー値"""
        raw = f"{self.user}:{self.password}".encode("utf-8")
        return base64.b64encode(raw).decode("ascii")


class AvailableTimeQuery(BaseModel):
    """空き時間検索リクエスト"""
    time_ranges: List[TimeWindow]
    time_interval: int = Field(..., description="所要時間（分）")
    attendees: List[Attendee] = Field(default_factory=list)
    facilities: List[Room] = Field(default_factory=list)
    facility_search_condition: str = Field(default="OR", description="施設の検索条件（OR/AND）")

    def to_api(self) -> Dict[str, Any]:
        return {
            "timeRanges": [window.to_api() for window in self.time_ranges],
            "timeInterval": self.time_interval,
            "attendees": [attendee.to_api() for attendee in self.attendees],
            "facilities": [room.to_api() for room in self.facilities],
            "facilitySearchCondition": self.facility_search_condition,
        }


class GaroonClient:
    """
    Garoon REST APIクライアント
    - 予定の取得・更新・キーワード検索
    - 空き時間検索
    - 施設・施設グループの検索
    """

    def __init__(self, config: GaroonConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.http = httpx.AsyncClient(
            base_url=config.api_base + "/",
            headers={
                "X-Cybozu-Authorization": config.authorization,
                "Content-Type": "application/json",
            },
            timeout=config.timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    # 予定

    async def find_event(self, event_id: str) -> Meeting:
        """予定をIDで取得"""
        data = await self._request("GET", f"schedule/events/{event_id}")
        return Meeting.from_api(data)

    async def update_event(self, meeting: Meeting) -> Meeting:
        """予定を更新"""
        data = await self._request(
            "PATCH",
            f"schedule/events/{meeting.meeting_id}",
            json_body=meeting.to_api(),
        )
        logger.info(f"予定更新: {meeting.meeting_id}")
        return Meeting.from_api(data)

    async def search_events(self, keyword: str, range_start: datetime) -> List[Meeting]:
        """キーワードで今後の予定を検索"""
        params = {
            "keyword": keyword,
            "excludeFromSearch": "company,notes,comments",
            "rangeStart": format_garoon_datetime(range_start),
            "orderBy": "createdAt asc",
        }
        items = await self._paginate("schedule/events", "events", params)
        return [Meeting.from_api(item) for item in items]

    async def search_available_times(self, query: AvailableTimeQuery) -> List[AvailableSlot]:
        """空き時間検索"""
        data = await self._request(
            "POST",
            "schedule/searchAvailableTimes",
            json_body=query.to_api(),
        )
        return [AvailableSlot.from_api(item) for item in data.get("availableTimes", [])]

    # 施設

    async def get_facilities(self, name: Optional[str] = None) -> List[Room]:
        """施設を名前で検索"""
        params = {"name": name} if name else {}
        items = await self._paginate("schedule/facilities", "facilities", params)
        return [Room.from_api(item) for item in items]

    async def get_facilities_by_group(self, facility_group_id: str) -> List[Room]:
        """施設グループに属する施設一覧"""
        items = await self._paginate(
            f"schedule/facilityGroups/{facility_group_id}/facilities",
            "facilities",
            {},
        )
        return [Room.from_api(item) for item in items]

    # 内部処理

    async def _paginate(self, path: str, key: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """hasNext が false になるまで offset を進めて取得"""
        items: List[Dict[str, Any]] = []
        offset = 0

        while True:
            page_params = dict(params, limit=self.config.page_size, offset=offset)
            data = await self._request("GET", path, params=page_params)
            page = data.get(key, [])
            items.extend(page)

            if not data.get("hasNext") or not page:
                return items
            offset += len(page)

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Garoon API呼び出し"""
        logger.debug(f"Garoon API呼び出し: {method} {path}")

        try:
            response = await self.http.request(method, path, params=params, json=json_body)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Garoon APIに接続できません: {method} {path}: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(
                f"Garoonのリソースが見つかりません: {path}: {self._error_message(response)}",
                status_code=404
            )

        if response.status_code >= 400:
            raise UpstreamError(
                f"Garoon APIエラー ({response.status_code}): {method} {path}: {self._error_message(response)}",
                status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"Garoon APIのレスポンスを解析できません: {method} {path}") from e

    def _error_message(self, response: httpx.Response) -> str:
        """エラーレスポンスからメッセージを抽出"""
        try:
            error = response.json().get("error", {})
        except ValueError:
            return response.text
        if isinstance(error, dict):
            return error.get("message") or error.get("errorCode") or ""
        return str(error)
