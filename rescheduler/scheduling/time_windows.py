"""
検索時間帯の計画

予定の終了日から7日先までの営業時間（10:00-19:00）を1日ずつ検索時間帯にします。
土日は除外し、当日分は現在時刻で開始を切り上げます。
"""

from datetime import date, datetime, timedelta, tzinfo
from typing import Iterator, Optional

from ..models.meeting import TimeWindow


BUSINESS_START_HOUR = 10
BUSINESS_END_HOUR = 19
SEARCH_DAYS = 7


class TimeWindowPlan:
    """検索時間帯の列（繰り返しイテレート可能）"""

    def __init__(self, planner: "TimeWindowPlanner", meeting_end: datetime, now: datetime):
        self.planner = planner
        self.meeting_end = meeting_end
        self.now = now

    def __iter__(self) -> Iterator[TimeWindow]:
        return self.planner._generate(self.meeting_end, self.now)


class TimeWindowPlanner:
    """検索時間帯プランナー"""

    def __init__(
        self,
        tz: tzinfo,
        start_hour: int = BUSINESS_START_HOUR,
        end_hour: int = BUSINESS_END_HOUR,
        days: int = SEARCH_DAYS
    ):
        if not 0 <= start_hour < end_hour <= 23:
            raise ValueError(f"営業時間が不正です: {start_hour}-{end_hour}")
        self.tz = tz
        self.start_hour = start_hour
        self.end_hour = end_hour
        self.days = days

    def plan(self, meeting_end: datetime, now: Optional[datetime] = None) -> TimeWindowPlan:
        if now is None:
            now = datetime.now(self.tz)
        return TimeWindowPlan(self, self._localize(meeting_end), self._localize(now))

    def _localize(self, value: datetime) -> datetime:
        # タイムゾーンなしの日時は設定タイムゾーンとみなす
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def _generate(self, meeting_end: datetime, now: datetime) -> Iterator[TimeWindow]:
        base = meeting_end.date()

        for i in range(self.days + 1):
            day = base + timedelta(days=i)
            if day.weekday() >= 5:
                continue

            start_hour = self.start_hour
            if i == 0:
                if now.hour >= self.end_hour:
                    continue
                if now.hour > self.start_hour:
                    start_hour = now.hour

            yield TimeWindow(start=self._at(day, start_hour), end=self._at(day, self.end_hour))

    def _at(self, day: date, hour: int) -> datetime:
        return datetime(day.year, day.month, day.day, hour, tzinfo=self.tz)
