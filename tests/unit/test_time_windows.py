"""
Unit tests for search window planning
"""

from datetime import datetime, timedelta, timezone

import pytest
from freezegun import freeze_time

from conftest import JST, jst
from rescheduler.scheduling.time_windows import TimeWindowPlanner


class TestTimeWindowPlanner:
    """Test business-hour windows derived from the meeting end date"""

    @pytest.fixture
    def planner(self):
        return TimeWindowPlanner(JST)

    def test_sunday_meeting_starts_search_on_monday(self, planner):
        """Meeting ending on Sunday: first window is Monday 10:00"""
        windows = list(planner.plan(jst(2019, 1, 6, 11), now=jst(2019, 1, 6, 10)))

        assert windows[0].start == jst(2019, 1, 7, 10)
        assert windows[0].end == jst(2019, 1, 7, 19)

    def test_eight_days_without_weekends(self, planner):
        """Friday end date covers Fri + Mon-Fri of next week"""
        windows = list(planner.plan(jst(2019, 1, 4, 15), now=jst(2019, 1, 4, 9)))

        assert [w.start.date().day for w in windows] == [4, 7, 8, 9, 10, 11]
        assert len(windows) <= 6

    @pytest.mark.parametrize("day", range(1, 15))
    def test_never_emits_weekend_windows(self, planner, day):
        meeting_end = jst(2019, 1, day, 12)
        for window in planner.plan(meeting_end, now=jst(2019, 1, day, 8)):
            assert window.start.weekday() < 5
            assert window.end.weekday() < 5

    @pytest.mark.parametrize("hour", [19, 20, 23])
    def test_same_day_skipped_after_business_hours(self, planner, hour):
        windows = list(planner.plan(jst(2019, 1, 7, 12), now=jst(2019, 1, 7, hour, 30)))

        assert windows[0].start == jst(2019, 1, 8, 10)
        assert all(w.start.date() != jst(2019, 1, 7, 0).date() for w in windows)

    @pytest.mark.parametrize("hour", [11, 14, 18])
    def test_same_day_start_clamped_to_current_hour(self, planner, hour):
        windows = list(planner.plan(jst(2019, 1, 7, 12), now=jst(2019, 1, 7, hour, 45)))

        assert windows[0].start == jst(2019, 1, 7, hour)
        assert windows[0].end == jst(2019, 1, 7, 19)
        # 翌日以降は通常の営業時間
        assert windows[1].start == jst(2019, 1, 8, 10)

    @pytest.mark.parametrize("hour", [0, 9, 10])
    def test_same_day_not_clamped_before_opening(self, planner, hour):
        windows = list(planner.plan(jst(2019, 1, 7, 12), now=jst(2019, 1, 7, hour, 59)))

        assert windows[0].start == jst(2019, 1, 7, 10)

    def test_windows_always_non_empty(self, planner):
        for hour in range(24):
            for window in planner.plan(jst(2019, 1, 7, 12), now=jst(2019, 1, 7, hour)):
                assert window.start < window.end

    def test_plan_is_restartable(self, planner):
        plan = planner.plan(jst(2019, 1, 4, 15), now=jst(2019, 1, 4, 9))

        assert list(plan) == list(plan)

    def test_utc_input_is_localized(self, planner):
        """2019-01-06 23:00 UTC is Monday 08:00 in Tokyo"""
        meeting_end = datetime(2019, 1, 6, 23, 0, tzinfo=timezone.utc)

        windows = list(planner.plan(meeting_end, now=meeting_end))

        assert windows[0].start == jst(2019, 1, 7, 10)

    def test_naive_input_uses_planner_timezone(self, planner):
        windows = list(planner.plan(datetime(2019, 1, 7, 12), now=datetime(2019, 1, 7, 15)))

        assert windows[0].start == jst(2019, 1, 7, 15)

    @freeze_time("2019-01-07 05:30:00")
    def test_defaults_now_to_current_time(self, planner):
        """05:30 UTC is 14:30 in Tokyo"""
        windows = list(planner.plan(jst(2019, 1, 7, 12)))

        assert windows[0].start == jst(2019, 1, 7, 14)

    def test_custom_business_hours(self):
        planner = TimeWindowPlanner(JST, start_hour=9, end_hour=17, days=1)

        windows = list(planner.plan(jst(2019, 1, 7, 12), now=jst(2019, 1, 7, 8)))

        assert [(w.start, w.end) for w in windows] == [
            (jst(2019, 1, 7, 9), jst(2019, 1, 7, 17)),
            (jst(2019, 1, 8, 9), jst(2019, 1, 8, 17)),
        ]

    @pytest.mark.parametrize("start_hour, end_hour", [(19, 10), (10, 10), (-1, 10), (10, 24)])
    def test_invalid_business_hours(self, start_hour, end_hour):
        with pytest.raises(ValueError):
            TimeWindowPlanner(JST, start_hour=start_hour, end_hour=end_hour)

    def test_window_count_bounded(self, planner):
        start = jst(2019, 1, 1, 12)
        for offset in range(14):
            meeting_end = start + timedelta(days=offset)
            assert len(list(planner.plan(meeting_end, now=jst(2018, 12, 31, 8)))) <= 6
