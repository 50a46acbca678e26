"""
リスケジュールのコアロジック

検索時間帯の計画、代替会議室の解決、空き時間検索、候補の提示、
インタラクション処理、予定更新を含みます。
"""

from .availability import AvailabilitySearcher, sort_slots
from .executor import RescheduleExecutor
from .interaction import InteractionOutcome, RescheduleInteraction, ensure_supported
from .presenter import CandidatePresentation, present_candidates
from .rooms import RoomResolver
from .time_windows import TimeWindowPlan, TimeWindowPlanner

__all__ = [
    "TimeWindowPlanner",
    "TimeWindowPlan",
    "RoomResolver",
    "AvailabilitySearcher",
    "sort_slots",
    "CandidatePresentation",
    "present_candidates",
    "RescheduleInteraction",
    "InteractionOutcome",
    "ensure_supported",
    "RescheduleExecutor",
]
