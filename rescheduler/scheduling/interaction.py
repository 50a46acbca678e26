"""
インタラクション処理

Slackのメニュー・ボタン操作を受けて、次の3段階を進めます。
対象予定の選択 → 候補日時の選択 → 更新（またはキャンセル）

HTTPリクエストには即座に応答し（handle）、時間のかかる検索・更新は
応答後のバックグラウンド処理（follow_up）で実行して結果を投稿します。
"""

import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel

from ..errors import AuthError, UnsupportedMeetingShapeError, UpstreamError
from ..integrations.slack_handler import (
    READ_FORMAT,
    Attachment,
    InteractionCallback,
    InteractionUser,
    OriginalMessage,
    SlackMessageSender,
    build_acknowledgement,
    cancel_button,
    select_menu,
)
from ..models.meeting import Meeting
from ..models.selection import (
    ACTION_SELECT_TIME,
    InteractionStage,
    TargetSelection,
    TimeSelection,
)
from .availability import AvailabilitySearcher
from .executor import RescheduleExecutor
from .presenter import present_candidates

logger = logging.getLogger(__name__)


ACCEPTED_TEXT = ":ok: {label} was selected.\nPlease wait."
CANCELED_TITLE = "@{user} canceled."
NOT_PERMITTED_TITLE = ":x: You are not permitted."
RESCHEDULED_TITLE = "The schedule has been rescheduled! :white_check_mark:"
RESCHEDULE_FAILED_TITLE = ":x: Failed to reschedule."
UNSUPPORTED_NO_END = "Meetings without an end time are not supported."
UNSUPPORTED_MULTIPLE_ROOMS = "Meetings with multiple rooms are not supported."


def ensure_supported(meeting: Meeting) -> None:
    """リスケジュールできる予定か検証"""
    if meeting.is_all_day or meeting.is_start_only or meeting.end_time is None:
        raise UnsupportedMeetingShapeError(UNSUPPORTED_NO_END)

    if len(meeting.rooms) > 1:
        raise UnsupportedMeetingShapeError(UNSUPPORTED_MULTIPLE_ROOMS)


class InteractionOutcome(BaseModel):
    """同期応答の内容"""
    stage: Optional[InteractionStage] = None
    acknowledgement: Optional[Dict[str, Any]] = None
    follow_up: bool = False


class RescheduleInteraction:
    """
    リスケジュールのインタラクション状態機械
    - 段階は受信したアクション名から判定し、サーバー側には保持しない
    - 候補日時の確定はオーナーのみ
    """

    def __init__(
        self,
        garoon: Any,
        sender: SlackMessageSender,
        searcher: AvailabilitySearcher,
        executor: RescheduleExecutor,
        owner_id: str
    ):
        self.garoon = garoon
        self.sender = sender
        self.searcher = searcher
        self.executor = executor
        self.owner_id = owner_id

    def handle(self, callback: InteractionCallback) -> InteractionOutcome:
        """同期応答を決定"""
        action = callback.action
        stage = InteractionStage.from_action(action.name)

        if stage is None:
            logger.error(f"不正なアクションが送信されました: {action.name}")
            return InteractionOutcome()

        # キャンセルは即時応答せず、後続の投稿のみ行う
        if stage is InteractionStage.CANCELLED:
            return InteractionOutcome(stage=stage, follow_up=True)

        value = action.selected_value
        if not value or value not in callback.offered_values(action.name):
            logger.error(f"提示していない選択値が送信されました: {action.name} {value!r}")
            return InteractionOutcome()

        if stage is InteractionStage.AWAITING_TARGET_SELECTION:
            label = TargetSelection.decode(value).subject
        else:
            start_time = TimeSelection.decode(value).start_time
            label = start_time.astimezone(self.searcher.planner.tz).strftime(READ_FORMAT)

        return InteractionOutcome(
            stage=stage,
            acknowledgement=build_acknowledgement(
                callback.original_message,
                ACCEPTED_TEXT.format(label=label)
            ),
            follow_up=True
        )

    async def run_follow_up(self, callback: InteractionCallback) -> None:
        """バックグラウンドタスクのエントリーポイント"""
        try:
            await self.follow_up(callback)
        except Exception:
            logger.exception(f"バックグラウンド処理で予期しないエラーが発生しました: {callback.action.name}")

    async def follow_up(self, callback: InteractionCallback) -> Optional[InteractionStage]:
        """
        後続処理を実行し、結果をチャンネルに投稿

        Returns:
            投稿後の段階。検索・取得に失敗して投稿しなかった場合はNone
        """
        stage = InteractionStage.from_action(callback.action.name)
        attachment = self._base_attachment(callback.original_message)

        if stage is InteractionStage.AWAITING_TARGET_SELECTION:
            next_stage = await self._select_target(callback, attachment)
        elif stage is InteractionStage.AWAITING_TIME_SELECTION:
            next_stage = await self._select_time(callback, attachment)
        elif stage is InteractionStage.CANCELLED:
            attachment.title = CANCELED_TITLE.format(user=callback.user.name)
            next_stage = InteractionStage.CANCELLED
        else:
            logger.error(f"不正なアクションが送信されました: {callback.action.name}")
            return None

        if next_stage is None:
            return None

        await self.sender.post_attachments(callback.channel.id, [attachment])
        return next_stage

    async def _select_target(
        self,
        callback: InteractionCallback,
        attachment: Attachment
    ) -> Optional[InteractionStage]:
        """対象予定の選択: 候補日時を検索して提示"""
        selection = TargetSelection.decode(callback.action.selected_value or "")

        try:
            meeting = await self.garoon.find_event(selection.meeting_id)
        except UpstreamError as e:
            logger.error(f"予定を取得できません: {selection.meeting_id} - {e}")
            return None

        try:
            ensure_supported(meeting)
        except UnsupportedMeetingShapeError as e:
            logger.info(f"リスケジュール対象外の予定: {meeting.meeting_id} - {e}")
            attachment.title = str(e)
            return InteractionStage.COMPLETED

        try:
            slots = await self.searcher.search_for_meeting(meeting)
        except UpstreamError as e:
            logger.error(f"空き時間を検索できません: {meeting.meeting_id} - {e}")
            return None

        presentation = present_candidates(
            meeting.meeting_id,
            slots,
            callback.user.id,
            self.owner_id,
            self.searcher.planner.tz
        )
        attachment.title = presentation.title
        attachment.text = presentation.text

        if not presentation.is_selectable:
            return InteractionStage.COMPLETED

        attachment.actions = [
            select_menu(ACTION_SELECT_TIME, presentation.options),
            cancel_button(),
        ]
        return InteractionStage.AWAITING_TIME_SELECTION

    async def _select_time(
        self,
        callback: InteractionCallback,
        attachment: Attachment
    ) -> InteractionStage:
        """候補日時の選択: オーナーなら予定を更新"""
        try:
            self._authorize(callback.user)
        except AuthError as e:
            logger.warning(str(e))
            attachment.title = NOT_PERMITTED_TITLE
            return InteractionStage.COMPLETED

        selection = TimeSelection.decode(callback.action.selected_value or "")

        try:
            await self.executor.execute(selection)
        except UpstreamError as e:
            logger.error(f"予定を更新できません: {selection.meeting_id} - {e}")
            attachment.title = RESCHEDULE_FAILED_TITLE
            attachment.text = str(e)
            return InteractionStage.COMPLETED

        attachment.title = RESCHEDULED_TITLE
        return InteractionStage.COMPLETED

    def _authorize(self, user: InteractionUser) -> None:
        if user.id != self.owner_id:
            raise AuthError(f"オーナー以外のユーザーが確定しようとしました: {user.id}")

    def _base_attachment(self, original: OriginalMessage) -> Attachment:
        """元メッセージのアタッチメントから表示内容を消したもの"""
        if not original.attachments:
            return Attachment()

        return original.attachments[0].model_copy(
            deep=True,
            update={"title": "", "text": "", "fields": [], "actions": []}
        )
