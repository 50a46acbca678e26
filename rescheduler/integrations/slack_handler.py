"""
Slack Event Handler - Slackイベント・インタラクティブメッセージ処理統合
"""

import json
import logging
from datetime import datetime, tzinfo
from typing import Any, Dict, List, Optional, Set
from urllib.parse import unquote_plus
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from ..errors import TransportError, UpstreamError
from ..models.meeting import Meeting
from ..models.selection import ACTION_CANCEL, ACTION_SELECT_TARGET, TargetSelection

logger = logging.getLogger(__name__)


# "payload=" の8バイトを取り除いてからデコードする
PAYLOAD_PREFIX_LENGTH = 8

# Slackのセレクトメニューに載せられる選択肢の上限
MAX_SELECT_OPTIONS = 100

READ_FORMAT = "%Y-%m-%d %H:%M"

USAGE_TEXT = "Would you mind ordering like `@rescheduler search Foo`?"
TARGET_SELECTION_TITLE = "Which schedule do you intend? :calendar:"


class ActionOption(BaseModel):
    """セレクトメニューの選択肢"""
    text: str = ""
    value: str


class AttachmentAction(BaseModel):
    """アタッチメントのアクション（ボタン・セレクトメニュー）"""
    model_config = ConfigDict(extra="allow")

    name: str
    text: str = ""
    type: str = "button"
    style: Optional[str] = None
    value: Optional[str] = None
    options: List[ActionOption] = Field(default_factory=list)


class Attachment(BaseModel):
    """Slackアタッチメント"""
    model_config = ConfigDict(extra="allow")

    title: str = ""
    text: str = ""
    color: Optional[str] = None
    callback_id: Optional[str] = None
    fields: List[Dict[str, Any]] = Field(default_factory=list)
    actions: List[AttachmentAction] = Field(default_factory=list)

    def to_slack(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class OriginalMessage(BaseModel):
    """インタラクションの元になったメッセージ（応答で書き換えて返す）"""
    model_config = ConfigDict(extra="allow")

    text: str = ""
    attachments: List[Attachment] = Field(default_factory=list)
    replace_original: Optional[bool] = None
    response_type: Optional[str] = None


class InteractionUser(BaseModel):
    """操作したユーザー"""
    id: str
    name: str = ""


class InteractionChannel(BaseModel):
    """操作が行われたチャンネル"""
    id: str
    name: str = ""


class SelectedAction(BaseModel):
    """選択されたアクション"""
    name: str
    type: str = ""
    value: Optional[str] = None
    selected_options: List[ActionOption] = Field(default_factory=list)

    @property
    def selected_value(self) -> Optional[str]:
        if self.selected_options:
            return self.selected_options[0].value
        return self.value


class InteractionCallback(BaseModel):
    """Interactive Message コールバック"""
    model_config = ConfigDict(extra="allow")

    type: str = "interactive_message"
    token: str
    callback_id: str = ""
    user: InteractionUser
    channel: InteractionChannel
    original_message: OriginalMessage = Field(default_factory=OriginalMessage)
    actions: List[SelectedAction]
    response_url: Optional[str] = None

    @field_validator("actions")
    @classmethod
    def validate_actions(cls, v):
        """アクションは1つ以上必要"""
        if not v:
            raise ValueError("アクションが含まれていません")
        return v

    @property
    def action(self) -> SelectedAction:
        return self.actions[0]

    def offered_values(self, action_name: str) -> Set[str]:
        """元メッセージで提示していた選択肢の値"""
        values: Set[str] = set()
        for attachment in self.original_message.attachments:
            for action in attachment.actions:
                if action.name != action_name:
                    continue
                values.update(option.value for option in action.options)
                if action.value:
                    values.add(action.value)
        return values


class SlackEventData(BaseModel):
    """Slackイベントデータ"""
    event_type: str
    subtype: Optional[str] = None
    user_id: str = ""
    bot_id: Optional[str] = None
    channel_id: str = ""
    thread_ts: Optional[str] = None
    text: str = ""
    timestamp: str = ""
    team_id: str = ""

    @classmethod
    def from_callback(cls, event_data: Dict[str, Any]) -> "SlackEventData":
        """event_callback ペイロードから作成"""
        event = event_data.get("event", {})

        return cls(
            event_type=event.get("type", "unknown"),
            subtype=event.get("subtype"),
            user_id=event.get("user", ""),
            bot_id=event.get("bot_id"),
            channel_id=event.get("channel", ""),
            thread_ts=event.get("thread_ts"),
            text=event.get("text", ""),
            timestamp=event.get("ts", ""),
            team_id=event_data.get("team_id", "")
        )


def parse_interaction_body(body: bytes) -> InteractionCallback:
    """Interactive Message のリクエストボディを解析"""
    if len(body) < PAYLOAD_PREFIX_LENGTH:
        raise TransportError("リクエストボディが短すぎます")

    try:
        json_str = unquote_plus(body[PAYLOAD_PREFIX_LENGTH:].decode("utf-8"))
        return InteractionCallback.model_validate(json.loads(json_str))
    except (UnicodeDecodeError, ValueError, ValidationError) as e:
        raise TransportError(f"Slackからのメッセージを解析できません: {e}") from e


def select_menu(name: str, options: List[ActionOption]) -> AttachmentAction:
    """セレクトメニュー"""
    return AttachmentAction(name=name, type="select", options=options[:MAX_SELECT_OPTIONS])


def cancel_button() -> AttachmentAction:
    """キャンセルボタン"""
    return AttachmentAction(name=ACTION_CANCEL, text="Cancel", type="button", style="danger")


def build_acknowledgement(original: OriginalMessage, text: str) -> Dict[str, Any]:
    """
    元メッセージのボタンを取り除き、処理状況のテキストに置き換えた応答を作成
    """
    message = original.model_copy(deep=True)
    message.replace_original = True
    message.response_type = "in_channel"

    if not message.attachments:
        message.attachments.append(Attachment())
    message.attachments[0].actions = []
    message.attachments[0].text = text

    return message.model_dump(exclude_none=True)


class SlackMessageSender:
    """
    Slack メッセージ送信管理
    - アタッチメント付きメッセージ送信
    """

    def __init__(self, bot_token: str, client: Optional[AsyncWebClient] = None):
        self.client = client or AsyncWebClient(token=bot_token)

    async def post_attachments(self, channel_id: str, attachments: List[Attachment], text: str = "") -> bool:
        """アタッチメント付きメッセージ送信"""
        try:
            await self.client.chat_postMessage(
                channel=channel_id,
                text=text,
                attachments=[attachment.to_slack() for attachment in attachments]
            )
        except SlackApiError as e:
            logger.error(f"メッセージ送信失敗: {channel_id} - {e.response.get('error')}")
            return False

        logger.info(f"チャンネルメッセージ送信: {channel_id}")
        return True


class SlackCommandHandler:
    """
    Botへのメンションを処理するハンドラー
    - `@bot search <keyword>` で予定を検索し、対象予定の選択メニューを返す
    - それ以外は使い方を返す
    """

    def __init__(
        self,
        garoon: Any,
        sender: SlackMessageSender,
        bot_id: str,
        channel_id: Optional[str] = None,
        tz: Optional[tzinfo] = None
    ):
        self.garoon = garoon
        self.sender = sender
        self.bot_id = bot_id
        self.channel_id = channel_id
        self.tz = tz or ZoneInfo("Asia/Tokyo")

    @property
    def mention_prefix(self) -> str:
        return f"<@{self.bot_id}> "

    def is_addressed(self, event: SlackEventData) -> bool:
        """Botへのメンションで、かつ対象チャンネルのメッセージか"""
        if event.subtype or event.bot_id:
            return False

        # Botへのメンションのみ応答する
        if not event.text.startswith(self.mention_prefix):
            return False

        # チャンネル指定がある場合はそのチャンネルのみ
        if self.channel_id and event.channel_id != self.channel_id:
            return False

        return True

    def parse_command(self, text: str) -> Optional[str]:
        """`search <keyword>` 形式ならキーワードを返す"""
        words = text.strip().split()[1:]
        if len(words) != 2 or words[0] != "search":
            return None
        return words[1]

    async def handle_message_event(self, event: SlackEventData) -> bool:
        """メッセージイベント処理。返信した場合はTrue"""
        if not self.is_addressed(event):
            return False

        keyword = self.parse_command(event.text)
        if keyword is None:
            attachment = Attachment(text=USAGE_TEXT, color="#00bfff")
        else:
            try:
                meetings = await self.garoon.search_events(keyword, datetime.now(self.tz))
            except UpstreamError as e:
                logger.error(f"予定検索に失敗しました: {keyword} - {e}")
                return False

            logger.info(f"予定検索: {keyword} - {len(meetings)}件")
            attachment = self.build_target_attachment(meetings, keyword)

        return await self.sender.post_attachments(event.channel_id, [attachment])

    def build_target_attachment(self, meetings: List[Meeting], keyword: str) -> Attachment:
        """対象予定の選択メニュー"""
        if not meetings:
            return Attachment(text=f"No schedule matched {keyword}.", color="#32cd32")

        options = [
            ActionOption(
                text=f"{meeting.start_time.astimezone(self.tz).strftime(READ_FORMAT)} {meeting.subject}",
                value=TargetSelection(meeting_id=meeting.meeting_id, subject=meeting.subject).encode()
            )
            for meeting in meetings
        ]

        # value は選択時にインタラクションハンドラーへ渡される
        return Attachment(
            title=TARGET_SELECTION_TITLE,
            color="#32cd32",
            callback_id="target",
            actions=[
                select_menu(ACTION_SELECT_TARGET, options),
                cancel_button(),
            ]
        )

    async def run(self, event: SlackEventData) -> None:
        """バックグラウンドタスクのエントリーポイント"""
        try:
            await self.handle_message_event(event)
        except Exception:
            logger.exception(f"メッセージ処理で予期しないエラーが発生しました: {event.channel_id}")
