"""
Reschedule CLI - サーバー起動・リスケジュール動作確認用CLI
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import typer
import uvicorn
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from ..config import RescheduleConfig
from ..errors import ConfigError, ReschedulerError
from ..integrations.garoon import GaroonClient
from ..main import build_garoon_client
from ..models.meeting import AvailableSlot, Meeting, parse_garoon_datetime
from ..models.selection import TimeSelection
from ..scheduling.availability import AvailabilitySearcher
from ..scheduling.executor import RescheduleExecutor
from ..scheduling.interaction import ensure_supported
from ..scheduling.presenter import present_candidates, slot_label
from ..scheduling.rooms import RoomResolver
from ..scheduling.time_windows import TimeWindowPlanner

console = Console()
app = typer.Typer(help="Garoon Rescheduler CLI - 会議リスケジュールツール")

logger = logging.getLogger(__name__)


class RescheduleCLI:
    """
    リスケジュールCLI
    - Garoonの予定検索
    - 代替候補の検索
    - 予定の更新
    """

    def __init__(self, config: RescheduleConfig, garoon: Optional[GaroonClient] = None):
        self.config = config
        self.garoon = garoon or build_garoon_client(config)
        self.planner = TimeWindowPlanner(config.tzinfo)
        self.resolver = RoomResolver(self.garoon, config.excluded_facility_codes)
        self.searcher = AvailabilitySearcher(self.garoon, self.resolver, self.planner)
        self.executor = RescheduleExecutor(self.garoon)

    @classmethod
    def from_env(cls) -> "RescheduleCLI":
        try:
            return cls(RescheduleConfig.from_env())
        except ConfigError as e:
            console.print(f"❌ 設定エラー: {e}", style="red")
            raise typer.Exit(code=1)

    async def close(self):
        await self.garoon.aclose()

    async def search_meetings(self, keyword: str) -> List[Meeting]:
        return await self.garoon.search_events(keyword, datetime.now(self.config.tzinfo))

    async def find_candidates(self, meeting_id: str) -> List[AvailableSlot]:
        meeting = await self.garoon.find_event(meeting_id)
        ensure_supported(meeting)
        return await self.searcher.search_for_meeting(meeting)

    async def reschedule(self, selection: TimeSelection) -> Meeting:
        return await self.executor.execute(selection)


@app.callback()
def main(
    log_level: str = typer.Option("INFO", envvar="LOG_LEVEL", help="ログレベル")
):
    """Garoon Rescheduler"""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="待ち受けアドレス"),
    port: Optional[int] = typer.Option(None, help="待ち受けポート（未指定時はPORT環境変数）")
):
    """Slack連携サーバー起動"""
    try:
        config = RescheduleConfig.from_env()
    except ConfigError as e:
        console.print(f"❌ 設定エラー: {e}", style="red")
        raise typer.Exit(code=1)

    console.print(f"🚀 サーバー起動: {host}:{port or config.port}")
    uvicorn.run(
        "rescheduler.main:create_app",
        factory=True,
        host=host,
        port=port or config.port,
        log_level=config.log_level.lower()
    )


@app.command()
def windows(
    meeting_end: str = typer.Argument(..., help="元の会議の終了日時（ISO 8601）"),
    now: Optional[str] = typer.Option(None, help="現在日時（ISO 8601、未指定時は現在時刻）"),
    timezone: str = typer.Option("Asia/Tokyo", envvar="RESCHEDULER_TIMEZONE", help="タイムゾーン")
):
    """検索時間帯の一覧表示"""
    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        console.print(f"❌ 未対応タイムゾーン: {timezone}", style="red")
        raise typer.Exit(code=1)

    try:
        end = parse_garoon_datetime(meeting_end)
        current = parse_garoon_datetime(now) if now else None
    except ValueError as e:
        console.print(f"❌ 日時を解析できません: {e}", style="red")
        raise typer.Exit(code=1)

    plan = TimeWindowPlanner(tz).plan(end, now=current)

    table = Table(title="Search Windows")
    table.add_column("#", style="cyan")
    table.add_column("Start", style="green")
    table.add_column("End", style="green")

    for i, window in enumerate(plan, start=1):
        table.add_row(str(i), window.start.isoformat(), window.end.isoformat())

    console.print(table)


@app.command()
def search(
    keyword: str = typer.Argument(..., help="検索キーワード")
):
    """予定検索"""

    async def _search():
        cli = RescheduleCLI.from_env()
        try:
            meetings = await cli.search_meetings(keyword)
        except ReschedulerError as e:
            console.print(f"❌ 検索失敗: {e}", style="red")
            raise typer.Exit(code=1)
        finally:
            await cli.close()

        if not meetings:
            console.print(f"該当する予定はありません: {keyword}")
            return

        table = Table(title=f"Schedules: {keyword}")
        table.add_column("ID", style="cyan")
        table.add_column("Start", style="green")
        table.add_column("Subject")
        table.add_column("Rooms", style="blue")

        for meeting in meetings:
            table.add_row(
                meeting.meeting_id,
                meeting.start_time.astimezone(cli.config.tzinfo).strftime("%Y-%m-%d %H:%M"),
                meeting.subject,
                ", ".join(room.name or room.room_id for room in meeting.rooms)
            )

        console.print(table)

    asyncio.run(_search())


@app.command()
def candidates(
    meeting_id: str = typer.Argument(..., help="予定ID"),
    user_id: Optional[str] = typer.Option(None, help="操作ユーザーのSlack ID（未指定時はオーナー）")
):
    """代替候補の検索"""

    async def _candidates():
        cli = RescheduleCLI.from_env()
        try:
            slots = await cli.find_candidates(meeting_id)
        except ReschedulerError as e:
            console.print(f"❌ 候補検索失敗: {e}", style="red")
            raise typer.Exit(code=1)
        finally:
            await cli.close()

        owner_id = cli.config.slack_user_id
        tz = cli.config.tzinfo
        presentation = present_candidates(meeting_id, slots, user_id or owner_id, owner_id, tz)
        console.print(presentation.title)

        if not slots:
            return

        # トークンはオーナーに提示される選択肢のみ表示
        tokens = [option.value for option in presentation.options or []]

        table = Table(title=f"Candidates: {meeting_id}")
        table.add_column("#", style="cyan")
        table.add_column("Slot", style="green")
        table.add_column("Room Code", style="blue")
        if tokens:
            table.add_column("Token")

        for i, slot in enumerate(slots, start=1):
            row = [str(i), slot_label(slot, tz), slot.room.code]
            if tokens:
                row.append(tokens[i - 1] if i <= len(tokens) else "")
            table.add_row(*row)

        console.print(table)

    asyncio.run(_candidates())


@app.command()
def reschedule(
    token: str = typer.Argument(..., help="候補トークン（candidatesコマンドの出力）"),
    yes: bool = typer.Option(False, "--yes", "-y", help="確認なしで実行")
):
    """予定の更新"""

    async def _reschedule():
        try:
            selection = TimeSelection.decode(token)
        except ReschedulerError as e:
            console.print(f"❌ トークンを解析できません: {e}", style="red")
            raise typer.Exit(code=1)

        console.print(
            f"予定 {selection.meeting_id} を {selection.start_time.isoformat()} 〜 "
            f"{selection.end_time.isoformat()}（施設 {selection.room_id}）に変更します"
        )
        if not yes and not Confirm.ask("実行しますか？"):
            console.print("中止しました")
            return

        cli = RescheduleCLI.from_env()
        try:
            meeting = await cli.reschedule(selection)
        except ReschedulerError as e:
            console.print(f"❌ 更新失敗: {e}", style="red")
            raise typer.Exit(code=1)
        finally:
            await cli.close()

        console.print(f"✅ 更新しました: {meeting.subject}", style="green")

    asyncio.run(_reschedule())


if __name__ == "__main__":
    app()
