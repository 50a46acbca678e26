"""
HTTPエンドポイント

- /slack/events: Slack Events API（Botへのメンション）
- /interaction: Interactive Message（メニュー・ボタン操作）
- /healthz: ヘルスチェック

uvicorn rescheduler.main:create_app --factory で起動できます。
"""

import hmac
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from slack_sdk.signature import SignatureVerifier
from starlette.requests import ClientDisconnect

from . import __version__
from .config import RescheduleConfig
from .errors import TransportError
from .integrations.garoon import GaroonClient, GaroonConfig
from .integrations.slack_handler import (
    SlackCommandHandler,
    SlackEventData,
    SlackMessageSender,
    parse_interaction_body,
)
from .scheduling.availability import AvailabilitySearcher
from .scheduling.executor import RescheduleExecutor
from .scheduling.interaction import RescheduleInteraction
from .scheduling.rooms import RoomResolver
from .scheduling.time_windows import TimeWindowPlanner

logger = logging.getLogger(__name__)


def build_garoon_client(config: RescheduleConfig) -> GaroonClient:
    return GaroonClient(GaroonConfig(
        subdomain=config.garoon_subdomain,
        user=config.garoon_user,
        password=config.garoon_password,
        base_url=config.garoon_base_url,
        timeout_seconds=config.garoon_timeout_seconds
    ))


def create_app(
    config: Optional[RescheduleConfig] = None,
    garoon: Optional[Any] = None,
    sender: Optional[SlackMessageSender] = None
) -> FastAPI:
    """アプリケーションを組み立てる"""
    if config is None:
        config = RescheduleConfig.from_env()

    owns_garoon = garoon is None
    if garoon is None:
        garoon = build_garoon_client(config)
    if sender is None:
        sender = SlackMessageSender(config.slack_bot_token)

    planner = TimeWindowPlanner(config.tzinfo)
    resolver = RoomResolver(garoon, config.excluded_facility_codes)
    searcher = AvailabilitySearcher(garoon, resolver, planner)
    executor = RescheduleExecutor(garoon)
    interaction = RescheduleInteraction(garoon, sender, searcher, executor, config.slack_user_id)
    commands = SlackCommandHandler(
        garoon,
        sender,
        bot_id=config.slack_bot_id,
        channel_id=config.slack_channel_id,
        tz=config.tzinfo
    )
    verifier = SignatureVerifier(config.slack_signing_secret) if config.slack_signing_secret else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Garoon Rescheduler 起動: v{__version__}")
        yield
        if owns_garoon:
            await garoon.aclose()

    app = FastAPI(title="Garoon Rescheduler", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.interaction = interaction
    app.state.commands = commands

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    @app.post("/slack/events")
    async def slack_events(request: Request, background_tasks: BackgroundTasks):
        body = await request.body()

        if verifier is not None and not verifier.is_valid_request(body, dict(request.headers)):
            logger.error("Slackイベントの署名が不正です")
            return PlainTextResponse("invalid signature", status_code=401)

        try:
            payload = json.loads(body)
        except ValueError:
            raise HTTPException(status_code=400, detail="Malformed JSON payload")
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Malformed JSON payload")

        event_type = payload.get("type")
        if event_type == "url_verification":
            challenge = payload.get("challenge")
            if not challenge:
                raise HTTPException(status_code=400, detail="Missing challenge")
            return PlainTextResponse(challenge)

        if event_type != "event_callback":
            raise HTTPException(status_code=400, detail=f"Unsupported type: {event_type}")

        # Slackの再送は処理済みとして扱う
        if request.headers.get("x-slack-retry-num"):
            logger.info(f"Slackイベントの再送を無視: {request.headers.get('x-slack-retry-reason')}")
            return PlainTextResponse("OK")

        event = SlackEventData.from_callback(payload)
        if event.event_type == "app_mention":
            background_tasks.add_task(commands.run, event)
        else:
            logger.debug(f"未処理イベントタイプ: {event.event_type}")

        return PlainTextResponse("OK")

    @app.api_route("/interaction", methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"])
    async def interaction_endpoint(request: Request, background_tasks: BackgroundTasks):
        if request.method != "POST":
            logger.error(f"不正なメソッド: {request.method}")
            return Response(status_code=405)

        try:
            body = await request.body()
        except ClientDisconnect as e:
            logger.error(f"リクエストボディを読み込めません: {e}")
            return Response(status_code=500)

        try:
            callback = parse_interaction_body(body)
        except TransportError as e:
            logger.error(str(e))
            return Response(status_code=500)

        # 正しい検証トークンを持つSlackからのメッセージのみ受け付ける
        if not hmac.compare_digest(
            callback.token.encode("utf-8"),
            config.slack_verification_token.encode("utf-8")
        ):
            logger.error("検証トークンが不正です")
            return Response(status_code=401)

        try:
            outcome = interaction.handle(callback)
        except TransportError as e:
            logger.error(str(e))
            return Response(status_code=500)

        if outcome.follow_up:
            background_tasks.add_task(interaction.run_follow_up, callback)

        if outcome.acknowledgement is None:
            return Response(status_code=200)
        return JSONResponse(outcome.acknowledgement)

    return app
