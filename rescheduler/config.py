"""
アプリケーション設定

環境変数から設定を読み込みます。
"""

import os
from typing import Dict, Mapping, Optional, Set
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from .errors import ConfigError


# 環境変数名とフィールド名の対応
ENV_FIELDS: Dict[str, str] = {
    "PORT": "port",
    "SLACK_BOT_TOKEN": "slack_bot_token",
    "SLACK_VERIFICATION_TOKEN": "slack_verification_token",
    "SLACK_SIGNING_SECRET": "slack_signing_secret",
    "SLACK_BOT_ID": "slack_bot_id",
    "SLACK_CHANNEL_ID": "slack_channel_id",
    "SLACK_USER_ID": "slack_user_id",
    "GAROON_SUBDOMAIN": "garoon_subdomain",
    "GAROON_USER": "garoon_user",
    "GAROON_PASSWORD": "garoon_password",
    "GAROON_BASE_URL": "garoon_base_url",
    "GAROON_EXCLUDING_FACILITY_CODE": "garoon_excluding_facility_code",
    "GAROON_TIMEOUT_SECONDS": "garoon_timeout_seconds",
    "RESCHEDULER_TIMEZONE": "timezone",
    "LOG_LEVEL": "log_level",
}

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

REQUIRED_ENV = [
    "SLACK_BOT_TOKEN",
    "SLACK_VERIFICATION_TOKEN",
    "SLACK_BOT_ID",
    "SLACK_USER_ID",
    "GAROON_SUBDOMAIN",
    "GAROON_USER",
    "GAROON_PASSWORD",
]


class RescheduleConfig(BaseModel):
    """リスケジューラー設定"""

    # HTTPサーバー
    port: int = Field(default=3000, description="待ち受けポート")

    # Slack
    slack_bot_token: str = Field(..., description="Bot User OAuth Token")
    slack_verification_token: str = Field(..., description="Interactive Message検証トークン")
    slack_signing_secret: Optional[str] = Field(None, description="Events API署名シークレット")
    slack_bot_id: str = Field(..., description="BotのユーザーID")
    slack_channel_id: Optional[str] = Field(None, description="応答するチャンネル（未設定なら全チャンネル）")
    slack_user_id: str = Field(..., description="リスケジュールを確定できるオーナーのユーザーID")

    # Garoon
    garoon_subdomain: str = Field(..., description="cybozu.comのサブドメイン")
    garoon_user: str = Field(..., description="Garoonログインユーザー")
    garoon_password: str = Field(..., description="Garoonログインパスワード")
    garoon_base_url: Optional[str] = Field(None, description="REST APIのベースURL（省略時はサブドメインから生成）")
    garoon_excluding_facility_code: str = Field(default="", description="候補から除外する施設コード（カンマ区切り）")
    garoon_timeout_seconds: float = Field(default=30.0, description="Garoon APIタイムアウト（秒）")

    # 共通
    timezone: str = Field(default="Asia/Tokyo", description="営業時間の判定に使うタイムゾーン")
    log_level: str = Field(default="INFO", description="ログレベル")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        """タイムゾーンの検証"""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"不明なタイムゾーンです: {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """ログレベルの検証"""
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"不明なログレベルです: {v}")
        return level

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def excluded_facility_codes(self) -> Set[str]:
        """除外施設コードの集合（空要素は無視）"""
        return {
            code.strip()
            for code in self.garoon_excluding_facility_code.split(",")
            if code.strip()
        }

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RescheduleConfig":
        """環境変数から設定を作成"""
        if environ is None:
            environ = os.environ

        missing = [name for name in REQUIRED_ENV if not environ.get(name)]
        if missing:
            raise ConfigError("必須の環境変数が設定されていません: " + ", ".join(missing))

        values = {
            field: environ[name]
            for name, field in ENV_FIELDS.items()
            if environ.get(name)
        }

        try:
            return cls(**values)
        except ValueError as e:
            raise ConfigError(f"設定値が不正です: {e}") from e
