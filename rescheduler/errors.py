"""
例外クラス

HTTP境界とバックグラウンド処理で扱うエラーの分類を定義します。
"""

from typing import Optional


class ReschedulerError(Exception):
    """リスケジューラーエラー基底クラス"""
    pass


class ConfigError(ReschedulerError):
    """設定エラー"""
    pass


class TransportError(ReschedulerError):
    """リクエストの読み込み・デコードエラー"""
    pass


class InvalidSelectionTokenError(TransportError):
    """選択トークンの形式エラー"""
    pass


class AuthError(ReschedulerError):
    """認証・認可エラー"""
    pass


class UpstreamError(ReschedulerError):
    """Garoon API呼び出しエラー"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(UpstreamError):
    """予定・施設の未発見エラー"""
    pass


class GroupLookupFailedError(UpstreamError):
    """施設グループの施設一覧取得エラー"""
    pass


class UpdateFailedError(UpstreamError):
    """予定更新エラー"""
    pass


class UnsupportedMeetingShapeError(ReschedulerError):
    """リスケジュール対象外の予定（終日・開始のみ・複数会議室）"""
    pass
