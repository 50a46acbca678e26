"""
Garoon Rescheduler - Slack Bot

Slackのメッセージボタン/メニューからGaroonの予定をリスケジュールします:
- キーワードによる予定検索
- 同じ施設グループの会議室を含む空き時間検索
- 候補の提示と選択
- 予定の日時・会議室の更新
"""

__version__ = "0.1.0"
