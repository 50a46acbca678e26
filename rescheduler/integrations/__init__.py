"""
External API Integrations
"""

from .garoon import AvailableTimeQuery, GaroonClient, GaroonConfig
from .slack_handler import (
    Attachment,
    InteractionCallback,
    SlackCommandHandler,
    SlackEventData,
    SlackMessageSender,
    parse_interaction_body,
)

__all__ = [
    "GaroonClient",
    "GaroonConfig",
    "AvailableTimeQuery",
    "Attachment",
    "InteractionCallback",
    "SlackCommandHandler",
    "SlackEventData",
    "SlackMessageSender",
    "parse_interaction_body",
]
