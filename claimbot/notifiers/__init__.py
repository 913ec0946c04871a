"""Telegram progress delivery and message formatting."""

from claimbot.notifiers.formatter import ItemProgress, escape_mdv2, format_duration
from claimbot.notifiers.notifier import NullNotifier, ProgressNotifier, TelegramNotifier
from claimbot.notifiers.telegram import TelegramClient

__all__ = [
    "ItemProgress",
    "NullNotifier",
    "ProgressNotifier",
    "TelegramClient",
    "TelegramNotifier",
    "escape_mdv2",
    "format_duration",
]
