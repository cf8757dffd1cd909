"""
AI Stocks Bot — Telegram Message Formatters
"""

from config.constants import ADMIN_NOTE, SUBSCRIBED_TEXT, WELCOME_TEXT


def format_welcome(schedule: str, is_admin: bool = False) -> str:
    """Help text for /start; admins get an extra note."""
    text = WELCOME_TEXT.format(schedule=schedule)
    if is_admin:
        text += ADMIN_NOTE
    return text


def format_subscribed(schedule: str) -> str:
    return SUBSCRIBED_TEXT.format(schedule=schedule)


def format_user(username: str, user_id: int) -> str:
    """Short sender label for log lines."""
    return f"@{username}" if username else str(user_id)
