"""
AI Stocks Bot — Error Types
"""


class BotError(Exception):
    """Base class for all bot errors."""


class ConfigurationError(BotError):
    """A mandatory setting is missing or invalid."""


class MarketDataError(BotError):
    """Market data could not be assembled at all."""


class AnalyticsError(BotError):
    """The completion endpoint failed or returned an unusable payload."""
