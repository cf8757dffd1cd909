"""
AI Stocks Bot — Unified Configuration
Single source of truth for all credentials and settings.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.models import ScheduleSpec


class PlatformSettings(BaseSettings):
    """Platform settings loaded from environment and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    # ── Telegram ──────────────────────────────────────────
    telegram_bot_token: str = Field("", description="Telegram bot token")
    admin_user_id: int = Field(0, description="Telegram user ID allowed to manage subscriptions")

    # ── Completion API (OpenAI-compatible) ────────────────
    ai_api_key: str = Field("", description="Completion API key; empty enables the local fallback text")
    ai_api_base_url: str = Field(
        "https://api.openai.com/v1/chat/completions",
        description="Full chat-completions endpoint URL",
    )
    ai_model_name: str = Field("gpt-4o", description="Completion model name")
    ai_temperature: float = Field(0.7, ge=0.0, le=2.0, description="Sampling temperature")
    ai_enable_retrieval_tool: bool = Field(False, description="Attach the retrieval tool to completion requests")
    ai_prompt_path: Optional[str] = Field(None, description="File overriding the built-in system prompt")
    ai_timeout: float = Field(60.0, description="Completion request timeout, seconds")

    # ── Market Data ───────────────────────────────────────
    news_api_key: Optional[str] = Field(None, description="NewsAPI.org key")
    market_data_timeout: float = Field(10.0, description="Market data request timeout, seconds")

    # ── Daily Broadcast ───────────────────────────────────
    daily_hour: int = Field(10, ge=0, le=23, description="Broadcast hour, local to schedule_timezone")
    daily_minute: int = Field(0, ge=0, le=59, description="Broadcast minute")
    schedule_timezone: str = Field("Europe/Moscow", description="IANA zone of the broadcast time")
    schedule_fallback_utc_offset: float = Field(
        3.0, description="Fixed UTC offset (hours) used when the zone database is unavailable",
    )
    schedule_label: str = Field("по Москве", description="Human label for the zone in bot messages")

    # ── Web Status ────────────────────────────────────────
    web_enabled: bool = Field(True, description="Serve the status API")
    web_host: str = Field("127.0.0.1", description="Web server host")
    web_port: int = Field(8000, description="Web server port")

    # ── Logging ───────────────────────────────────────────
    log_file: str = Field("./data/logs/ai-stocks-bot.log", description="Log file path")

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token)

    @property
    def ai_configured(self) -> bool:
        return bool(self.ai_api_key)

    @property
    def schedule_spec(self) -> ScheduleSpec:
        return ScheduleSpec(
            hour=self.daily_hour,
            minute=self.daily_minute,
            timezone=self.schedule_timezone,
        )

    @property
    def schedule_time_label(self) -> str:
        return f"{self.daily_hour:02d}:{self.daily_minute:02d} {self.schedule_label}"

    def ensure_dirs(self) -> None:
        """Create required directories."""
        Path(self.log_file).parent.mkdir(parents=True, exist_ok=True)


# Global singleton
_settings: Optional[PlatformSettings] = None


def get_settings() -> PlatformSettings:
    global _settings
    if _settings is None:
        _settings = PlatformSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
