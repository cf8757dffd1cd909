"""
AI Stocks Bot — Core Domain Models
Shared dataclasses used across the bot.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


ChatId = int


@dataclass(frozen=True)
class ScheduleSpec:
    """Fixed daily fire time: hour:minute:00 in a named time zone."""
    hour: int
    minute: int
    timezone: str = "Europe/Moscow"

    def __post_init__(self):
        if not 0 <= self.hour <= 23:
            raise ValueError(f"hour must be in [0, 23], got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"minute must be in [0, 59], got {self.minute}")


@dataclass(frozen=True)
class WakeSignal:
    """One "broadcast now" occurrence emitted by the daily scheduler."""
    scheduled_for: Optional[datetime] = None   # logging only


@dataclass(frozen=True)
class ChatUpdate:
    """A single inbound Telegram message."""
    update_id: int
    chat_id: ChatId
    user_id: int
    text: str = ""
    username: str = ""

    @property
    def command(self) -> Optional[str]:
        """Command name without '/' or '@botname', lower-cased; None for plain text."""
        text = self.text.strip()
        if not text.startswith("/"):
            return None
        name = text.split(maxsplit=1)[0].lstrip("/").split("@")[0].lower()
        return name or None


@dataclass
class StatusQuery:
    """Asks the dispatcher for a status dict; answered through `reply`."""
    reply: asyncio.Future


@dataclass(frozen=True)
class StockInfo:
    """A single traded security."""
    ticker: str = ""
    name: str = ""
    price: float = 0.0
    change: float = 0.0                   # percent
    currency: str = "RUB"


@dataclass(frozen=True)
class NewsItem:
    """A market news headline."""
    title: str = ""
    source: str = ""
    url: str = ""
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class MarketSnapshot:
    """Best-effort read of Russian market indicators; any field may be a stub."""
    index_moex: float = 0.0
    index_rts: float = 0.0
    usd_rate: float = 0.0
    eur_rate: float = 0.0
    top_stocks: tuple[StockInfo, ...] = ()
    recommended_stock: StockInfo = field(default_factory=StockInfo)
    market_trend: str = "stable"          # "up", "down", "stable"
    market_news: tuple[NewsItem, ...] = ()
