"""
AI Stocks Bot — Market Data Adapter
Best-effort snapshot of the Russian market from the MOEX ISS API and NewsAPI.

Each source is fetched independently. A failed or malformed source is logged
and replaced by stub values; the snapshot itself is always produced.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from config.constants import (
    MAIN_BOARD, MOEX_CURRENCY_URL, MOEX_INDEX_URL, MOEX_SHARES_URL,
    NEWS_API_QUERY, NEWS_API_URL, NEWS_LIMIT,
    STUB_EUR_RATE, STUB_INDEX_MOEX, STUB_INDEX_RTS, STUB_NEWS,
    STUB_RECOMMENDED_STOCK, STUB_TOP_STOCKS, STUB_USD_RATE,
    TOP_STOCKS_LIMIT, TREND_DOWN_BELOW, TREND_UP_ABOVE,
)
from config.settings import PlatformSettings, get_settings
from core.errors import MarketDataError
from core.models import MarketSnapshot, NewsItem, StockInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")

INDEX_TICKERS = {"IMOEX": "index_moex", "RTSI": "index_rts"}
INDEX_VALUE_COLUMNS = ("CURRENTVALUE", "LASTVALUE", "LAST")
CHANGE_COLUMNS = ("LASTTOPREVPRICE", "CHANGE")


class MarketDataService:
    """Fetches market indicators for the analytics prompt."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        news_api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        settings: Optional[PlatformSettings] = None,
    ):
        settings = settings or get_settings()
        self.news_api_key = news_api_key if news_api_key is not None else settings.news_api_key
        self.timeout = timeout or settings.market_data_timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def get_market_data(self) -> MarketSnapshot:
        """Assemble a snapshot, stub-filling every field whose source failed."""
        try:
            indices = await self._parsed(self._get_indices)
        except MarketDataError as e:
            logger.warning(f"MOEX index data unavailable, using stubs: {e}")
            indices = {}

        try:
            rates = await self._parsed(self._get_currency_rates)
        except MarketDataError as e:
            logger.warning(f"MOEX currency rates unavailable, using stubs: {e}")
            rates = {}

        try:
            stocks = await self._parsed(self._get_top_stocks)
        except MarketDataError as e:
            logger.warning(f"MOEX top stocks unavailable, using stubs: {e}")
            stocks = list(STUB_TOP_STOCKS)

        news = await self._get_market_news()

        index_moex = indices.get("index_moex", STUB_INDEX_MOEX)
        return MarketSnapshot(
            index_moex=index_moex,
            index_rts=indices.get("index_rts", STUB_INDEX_RTS),
            usd_rate=rates.get("usd", STUB_USD_RATE),
            eur_rate=rates.get("eur", STUB_EUR_RATE),
            top_stocks=tuple(stocks),
            recommended_stock=pick_recommended(stocks),
            market_trend=classify_trend(index_moex),
            market_news=tuple(news),
        )

    @staticmethod
    async def _parsed(fetch: Callable[[], Awaitable[T]]) -> T:
        """Run one source fetch; a payload of unexpected shape becomes MarketDataError."""
        try:
            return await fetch()
        except (TypeError, AttributeError, KeyError, IndexError) as e:
            raise MarketDataError(f"malformed payload ({type(e).__name__}: {e})") from e

    # ── MOEX ──────────────────────────────────────────────

    async def _fetch_json(self, url: str, params: Optional[dict] = None) -> dict:
        client = await self._get_client()
        try:
            resp = await client.get(url, params=params)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPError as e:
            raise MarketDataError(f"request to {url.split('?')[0]} failed: {e}") from e
        except ValueError as e:
            raise MarketDataError(f"invalid JSON from {url.split('?')[0]}: {e}") from e

        if not isinstance(payload, dict):
            raise MarketDataError("unexpected payload shape")
        return payload

    async def _get_indices(self) -> dict[str, float]:
        """IMOEX and RTSI levels keyed by snapshot field name."""
        payload = await self._fetch_json(MOEX_INDEX_URL)
        rows = merge_marketdata(_table(payload, "securities"), _table(payload, "marketdata"))

        found: dict[str, float] = {}
        for row in rows:
            field_name = INDEX_TICKERS.get(row.get("SECID"))
            if field_name is None or field_name in found:
                continue
            value = _first_float(row, INDEX_VALUE_COLUMNS)
            if value is not None:
                found[field_name] = value

        if not found:
            raise MarketDataError("no IMOEX/RTSI values in response")
        return found

    async def _get_currency_rates(self) -> dict[str, float]:
        """Central bank USD/RUB and EUR/RUB rates."""
        payload = await self._fetch_json(MOEX_CURRENCY_URL)
        rows = _table(payload, "cbrf")
        if not rows:
            raise MarketDataError("empty cbrf block")

        row = rows[0]
        rates = {}
        usd = _to_float(row.get("CBRF_USD_LAST"))
        if usd is not None:
            rates["usd"] = usd
        eur = _to_float(row.get("CBRF_EUR_LAST"))
        if eur is not None:
            rates["eur"] = eur
        return rates

    async def _get_top_stocks(self) -> list[StockInfo]:
        """Most traded main-board shares, in the order MOEX ranks them."""
        payload = await self._fetch_json(MOEX_SHARES_URL)
        securities = _table(payload, "securities")
        marketdata = _table(payload, "marketdata")
        if securities and "SECID" not in securities[0]:
            raise MarketDataError("SECID column missing")

        stocks: list[StockInfo] = []
        seen: set[str] = set()
        for row in merge_marketdata(securities, marketdata):
            ticker = row.get("SECID")
            if not isinstance(ticker, str) or ticker in seen:
                continue
            if row.get("BOARDID") != MAIN_BOARD:
                continue
            price = _to_float(row.get("LAST"))
            if price is None:
                continue

            seen.add(ticker)
            stocks.append(StockInfo(
                ticker=ticker,
                name=row.get("SHORTNAME") or ticker,
                price=price,
                change=_first_float(row, CHANGE_COLUMNS) or 0.0,
                currency="RUB",
            ))
            if len(stocks) >= TOP_STOCKS_LIMIT:
                break

        if not stocks:
            raise MarketDataError("no priced shares on the main board")
        return stocks

    # ── News ──────────────────────────────────────────────

    async def _get_market_news(self) -> list[NewsItem]:
        """Latest market headlines; static headlines when NewsAPI is unavailable."""
        if self.news_api_key:
            try:
                news = await self._parsed(self._fetch_news_from_api)
                if news:
                    return news
            except MarketDataError as e:
                logger.warning(f"NewsAPI unavailable, using stub headlines: {e}")
        return stub_news()

    async def _fetch_news_from_api(self) -> list[NewsItem]:
        payload = await self._fetch_json(NEWS_API_URL, params={
            "q": NEWS_API_QUERY,
            "language": "ru",
            "pageSize": NEWS_LIMIT,
            "apiKey": self.news_api_key,
        })
        articles = payload.get("articles")
        if payload.get("status") != "ok" or not isinstance(articles, list):
            raise MarketDataError(f"NewsAPI status: {payload.get('status')}")

        news = []
        for article in articles[:NEWS_LIMIT]:
            if not isinstance(article, dict):
                continue
            source = article.get("source")
            news.append(NewsItem(
                title=str(article.get("title") or ""),
                source=str(source.get("name") or "") if isinstance(source, dict) else "",
                url=str(article.get("url") or ""),
                timestamp=_parse_timestamp(article.get("publishedAt")),
            ))
        return news


# ── Helpers ───────────────────────────────────────────────


def classify_trend(index_moex: float) -> str:
    if index_moex > TREND_UP_ABOVE:
        return "up"
    if index_moex < TREND_DOWN_BELOW:
        return "down"
    return "stable"


def pick_recommended(stocks: list[StockInfo]) -> StockInfo:
    """The stock with the largest change; first one wins ties."""
    if not stocks:
        return STUB_RECOMMENDED_STOCK
    best = stocks[0]
    for stock in stocks:
        if stock.change > best.change:
            best = stock
    return best


def stub_news() -> list[NewsItem]:
    now = datetime.now()
    return [
        NewsItem(title=title, source=source, url=url, timestamp=now - timedelta(hours=hours))
        for title, source, url, hours in STUB_NEWS
    ]


def merge_marketdata(securities: list[dict], marketdata: list[dict]) -> list[dict]:
    """Join ISS securities rows with their marketdata rows (by SECID, else by position)."""
    by_id: dict[Any, dict] = {}
    for row in marketdata:
        if row.get("SECID") is None:
            continue
        by_id.setdefault((row["SECID"], row.get("BOARDID")), row)
        by_id.setdefault((row["SECID"], None), row)

    merged = []
    for i, sec in enumerate(securities):
        secid = sec.get("SECID")
        if secid is None:
            continue
        md = by_id.get((secid, sec.get("BOARDID"))) or by_id.get((secid, None))
        if md is None and i < len(marketdata) and marketdata[i].get("SECID") is None:
            md = marketdata[i]
        if md is None:
            continue
        merged.append({**md, **sec})
    return merged


def _table(payload: dict, name: str) -> list[dict]:
    """Rows of an ISS columns/data block as dicts."""
    block = payload.get(name)
    if not isinstance(block, dict):
        raise MarketDataError(f"missing '{name}' block")
    columns = block.get("columns")
    data = block.get("data")
    if not isinstance(columns, list) or not isinstance(data, list):
        raise MarketDataError(f"malformed '{name}' block")
    return [dict(zip(columns, row)) for row in data if isinstance(row, list)]


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _first_float(row: dict, columns: tuple[str, ...]) -> Optional[float]:
    for column in columns:
        value = _to_float(row.get(column))
        if value is not None:
            return value
    return None


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now(timezone.utc)
