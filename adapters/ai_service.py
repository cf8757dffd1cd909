"""
AI Stocks Bot — Analytics Generation
Calls an OpenAI-compatible chat-completions endpoint with the system prompt and
today's market context. Without an API key a canned local text is returned.
"""

import logging
from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional, Union

import httpx
from pydantic import BaseModel

from adapters.market_data import MarketDataService
from adapters.prompts import (
    build_user_prompt, format_market_data_for_ai, load_system_prompt, local_analytics,
)
from config.constants import MARKET_DATA_UNAVAILABLE
from config.settings import PlatformSettings, get_settings
from core.errors import AnalyticsError, MarketDataError
from pipeline.scheduler import resolve_timezone

logger = logging.getLogger(__name__)


# ── Wire Models ───────────────────────────────────────────


class ChatMessage(BaseModel):
    role: str
    content: str


class Tool(BaseModel):
    type: str


class CompletionRequest(BaseModel):
    model: str
    messages: list[ChatMessage]
    temperature: Optional[float] = None
    tools: Optional[list[Tool]] = None
    tool_choice: Optional[str] = None


class CompletionMessage(BaseModel):
    content: Optional[str] = None


class CompletionChoice(BaseModel):
    message: CompletionMessage


class ApiError(BaseModel):
    message: str = ""


class CompletionResponse(BaseModel):
    choices: list[CompletionChoice] = []
    error: Union[ApiError, str, None] = None

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        if isinstance(self.error, str):
            return self.error
        return self.error.message or "unknown error"


# ── Service ───────────────────────────────────────────────


class AIService:
    """Generates the daily analytics text."""

    def __init__(
        self,
        settings: Optional[PlatformSettings] = None,
        market_data: Optional[MarketDataService] = None,
        client: Optional[httpx.AsyncClient] = None,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        settings = settings or get_settings()
        self.api_key = settings.ai_api_key
        self.base_url = settings.ai_api_base_url
        self.model = settings.ai_model_name
        self.temperature = settings.ai_temperature
        self.enable_retrieval = settings.ai_enable_retrieval_tool
        self.timeout = settings.ai_timeout
        self.system_prompt = load_system_prompt(settings.ai_prompt_path)
        self.market_data = market_data or MarketDataService(settings=settings)
        self.tz = tz or resolve_timezone(settings.schedule_timezone, settings.schedule_fallback_utc_offset)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._client = client

        if not self.api_key:
            logger.warning("AI_API_KEY is not set; analytics will use the local fallback text")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        await self.market_data.close()

    def today(self) -> str:
        return self._clock().astimezone(self.tz).strftime("%d.%m.%Y")

    async def generate_analytics(self) -> str:
        """Return analytics text. Raises AnalyticsError if the endpoint fails."""
        date_str = self.today()
        if not self.configured:
            return local_analytics(date_str)

        context = await self._market_context()
        request = self.build_request(date_str, context)

        client = await self._get_client()
        try:
            resp = await client.post(
                self.base_url,
                json=request.model_dump(exclude_none=True),
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise AnalyticsError(f"completion request failed: {e}") from e

        try:
            body = CompletionResponse.model_validate(resp.json())
        except ValueError as e:
            raise AnalyticsError(f"invalid completion response (HTTP {resp.status_code}): {e}") from e

        if body.error_message is not None:
            raise AnalyticsError(f"API error: {body.error_message}")
        if resp.status_code >= 400:
            raise AnalyticsError(f"API returned HTTP {resp.status_code}")
        if not body.choices:
            raise AnalyticsError("empty response from API")

        content = (body.choices[0].message.content or "").strip()
        if not content:
            raise AnalyticsError("empty message content from API")

        logger.info(f"Generated analytics with {self.model} ({len(content)} chars)")
        return content

    def build_request(self, date_str: str, context: str) -> CompletionRequest:
        request = CompletionRequest(
            model=self.model,
            messages=[
                ChatMessage(role="system", content=self.system_prompt),
                ChatMessage(role="user", content=build_user_prompt(date_str, context)),
            ],
            temperature=self.temperature,
        )
        if self.enable_retrieval:
            request.tools = [Tool(type="retrieval")]
            request.tool_choice = "auto"
        return request

    async def _market_context(self) -> str:
        try:
            snapshot = await self.market_data.get_market_data()
        except MarketDataError as e:
            logger.warning(f"Market data unavailable for prompt: {e}")
            return MARKET_DATA_UNAVAILABLE
        return format_market_data_for_ai(snapshot)
