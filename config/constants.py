"""
AI Stocks Bot — Hard-coded constants.
Endpoints, stub market values and the fixed user-facing texts.
"""

from core.models import StockInfo

# ── MOEX ISS Endpoints ──────────────────────────────────
MOEX_INDEX_URL = (
    "https://iss.moex.com/iss/engines/stock/markets/index/securities.json"
    "?iss.meta=off&iss.only=securities,marketdata"
)
MOEX_CURRENCY_URL = (
    "https://iss.moex.com/iss/statistics/engines/currency/markets/selt/rates.json"
    "?iss.meta=off"
)
MOEX_SHARES_URL = (
    "https://iss.moex.com/iss/engines/stock/markets/shares/securities.json"
    "?iss.meta=off&iss.only=securities,marketdata"
    "&sort_column=VALTODAY&sort_order=desc&limit=20"
)
NEWS_API_URL = "https://newsapi.org/v2/everything"
NEWS_API_QUERY = "российский фондовый рынок акции"

MAIN_BOARD = "TQBR"
TOP_STOCKS_LIMIT = 5
NEWS_LIMIT = 3

# ── Market Trend Thresholds (IMOEX level) ───────────────
TREND_UP_ABOVE = 4200.0
TREND_DOWN_BELOW = 3800.0

# ── Stub Values (used when a source fails) ──────────────
STUB_INDEX_MOEX = 4100.0
STUB_INDEX_RTS = 1100.0
STUB_USD_RATE = 90.5
STUB_EUR_RATE = 98.7

STUB_TOP_STOCKS = (
    StockInfo(ticker="GAZP", name="Газпром", price=164.82, change=0.63, currency="RUB"),
    StockInfo(ticker="SBER", name="Сбербанк", price=287.45, change=1.12, currency="RUB"),
    StockInfo(ticker="LKOH", name="Лукойл", price=7046.5, change=-0.35, currency="RUB"),
)
STUB_RECOMMENDED_STOCK = STUB_TOP_STOCKS[0]

# (title, source, url, hours ago)
STUB_NEWS = (
    ("Индекс Мосбиржи: актуальный прогноз на сегодня", "РБК",
     "https://www.rbc.ru/finances/", 2),
    ("Какие акции российских компаний показывают рост в текущих условиях", "Ведомости",
     "https://www.vedomosti.ru/finance/", 5),
    ("Курс рубля: факторы влияния и перспективы на ближайшее время", "Коммерсантъ",
     "https://www.kommersant.ru/finance/", 24),
)

MARKET_DATA_UNAVAILABLE = "Актуальные рыночные данные недоступны."

# ── Bot Texts ───────────────────────────────────────────
WELCOME_TEXT = (
    "Привет! 👋 Я твой милый помощник по инвестициям! 💖\n\n"
    "Я буду каждый день в {schedule} отправлять тебе аналитику по российскому рынку "
    "с рекомендациями куда вложить 1000 рублей! 💰\n\n"
    "Используй команды:\n"
    "/subscribe - подписаться на ежедневную аналитику 📊\n"
    "/unsubscribe - отписаться от ежедневной аналитики 🚫\n"
    "/analytics - получить аналитику прямо сейчас ✨"
)
ADMIN_NOTE = "\n\n🔐 Вы администратор бота и имеете доступ ко всем функциям!"
ADMIN_ONLY_TEXT = "Извините, но эта команда доступна только администратору бота! 🔒"
SUBSCRIBED_TEXT = (
    "Вы успешно подписались на ежедневную аналитику! 🎉 "
    "Ожидайте первый выпуск в {schedule}! 💖"
)
UNSUBSCRIBED_TEXT = "Вы отписались от ежедневной аналитики 😢 Будем скучать! 💔"
GENERATING_TEXT = "Генерирую аналитику, пожалуйста, подождите... ⏳"
ANALYTICS_ERROR_TEXT = "Извини, произошла ошибка при генерации аналитики 😢 Попробуй позже! 💕"

# Commands only the administrator may run
ADMIN_COMMANDS = frozenset({"subscribe", "unsubscribe", "analytics"})
