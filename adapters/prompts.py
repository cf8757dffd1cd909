"""
AI Stocks Bot — Prompt Templates
System prompt, market context rendering and the offline fallback text.
"""

import logging
from pathlib import Path
from typing import Optional

from core.models import MarketSnapshot

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """Ты — дружелюбный и заботливый финансовый помощник в Telegram.
Каждый день ты готовишь короткую аналитику по российскому фондовому рынку
для начинающего инвестора, у которого есть 1000 рублей.

Структура ответа:
1. Заголовок с датой.
2. Общая ситуация на рынке РФ: индекс Мосбиржи, индекс РТС, курс рубля.
3. Куда вложить 1000 рублей: одна конкретная идея с объяснением.
4. Почему это выгодно: 2-3 аргумента.
5. Короткий практический совет.

Правила:
- Пиши по-русски, тепло и с эмодзи, но без воды.
- Опирайся на рыночные данные из сообщения пользователя; не выдумывай цифры.
- Используй разметку Telegram Markdown: *жирный* для заголовков разделов.
- Не обещай доходность и напоминай, что это не индивидуальная инвестиционная рекомендация.
- Объём ответа — не больше 3000 символов."""

USER_PROMPT = (
    "Сегодняшняя дата: {date}. Нужна аналитика именно по сегодняшнему дню.\n\n"
    "Актуальные рыночные данные:\n\n{context}"
)

TREND_LABELS = {
    "up": "РОСТ 📈",
    "down": "ПАДЕНИЕ 📉",
}


def load_system_prompt(path: Optional[str] = None) -> str:
    """Built-in system prompt, or the contents of `path` if it is readable."""
    if not path:
        return SYSTEM_PROMPT
    try:
        text = Path(path).read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.warning(f"Could not read prompt file {path}: {e}; using built-in prompt")
        return SYSTEM_PROMPT
    return text or SYSTEM_PROMPT


def build_user_prompt(date_str: str, context: str) -> str:
    return USER_PROMPT.format(date=date_str, context=context)


def translate_trend(trend: str) -> str:
    return TREND_LABELS.get(trend, "СТАБИЛЬНЫЙ ↔️")


def _signed_pct(value: float) -> str:
    return f"+{value:.2f}%" if value > 0 else f"{value:.2f}%"


def format_market_data_for_ai(data: MarketSnapshot) -> str:
    """Render a snapshot as the plain-text context block of the user prompt."""
    lines = [
        "📊 ИНДЕКСЫ:",
        f"- Индекс Мосбиржи: {data.index_moex:.2f}",
        f"- Индекс РТС: {data.index_rts:.2f}",
        f"- Курс USD/RUB: {data.usd_rate:.2f}",
        f"- Курс EUR/RUB: {data.eur_rate:.2f}",
        "",
        f"🔍 ТРЕНД РЫНКА: {translate_trend(data.market_trend)}",
        "",
        "🏆 ТОП АКЦИИ:",
    ]
    for stock in data.top_stocks:
        lines.append(
            f"- {stock.name} ({stock.ticker}): {stock.price:.2f} {stock.currency} "
            f"({_signed_pct(stock.change)})"
        )

    rec = data.recommended_stock
    lines += [
        "",
        "💎 РЕКОМЕНДАЦИЯ:",
        f"- {rec.name} ({rec.ticker}): {rec.price:.2f} {rec.currency} (изменение: {rec.change:.2f}%)",
        "",
        "📰 ПОСЛЕДНИЕ НОВОСТИ:",
    ]
    for news in data.market_news:
        lines.append(f"- {news.title} (Источник: {news.source}, {news.timestamp:%d.%m.%Y})")

    return "\n".join(lines)


def local_analytics(date_str: str) -> str:
    """Canned analytics used when no completion API key is configured."""
    return f"""✨ *Ежедневная аналитика рынка* ✨
🗓 *{date_str}*

Приветик, дорогой инвестор! 👋💕

Сегодня российский рынок выглядит очень интересно! 📊 Я проанализировала все тренды специально для тебя! 🌟

🔍 *Общая ситуация на рынке РФ*:
Индекс Мосбиржи сегодня показывает небольшой рост, что создаёт приятные возможности для инвестиций! 💫 Рубль стабилен, что хорошо для прогнозирования! 🧮

💰 *Куда вложить 1000 рублей*:
Для такой суммы я рекомендую обратить внимание на акции компании "Газпром"! 🏦 Сейчас они торгуются по привлекательной цене и имеют хороший потенциал роста в ближайшие месяцы! 📈

Альтернативный вариант — накопительный счёт с повышенной ставкой для новых клиентов! 💝 Это безопасный способ сохранить деньги в текущих условиях! 🔐

🌈 *Почему это выгодно*:
Газпром исторически выплачивает дивиденды, а конъюнктура рынка энергоносителей важна для компании! ✅ Даже с 1000 рублей ты сможешь получить настоящий инвестиционный опыт! 🤓

Надеюсь, моя аналитика была полезной! 🌺 Жду тебя завтра с новыми инсайтами! 💖

Твой финансовый помощник! 💝"""
