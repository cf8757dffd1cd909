"""
AI Stocks Bot — Main Entry Point
Starts the Telegram poller, the daily scheduler, the dispatcher and the
status API concurrently.

Usage:
    python run.py              # Start everything
    python run.py --no-web     # Bot only, without the status API
    python run.py --analytics  # Print one analytics message and exit
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path

# Ensure project root is on sys.path
sys.path.insert(0, str(Path(__file__).parent))

from pydantic import ValidationError

from config.settings import PlatformSettings, get_settings
from core.errors import AnalyticsError, ConfigurationError

logger = logging.getLogger("ai_stocks_bot")


def configure_logging(settings: PlatformSettings):
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file, mode="a", encoding="utf-8"))

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )
    # httpx logs every request URL at INFO, and Bot API URLs carry the token
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def start_web(settings: PlatformSettings, dispatcher, runner):
    """Start the FastAPI status server."""
    import uvicorn
    from web.app import create_app

    app = create_app(dispatcher, runner)
    config = uvicorn.Config(
        app,
        host=settings.web_host,
        port=settings.web_port,
        log_level="info",
        access_log=False,
    )
    server = uvicorn.Server(config)
    logger.info(f"Status API: http://{settings.web_host}:{settings.web_port}")
    await server.serve()


async def run_all(settings: PlatformSettings, with_web: bool = True):
    """Start all services concurrently."""
    from adapters.ai_service import AIService
    from core.dispatcher import Dispatcher
    from pipeline.runner import PipelineRunner
    from pipeline.scheduler import DailyScheduler
    from telegram.bot import get_bot

    bot = get_bot()
    await bot.get_me()

    if not settings.admin_user_id:
        logger.warning("ADMIN_USER_ID is not set; /subscribe, /unsubscribe and /analytics will refuse everyone")

    ai_service = AIService(settings)
    dispatcher = Dispatcher(
        bot,
        ai_service,
        admin_user_id=settings.admin_user_id,
        schedule_label=settings.schedule_time_label,
    )
    scheduler = DailyScheduler(
        settings.schedule_spec,
        dispatcher.submit,
        fallback_offset_hours=settings.schedule_fallback_utc_offset,
    )
    runner = PipelineRunner(scheduler)

    logger.info("=" * 60)
    logger.info("  AI Stocks Bot — Daily Market Analytics")
    logger.info("=" * 60)
    logger.info(f"  Bot:       @{bot.username}")
    logger.info(f"  Admin:     {settings.admin_user_id or 'Not configured'}")
    logger.info(f"  Model:     {settings.ai_model_name if settings.ai_configured else 'Local fallback'}")
    logger.info(f"  Broadcast: {settings.schedule_time_label} ({scheduler.tz})")
    logger.info(f"  Web:       {'Enabled' if with_web else 'Disabled'}")
    logger.info("=" * 60)

    # Create tasks
    tasks = [
        asyncio.create_task(dispatcher.run(), name="dispatcher"),
        asyncio.create_task(bot.start_polling(dispatcher.submit), name="telegram"),
    ]
    await runner.start()
    tasks.append(asyncio.create_task(runner.wait(), name="scheduler"))

    if with_web:
        tasks.append(asyncio.create_task(start_web(settings, dispatcher, runner), name="web"))

    # Handle graceful shutdown
    loop = asyncio.get_running_loop()

    def shutdown_handler():
        logger.info("Shutting down AI Stocks Bot...")
        for task in tasks:
            task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown_handler)

    # Wait for all tasks
    try:
        await asyncio.gather(*tasks, return_exceptions=True)
    except asyncio.CancelledError:
        pass
    finally:
        await runner.stop()
        await bot.stop_polling()
        await ai_service.close()

    logger.info("AI Stocks Bot stopped")


async def print_analytics(settings: PlatformSettings) -> int:
    """Generate one analytics message and print it to stdout."""
    from adapters.ai_service import AIService

    ai_service = AIService(settings)
    try:
        print(await ai_service.generate_analytics())
        return 0
    except AnalyticsError as e:
        logger.error(f"Analytics generation failed: {e}")
        return 1
    finally:
        await ai_service.close()


def main():
    args = sys.argv[1:]

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        sys.exit(1)

    settings.ensure_dirs()
    configure_logging(settings)

    if "--analytics" in args:
        sys.exit(asyncio.run(print_analytics(settings)))

    if not settings.telegram_configured:
        logger.critical("TELEGRAM_BOT_TOKEN must be set (environment or .env)")
        sys.exit(1)

    with_web = settings.web_enabled and "--no-web" not in args
    try:
        asyncio.run(run_all(settings, with_web=with_web))
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
