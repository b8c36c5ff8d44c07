#!/usr/bin/env python3
"""
Stock tracker Telegram bot

- /stock: quote and price chart of a symbol
- /portfolio: holdings with one chart per holding
- /watch: one-time price target alerts, delivered as direct messages
- Background jobs: watchlist evaluation every few seconds on market days,
  daily price refresh of every tracked symbol at a fixed UTC hour
"""
import asyncio
import logging
import signal
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.exc import SQLAlchemyError
from telegram import BotCommand, Update
from telegram.error import TelegramError
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes
from telegram.request import HTTPXRequest

from bot_config import BotConfig
from commands import build_registry
from cores.data_client import MarketDataClient
from cores.render_pipeline import ComponentBuilder
from tracking.alerts import AlertEvaluator
from tracking.onboarding import SymbolTracker
from tracking.pacing import build_pacer
from tracking.refresh import DailyRefresher
from tracking.store import PriceStore
from tracking.telegram import AlertNotifier

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            RotatingFileHandler(
                f"stockbot_{datetime.now().strftime('%Y%m%d')}.log",
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5
            )
        ]
    )


class StockBot:
    """Stock tracker bot: command handlers plus the background jobs."""

    def __init__(self, config: BotConfig):
        """
        Wire up the bot.

        Raises:
            SQLAlchemyError: If the price store cannot be initialized
        """
        self.config = config

        self.store = PriceStore(config.database_url)
        self.store.init_db()

        self.client = MarketDataClient()
        self.tracker = SymbolTracker(self.store, self.client, lookback_years=config.history_lookback_years)
        self.refresher = DailyRefresher(
            self.store,
            self.client,
            pacer=build_pacer(config.refresh_delay_seconds, config.refresh_rate_per_second),
            timeout=config.fetch_timeout_seconds,
            lookback_years=config.history_lookback_years,
            refresh_hour_utc=config.refresh_hour_utc,
        )
        self.builder = ComponentBuilder(
            self.store,
            self.client,
            timeout=config.fetch_timeout_seconds,
            concurrency=config.render_concurrency,
        )

        request = HTTPXRequest(
            connection_pool_size=8,
            connect_timeout=30.0,
            read_timeout=60.0,
            write_timeout=60.0,
        )
        self.application = Application.builder().token(config.bot_token).request(request).build()

        self.notifier = AlertNotifier(self.application.bot)
        self.evaluator = AlertEvaluator(
            self.store,
            self.client,
            self.notifier,
            timeout=config.fetch_timeout_seconds,
            skip_holidays=config.skip_market_holidays,
        )

        self.commands = build_registry(self.store, self.tracker, self.builder, timeout=config.fetch_timeout_seconds)
        self.setup_handlers()

        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.setup_jobs()

        self.stop_event = asyncio.Event()

    def setup_handlers(self):
        """
        Register a handler per command and per button prefix
        """
        for command in self.commands.values():
            self.application.add_handler(CommandHandler(command.name, command.handle))
            if command.has_callback:
                self.application.add_handler(
                    CallbackQueryHandler(command.handle_callback, pattern=command.callback_pattern)
                )

        self.application.add_error_handler(self.handle_error)

    def setup_jobs(self):
        self.scheduler.add_job(
            self.evaluator.tick,
            "interval",
            seconds=self.config.alert_interval_seconds,
            id="watchlist_alerts",
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self.refresher.refresh_all,
            "cron",
            hour=self.config.refresh_hour_utc,
            minute=0,
            id="daily_refresh",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

    async def publish_commands(self):
        """Publish the command menu"""
        bot_commands = [BotCommand(command.name, command.description) for command in self.commands.values()]
        try:
            await self.application.bot.set_my_commands(bot_commands)
            logger.info(f"Published {len(bot_commands)} commands")
        except TelegramError as e:
            logger.error(f"Failed to publish commands: {e}")

    @staticmethod
    async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE):
        """Log any exception that escaped a handler"""
        logger.error(f"Error while handling update: {context.error}", exc_info=context.error)

        if isinstance(update, Update) and update.effective_message:
            try:
                await update.effective_message.reply_text("Sorry, something went wrong. Please try again.")
            except TelegramError as e:
                logger.error(f"Failed to send error reply: {e}")

    def stop(self):
        self.stop_event.set()

    async def run(self):
        """Run the bot until stop() is called"""
        await self.application.initialize()
        await self.publish_commands()
        await self.application.start()
        await self.application.updater.start_polling()

        self.scheduler.start()
        catch_up = asyncio.create_task(self.refresher.catch_up())

        logger.info("Stock tracker bot started")

        try:
            await self.stop_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            logger.info("Stopping stock tracker bot...")

            if not catch_up.done():
                catch_up.cancel()
            self.scheduler.shutdown(wait=False)

            await self.application.updater.stop()
            await self.application.stop()
            await self.application.shutdown()

            self.store.close()
            logger.info("Stock tracker bot stopped")


async def main():
    config = BotConfig()
    setup_logging(config.debug)

    try:
        config.validate_or_raise()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)
    config.log_status()

    try:
        bot = StockBot(config)
    except SQLAlchemyError as e:
        logger.critical(f"Failed to initialize the price store: {e}")
        sys.exit(1)

    loop = asyncio.get_running_loop()

    def create_signal_handler(sig):
        def handler():
            logger.info(f"Received signal {sig.name}, shutting down...")
            bot.stop()
        return handler

    for s in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(s, create_signal_handler(s))

    await bot.run()


def run_main():
    asyncio.run(main())


if __name__ == "__main__":
    run_main()
