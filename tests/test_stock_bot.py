"""
Entry point wiring tests (no network: the application is never started)
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError
from telegram.ext import CallbackQueryHandler, CommandHandler

from bot_config import BotConfig
from stock_bot import StockBot


@pytest.fixture
def config(tmp_path):
    return BotConfig(
        bot_token="123456:TEST-TOKEN",
        db_path=str(tmp_path / "stockbot.db"),
        alert_interval_seconds=5,
        refresh_hour_utc=22,
        load_env=False,
    )


@pytest.fixture
def bot(config):
    stock_bot = StockBot(config)
    yield stock_bot
    stock_bot.store.close()


class TestStockBotWiring:

    def test_store_is_initialized(self, bot):
        assert bot.store.get_tracked_symbols() == []

    def test_handlers(self, bot):
        handlers = [h for group in bot.application.handlers.values() for h in group]

        commands = set()
        for handler in handlers:
            if isinstance(handler, CommandHandler):
                commands |= set(handler.commands)
        assert commands == {"ping", "stock", "watch", "portfolio"}

        callbacks = [h for h in handlers if isinstance(h, CallbackQueryHandler)]
        assert len(callbacks) == 2

    def test_jobs(self, bot):
        alerts = bot.scheduler.get_job("watchlist_alerts")
        refresh = bot.scheduler.get_job("daily_refresh")

        assert alerts.trigger.interval.total_seconds() == 5
        assert "hour='22'" in str(refresh.trigger)

    def test_store_failure_is_raised(self, config):
        with patch("stock_bot.PriceStore") as mock_store:
            mock_store.return_value.init_db.side_effect = OperationalError("CREATE TABLE", {}, Exception("disk I/O error"))
            with pytest.raises(OperationalError):
                StockBot(config)


class TestPublishCommands:

    @pytest.mark.asyncio
    async def test_set_my_commands(self, bot):
        bot.application = MagicMock()
        bot.application.bot.set_my_commands = AsyncMock()

        await bot.publish_commands()

        published = bot.application.bot.set_my_commands.await_args[0][0]
        assert [c.command for c in published] == ["ping", "stock", "watch", "portfolio"]
