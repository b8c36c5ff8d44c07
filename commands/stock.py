"""
/stock command

Shows the quote of a symbol with a price chart. The "-" and "+" buttons
re-render the chart for the wider or narrower period in place.
"""

import logging

from telegram import InputMediaPhoto, Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from commands.base import Command, reply, split_callback_data
from commands.schemas import MAX_SYMBOL_LENGTH
from cores.periods import DEFAULT_PERIOD, PERIODS, is_supported
from cores.render_pipeline import ComponentBuilder

logger = logging.getLogger(__name__)


class StockCommand(Command):
    name = "stock"
    description = "Show a stock quote and price chart"
    has_callback = True

    usage = f"Usage: /stock SYMBOL [PERIOD]\nPeriods: {', '.join(PERIODS)}"

    def __init__(self, builder: ComponentBuilder):
        self.builder = builder

    async def handle(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        args = context.args or []
        if not args or len(args) > 2:
            await reply(update, self.usage)
            return

        symbol = args[0].upper()
        period = args[1].lower() if len(args) > 1 else DEFAULT_PERIOD
        if len(symbol) > MAX_SYMBOL_LENGTH or not is_supported(period):
            await reply(update, self.usage)
            return

        component = await self.builder.build_stock(symbol, period)
        if component is None:
            await reply(update, f"Error fetching stock {symbol}")
            return

        await update.effective_message.reply_photo(
            photo=component.image.data,
            filename=component.image.name,
            caption=component.caption,
            parse_mode="HTML",
            reply_markup=component.buttons,
        )

    async def handle_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        parts = split_callback_data(query.data)
        if len(parts) != 3 or not is_supported(parts[2]):
            logger.warning(f"Ignoring malformed stock callback: {query.data!r}")
            await query.answer()
            return

        _, symbol, period = parts
        await query.answer()

        component = await self.builder.build_stock(symbol, period)
        if component is None:
            logger.warning(f"Could not re-render {symbol} for {period}")
            return

        try:
            await query.edit_message_media(
                media=InputMediaPhoto(
                    media=component.image.data,
                    filename=component.image.name,
                    caption=component.caption,
                    parse_mode="HTML",
                ),
                reply_markup=component.buttons,
            )
        except TelegramError as e:
            logger.error(f"Error editing stock chart message: {e}")
