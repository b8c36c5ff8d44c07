"""
/portfolio command

Keeps a user's holdings and shows one chart per holding. Each chart has its
own "-"/"+" buttons; pressing one re-renders only that holding.
"""

import logging
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from telegram import InputMediaPhoto, Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from commands.base import Command, ensure_tracked, reply, split_callback_data, user_key
from commands.schemas import PortfolioRequest
from cores.periods import is_supported
from cores.render_pipeline import PORTFOLIO_PERIOD, ComponentBuilder
from cores.utils import run_blocking
from tracking.models import PortfolioEntry
from tracking.onboarding import SymbolTracker
from tracking.store import PriceStore

logger = logging.getLogger(__name__)


class PortfolioCommand(Command):
    name = "portfolio"
    description = "Manage and show your portfolio"
    has_callback = True

    usage = (
        "Usage:\n"
        "/portfolio add SYMBOL SHARES\n"
        "/portfolio update SYMBOL SHARES\n"
        "/portfolio show\n"
        "/portfolio remove SYMBOL"
    )

    def __init__(
        self,
        store: PriceStore,
        tracker: SymbolTracker,
        builder: ComponentBuilder,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.tracker = tracker
        self.builder = builder
        self.timeout = timeout

    async def handle(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        args = context.args or []
        action = args[0].lower() if args else ""
        user_id = user_key(update)

        if action in ("add", "update"):
            await self._add(update, user_id, args[1:])
        elif action == "show" and len(args) == 1:
            await self._show(update, user_id)
        elif action == "remove" and len(args) == 2:
            await self._remove(update, user_id, args[1])
        else:
            await reply(update, self.usage)

    async def _add(self, update: Update, user_id: str, args: List[str]):
        if len(args) != 2:
            await reply(update, self.usage)
            return

        try:
            request = PortfolioRequest(symbol=args[0], shares=args[1])
        except ValidationError as e:
            logger.debug(f"Invalid /portfolio arguments {args}: {e}")
            await reply(update, self.usage)
            return

        await ensure_tracked(self.tracker, request.symbol, timeout=self.timeout)

        try:
            await run_blocking(self.store.upsert_portfolio_entry, PortfolioEntry(
                user_id=user_id,
                symbol=request.symbol,
                shares=request.shares,
            ))
        except SQLAlchemyError as e:
            logger.error(f"Error adding the stock: {e}")
            await reply(update, "error adding the stock")
            return

        await reply(update, "Successfully added the stock to your portfolio")

    async def _show(self, update: Update, user_id: str):
        try:
            entries = await run_blocking(self.store.get_portfolio, user_id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching portfolio: {e}")
            await reply(update, "error fetching your portfolio")
            return

        if not entries:
            await reply(update, "No stock in your portfolio yet")
            return

        components = await self.builder.build_portfolio(entries, PORTFOLIO_PERIOD)
        if not components:
            await reply(update, "error rendering your portfolio")
            return

        for component in components:
            await update.effective_message.reply_photo(
                photo=component.image.data,
                filename=component.image.name,
                caption=component.caption,
                parse_mode="HTML",
                reply_markup=component.buttons,
            )

    async def _remove(self, update: Update, user_id: str, symbol: str):
        symbol = symbol.upper()
        try:
            removed = await run_blocking(self.store.remove_portfolio_entry, user_id, symbol)
        except SQLAlchemyError as e:
            logger.error(f"Error deleting the portfolio entry: {e}")
            await reply(update, "error removing the stock from the portfolio")
            return

        if not removed:
            await reply(update, f"{symbol} is not in your portfolio")
            return
        await reply(update, "Successfully removed the stock from the portfolio")

    async def handle_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        parts = split_callback_data(query.data)
        if len(parts) != 4 or not parts[1].isdigit() or not is_supported(parts[3]):
            logger.warning(f"Ignoring malformed portfolio callback: {query.data!r}")
            await query.answer()
            return

        index, symbol, period = int(parts[1]), parts[2], parts[3]

        # only the presser's own holding is re-rendered
        try:
            entry = await run_blocking(self.store.get_portfolio_entry, str(query.from_user.id), symbol)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching portfolio: {e}")
            await query.answer()
            return

        if entry is None:
            await query.answer(f"{symbol} is not in your portfolio")
            return
        await query.answer()

        component = await self.builder.build_holding(index, entry, period)
        if component is None:
            logger.warning(f"Could not re-render holding {symbol} for {period}")
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
            logger.error(f"Error editing portfolio chart message: {e}")
