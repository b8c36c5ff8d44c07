"""
/watch command

One-time price alerts. Adding or updating an alert makes sure the symbol is
tracked; the alert loop delivers the message once the target is crossed.
"""

import html
import logging
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from telegram import Update
from telegram.ext import ContextTypes

from commands.base import Command, ensure_tracked, reply, user_key
from cores.utils import run_blocking
from commands.schemas import WatchRequest
from tracking.models import WatchlistEntry
from tracking.onboarding import SymbolTracker
from tracking.store import PriceStore

logger = logging.getLogger(__name__)


class WatchCommand(Command):
    name = "watch"
    description = "Manage your price alerts"

    usage = (
        "Usage:\n"
        "/watch add SYMBOL PRICE above|below\n"
        "/watch update SYMBOL PRICE above|below\n"
        "/watch list\n"
        "/watch remove SYMBOL"
    )

    def __init__(self, store: PriceStore, tracker: SymbolTracker, timeout: Optional[float] = None):
        self.store = store
        self.tracker = tracker
        self.timeout = timeout

    async def handle(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        args = context.args or []
        action = args[0].lower() if args else ""
        user_id = user_key(update)

        if action in ("add", "update"):
            await self._add(update, user_id, args[1:])
        elif action == "list" and len(args) == 1:
            await self._list(update, user_id)
        elif action == "remove" and len(args) == 2:
            await self._remove(update, user_id, args[1])
        else:
            await reply(update, self.usage)

    async def _add(self, update: Update, user_id: str, args: List[str]):
        if len(args) != 3:
            await reply(update, self.usage)
            return

        try:
            request = WatchRequest(symbol=args[0], price_target=args[1], direction=args[2])
        except ValidationError as e:
            logger.debug(f"Invalid /watch arguments {args}: {e}")
            await reply(update, self.usage)
            return

        await ensure_tracked(self.tracker, request.symbol, timeout=self.timeout)

        try:
            await run_blocking(self.store.upsert_watchlist_entry, WatchlistEntry(
                user_id=user_id,
                symbol=request.symbol,
                price_target=request.price_target,
                direction=request.direction,
            ))
        except SQLAlchemyError as e:
            logger.error(f"Error adding the watchlist: {e}")
            await reply(update, "error adding the watched stock")
            return

        await reply(update, "Successfully added the watched stock")

    async def _list(self, update: Update, user_id: str):
        try:
            entries = await run_blocking(self.store.get_user_watchlist, user_id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching watchlists: {e}")
            await reply(update, "error fetching your watched stocks")
            return

        if not entries:
            await reply(update, "No watched stock yet")
            return

        lines = ["<b>Watched Stocks</b>"]
        for entry in entries:
            line = f"<b>{html.escape(entry.symbol)}</b>: {entry.direction.value} {entry.price_target:.2f}"
            if entry.triggered:
                line += " (triggered)"
            lines.append(line)
        await reply(update, "\n".join(lines), parse_mode="HTML")

    async def _remove(self, update: Update, user_id: str, symbol: str):
        symbol = symbol.upper()
        try:
            removed = await run_blocking(self.store.remove_watchlist_entry, user_id, symbol)
        except SQLAlchemyError as e:
            logger.error(f"Error deleting the watchlist: {e}")
            await reply(update, "error removing the watched stock")
            return

        if not removed:
            await reply(update, f"{symbol} is not in your watchlist")
            return
        await reply(update, "Successfully removed the watched stock")
