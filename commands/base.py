"""
Base class and shared helpers for bot commands.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from telegram import Update
from telegram.ext import ContextTypes

from cores.utils import run_blocking
from tracking.onboarding import SymbolTracker

logger = logging.getLogger(__name__)

CALLBACK_SEPARATOR = ";"


class Command(ABC):
    """
    A slash command of the bot.

    Commands with inline buttons set `has_callback` and implement
    `handle_callback`; their callback data starts with "{name};".
    """

    name: str = ""
    description: str = ""
    has_callback: bool = False

    @property
    def callback_pattern(self) -> str:
        return f"^{self.name}{CALLBACK_SEPARATOR}"

    @abstractmethod
    async def handle(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle the slash command."""

    async def handle_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle a button press on one of this command's messages."""
        raise NotImplementedError(f"/{self.name} has no buttons")


def split_callback_data(data: Optional[str]) -> List[str]:
    return (data or "").split(CALLBACK_SEPARATOR)


def user_key(update: Update) -> str:
    """Store key of the user who sent the update."""
    return str(update.effective_user.id)


async def reply(update: Update, text: str, parse_mode: Optional[str] = None):
    await update.effective_message.reply_text(text, parse_mode=parse_mode)


async def ensure_tracked(tracker: SymbolTracker, symbol: str, timeout: Optional[float] = None) -> int:
    """
    Register and backfill a symbol before a user starts following it.

    Failures are logged; the caller still stores the user's entry and the
    daily refresh picks the symbol up later.
    """
    try:
        return await run_blocking(tracker.ensure_tracked, symbol, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Backfill of {symbol} still running after {timeout}s")
    except SQLAlchemyError as e:
        logger.error(f"Error tracking {symbol}: {e}")
    return 0
