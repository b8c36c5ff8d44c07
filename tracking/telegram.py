"""
Telegram sender for price alerts

Direct messages to users. Delivery is fire-and-forget: failures are logged
and reported as False, never raised.
"""

import logging
from typing import Optional

from telegram import Bot
from telegram.error import TelegramError

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4096


class AlertNotifier:
    """Sends direct messages through the bot."""

    def __init__(self, bot: Optional[Bot]):
        """
        Initialize AlertNotifier.

        Args:
            bot: Telegram Bot instance (or None if not configured)
        """
        self.bot = bot

    async def send_direct(self, user_id: str, text: str) -> bool:
        """
        Send a text message to a user's private chat.

        Args:
            user_id: Telegram user ID
            text: Message text

        Returns:
            bool: Send success status
        """
        if not self.bot:
            logger.warning("Telegram bot not initialized")
            logger.info(f"[Message (bot not initialized)] {text[:100]}...")
            return False

        try:
            chat_id = int(user_id)
        except (TypeError, ValueError):
            logger.error(f"Invalid Telegram user ID: {user_id!r}")
            return False

        try:
            await self.bot.send_message(chat_id=chat_id, text=text[:MAX_MESSAGE_LENGTH])
            logger.info(f"Direct message sent: {user_id}")
            return True
        except TelegramError as e:
            logger.error(f"Direct message to {user_id} failed: {e}")
            return False
