from telegram import Update
from telegram.ext import ContextTypes

from commands.base import Command


class PingCommand(Command):
    name = "ping"
    description = "Check that the bot is alive"

    async def handle(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await update.effective_message.reply_text("Pong")
