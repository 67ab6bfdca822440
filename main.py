"""Echo bot: runs the long-poll loop and answers every text message.

Usage::

    BOT_TOKEN=123:abc python main.py
"""

import asyncio

from config import API_HOST, BOT_TOKEN, POLLING_TIMEOUT, REQUEST_TIMEOUT, UPDATE_INTERVAL
from core.logger import BotLogger
from botapi import Bot
from botapi.models import Message, User, chat_id_for

logger = BotLogger.get_logger("app")

_SHUTDOWN_TIMEOUT = 5.0


def make_echo_handler(bot: Bot):
    """Return a message handler that echoes text back to its sender."""

    def echo(update_id: int, message: Message) -> None:
        logger.info(
            "Message received",
            extra={"update_id": update_id, "chat_id": message.chat.id, "text_preview": (message.text or "")[:80]},
        )
        if not message.text:
            return
        if not bot.send_message(chat_id_for(message), message.text, reply_to_message_id=message.message_id):
            logger.warning("Could not send echo", extra={"update_id": update_id})

    return echo


def _log_identity(user: User | None) -> None:
    if user is None:
        logger.error("getMe failed, check BOT_TOKEN")
    else:
        logger.info("Bot identity resolved", extra={"bot_id": user.id, "username": user.username})


async def run() -> None:
    """Start the bot and poll until cancelled.

    Raises:
        EnvironmentError: If ``BOT_TOKEN`` is not set.
    """
    if not BOT_TOKEN:
        raise EnvironmentError("BOT_TOKEN environment variable is not set or is empty.")

    bot = Bot(
        BOT_TOKEN,
        update_interval=UPDATE_INTERVAL,
        polling_timeout=POLLING_TIMEOUT,
        host=API_HOST,
        timeout=REQUEST_TIMEOUT,
    )
    bot.add_message_handler(make_echo_handler(bot))

    logger.info("Echo bot is running. Polling for updates...")
    try:
        bot.start_polling()
        bot.get_me(callback=_log_identity)
        await asyncio.Event().wait()
    finally:
        await bot.aclose(timeout=_SHUTDOWN_TIMEOUT)
        logger.info("Echo bot stopped")


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
    finally:
        BotLogger().cleanup()


if __name__ == "__main__":
    main()
