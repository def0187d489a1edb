"""
Telegram Bot module for Passion Chat.

ARCHITECTURE: Thin routing layer - NO business logic duplication!
- Receives webhook from Telegram
- Routes commands, callbacks and text to ConversationService
- Delivers split replies back through the Bot API

The Mini App API (/api/chat) drives the same ConversationService against
the same session store, so both front doors share one history per user.
"""

from .bot import handle_telegram_update, initialize_bot, shutdown_bot
from .channel import TelegramChannel

__all__ = [
    "handle_telegram_update",
    "initialize_bot",
    "shutdown_bot",
    "TelegramChannel",
]
