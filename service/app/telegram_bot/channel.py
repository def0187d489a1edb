from typing import Optional

from . import telegram_api


class TelegramChannel:
    """Delivers conversation output to one Telegram chat."""

    def __init__(self, chat_id: int):
        self.chat_id = chat_id

    async def send_typing(self) -> None:
        await telegram_api.send_chat_action(self.chat_id, "typing")

    async def send_text(self, text: str) -> Optional[int]:
        return await telegram_api.send_message(self.chat_id, text)

    async def delete_message(self, message_id: int) -> None:
        await telegram_api.delete_message(self.chat_id, message_id)
