"""
Telegram Bot API client for outbound calls.

Used for reply delivery and message deletion, which also happen outside of
an update handler (e.g. history clear from the Mini App).
"""

import httpx
from typing import Optional

from app.config import get_settings
from app.services.errors import ChannelClosed

TELEGRAM_TIMEOUT = 15.0


def _method_url(method: str) -> str:
    settings = get_settings()
    return f"https://api.telegram.org/bot{settings.telegram_bot_token}/{method}"


async def _call(method: str, payload: dict) -> dict:
    async with httpx.AsyncClient(timeout=TELEGRAM_TIMEOUT) as client:
        response = await client.post(_method_url(method), json=payload)

    if response.status_code == 403:
        # Bot was blocked or kicked: nothing more can be delivered to this chat
        raise ChannelClosed(f"{method} forbidden: {response.text[:200]}")

    response.raise_for_status()
    return response.json()


async def send_message(chat_id: int, text: str, parse_mode: Optional[str] = None) -> int:
    """
    Send message to Telegram user.

    Args:
        chat_id: Telegram chat ID
        text: Message text
        parse_mode: Optional parse mode (Markdown, HTML)

    Returns:
        message_id of the sent message
    """
    payload = {
        "chat_id": chat_id,
        "text": text
    }

    if parse_mode:
        payload["parse_mode"] = parse_mode

    data = await _call("sendMessage", payload)
    return data["result"]["message_id"]


async def send_chat_action(chat_id: int, action: str = "typing") -> None:
    """
    Send chat action (typing indicator).

    Args:
        chat_id: Telegram chat ID
        action: Action type (typing, upload_photo, etc.)
    """
    await _call("sendChatAction", {"chat_id": chat_id, "action": action})


async def send_message_with_buttons(
    chat_id: int,
    text: str,
    buttons: list[list[dict]],
    parse_mode: Optional[str] = None
) -> int:
    """
    Send message with inline keyboard buttons.

    Args:
        chat_id: Telegram chat ID
        text: Message text
        buttons: 2D array of button dicts, each with 'text' and 'callback_data'
                 Example: [[{"text": "Yes", "callback_data": "age_ok"}]]
        parse_mode: Optional parse mode (Markdown, HTML)

    Returns:
        message_id of the sent message
    """
    payload = {
        "chat_id": chat_id,
        "text": text,
        "reply_markup": {
            "inline_keyboard": buttons
        }
    }

    if parse_mode:
        payload["parse_mode"] = parse_mode

    data = await _call("sendMessage", payload)
    return data["result"]["message_id"]


async def delete_message(chat_id: int, message_id: int) -> None:
    """Delete a message. Telegram only allows this for messages younger than 48h."""
    await _call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})
