"""
Telegram message and command handlers.

ARCHITECTURE: Thin adapter over ConversationService.
- Handlers translate updates into service calls
- All session state changes go through the service (per-user locked)
- Replies to the conversation go out through TelegramChannel

Flow for a new user:
/start → 18+ confirmation → persona keyboard → free chat

Callback data:
- age_ok / age_no: age confirmation
- select_{persona_id}: persona selection
"""

from telegram import Update
from telegram.ext import ContextTypes

from app.agents.personas import PERSONAS, find_persona
from app.logging_config import bot_logger as logger
from app.services.conversation import get_conversation_service
from app.services.errors import UnknownPersona
from .channel import TelegramChannel
from .telegram_api import send_message, send_message_with_buttons

AGE_PROMPT_TEXT = (
    "🔞 Welcome to Passion Bot. This bot is intended for users 18+ only.\n\n"
    "Are you 18 or older?"
)
AGE_CONFIRMED_TEXT = "✅ Great. Now choose your companion:"
AGE_REJECTED_TEXT = "❌ Sorry, this bot is available to adults only."
PERSONA_MENU_TEXT = "Choose your companion:\n\n"


async def show_persona_selection(chat_id: int, user_id: int) -> None:
    """Send the persona keyboard and remember it for /clear."""
    text = PERSONA_MENU_TEXT + "\n".join(
        f"• {persona.name} - {persona.tagline}" for persona in PERSONAS
    )
    keyboard = [
        [{"text": persona.name, "callback_data": f"select_{persona.id}"}]
        for persona in PERSONAS
    ]

    message_id = await send_message_with_buttons(chat_id, text, keyboard)
    await get_conversation_service().record_outbound(user_id, message_id)


async def handle_start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /start command.

    - Age confirmed + persona chosen: welcome back
    - Age confirmed only: persona keyboard
    - Otherwise: 18+ confirmation
    """
    user = update.effective_user
    chat_id = update.effective_chat.id
    service = get_conversation_service()

    await service.record_inbound(user.id, update.effective_message.message_id)
    session = await service.get_session(user.id)
    persona = find_persona(session.persona)

    logger.info(f"/start from user_id={user.id}, age_confirmed={session.age_confirmed}, persona={session.persona}")

    if session.age_confirmed and persona:
        message_id = await send_message(chat_id, f"🎉 Welcome back! Your companion: {persona.name}")
        await service.record_outbound(user.id, message_id)
        return

    if session.age_confirmed:
        await show_persona_selection(chat_id, user.id)
        return

    message_id = await send_message_with_buttons(
        chat_id,
        AGE_PROMPT_TEXT,
        [
            [{"text": "✅ Yes, I'm 18+", "callback_data": "age_ok"}],
            [{"text": "❌ No", "callback_data": "age_no"}],
        ]
    )
    await service.record_outbound(user.id, message_id)


async def handle_help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    help_text = """📖 <b>How it works</b>

Choose a companion and just write to them, they answer in several short messages, like a real person typing.

<b>Commands:</b>
/start - choose or show your companion
/clear - delete the conversation and start fresh
/help - this help

You can also chat in the Mini App via the menu button 👇"""

    user = update.effective_user
    service = get_conversation_service()

    await service.record_inbound(user.id, update.effective_message.message_id)
    message_id = await send_message(update.effective_chat.id, help_text, parse_mode="HTML")
    await service.record_outbound(user.id, message_id)


async def handle_clear_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /clear command - delete sent messages (the command included) and reset history."""
    user = update.effective_user
    chat_id = update.effective_chat.id
    service = get_conversation_service()

    await service.record_inbound(user.id, update.effective_message.message_id)
    await service.clear_history(user.id, TelegramChannel(chat_id))

    # Kept for the next /clear
    message_id = await send_message(chat_id, "🗑️ History cleared!")
    await service.record_outbound(user.id, message_id)


async def handle_text_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle incoming text message: one conversation turn."""
    user = update.effective_user
    message = update.effective_message
    chat_id = update.effective_chat.id

    logger.info(f"Received message from user_id={user.id}, username={user.username}, text_len={len(message.text)}")

    result = await get_conversation_service().converse(
        user.id,
        message.text,
        channel=TelegramChannel(chat_id),
        inbound_message_id=message.message_id,
        require_age_confirmation=True,
    )

    logger.info(f"Turn for user_id={user.id} finished: outcome={result.outcome.value}, parts={len(result.parts)}")


async def handle_callback_query(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle inline keyboard button callbacks.

    Actions:
    - age_ok, age_no: age confirmation
    - select_{persona_id}: persona selection
    """
    query = update.callback_query
    user = update.effective_user
    callback_data = query.data or ""
    chat_id = query.message.chat_id
    service = get_conversation_service()

    logger.info(f"Callback from user_id={user.id}: {callback_data}")

    if callback_data == "age_ok":
        await query.answer()
        await service.confirm_age(user.id)
        await query.edit_message_text(AGE_CONFIRMED_TEXT)
        await show_persona_selection(chat_id, user.id)
        return

    if callback_data == "age_no":
        await query.answer()
        await query.edit_message_text(AGE_REJECTED_TEXT)
        return

    if callback_data.startswith("select_"):
        persona_id = callback_data[len("select_"):]
        try:
            persona = await service.select_persona(user.id, persona_id)
        except UnknownPersona:
            logger.warning(f"Unknown persona in callback: {persona_id}")
            await query.answer("This companion is no longer available", show_alert=True)
            return

        await query.answer()
        await query.edit_message_text(
            f"✅ Your companion: {persona.name}\n\nNow write me anything 😉"
        )
        return

    logger.warning(f"Unhandled callback_data={callback_data}")
    await query.answer()


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle errors in handlers."""
    logger.error(f"Bot error: {context.error}", exc_info=context.error)

    if isinstance(update, Update) and update.effective_message:
        await update.effective_message.reply_text(
            "😔 Something went wrong.\n"
            "Try again or use /help"
        )
