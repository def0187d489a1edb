"""
Mini App chat API.

The front-end re-splits and paces `response` itself; `parts` is the
server-side split for clients that do not.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.agents.personas import PERSONAS
from app.agents.schemas import (
    ChatHistoryResponse,
    ChatPostRequest,
    ChatPostResponse,
    ClearResponse,
    PersonaInfo,
)
from app.config import get_settings
from app.logging_config import app_logger
from app.middleware.auth import resolve_user_id
from app.services.conversation import ConversationService, get_conversation_service
from app.services.errors import UnknownPersona
from app.telegram_bot.channel import TelegramChannel

logger = app_logger.getChild("api.chat")

# Rate limiter for expensive endpoints
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/api", tags=["chat"])


def chat_rate_limit() -> str:
    """Read per request so the limit follows current settings."""
    return get_settings().chat_rate_limit


def get_clear_channel():
    """Factory for the channel used to delete the user's Telegram messages on clear."""
    def make_channel(user_id: int) -> Optional[TelegramChannel]:
        # Private chat id equals the user id; the placeholder dev user has no chat
        if user_id == get_settings().dev_user_id:
            return None
        return TelegramChannel(chat_id=user_id)
    return make_channel


@router.get("/chat", response_model=ChatHistoryResponse)
async def get_chat_history(
    init_data: Optional[str] = Query(None, alias="initData"),
    service: ConversationService = Depends(get_conversation_service),
):
    """Return the stored conversation and selected persona for the Mini App user."""
    user_id = resolve_user_id(init_data)
    session = await service.get_session(user_id)

    return ChatHistoryResponse(messages=session.history, avatar_id=session.persona)


@router.post("/chat", response_model=ChatPostResponse)
@limiter.limit(chat_rate_limit)  # Per client IP, CHAT_RATE_LIMIT
async def post_chat_message(
    request: Request,  # Required for rate limiter
    chat_request: ChatPostRequest,
    service: ConversationService = Depends(get_conversation_service),
):
    """
    Run one conversation turn and return the unsplit reply.

    Provider failures come back as a user-visible apology in `response`
    with the matching `outcome`, not as an HTTP error.
    """
    user_id = resolve_user_id(chat_request.init_data)

    message = (chat_request.message or "").strip()
    if not message or not chat_request.avatar_id:
        raise HTTPException(status_code=400, detail="Missing required fields")

    try:
        result = await service.converse(
            user_id,
            message,
            persona_id=chat_request.avatar_id,
        )
    except UnknownPersona:
        raise HTTPException(status_code=400, detail="Invalid avatar ID")

    logger.info(f"Mini App turn for user_id={user_id}: outcome={result.outcome.value}")

    return ChatPostResponse(
        response=result.text,
        parts=result.parts,
        outcome=result.outcome.value,
    )


@router.delete("/chat", response_model=ClearResponse)
async def clear_chat_history(
    init_data: Optional[str] = Query(None, alias="initData"),
    service: ConversationService = Depends(get_conversation_service),
    make_channel=Depends(get_clear_channel),
):
    """Clear the conversation, deleting the bot's Telegram messages where possible."""
    user_id = resolve_user_id(init_data)
    await service.clear_history(user_id, make_channel(user_id))

    return ClearResponse(success=True)


@router.get("/personas", response_model=list[PersonaInfo])
async def list_personas():
    """Persona catalog for the selection screen."""
    return [
        PersonaInfo(
            id=persona.id,
            name=persona.name,
            tagline=persona.tagline,
            background_image=persona.background_image,
        )
        for persona in PERSONAS
    ]
