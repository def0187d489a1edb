"""
Conversation orchestrator.

Shared by the Telegram bot and the Mini App API. One turn:

    Idle -> AwaitingPersona            (no persona selected, model not called)
    Idle -> Generating -> Splitting -> Delivering -> Idle

Every read-modify-write of a session happens under a per-user lock that is
held for the whole turn, including the completion call and delivery, so two
events for the same user cannot overwrite each other's history.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Optional, Protocol

from app.agents.personas import Persona, find_persona, get_persona
from app.agents.schemas import ChatTurn, Session
from app.config import get_settings
from app.logging_config import app_logger
from app.services.completion import CompletionClient, get_completion_client
from app.services.errors import (
    ChannelClosed,
    CompletionError,
    RateLimited,
    StorageError,
)
from app.services.session_store import SessionStore, get_session_store
from app.utils.pacing import InstantPacer, TypingPacer
from app.utils.splitting import split_message

logger = app_logger.getChild("conversation")

AGE_REQUIRED_TEXT = "🔞 Please confirm your age first: /start"
PERSONA_REQUIRED_TEXT = "Choose your companion first with /start"
RATE_LIMITED_TEXT = "😔 Too many messages right now. Please try again in a minute."
FAILURE_TEXT = "😔 Something went wrong. Please try again."


class TurnOutcome(str, Enum):
    REPLIED = "replied"
    AGE_UNCONFIRMED = "age_unconfirmed"
    AWAITING_PERSONA = "awaiting_persona"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass
class TurnResult:
    outcome: TurnOutcome
    text: str  # full reply, or the notice shown instead of one
    parts: list[str] = field(default_factory=list)
    message_ids: list[int] = field(default_factory=list)


class DeliveryChannel(Protocol):
    """Where replies go. The Mini App API runs turns without one."""

    async def send_typing(self) -> None: ...

    async def send_text(self, text: str) -> Optional[int]: ...

    async def delete_message(self, message_id: int) -> None: ...


class UserLocks:
    """asyncio.Lock per user id, dropped again once nobody holds or waits for it."""

    def __init__(self):
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._users[user_id] = self._users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[user_id] -= 1
            if not self._users[user_id]:
                del self._users[user_id]
                del self._locks[user_id]

    def __len__(self) -> int:
        return len(self._locks)


class ConversationService:
    """Turn pipeline over an injected session store and completion client."""

    def __init__(self, store: SessionStore, completion: CompletionClient, pacer=None):
        self.store = store
        self.completion = completion
        self.pacer = pacer or InstantPacer()
        self.locks = UserLocks()

    # ------------------------------------------------------------------
    # Storage with a single retry
    # ------------------------------------------------------------------

    async def _load(self, user_id: int) -> Session:
        try:
            return await self.store.get(user_id)
        except StorageError as e:
            logger.warning(f"Session read failed for user_id={user_id}, retrying: {e}")
            return await self.store.get(user_id)

    async def _save(self, session: Session) -> None:
        try:
            await self.store.put(session.user_id, session)
        except StorageError as e:
            logger.warning(f"Session write failed for user_id={session.user_id}, retrying: {e}")
            await self.store.put(session.user_id, session)

    @asynccontextmanager
    async def _editing(self, user_id: int) -> AsyncIterator[Session]:
        """Locked read-modify-write: the session is persisted when the block exits cleanly."""
        async with self.locks.hold(user_id):
            session = await self._load(user_id)
            yield session
            await self._save(session)

    # ------------------------------------------------------------------
    # Session operations
    # ------------------------------------------------------------------

    async def get_session(self, user_id: int) -> Session:
        async with self.locks.hold(user_id):
            return await self._load(user_id)

    async def confirm_age(self, user_id: int) -> Session:
        async with self._editing(user_id) as session:
            session.age_confirmed = True
        logger.info(f"Age confirmed for user_id={user_id}")
        return session

    async def select_persona(self, user_id: int, persona_id: str) -> Persona:
        """Raises UnknownPersona for ids outside the catalog."""
        persona = get_persona(persona_id)
        async with self._editing(user_id) as session:
            session.persona = persona.id
        logger.info(f"User user_id={user_id} selected persona={persona.id}")
        return persona

    async def record_outbound(self, user_id: int, message_id: Optional[int]) -> None:
        if message_id is None:
            return
        async with self._editing(user_id) as session:
            session.outbound_message_ids.append(message_id)

    async def record_inbound(self, user_id: int, message_id: Optional[int]) -> None:
        """Remember a user message (e.g. a command) for deletion on clear."""
        if message_id is None:
            return
        async with self._editing(user_id) as session:
            session.inbound_message_ids.append(message_id)

    async def clear_history(self, user_id: int, channel: Optional[DeliveryChannel] = None) -> Session:
        """
        Delete recorded messages from the channel (best-effort) and reset history.

        Persona and age confirmation are kept.
        """
        async with self._editing(user_id) as session:
            if channel is not None:
                for message_id in [*session.outbound_message_ids, *session.inbound_message_ids]:
                    try:
                        await channel.delete_message(message_id)
                    except Exception as e:
                        logger.warning(f"Failed to delete message_id={message_id} for user_id={user_id}: {e}")
            session.clear()

        logger.info(f"History cleared for user_id={user_id}")
        return session

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------

    async def converse(
        self,
        user_id: int,
        text: str,
        channel: Optional[DeliveryChannel] = None,
        persona_id: Optional[str] = None,
        inbound_message_id: Optional[int] = None,
        require_age_confirmation: bool = False,
    ) -> TurnResult:
        """
        Run one turn for `user_id`.

        Args:
            user_id: Telegram user id
            text: Inbound user message
            channel: Delivery target for parts and notices; None returns them only
            persona_id: Persona to switch to before the turn (Mini App)
            inbound_message_id: Telegram id of the user's message, for later deletion
            require_age_confirmation: Enforce the age gate (Telegram bot)

        Returns:
            TurnResult with the outcome and, on success, the unsplit reply and its parts
        """
        if persona_id is not None:
            # Validate before taking the lock so bad input never touches the session
            get_persona(persona_id)

        async with self.locks.hold(user_id):
            try:
                session = await self._load(user_id)
            except StorageError as e:
                logger.error(f"Cannot load session for user_id={user_id}: {e}")
                return await self._notify(channel, TurnOutcome.FAILED, FAILURE_TEXT)

            if persona_id is not None:
                session.persona = persona_id

            if require_age_confirmation and not session.age_confirmed:
                return await self._notify(channel, TurnOutcome.AGE_UNCONFIRMED, AGE_REQUIRED_TEXT, session)

            persona = find_persona(session.persona)
            if persona is None:
                logger.info(f"No persona selected for user_id={user_id}")
                return await self._notify(channel, TurnOutcome.AWAITING_PERSONA, PERSONA_REQUIRED_TEXT, session)

            return await self._run_turn(session, persona, text, channel, inbound_message_id)

    async def _run_turn(
        self,
        session: Session,
        persona: Persona,
        text: str,
        channel: Optional[DeliveryChannel],
        inbound_message_id: Optional[int],
    ) -> TurnResult:
        user_id = session.user_id
        prior_history = list(session.history)

        session.history.append(ChatTurn(role="user", content=text))
        if inbound_message_id is not None:
            session.inbound_message_ids.append(inbound_message_id)

        try:
            await self._save(session)
        except StorageError as e:
            logger.error(f"Cannot persist user turn for user_id={user_id}: {e}")
            return await self._notify(channel, TurnOutcome.FAILED, FAILURE_TEXT)

        # Generating
        if channel is not None:
            try:
                await self._send_typing(channel)
            except ChannelClosed as e:
                # The reply still goes into history, it is just not delivered
                logger.warning(f"Channel closed for user_id={user_id}, reply will not be delivered: {e}")
                channel = None

        logger.info(f"Generating reply for user_id={user_id}, persona={persona.id}, history_len={len(prior_history)}")
        try:
            reply = await self.completion.complete(persona.system_prompt, prior_history, text)
        except RateLimited as e:
            logger.warning(f"Rate limited for user_id={user_id}: {e}")
            return await self._notify(channel, TurnOutcome.RATE_LIMITED, RATE_LIMITED_TEXT, session)
        except CompletionError as e:
            logger.error(f"Completion failed for user_id={user_id}: {e}")
            return await self._notify(channel, TurnOutcome.FAILED, FAILURE_TEXT, session)

        # The unsplit reply is what the model said; splitting is presentation only
        session.history.append(ChatTurn(role="assistant", content=reply))
        try:
            await self._save(session)
        except StorageError as e:
            logger.error(f"Cannot persist assistant turn for user_id={user_id}: {e}")
            return await self._notify(channel, TurnOutcome.FAILED, FAILURE_TEXT)

        # Splitting
        parts = split_message(reply)
        result = TurnResult(outcome=TurnOutcome.REPLIED, text=reply, parts=parts)

        # Delivering
        if channel is not None:
            await self._deliver(session, parts, channel, result.message_ids)

        logger.info(f"Turn complete for user_id={user_id}: {len(parts)} part(s)")
        return result

    async def _deliver(
        self,
        session: Session,
        parts: list[str],
        channel: DeliveryChannel,
        sent_ids: list[int],
    ) -> None:
        """Send parts in order with typing pauses; recorded ids are persisted even if interrupted."""
        try:
            for index, part in enumerate(parts):
                if index > 0:
                    await self._send_typing(channel)
                    await self.pacer.pause_before(part)

                message_id = await channel.send_text(part)
                if message_id is not None:
                    sent_ids.append(message_id)
                    session.outbound_message_ids.append(message_id)
        except ChannelClosed as e:
            logger.warning(f"Delivery stopped for user_id={session.user_id}: {e}")
        finally:
            if sent_ids:
                try:
                    await self._save(session)
                except StorageError as e:
                    logger.error(f"Cannot persist sent message ids for user_id={session.user_id}: {e}")

    async def _send_typing(self, channel: DeliveryChannel) -> None:
        try:
            await channel.send_typing()
        except ChannelClosed:
            raise
        except Exception as e:
            logger.debug(f"Typing indicator failed: {e}")

    async def _notify(
        self,
        channel: Optional[DeliveryChannel],
        outcome: TurnOutcome,
        text: str,
        session: Optional[Session] = None,
    ) -> TurnResult:
        """Deliver a notice instead of a reply. Notices never enter history."""
        result = TurnResult(outcome=outcome, text=text)
        if channel is None:
            return result

        try:
            message_id = await channel.send_text(text)
        except ChannelClosed as e:
            logger.warning(f"Cannot deliver notice: {e}")
            return result

        if message_id is not None:
            result.message_ids.append(message_id)
            if session is not None:
                session.outbound_message_ids.append(message_id)
                try:
                    await self._save(session)
                except StorageError as e:
                    logger.error(f"Cannot persist notice id for user_id={session.user_id}: {e}")
        return result


# Global instance
_conversation_service: Optional[ConversationService] = None


def get_conversation_service() -> ConversationService:
    """Get or create conversation service wired from settings."""
    global _conversation_service
    if _conversation_service is None:
        settings = get_settings()
        pacer = TypingPacer(
            min_delay=settings.typing_min_delay,
            max_delay=settings.typing_max_delay,
            seconds_per_char=settings.typing_seconds_per_char,
            jitter=settings.typing_jitter,
        )
        _conversation_service = ConversationService(
            store=get_session_store(),
            completion=get_completion_client(),
            pacer=pacer,
        )
    return _conversation_service
