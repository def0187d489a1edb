"""
Chat-completion client.

One request per call to an OpenAI-compatible endpoint (OpenRouter by
default). Provider failures are normalized into RateLimited, ProviderError
and EmptyCompletion; a transient network failure is retried once.
"""

from typing import Optional, Sequence

import openai
from openai import AsyncOpenAI

from app.agents.schemas import ChatTurn
from app.config import get_settings
from app.logging_config import app_logger
from app.services.errors import EmptyCompletion, ProviderError, RateLimited

logger = app_logger.getChild("completion")

NETWORK_ATTEMPTS = 2  # first try + one retry on connection errors / timeouts


def build_messages(system_prompt: str, history: Sequence[ChatTurn], user_message: str) -> list[dict]:
    messages = [{"role": "system", "content": system_prompt}]
    messages.extend({"role": turn.role, "content": turn.content} for turn in history)
    messages.append({"role": "user", "content": user_message})
    return messages


def _raise_for_error_body(error: dict) -> None:
    """OpenRouter can report failures inside a 200 body."""
    code = error.get("code")
    message = error.get("message") or "Unknown provider error"
    if code == 429 or str(code) == "429":
        raise RateLimited(message)
    raise ProviderError(message)


class CompletionClient:
    """Stateless wrapper around chat.completions.create."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        model: str = "x-ai/grok-4.1-fast:free",
        max_tokens: int = 512,
        temperature: float = 0.9,
        timeout: float = 30.0,
        referer: Optional[str] = None,
        title: Optional[str] = None,
        client=None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

        if client is None:
            headers = {}
            if referer:
                headers["HTTP-Referer"] = referer
            if title:
                headers["X-Title"] = title
            client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url,
                timeout=timeout,
                max_retries=0,  # retries are handled below
                default_headers=headers,
            )
        self.client = client

    async def complete(self, system_prompt: str, history: Sequence[ChatTurn], user_message: str) -> str:
        """
        Generate the assistant reply for `user_message`.

        Args:
            system_prompt: Persona instructions with the splitting directive
            history: Prior turns, oldest first (without the current message)
            user_message: The latest user turn

        Returns:
            Raw completion text (not split)
        """
        messages = build_messages(system_prompt, history, user_message)

        for attempt in range(1, NETWORK_ATTEMPTS + 1):
            try:
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                )
                break
            except openai.RateLimitError as e:
                raise RateLimited(str(e)) from e
            except openai.APIConnectionError as e:
                # Also covers APITimeoutError
                if attempt < NETWORK_ATTEMPTS:
                    logger.warning(f"Completion request failed ({e}), retrying")
                    continue
                raise ProviderError(f"Completion provider unreachable: {e}") from e
            except openai.APIStatusError as e:
                if e.status_code == 429:
                    raise RateLimited(str(e)) from e
                raise ProviderError(f"OpenRouter error: {e.message}") from e

        extra = getattr(response, "model_extra", None) or {}
        if isinstance(extra.get("error"), dict):
            logger.error(f"OpenRouter error body: {extra['error']}")
            _raise_for_error_body(extra["error"])

        if not response.choices:
            raise EmptyCompletion()

        content = response.choices[0].message.content
        if not content or not content.strip():
            raise EmptyCompletion()

        return content


# Global instance
_completion_client: Optional[CompletionClient] = None


def get_completion_client() -> CompletionClient:
    """Get or create completion client from settings."""
    global _completion_client
    if _completion_client is None:
        settings = get_settings()
        _completion_client = CompletionClient(
            api_key=settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            timeout=settings.llm_timeout_seconds,
            referer=settings.mini_app_url,
            title=settings.app_title,
        )
    return _completion_client
