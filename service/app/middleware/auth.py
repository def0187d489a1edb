"""
Mini App identity.

The front-end forwards Telegram's launch data (initData) with every request.
The user id is read from its `user` field; when VERIFY_INIT_DATA is on, the
HMAC-SHA-256 signature is checked against the bot token first.
"""

import hashlib
import hmac
import json
from typing import Optional
from urllib.parse import parse_qsl

from fastapi import HTTPException

from app.config import get_settings
from app.logging_config import app_logger

logger = app_logger.getChild("auth")

# Environments where requests without initData fall back to a placeholder user
DEV_FALLBACK_ENVIRONMENTS = frozenset({"test", "development", "local"})


class InitDataError(Exception):
    """initData is missing, malformed or not signed by our bot."""


def compute_init_data_hash(fields: dict, bot_token: str) -> str:
    """Telegram's data-check hash over every field except `hash`."""
    data_check_string = "\n".join(
        f"{k}={v}" for k, v in sorted(fields.items())
    )

    # Create secret key: HMAC-SHA256(bot_token, "WebAppData")
    secret_key = hmac.new(
        b"WebAppData",
        bot_token.encode(),
        hashlib.sha256
    ).digest()

    return hmac.new(
        secret_key,
        data_check_string.encode(),
        hashlib.sha256
    ).hexdigest()


def parse_init_data_user(init_data: str, bot_token: Optional[str] = None) -> dict:
    """
    Extract the Telegram user object from initData.

    If bot_token is given the signature is verified; otherwise the payload is
    trusted as-is. Raises InitDataError on any problem.
    """
    parsed = dict(parse_qsl(init_data, keep_blank_values=True))

    if bot_token is not None:
        received_hash = parsed.pop("hash", None)
        if not received_hash:
            raise InitDataError("Missing hash in init_data")

        calculated_hash = compute_init_data_hash(parsed, bot_token)
        if not hmac.compare_digest(calculated_hash, received_hash):
            raise InitDataError("Invalid init_data signature")

    if "user" not in parsed:
        raise InitDataError("Missing user in init_data")

    try:
        user = json.loads(parsed["user"])
    except json.JSONDecodeError:
        raise InitDataError("Invalid user JSON")

    if not isinstance(user, dict) or not isinstance(user.get("id"), int):
        raise InitDataError("Missing user id in init_data")

    return user


def resolve_user_id(init_data: Optional[str]) -> int:
    """
    Resolve the Telegram user id for a Mini App request.

    Raises HTTPException(401) when no user can be resolved.
    """
    settings = get_settings()

    if not init_data:
        if settings.environment in DEV_FALLBACK_ENVIRONMENTS:
            return settings.dev_user_id
        raise HTTPException(status_code=401, detail="Unauthorized")

    bot_token = settings.telegram_bot_token if settings.verify_init_data else None
    try:
        user = parse_init_data_user(init_data, bot_token)
    except InitDataError as e:
        logger.warning(f"Rejected initData: {e}")
        raise HTTPException(status_code=401, detail="Unauthorized")

    return user["id"]
