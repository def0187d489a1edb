from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Telegram
    telegram_bot_token: str
    telegram_webhook_secret: str = ""  # Optional: for webhook verification
    mini_app_url: str = "http://localhost:3000"

    # OpenRouter (OpenAI-compatible chat completions)
    openrouter_api_key: str
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    llm_model: str = "x-ai/grok-4.1-fast:free"
    llm_max_tokens: int = 512
    llm_temperature: float = 0.9
    llm_timeout_seconds: float = 30.0
    app_title: str = "Passion Bot"

    # Session storage: "memory", "file" or "supabase"
    session_backend: str = "file"
    sessions_dir: str = "sessions"

    # Supabase (only needed for session_backend=supabase)
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_sessions_table: str = "chat_sessions"

    # Environment
    environment: str = "development"

    # Mini App identity
    # Placeholder user for requests without initData (development only)
    dev_user_id: int = 0
    verify_init_data: bool = True

    # Mini App POST /api/chat limit per client IP (slowapi syntax)
    chat_rate_limit: str = "20/minute"

    # Typing cadence between reply parts
    typing_min_delay: float = 1.0
    typing_max_delay: float = 10.0
    typing_seconds_per_char: float = 0.01
    typing_jitter: float = 2.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
