from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised application settings, sourced from environment variables or .env."""

    app_name: str = Field(default="BankrollTracker")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    database_url: str = Field(alias="DATABASE_URL")
    direct_database_url: Optional[str] = Field(
        default=None,
        alias="DIRECT_DATABASE_URL",
        description="Optional direct Postgres connection string used for running migrations.",
    )
    auto_run_migrations: bool = Field(default=False, alias="AUTO_RUN_MIGRATIONS")

    telegram_bot_token: Optional[str] = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    telegram_webhook_secret: Optional[str] = Field(
        default=None,
        alias="TELEGRAM_WEBHOOK_SECRET",
        description="Shared secret Telegram echoes in X-Telegram-Bot-Api-Secret-Token.",
    )
    telegram_register_webhook_on_start: bool = Field(
        default=False, alias="TELEGRAM_REGISTER_WEBHOOK_ON_START"
    )
    telegram_send_retry_delay_seconds: float = Field(
        default=1.0,
        alias="TELEGRAM_SEND_RETRY_DELAY_SECONDS",
        description="Backoff before the single resend of a bet message.",
        ge=0,
    )
    update_dedup_capacity: int = Field(
        default=1024,
        alias="UPDATE_DEDUP_CAPACITY",
        description="How many recent update ids are remembered to drop redelivered updates.",
        ge=0,
    )
    ticket_task_timeout_seconds: float = Field(
        default=180.0,
        alias="TICKET_TASK_TIMEOUT_SECONDS",
        description="Upper bound for a single background update handler.",
        gt=0,
    )

    backend_base_url: Optional[AnyHttpUrl] = Field(
        default=None,
        alias="BACKEND_BASE_URL",
        description="The public URL where FastAPI is reachable (webhook and ticket image URLs).",
    )
    frontend_url: Optional[str] = Field(
        default=None,
        alias="FRONTEND_URL",
        description="Base URL of the web app hosting the bet editor; enables deep-link buttons.",
    )

    bilhete_tracker_url: Optional[str] = Field(
        default=None,
        alias="BILHETE_TRACKER_URL",
        description="Base URL of the ticket recognition microservice.",
    )
    bilhete_tracker_timeout_seconds: float = Field(
        default=60.0, alias="BILHETE_TRACKER_TIMEOUT_SECONDS", gt=0
    )
    ticket_upload_dir: Path = Field(
        default=Path("uploads/tickets"),
        alias="TICKET_UPLOAD_DIR",
        description="Where downloaded ticket images are kept so the recognition service can fetch them.",
    )

    gemini_api_key: Optional[str] = Field(
        default=None, alias="GEMINI_API_KEY", description="Google Generative AI key"
    )
    gemini_model: str = Field(default="gemini-2.5-flash", alias="GEMINI_MODEL")
    deepseek_api_key: Optional[str] = Field(default=None, alias="DEEPSEEK_API_KEY")
    deepseek_model: str = Field(default="deepseek-multimodal", alias="DEEPSEEK_MODEL")
    deepseek_base_url: str = Field(default="https://api.deepseek.com", alias="DEEPSEEK_BASE_URL")
    llm_ticket_prompt_path: Path = Field(
        default=Path("prompts/ticket_prompt.txt"),
        alias="LLM_TICKET_PROMPT_PATH",
        description="Extraction prompt shared by the fallback AI providers.",
    )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached accessor so imports share a single settings instance."""
    return Settings()  # type: ignore[call-arg]
