"""Application configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Required
    anthropic_api_key: str = ""

    # LLM settings
    llm_model: str = "claude-sonnet-4-5-20250929"
    extraction_max_tokens: int = 800
    extraction_temperature: float = 0.3
    response_max_tokens: int = 1500
    response_temperature: float = 0.7

    # Timeouts (seconds)
    extraction_timeout_s: float = 30.0
    generation_timeout_s: float = 45.0
    stream_idle_timeout_s: float = 20.0

    # Retry policy for transient LLM failures
    max_retries: int = 2
    retry_base_delay: float = 1.0
    retry_max_delay: float = 5.0

    # Report and brief generation
    document_max_tokens: int = 3000
    report_temperature: float = 0.7
    brief_temperature: float = 0.5
    document_timeout_s: float = 90.0
    brief_history_messages: int = 10

    # Conversation context sent to the response generator
    history_window: int = 6
    few_shot_max_history: int = 4
    recent_messages_limit: int = 10

    # Reply language: "en" or "zh"
    default_language: str = "en"

    # Data directory
    data_dir: Path = Path("./data")

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    @property
    def db_path(self) -> Path:
        return self.data_dir / "vibecheck.db"

    def ensure_data_dir(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
