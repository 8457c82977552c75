from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PROMPTS_DIR = Path(__file__).parent.parent / "prompts"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"

    # LLM - Multi-provider support (openai, groq, google)
    llm_provider: str = "openai"
    llm_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("llm_api_key", "openai_api_key"),
    )
    llm_chat_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.7
    llm_timeout_seconds: float = 60.0

    # Conversation history
    max_history: int = 10
    max_sessions: int = 10_000
    session_idle_ttl: int = 86_400  # seconds

    # Rate limiting
    rate_limit_per_ip: int = 10
    rate_limit_ip_window: int = 3600  # seconds
    rate_limit_per_session: int = 10
    rate_limit_session_window: int = 60  # seconds
    rate_limit_max_keys: int = 100_000
    trust_proxy_headers: bool = False

    # Chat
    chat_max_message_length: int | None = None  # no cap unless configured

    # Background cleanup of idle sessions / expired windows (0 disables)
    cleanup_interval: int = 300  # seconds

    # Persona prompts
    prompts_dir: Path = DEFAULT_PROMPTS_DIR

    # CORS
    cors_origins: str = "*"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.cors_origins.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def has_llm_credentials(self) -> bool:
        """Whether an API key is set (placeholders from .env.example don't count)."""
        key = self.llm_api_key.strip()
        return bool(key) and key not in ("placeholder", "your-api-key-here")


@lru_cache
def get_settings() -> Settings:
    return Settings()
