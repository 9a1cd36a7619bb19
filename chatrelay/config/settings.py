"""Runtime settings."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHATRELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = "ChatRelay"
    env: str = "dev"
    log_level: str = "info"
    log_dir: str = "logs"
    host: str = "127.0.0.1"
    port: int = Field(default=3000, validation_alias=AliasChoices("CHATRELAY_PORT", "PORT"))

    # 缺少某个 key 时只影响该 provider，启动照常进行
    openai_api_key: str = Field(default="", validation_alias=AliasChoices("CHATRELAY_OPENAI_API_KEY", "OPENAI_API_KEY"))
    anthropic_api_key: str = Field(
        default="", validation_alias=AliasChoices("CHATRELAY_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY")
    )
    google_api_key: str = Field(default="", validation_alias=AliasChoices("CHATRELAY_GOOGLE_API_KEY", "GOOGLE_API_KEY"))
    xai_api_key: str = Field(default="", validation_alias=AliasChoices("CHATRELAY_XAI_API_KEY", "XAI_API_KEY"))

    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_version: str = "2023-06-01"
    google_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    xai_base_url: str = "https://api.x.ai/v1"

    provider_timeout_seconds: float = 60.0
    provider_max_connections: int = 100
    provider_max_keepalive_connections: int = 20
    max_output_tokens: int = 500

    max_message_length: int = Field(default=2000, ge=1)
    max_request_body_bytes: int = 64_000
    sanitizer_rules_path: str = ""

    max_sessions: int = Field(default=10_000, ge=1)
    session_idle_ttl_seconds: int = 86_400  # <=0 表示不按空闲时间清理
    enable_session_prune_task: bool = True
    session_prune_interval_seconds: int = 60
    serialize_session_exchanges: bool = True

    enable_rate_limit: bool = True
    rate_limit_window_seconds: int = 60
    session_rate_limit: int = 5
    chat_rate_limit: int = 10


settings = Settings()
