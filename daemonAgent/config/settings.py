"""Environment-bound configuration objects.

Settings load from ``.env`` through pydantic-settings, one group per concern.

Example:
    from daemonAgent.config.settings import get_settings

    settings = get_settings()  # Cached singleton
    max_rounds = settings.governance.max_rounds
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


load_dotenv()

_ENV_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    populate_by_name=True,
)


class ModelSettings(BaseSettings):
    """Chat model used for the turn loop.

    Accepts MODEL_ID / MODEL_CHAT_ID, MODEL_API_KEY / OPENAI_API_KEY and
    MODEL_BASE_URL / OPENAI_BASE_URL.
    """

    chat_model: str = Field(
        default="gpt-4o-mini", validation_alias=AliasChoices("MODEL_ID", "MODEL_CHAT_ID", "chat_model")
    )
    api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("MODEL_API_KEY", "OPENAI_API_KEY", "api_key")
    )
    base_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("MODEL_BASE_URL", "OPENAI_BASE_URL", "base_url")
    )
    temperature: float = Field(default=0.2, ge=0.0, le=2.0, alias="MODEL_TEMPERATURE")

    model_config = _ENV_CONFIG


class GovernanceSettings(BaseSettings):
    """Budgets and approval defaults for the turn loop.

    - max_rounds: model requests per turn (default 10)
    - turn_timeout_seconds: wall-clock budget of a whole turn (default 90)
    - model_timeout_seconds: budget of one model request
    - model_retries: extra attempts for retryable model errors
    - max_parallel_tools: fan-out limit for allowed actions in one round
    - cancel_grace_seconds: time in-flight work gets to unwind after the kill switch
    """

    max_rounds: int = Field(default=10, ge=1, le=100, alias="MAX_ROUNDS")
    turn_timeout_seconds: float = Field(default=90.0, gt=0, le=3600, alias="TURN_TIMEOUT_SECONDS")
    model_timeout_seconds: float = Field(default=15.0, gt=0, le=600, alias="MODEL_TIMEOUT_SECONDS")
    model_retries: int = Field(default=2, ge=0, le=10, alias="MODEL_RETRIES")
    max_parallel_tools: int = Field(default=4, ge=1, le=32, alias="MAX_PARALLEL_TOOLS")
    max_message_history: int = Field(default=10, ge=0, le=100, alias="MAX_MESSAGE_HISTORY")
    max_input_chars: int = Field(default=4000, ge=100, le=100_000, alias="MAX_INPUT_CHARS")
    cancel_grace_seconds: float = Field(default=0.5, ge=0, le=10, alias="CANCEL_GRACE_SECONDS")
    default_autonomy_level: int = Field(default=1, ge=0, le=3, alias="AUTONOMY_LEVEL")
    policy_file: Optional[str] = Field(default=None, alias="POLICY_FILE")

    model_config = _ENV_CONFIG


class ControlSettings(BaseSettings):
    """UI-automation tuning for the control-path selector."""

    foreground_settle_seconds: float = Field(default=0.3, ge=0, le=5, alias="FOREGROUND_SETTLE_SECONDS")
    vision_max_attempts: int = Field(default=2, ge=1, le=5, alias="VISION_MAX_ATTEMPTS")
    ui_snapshot_max_depth: int = Field(default=8, ge=1, le=30, alias="UI_SNAPSHOT_MAX_DEPTH")
    ui_snapshot_max_elements: int = Field(default=200, ge=10, le=5000, alias="UI_SNAPSHOT_MAX_ELEMENTS")

    model_config = _ENV_CONFIG


class ObservabilitySettings(BaseSettings):
    """Logging and audit configuration."""

    log_dir: str = Field(default="logs", alias="LOG_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_args_max_length: int = Field(default=300, ge=50, le=5000, alias="LOG_ARGS_MAX_LENGTH")
    # Empty disables the JSONL audit log
    audit_log_path: Optional[str] = Field(default="data/audit.jsonl", alias="AUDIT_LOG_PATH")

    model_config = _ENV_CONFIG


class Settings(BaseSettings):
    """Root application settings.

    Groups:
    - models: chat model id and credentials (ModelSettings)
    - governance: turn budgets and autonomy defaults (GovernanceSettings)
    - control: UI-automation tuning (ControlSettings)
    - observability: logging and audit (ObservabilitySettings)

    Use get_settings() to obtain a cached singleton instance.
    """

    environment: str = Field(default="dev", alias="APP_ENV")
    models: ModelSettings = Field(default_factory=ModelSettings)
    governance: GovernanceSettings = Field(default_factory=GovernanceSettings)
    control: ControlSettings = Field(default_factory=ControlSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        validate_assignment=True,
        case_sensitive=False,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance."""
    return Settings()
