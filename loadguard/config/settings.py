from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_EXPERIENCE_LEVELS = ("beginner", "intermediate", "advanced", "elite")


class Settings(BaseSettings):
    log_level: str = Field(default="INFO", validation_alias="LOADGUARD_LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOADGUARD_LOG_FILE")
    default_experience_level: str = Field(
        default="intermediate",
        validation_alias="LOADGUARD_DEFAULT_EXPERIENCE_LEVEL",
        description="Experience tier used when a user profile does not declare one",
    )
    adjustment_history_limit: int = Field(
        default=30,
        validation_alias="LOADGUARD_ADJUSTMENT_HISTORY_LIMIT",
        description="Guardrail history entries kept in memory per user",
    )
    upcoming_window_days: int = Field(
        default=7,
        validation_alias="LOADGUARD_UPCOMING_WINDOW_DAYS",
        description="Days ahead scanned for sessions to modify",
    )
    store_backend: str = Field(default="memory", validation_alias="LOADGUARD_STORE_BACKEND")
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="LOADGUARD_REDIS_URL")
    key_prefix: str = Field(default="loadguard", validation_alias="LOADGUARD_KEY_PREFIX")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("default_experience_level")
    @classmethod
    def validate_experience_level(cls, value: str) -> str:
        lower_value = value.lower()
        if lower_value not in VALID_EXPERIENCE_LEVELS:
            logger.warning(f"Unknown experience level '{value}'. Defaulting to intermediate.")
            return "intermediate"
        return lower_value

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, value: str) -> str:
        lower_value = value.lower()
        if lower_value not in {"memory", "redis"}:
            logger.warning(f"Unknown LOADGUARD_STORE_BACKEND '{value}'. Defaulting to memory.")
            return "memory"
        return lower_value

    @field_validator("adjustment_history_limit", "upcoming_window_days")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value
