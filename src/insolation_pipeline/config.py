"""Typed settings loader for the insolation pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import AnyUrl, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError

DEFAULT_IMAGE_BASE_URL = (
    "https://cmm.imgw.pl/cmm/wp-content/uploads/production/ecmwf/oze_sun/mapa_png/"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_env: Literal["dev", "staging", "prod"] = Field(default="dev", alias="APP_ENV")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", alias="LOG_LEVEL")

    image_base_url: AnyUrl = Field(default=DEFAULT_IMAGE_BASE_URL, alias="IMAGE_BASE_URL")
    image_fetch_timeout_seconds: float = Field(default=30.0, alias="IMAGE_FETCH_TIMEOUT_SECONDS")
    image_fetch_max_attempts: int = Field(default=3, alias="IMAGE_FETCH_MAX_ATTEMPTS")
    image_fetch_retry_delay_seconds: float = Field(
        default=1.0,
        alias="IMAGE_FETCH_RETRY_DELAY_SECONDS",
    )

    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY", repr=False)
    vision_model: str = Field(default="claude-haiku-4-5-20251001", alias="VISION_MODEL")
    vision_temperature: float = Field(default=0.1, alias="VISION_TEMPERATURE")
    vision_max_tokens: int = Field(default=2048, alias="VISION_MAX_TOKENS")
    extraction_timeout_seconds: float = Field(default=30.0, alias="EXTRACTION_TIMEOUT_SECONDS")

    batch_size: int = Field(default=10, alias="BATCH_SIZE")
    batch_delay_seconds: float = Field(default=1.0, alias="BATCH_DELAY_SECONDS")

    storage_backend: Literal["supabase", "memory"] = Field(
        default="supabase",
        alias="STORAGE_BACKEND",
    )
    supabase_url: AnyUrl | None = Field(default=None, alias="SUPABASE_URL")
    supabase_service_role_key: str | None = Field(
        default=None, alias="SUPABASE_SERVICE_ROLE_KEY", repr=False
    )
    insolation_table: str = Field(default="insolation_data", alias="INSOLATION_TABLE")
    upsert_chunk_size: int = Field(default=500, alias="UPSERT_CHUNK_SIZE")

    cron_secret: str | None = Field(default=None, alias="CRON_SECRET", repr=False)
    trigger_host: str = Field(default="127.0.0.1", alias="TRIGGER_HOST")
    trigger_port: int = Field(default=8080, alias="TRIGGER_PORT")

    journal_dir: Path = Field(default=Path("./data/journal"), alias="JOURNAL_DIR")
    raw_payload_dir: Path = Field(default=Path("./data/raw"), alias="RAW_PAYLOAD_DIR")
    journal_raw_extractions: bool = Field(default=True, alias="JOURNAL_RAW_EXTRACTIONS")
    max_print: int = Field(default=20, alias="MAX_PRINT")

    @field_validator(
        "supabase_url",
        "supabase_service_role_key",
        "anthropic_api_key",
        "cron_secret",
        mode="before",
    )
    @classmethod
    def empty_string_to_none(cls, value: Any) -> Any:
        """Treat empty env-string values as unset optionals."""
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper() or "INFO"
        return value

    @model_validator(mode="after")
    def validate_ranges(self) -> Settings:
        """Validate numeric ranges and backend-specific requirements."""
        if not str(self.image_base_url).endswith("/"):
            raise ValueError("IMAGE_BASE_URL must end with '/'.")
        if self.image_fetch_timeout_seconds <= 0:
            raise ValueError("IMAGE_FETCH_TIMEOUT_SECONDS must be > 0.")
        if self.image_fetch_max_attempts <= 0:
            raise ValueError("IMAGE_FETCH_MAX_ATTEMPTS must be > 0.")
        if self.image_fetch_retry_delay_seconds < 0:
            raise ValueError("IMAGE_FETCH_RETRY_DELAY_SECONDS must be >= 0.")
        if not (0 <= self.vision_temperature <= 1):
            raise ValueError("VISION_TEMPERATURE must be between 0 and 1.")
        if self.vision_max_tokens <= 0:
            raise ValueError("VISION_MAX_TOKENS must be > 0.")
        if self.extraction_timeout_seconds <= 0:
            raise ValueError("EXTRACTION_TIMEOUT_SECONDS must be > 0.")
        if self.batch_size <= 0:
            raise ValueError("BATCH_SIZE must be > 0.")
        if self.batch_delay_seconds < 0:
            raise ValueError("BATCH_DELAY_SECONDS must be >= 0.")
        if self.upsert_chunk_size <= 0:
            raise ValueError("UPSERT_CHUNK_SIZE must be > 0.")
        if not self.insolation_table.strip():
            raise ValueError("INSOLATION_TABLE must not be empty.")
        if not (0 < self.trigger_port < 65536):
            raise ValueError("TRIGGER_PORT must be between 1 and 65535.")
        if self.max_print <= 0:
            raise ValueError("MAX_PRINT must be > 0.")
        if self.storage_backend == "supabase":
            if self.supabase_url is None:
                raise ValueError("SUPABASE_URL is required when STORAGE_BACKEND='supabase'.")
            if not self.supabase_service_role_key:
                raise ValueError(
                    "SUPABASE_SERVICE_ROLE_KEY is required when STORAGE_BACKEND='supabase'."
                )
        if self.app_env == "prod" and not self.cron_secret:
            raise ValueError("CRON_SECRET is required when APP_ENV='prod'.")
        return self

    def safe_summary(self) -> dict[str, Any]:
        """Return config summary safe for journaling (no credentials)."""
        return {
            "app_env": self.app_env,
            "log_level": self.log_level,
            "image_base_url": str(self.image_base_url),
            "image_fetch_max_attempts": self.image_fetch_max_attempts,
            "image_fetch_retry_delay_seconds": self.image_fetch_retry_delay_seconds,
            "vision_model": self.vision_model,
            "vision_temperature": self.vision_temperature,
            "extraction_timeout_seconds": self.extraction_timeout_seconds,
            "batch_size": self.batch_size,
            "batch_delay_seconds": self.batch_delay_seconds,
            "storage_backend": self.storage_backend,
            "insolation_table": self.insolation_table,
            "upsert_chunk_size": self.upsert_chunk_size,
            "vision_configured": bool(self.anthropic_api_key),
        }


def load_settings() -> Settings:
    """Load and validate settings, raising ConfigError on failure."""
    try:
        settings = Settings()
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed reading environment/.env: {exc}") from exc

    settings.journal_dir.mkdir(parents=True, exist_ok=True)
    settings.raw_payload_dir.mkdir(parents=True, exist_ok=True)
    return settings
