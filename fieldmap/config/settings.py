"""Typed runtime settings with dotenv support and startup validation."""

from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_CONFIG_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class SettingsLoadError(RuntimeError):
    """Raised when runtime settings cannot be loaded or validated."""


class MapperSettings(BaseSettings):
    """Mapper settings for matching strategy, strictness and runtime logging.

    Environment variable names are the field names in uppercase with a
    `FIELDMAP_` prefix. Example: `max_depth` reads from `FIELDMAP_MAX_DEPTH`.

    Attributes:
        environment_name: Runtime environment label.
        log_level: Standard library logging level name.
        name_matching: `flexible` ignores case and underscores; `exact` compares names verbatim.
        require_explicit_mapping: Refuse to map type pairs that were never registered.
        require_destination_member_source: Fail compilation when a defaulted destination field has no source.
        max_depth: Maximum nesting depth for recursive object mapping.
    """

    model_config = SettingsConfigDict(
        env_prefix="FIELDMAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment_name: str = Field(default="development", min_length=1)
    log_level: str = Field(default="INFO")
    name_matching: Literal["flexible", "exact"] = Field(default="flexible")
    require_explicit_mapping: bool = Field(default=False)
    require_destination_member_source: bool = Field(default=False)
    max_depth: int = Field(default=8, ge=1, le=64)

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized_value = value.strip().upper()
        if normalized_value not in _CONFIG_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_CONFIG_LOG_LEVELS)}")
        return normalized_value


def config_load_settings(**overrides: object) -> MapperSettings:
    """Load and validate mapper settings from environment, dotenv and explicit overrides.

    Args:
        overrides: Field values taking precedence over environment variables.

    Returns:
        MapperSettings: Validated settings object.

    Raises:
        SettingsLoadError: Raised when settings are invalid.
    """

    try:
        return MapperSettings(**overrides)
    except ValidationError as error:
        raise SettingsLoadError(
            f"Mapper configuration validation failed. Update .env or FIELDMAP_* environment variables. Details: {error}"
        ) from error
