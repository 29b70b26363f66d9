"""Application settings with Pydantic Settings validation.

Secrets (tokens, passwords) are loaded from environment or .env file.
Non-sensitive configuration (roster, hours, channels) is loaded from
config/main.yaml and config/*.yaml files, merged and validated against
JSON schemas.
"""

import json
from pathlib import Path
from typing import Any, Final, Literal, cast

import pytz
import yaml
from jsonschema import ValidationError as JSONSchemaValidationError
from jsonschema import validate
from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from coach_queue.config.logging_config import get_logger
from coach_queue.domain.availability_constants import (
    DEFAULT_EVENT_DEDUPE_TTL_SECONDS,
    DEFAULT_SUMMARY_TIME,
    DEFAULT_TIMEZONE,
    MINUTES_PER_DAY,
)
from coach_queue.domain.exceptions import ConfigurationError
from coach_queue.domain.models import Coach, parse_clock

CONFIG_DIR_DEFAULT: Final[Path] = Path("config")
DB_PATH_DEFAULT: Final[str] = "data/coach_queue.db"
POSTGRES_PORT_DEFAULT: Final[int] = 5432
HEALTH_PORT_DEFAULT: Final[int] = 3000

logger = cast(Any, get_logger(__name__))


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge into base (takes precedence)

    Returns:
        Merged dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_schema(schema_name: str, config_dir: Path = CONFIG_DIR_DEFAULT) -> dict[str, Any]:
    """Load JSON Schema from config/schemas/.

    Returns:
        JSON Schema dictionary or empty dict if not found
    """
    schema_path = config_dir / "schemas" / f"{schema_name}.schema.json"
    if not schema_path.exists():
        return {}

    try:
        with open(schema_path, encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(
            "config_schema_load_failed",
            schema=schema_name,
            error=str(e),
        )
        return {}


def validate_config_section(
    config: dict[str, Any],
    schema_name: str,
    file_path: str = "",
    config_dir: Path = CONFIG_DIR_DEFAULT,
) -> None:
    """Validate config section against JSON Schema.

    Raises:
        ValueError: If validation fails
    """
    schema = load_schema(schema_name, config_dir)
    if not schema:
        return

    try:
        validate(instance=config, schema=schema)
        logger.debug("config_validation_succeeded", schema=schema_name)
    except JSONSchemaValidationError as e:
        error_msg = f"Config validation failed for {schema_name}"
        if file_path:
            error_msg += f" (file: {file_path})"
        error_msg += f": {e.message}"
        raise ValueError(error_msg) from e


def load_all_configs(config_dir: Path = CONFIG_DIR_DEFAULT) -> dict[str, Any]:
    """Load and merge all YAML configs from the config directory.

    Loading order (later overrides earlier):
    1. main.yaml
    2. All other *.yaml files (sorted alphabetically)

    Each file is validated against its JSON Schema if one exists.

    Returns:
        Merged configuration dictionary
    """
    merged_config: dict[str, Any] = {}
    if not config_dir.is_dir():
        logger.info("config_dir_missing", path=str(config_dir))
        return merged_config

    main_path = config_dir / "main.yaml"
    yaml_files = sorted(f for f in config_dir.glob("*.yaml") if f.name != "main.yaml")
    if main_path.exists():
        yaml_files.insert(0, main_path)

    for yaml_file in yaml_files:
        schema_name = yaml_file.stem
        try:
            with open(yaml_file, encoding="utf-8") as f:
                file_config = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            logger.warning(
                "config_file_load_failed",
                path=str(yaml_file),
                error=str(e),
            )
            continue

        try:
            validate_config_section(file_config, schema_name, str(yaml_file), config_dir)
        except ValueError as e:
            logger.error(
                "config_validation_failed",
                path=str(yaml_file),
                schema=schema_name,
                error=str(e),
            )
            raise

        merged_config = deep_merge(merged_config, file_config)
        logger.debug("config_file_loaded", path=str(yaml_file), schema=schema_name)

    logger.info("config_load_complete", file_count=len(yaml_files))
    return merged_config


class Settings(BaseSettings):
    """Application settings.

    Secrets are loaded from the environment / .env file.
    Non-sensitive config is loaded from config/*.yaml with fallback to defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env" if Path(".env").exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === SECRETS (from .env) ===

    slack_bot_token: SecretStr = Field(
        ..., description="Slack Bot User OAuth Token (from .env)"
    )
    slack_app_token: SecretStr | None = Field(
        default=None, description="Slack app-level token for Socket Mode (from .env)"
    )
    postgres_password: SecretStr | None = Field(
        default=None, description="PostgreSQL password (from .env, optional)"
    )

    # === NON-SENSITIVE CONFIG (from config/*.yaml or defaults) ===

    timezone: str = Field(
        default=DEFAULT_TIMEZONE, description="Organisation-wide reference time zone"
    )
    coaches: list[Coach] = Field(default_factory=list, description="Monitored coaches")
    summary_channel_id: str = Field(
        default="", description="Channel receiving daily digests and toggle notices"
    )
    summary_time: str = Field(
        default=DEFAULT_SUMMARY_TIME, description="Local HH:MM of the daily digest"
    )
    admin_user_ids: list[str] = Field(
        default_factory=list, description="Operators allowed to clear any queue"
    )
    process_all_mentioned_coaches: bool = Field(
        default=False,
        description="Queue for every mentioned coach instead of the first roster match",
    )
    event_dedupe_ttl_seconds: int = Field(
        default=DEFAULT_EVENT_DEDUPE_TTL_SECONDS,
        description="How long redelivered chat events are recognised",
    )

    database_type: Literal["sqlite", "postgres"] = Field(default="sqlite")
    db_path: str = Field(default=DB_PATH_DEFAULT)
    postgres_host: str = Field(default="localhost")
    postgres_port: int = Field(default=POSTGRES_PORT_DEFAULT)
    postgres_database: str = Field(default="coach_queue")
    postgres_user: str = Field(default="postgres")

    health_host: str = Field(default="0.0.0.0")
    health_port: int = Field(default=HEALTH_PORT_DEFAULT)

    log_level: str = Field(default="INFO")

    @field_validator("slack_bot_token", mode="before")
    @classmethod
    def _ensure_secret(
        cls, value: SecretStr | str | None, info: ValidationInfo
    ) -> SecretStr:
        if value is None:
            raise ValueError(f"{info.field_name} must be provided")

        if isinstance(value, SecretStr):
            secret_value = value.get_secret_value()
        else:
            secret_value = str(value)

        if not secret_value.strip():
            raise ValueError(f"{info.field_name} must not be empty")

        return value if isinstance(value, SecretStr) else SecretStr(secret_value)

    @field_validator("summary_time")
    @classmethod
    def _validate_summary_time(cls, value: str) -> str:
        if parse_clock(value) >= MINUTES_PER_DAY:
            raise ValueError("summary_time must be before 24:00")
        return value

    def __init__(self, **data: Any):
        """Initialize settings with auto-loaded configs from all YAML files."""
        config = load_all_configs()

        super().__init__(**data)
        self._apply_yaml_defaults(config)

    def _apply_yaml_defaults(self, config: dict[str, Any]) -> None:
        """Apply YAML-sourced defaults without overriding explicitly provided values."""

        fields_from_env = set(self.model_fields_set)

        def _assign(field_name: str, value: Any) -> None:
            if value is None:
                return
            if field_name in fields_from_env:
                return

            object.__setattr__(self, field_name, value)
            self.model_fields_set.add(field_name)

        _assign("timezone", config.get("timezone"))

        coaches_config = config.get("coaches")
        if isinstance(coaches_config, list):
            _assign("coaches", [Coach(**coach) for coach in coaches_config])

        slack_config = config.get("slack") or {}
        _assign("summary_channel_id", slack_config.get("summary_channel_id"))
        _assign("admin_user_ids", slack_config.get("admin_user_ids"))

        summary_config = config.get("summary") or {}
        summary_time = summary_config.get("time")
        if summary_time is not None:
            _assign("summary_time", self._validate_summary_time(str(summary_time)))

        mentions_config = config.get("mentions") or {}
        _assign(
            "process_all_mentioned_coaches",
            mentions_config.get("process_all_mentioned_coaches"),
        )
        _assign(
            "event_dedupe_ttl_seconds", mentions_config.get("event_dedupe_ttl_seconds")
        )

        database_config = config.get("database") or {}
        _assign("database_type", database_config.get("type"))
        _assign("db_path", database_config.get("path"))

        postgres_config = database_config.get("postgres") or {}
        _assign("postgres_host", postgres_config.get("host"))
        _assign("postgres_port", postgres_config.get("port"))
        _assign("postgres_database", postgres_config.get("database"))
        _assign("postgres_user", postgres_config.get("user"))

        http_config = config.get("http") or {}
        _assign("health_host", http_config.get("host"))
        _assign("health_port", http_config.get("port"))

        logging_config = config.get("logging") or {}
        _assign("log_level", logging_config.get("level"))

    def reference_timezone(self) -> pytz.BaseTzInfo:
        """Resolve the configured zone.

        Raises:
            ConfigurationError: If the zone name is unknown
        """
        try:
            return pytz.timezone(self.timezone)
        except pytz.UnknownTimeZoneError as exc:
            raise ConfigurationError(f"Unknown timezone: {self.timezone}") from exc

    def build_roster(self) -> list[Coach]:
        """Return the coach roster in configured order.

        Raises:
            ConfigurationError: On duplicate coach keys or Slack user IDs
        """
        seen_keys: set[str] = set()
        seen_handles: set[str] = set()
        for coach in self.coaches:
            if coach.key in seen_keys:
                raise ConfigurationError(f"Duplicate coach key: {coach.key}")
            if coach.slack_user_id in seen_handles:
                raise ConfigurationError(
                    f"Duplicate Slack user ID in roster: {coach.slack_user_id}"
                )
            seen_keys.add(coach.key)
            seen_handles.add(coach.slack_user_id)
            if not coach.windows:
                logger.warning("coach_without_windows", coach=coach.key)
        return list(self.coaches)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings
