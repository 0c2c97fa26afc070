"""Configuration management using pydantic-settings.

**Not a singleton**: each call to ``get_app_config()`` re-reads config
so tests and redeployments pick up environment changes.

Priority order (highest first):

1. Environment variables (``RAGCHAT_`` prefix, ``__`` for nesting)
2. ``.env`` dotenv file
3. Static YAML (``configs/config.yaml``)
4. Init defaults / field defaults
5. File secrets

Both tiers share this configuration; each reads only the sections it
needs (the gateway never touches ``database``).
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from .system import (
    DatabaseConfig,
    GatewayConfig,
    LoggingConfig,
    PaginationConfig,
    SecurityConfig,
    TracingConfig,
)

CONFIG_PY_PATH = Path(__file__).resolve()
PROJECT_ROOT = CONFIG_PY_PATH.parent.parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "configs"

STATIC_CONFIG_FILE = CONFIG_DIR / "config.yaml"
DOTENV_FILE_PATH = PROJECT_ROOT / ".env"
ENV_DELIMITER = "__"
ENV_PREFIX = "RAGCHAT_"

DEFAULT_ENCODING = "utf-8"


class AppConfig(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=DOTENV_FILE_PATH,
        env_file_encoding=DEFAULT_ENCODING,
        env_nested_delimiter=ENV_DELIMITER,
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
        yaml_file=STATIC_CONFIG_FILE,
        yaml_file_encoding=DEFAULT_ENCODING,
    )

    security: SecurityConfig = Field(
        default_factory=SecurityConfig,
        description="Gateway and internal service credentials",
    )

    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig,
        description="Storage tier database settings",
    )

    gateway: GatewayConfig = Field(
        default_factory=GatewayConfig,
        description="Gateway forwarding settings",
    )

    pagination: PaginationConfig = Field(
        default_factory=PaginationConfig,
        description="Message listing page bounds",
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging output settings",
    )

    tracing: TracingConfig = Field(
        default_factory=TracingConfig,
        description="OpenTelemetry tracing settings",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            init_settings,
            file_secret_settings,
        )


def get_app_config() -> AppConfig:
    """Get the application configuration (re-read on every call)."""
    return AppConfig()


def get_pagination_config() -> PaginationConfig:
    return get_app_config().pagination
