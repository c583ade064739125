from __future__ import annotations

import os
import tomllib
from typing import TYPE_CHECKING, Literal

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from .errors import ConfigError

if TYPE_CHECKING:
    from pydantic_settings import PydanticBaseSettingsSource

CONFIG_FILE_ENV = "S3_GATEWAY_CONFIG_FILE"
DEFAULT_CONFIG_FILE = "s3-gateway.toml"


class GatewaySettings(BaseSettings):
    """Configuration for the HTTP gateway and its object store client.

    Values come from the environment (``S3_GATEWAY_*``) and, with lower
    precedence, from a TOML file whose keys are the field names.
    """

    model_config = SettingsConfigDict(
        env_prefix="S3_GATEWAY_", case_sensitive=False, extra="ignore", frozen=True
    )

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    bucket: str | None = None
    region: str = Field(
        default="us-east-1",
        validation_alias=AliasChoices("S3_GATEWAY_REGION", "AWS_REGION", "region"),
    )
    url_prefix: str = ""
    workers: int | None = Field(default=None, ge=1)
    endpoint: str | None = None
    access_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "S3_GATEWAY_ACCESS_KEY_ID",
            "AWS_ACCESS_KEY_ID",
            "access_key",
        ),
    )
    secret_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "S3_GATEWAY_SECRET_ACCESS_KEY",
            "AWS_SECRET_ACCESS_KEY",
            "secret_key",
        ),
    )
    session_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "S3_GATEWAY_SESSION_TOKEN",
            "AWS_SESSION_TOKEN",
            "session_token",
        ),
    )
    addressing_style: Literal["auto", "virtual", "path"] = "virtual"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        toml_file = os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE)
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
        )

    @field_validator("bucket", mode="before")
    @classmethod
    def _blank_bucket_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("url_prefix", mode="before")
    @classmethod
    def _strip_prefix_slashes(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().strip("/")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.upper()
        return value

    @property
    def effective_workers(self) -> int:
        """Worker processes to start, defaulting to one per CPU."""
        return self.workers or os.cpu_count() or 1


def load_settings() -> GatewaySettings:
    """Load gateway settings from the environment and the optional TOML file.

    Raises:
        ConfigError: if a value is missing or fails validation.
    """
    try:
        return GatewaySettings()
    except (ValidationError, tomllib.TOMLDecodeError) as error:
        msg = f"invalid gateway configuration: {error}"
        raise ConfigError(msg) from error
