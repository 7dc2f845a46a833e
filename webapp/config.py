"""Application settings loaded from environment variables / .env file."""

from __future__ import annotations

import secrets
from pathlib import Path

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from webapp.exceptions import ConfigurationError

# .env at the project root, then .env in the working directory (later wins)
_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ENV_FILES = (_ENV_FILE, Path(".env"))


class AzureOpenAISettings(BaseModel):
    """The ``AzureOpenAI`` configuration section."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    endpoint: AnyHttpUrl = Field(..., alias="endpoint")
    api_key: SecretStr = Field(..., alias="apikey")
    deployment_name: str = Field(..., alias="deploymentname")
    api_version: str = Field("2024-10-21", alias="apiversion")

    @field_validator("api_key")
    @classmethod
    def _api_key_not_blank(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("deployment_name", "api_version")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    azure_openai: AzureOpenAISettings = Field(..., alias="azureopenai")
    environment: str = "Production"
    catalog_url: AnyHttpUrl = Field("http://localhost:5301", validate_default=True)
    hsts_max_age: int = Field(30 * 24 * 60 * 60, ge=0)
    antiforgery_secret: SecretStr = Field(default_factory=lambda: SecretStr(secrets.token_hex(32)))
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    # Port clients reach HTTPS on; plain HTTP is only redirected when known.
    https_port: int | None = Field(None, ge=1, le=65535)
    ssl_certfile: str | None = None
    ssl_keyfile: str | None = None
    proxy_headers: bool = True
    forwarded_allow_ips: str = "127.0.0.1"

    @model_validator(mode="after")
    def _keyfile_needs_certfile(self) -> Settings:
        if self.ssl_keyfile and not self.ssl_certfile:
            raise ValueError("ssl_keyfile requires ssl_certfile")
        return self

    @property
    def is_development(self) -> bool:
        return self.environment.strip().lower() == "development"

    @property
    def catalog_base_url(self) -> str:
        return str(self.catalog_url).rstrip("/")

    @property
    def redirect_https_port(self) -> int | None:
        """HTTPS port for redirects: explicit, or the served port when TLS is on."""
        if self.https_port is not None:
            return self.https_port
        if self.ssl_certfile:
            return self.port
        return None


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic validation error into ``Section:Key: message`` lines."""
    parts = []
    for error in exc.errors():
        location = ":".join(str(p) for p in error["loc"])
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def load_settings(
    env_file: str | Path | tuple[str | Path, ...] | None = _ENV_FILES,
) -> Settings:
    """Load and validate settings, failing fast on missing or malformed values."""
    try:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid configuration: {describe_validation_error(exc)}"
        ) from exc
