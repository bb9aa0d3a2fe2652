"""
Client configuration using Pydantic settings.

Loads configuration from environment variables with validation and type safety.
Supports .env files for local development.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WalletConfig(BaseSettings):
    """Configuration for the transfer API and the wallet used to sign requests."""

    model_config = SettingsConfigDict(
        env_prefix="WALLET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(
        ...,
        description="Transfer API base URL",
    )
    id: str | None = Field(
        default=None,
        description="Server-assigned wallet id",
    )
    private_key: SecretStr | None = Field(
        default=None,
        description="Wallet private key as PKCS#8, encoded per private_key_encoding",
    )
    private_key_encoding: Literal["hex", "base64", "pem"] = Field(
        default="hex",
        description="Encoding of private_key",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="HTTP request timeout in seconds",
    )
    signing_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Upper bound in seconds on signing a single request",
    )
    crypto_backend: str = Field(
        default="cryptography",
        description="Name of the registered cryptographic backend",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL."""
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("base_url cannot be empty")
        return v

    @model_validator(mode="after")
    def check_wallet_pair(self) -> WalletConfig:
        """Wallet id and private key are configured together or not at all."""
        if (self.id is None) != (self.private_key is None):
            raise ValueError("WALLET_ID and WALLET_PRIVATE_KEY must be set together")
        return self


class AppConfig(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Application environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format",
    )


class Settings(BaseSettings):
    """Aggregated settings with all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app: AppConfig = Field(default_factory=AppConfig)
    wallet: WalletConfig | None = None

    @classmethod
    def load(cls) -> Settings:
        """
        Load settings from environment, with optional sub-configs.

        The wallet config is only loaded if its required environment
        variables are present and valid.
        """
        settings = cls()

        try:
            settings.wallet = WalletConfig()
        except ValidationError:
            settings.wallet = None

        return settings


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> print(settings.app.log_level)
    """
    return Settings.load()
