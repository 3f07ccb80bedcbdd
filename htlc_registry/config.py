"""Configuration management for the swap registry."""

import logging

from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_HASH_FUNCTIONS = ("sha256", "sha3_256", "hash256")


class Config(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HTLC_",
        case_sensitive=False,
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///htlc_registry.db",
        description="Database URL for the persisted registry state"
    )

    # Chain Configuration
    genesis_height: int = Field(
        default=0,
        ge=0,
        description="Block height a fresh registry starts at"
    )

    # Hashing Configuration
    hash_function: str = Field(
        default="sha256",
        description="Hash applied to secrets when checking a commitment"
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @validator("hash_function")
    def validate_hash_function(cls, v):
        """Validate the configured secret hash."""
        name = v.lower()
        if name not in SUPPORTED_HASH_FUNCTIONS:
            raise ValueError(
                f"hash_function must be one of {', '.join(SUPPORTED_HASH_FUNCTIONS)}"
            )
        return name

    @validator("log_level")
    def validate_log_level(cls, v):
        """Validate the logging level name."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level


# Global config instance
config = Config()
