"""Configuration management for movebind using Pydantic Settings.

Supports environment variables, .env files and explicit keyword arguments.

Environment variables:
    MOVEBIND_MAINNET_GRAPHQL_URL: Schema service for mainnet
    MOVEBIND_TESTNET_GRAPHQL_URL: Schema service for testnet
    MOVEBIND_MAINNET_MVR_URL: Name service for mainnet
    MOVEBIND_TESTNET_MVR_URL: Name service for testnet
    MOVEBIND_BASE_PATH: Import path the bindings are generated under
    MOVEBIND_OUTPUT_DIR: Directory the binding packages are written to
    MOVEBIND_VERIFY_SSL: Enable TLS verification
    MOVEBIND_LOG_LEVEL: Logging level
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MoveBindSettings(BaseSettings):
    """Settings for binding generation.

    Example:
        >>> settings = MoveBindSettings(base_path="my_app.bindings")
        >>> Network.MAINNET.graphql_url(settings)  # doctest: +SKIP
        'https://sui-mainnet.mystenlabs.com/graphql'
    """

    model_config = SettingsConfigDict(
        env_prefix="MOVEBIND_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Schema service endpoints
    mainnet_graphql_url: str = Field(
        default="https://sui-mainnet.mystenlabs.com/graphql",
        description="GraphQL schema service for mainnet",
    )

    testnet_graphql_url: str = Field(
        default="https://sui-testnet.mystenlabs.com/graphql",
        description="GraphQL schema service for testnet",
    )

    # Name service endpoints
    mainnet_mvr_url: str = Field(
        default="https://mainnet.mvr.mystenlabs.com",
        description="Name resolution service for mainnet",
    )

    testnet_mvr_url: str = Field(
        default="https://testnet.mvr.mystenlabs.com",
        description="Name resolution service for testnet",
    )

    # Output settings
    base_path: str = Field(
        default="bindings",
        description="Dotted import path that generated packages live under",
    )

    output_dir: Path = Field(
        default=Path("."),
        description="Directory that contains the base path package",
    )

    # TLS settings
    verify_ssl: bool = Field(
        default=True,
        description="Verify TLS certificates",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )


# Singleton instance
_settings: Optional[MoveBindSettings] = None


def get_settings() -> MoveBindSettings:
    """Get global settings singleton."""
    global _settings
    if _settings is None:
        _settings = MoveBindSettings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
