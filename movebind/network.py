"""Network selector for binding generation."""

from enum import Enum
from typing import Optional

from .config import MoveBindSettings, get_settings
from .errors import ManifestError


class Network(str, Enum):
    """The two logical ledger environments."""

    MAINNET = "mainnet"
    TESTNET = "testnet"

    def graphql_url(self, settings: Optional[MoveBindSettings] = None) -> str:
        """Schema service endpoint for this network."""
        settings = settings or get_settings()
        if self is Network.MAINNET:
            return settings.mainnet_graphql_url
        return settings.testnet_graphql_url

    def mvr_url(self, settings: Optional[MoveBindSettings] = None) -> str:
        """Name resolution endpoint for this network."""
        settings = settings or get_settings()
        if self is Network.MAINNET:
            return settings.mainnet_mvr_url
        return settings.testnet_mvr_url

    @classmethod
    def parse(cls, value: "str | Network") -> "Network":
        """Parse a case-insensitive network name."""
        if isinstance(value, Network):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ManifestError(
                f"Unknown network '{value}', only ['mainnet', 'testnet'] are supported."
            ) from None
