"""Package reference resolution.

A reference is either a hex address or a name-service name such as
``@mvr/core`` or ``app.sui/pkg``. Names are looked up with one blocking GET
against the network's name service; nothing is cached.
"""

import logging
from typing import Optional

import httpx

from .config import MoveBindSettings, get_settings
from .errors import ResolutionError
from .network import Network
from .runtime.types import Address

logger = logging.getLogger(__name__)


def is_named_reference(reference: str) -> bool:
    """True for name-service references (namespace separator or ``.sui`` suffix)."""
    return "@" in reference or ".sui" in reference


class PackageIdResolver:
    """Turns package references into canonical addresses."""

    def __init__(self, network: Network, settings: Optional[MoveBindSettings] = None):
        self.network = Network.parse(network)
        self.settings = settings or get_settings()

    def resolve(self, reference: str) -> Address:
        """Resolve ``reference`` to an address.

        Raises:
            ResolutionError: name lookup failed or the address is malformed
        """
        reference = reference.strip()
        if is_named_reference(reference):
            return self._resolve_name(reference)
        try:
            return Address.from_hex(reference)
        except ValueError as e:
            raise ResolutionError(
                f"Invalid package address '{reference}': {e}", reference=reference
            ) from None

    def _resolve_name(self, name: str) -> Address:
        base = self.network.mvr_url(self.settings).rstrip("/")
        url = f"{base}/v1/resolution/{name}"
        logger.info("Resolving %s on %s", name, self.network.value)

        try:
            with httpx.Client(timeout=None, verify=self.settings.verify_ssl) as client:
                response = client.get(url)
        except httpx.HTTPError as e:
            raise ResolutionError(
                f"Name service request for '{name}' failed: {e}",
                reference=name,
                endpoint=url,
            ) from e

        if response.status_code == 404:
            raise ResolutionError(
                f"Name '{name}' is not registered on {self.network.value}",
                reference=name,
                endpoint=url,
            )
        if response.status_code >= 400:
            raise ResolutionError(
                f"Name service returned HTTP {response.status_code} for '{name}'",
                reference=name,
                endpoint=url,
            )

        try:
            package_id = response.json().get("package_id")
        except (ValueError, AttributeError):
            package_id = None
        if not package_id:
            raise ResolutionError(
                f"Name service returned no package for '{name}'",
                reference=name,
                endpoint=url,
            )
        try:
            address = Address.from_hex(package_id)
        except ValueError:
            raise ResolutionError(
                f"Name service returned invalid address '{package_id}' for '{name}'",
                reference=name,
                endpoint=url,
            ) from None

        logger.info("Resolved %s -> %s", name, address)
        return address


def resolve_package_id(
    reference: str,
    network: Network = Network.MAINNET,
    settings: Optional[MoveBindSettings] = None,
) -> Address:
    """Convenience wrapper around ``PackageIdResolver.resolve``."""
    return PackageIdResolver(network, settings).resolve(reference)
