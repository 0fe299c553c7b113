"""Schema fetching.

One GraphQL query per package returns the BCS-encoded module map, the
type-origin table and the package version. The modules are decoded and
normalized here, so callers only ever see ``schema.Package``.
"""

import base64
import binascii
import logging
from typing import Any, Dict, List, Optional

import httpx

from .binary import decode_module_map, deserialize_module, normalize_module
from .config import MoveBindSettings, get_settings
from .errors import DecodeError, FetchError
from .network import Network
from .runtime.types import Address
from .schema import Package, TypeOrigin, TypeOriginTable

logger = logging.getLogger(__name__)

PACKAGE_QUERY = (
    '{{package(address: "{address}") '
    "{{moduleBcs, typeOrigins{{module, struct, definingId}}, version}}}}"
)


class ModuleProvider:
    """Fetches and decodes packages from a network's schema service.

    Requests are blocking, without retries and without a timeout.
    """

    def __init__(self, network: Network, settings: Optional[MoveBindSettings] = None):
        self.network = Network.parse(network)
        self.settings = settings or get_settings()

    def fetch(self, address: Address) -> Package:
        """Fetch, decode and normalize the package at ``address``.

        Raises:
            FetchError: transport failure, HTTP error or missing package
            DecodeError: malformed module payload or type-origin entry
        """
        payload = self._query(address)
        return self.decode(address, payload)

    def _query(self, address: Address) -> Dict[str, Any]:
        url = self.network.graphql_url(self.settings)
        body = {"query": PACKAGE_QUERY.format(address=address.to_hex()), "variables": None}
        logger.info("Fetching package %s from %s", address.short_hex(), url)

        try:
            with httpx.Client(timeout=None, verify=self.settings.verify_ssl) as client:
                response = client.post(url, json=body)
        except httpx.HTTPError as e:
            raise FetchError(
                f"Schema query for {address} failed: {e}",
                address=address.to_hex(),
                endpoint=url,
            ) from e

        if response.status_code >= 400:
            raise FetchError(
                f"Schema service returned HTTP {response.status_code}",
                address=address.to_hex(),
                endpoint=url,
                status_code=response.status_code,
            )

        try:
            document = response.json()
        except ValueError:
            raise FetchError(
                "Schema service returned a non-JSON response",
                address=address.to_hex(),
                endpoint=url,
                status_code=response.status_code,
            ) from None

        if not isinstance(document, dict):
            raise FetchError(
                f"Schema service returned a JSON {type(document).__name__}, expected an object",
                address=address.to_hex(),
                endpoint=url,
            )

        errors = document.get("errors")
        if errors:
            if not isinstance(errors, list):
                errors = [errors]
            messages = "; ".join(
                str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors
            )
            raise FetchError(
                f"Schema query failed: {messages}",
                address=address.to_hex(),
                endpoint=url,
            )

        data = document.get("data")
        package = data.get("package") if isinstance(data, dict) else None
        if not package:
            raise FetchError(
                f"Package {address} not found on {self.network.value}",
                address=address.to_hex(),
                endpoint=url,
            )
        if not isinstance(package, dict):
            raise FetchError(
                f"Schema service returned a malformed package for {address}",
                address=address.to_hex(),
                endpoint=url,
            )
        return package

    def decode(self, address: Address, payload: Dict[str, Any]) -> Package:
        """Decode a schema query result for the package at ``address``."""
        try:
            blob = base64.b64decode(payload.get("moduleBcs") or "", validate=True)
        except (binascii.Error, TypeError) as e:
            raise DecodeError(f"moduleBcs is not valid base64: {e}") from None

        version = payload.get("version")
        if isinstance(version, bool) or not isinstance(version, int):
            raise DecodeError(f"Package version must be an integer, got {version!r}")

        origins = TypeOriginTable.from_origins(
            parse_type_origins(payload.get("typeOrigins") or [])
        )

        modules = {}
        for name, module_bytes in decode_module_map(blob).items():
            compiled = deserialize_module(module_bytes, name)
            module = normalize_module(compiled, name, origins)
            for datatype in list(module.structs) + list(module.enums):
                if (name, datatype) not in origins:
                    raise DecodeError(f"No type origin for {name}::{datatype}", module=name)
            modules[name] = module

        logger.info(
            "Decoded package %s v%d: %d modules, %d type origins",
            address.short_hex(),
            version,
            len(modules),
            len(origins),
        )
        return Package(address=address, version=version, modules=modules, type_origins=origins)


def parse_type_origins(entries: List[Any]) -> List[TypeOrigin]:
    """Validate raw ``typeOrigins`` entries."""
    origins = []
    seen: Dict[tuple, Address] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            raise DecodeError(f"Malformed type origin entry: {entry!r}")
        module, name, defining_id = entry.get("module"), entry.get("struct"), entry.get("definingId")
        if not all(isinstance(v, str) and v for v in (module, name, defining_id)):
            raise DecodeError(f"Malformed type origin entry: {entry!r}")
        try:
            address = Address.from_hex(defining_id)
        except ValueError:
            raise DecodeError(
                f"Invalid defining id {defining_id!r} for {module}::{name}"
            ) from None
        key = (module, name)
        if key in seen and seen[key] != address:
            raise DecodeError(f"Conflicting type origins for {module}::{name}")
        seen[key] = address
        origins.append(TypeOrigin(module, name, address))
    return origins
