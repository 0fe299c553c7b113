"""
Generation manifests (movebind.toml).

A manifest lists generation directives in the order they must run:

```toml
[generation]
base_path = "my_app.bindings"
output_dir = "src"

[[package]]
alias = "framework"
package = "0x2"

[[package]]
alias = "pool"
package = "@acme/pool"
network = "testnet"
deps = ["framework"]
```

Dependencies are aliases generated earlier in the same run, so every entry
of ``deps`` must name a package listed before it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import tomllib
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ManifestError
from .network import Network


class GenerationDirective(BaseModel):
    """One package to generate: what, under which alias, against which deps."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    alias: str
    package: str
    network: Network = Network.MAINNET
    deps: List[str] = Field(default_factory=list)

    @field_validator("alias")
    @classmethod
    def _check_alias(cls, value: str) -> str:
        if not value.isidentifier():
            raise ValueError(f"alias '{value}' is not a valid Python identifier")
        return value

    @field_validator("package")
    @classmethod
    def _check_package(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("package reference must not be empty")
        return value

    @field_validator("network", mode="before")
    @classmethod
    def _parse_network(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class GenerationOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_path: Optional[str] = None
    output_dir: Optional[Path] = None


class Manifest(BaseModel):
    """Parsed movebind.toml."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    generation: GenerationOptions = Field(default_factory=GenerationOptions)
    packages: List[GenerationDirective] = Field(default_factory=list, alias="package")

    def check_order(self) -> None:
        """Every alias is unique and every dependency is generated before use."""
        seen = set()
        for directive in self.packages:
            if directive.alias in seen:
                raise ManifestError(f"Duplicate package alias '{directive.alias}'")
            for dep in directive.deps:
                if dep not in seen:
                    raise ManifestError(
                        f"Dependency '{dep}' of '{directive.alias}' must be listed before it"
                    )
            seen.add(directive.alias)


def parse_manifest(data: Dict[str, Any], source_path: Optional[str] = None) -> Manifest:
    try:
        manifest = Manifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(f"Invalid manifest: {e}", source_path=source_path) from None
    try:
        manifest.check_order()
    except ManifestError as e:
        raise ManifestError(e.message, source_path=source_path) from None
    return manifest


def load_manifest(manifest_path: Union[str, Path]) -> Manifest:
    """Load and validate a manifest file.

    Raises:
        ManifestError: missing file, invalid TOML or invalid directives
    """
    manifest_path = Path(manifest_path)
    if not manifest_path.exists():
        raise ManifestError(
            f"Manifest not found: {manifest_path}", source_path=str(manifest_path)
        )

    try:
        with open(manifest_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ManifestError(
            f"Invalid TOML in manifest file: {e}", source_path=str(manifest_path)
        ) from None

    return parse_manifest(data, source_path=str(manifest_path))


def loads_manifest(content: str) -> Manifest:
    """Validate a manifest from TOML text."""
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as e:
        raise ManifestError(f"Invalid TOML content: {e}") from None
    return parse_manifest(data)
