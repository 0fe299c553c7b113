"""
Binding registry and build context.

The registry maps defining addresses to the import path of the binding
package generated for them. A package registers all of its addresses once,
right after its schema is fetched and before any of its declarations are
synthesized. Lookups go through a ``RegistryView`` restricted to the package
being generated and the dependencies it declares, so a miss is a
deterministic ``UnknownPackageError`` rather than a guess.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence

from .config import MoveBindSettings, get_settings
from .errors import UnknownPackageError
from .runtime.types import Address

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Many concurrent readers or a single writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class RegisteredPackage:
    alias: str
    path: str
    addresses: FrozenSet[Address] = field(default_factory=frozenset)


class Registry:
    """Defining address -> generated binding path, for one generation session."""

    def __init__(self):
        self._lock = ReadWriteLock()
        self._paths: Dict[Address, str] = {}
        self._packages: Dict[str, RegisteredPackage] = {}

    def register(self, alias: str, path: str, addresses: Iterable[Address]) -> RegisteredPackage:
        entry = RegisteredPackage(alias, path, frozenset(addresses))
        with self._lock.write():
            for address in sorted(entry.addresses):
                previous = self._paths.get(address)
                if previous is not None and previous != path:
                    logger.warning(
                        "Address %s moves from %s to %s", address.short_hex(), previous, path
                    )
                self._paths[address] = path
            self._packages[alias] = entry
        logger.info("Registered %s (%d addresses) as %s", alias, len(entry.addresses), path)
        return entry

    def unregister(self, alias: str) -> None:
        """Drop a package whose generation failed.

        Addresses it shared with a remaining package go back to that
        package's path.
        """
        with self._lock.write():
            entry = self._packages.pop(alias, None)
            if entry is None:
                return
            for address in entry.addresses:
                owners = [p.path for p in self._packages.values() if address in p.addresses]
                if owners:
                    self._paths[address] = owners[-1]
                else:
                    self._paths.pop(address, None)
        logger.info("Unregistered %s", alias)

    def lookup(self, address: Address) -> Optional[str]:
        with self._lock.read():
            return self._paths.get(address)

    def package(self, alias: str) -> Optional[RegisteredPackage]:
        with self._lock.read():
            return self._packages.get(alias)

    def aliases(self) -> List[str]:
        with self._lock.read():
            return list(self._packages)

    def view(self, alias: str, dependencies: Sequence[str] = ()) -> "RegistryView":
        """Lookup view for generating ``alias`` against ``dependencies``."""
        with self._lock.read():
            own = self._packages.get(alias)
            if own is None:
                raise UnknownPackageError(f"Package '{alias}' has not been registered")
            missing = [dep for dep in dependencies if dep not in self._packages]
            if missing:
                raise UnknownPackageError(
                    f"Dependencies {missing} of '{alias}' have not been generated in this "
                    "session; generate them first"
                )
            visible = {}
            for dep in dependencies:
                entry = self._packages[dep]
                for address in entry.addresses:
                    visible[address] = entry.path
        return RegistryView(own, visible)


class RegistryView:
    """Read-only, per-package slice of the registry used by the type mapper."""

    def __init__(self, own: RegisteredPackage, dependencies: Dict[Address, str]):
        self.own = own
        self._dependencies = dict(dependencies)

    def is_own(self, address: Address) -> bool:
        return address in self.own.addresses

    def path_for(self, address: Address, type_name: Optional[str] = None) -> str:
        """Binding path of a foreign datatype's package.

        Raises:
            UnknownPackageError: no declared dependency defines ``address``
        """
        path = self._dependencies.get(address)
        if path is None:
            what = f"type {type_name}" if type_name else "a type"
            raise UnknownPackageError(
                f"Package {address.short_hex()} (defining {what}) is not a declared "
                f"dependency of '{self.own.alias}'",
                address=address.to_hex(),
                type_name=type_name,
            )
        return path


class BuildContext:
    """Explicit state of one generation run.

    Packages are generated strictly in the order callers submit them; each
    one is registered before it is synthesized and before anything that
    depends on it is processed.
    """

    def __init__(
        self,
        settings: Optional[MoveBindSettings] = None,
        registry: Optional[Registry] = None,
        base_path: Optional[str] = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry or Registry()
        self.base_path = base_path or self.settings.base_path

    def binding_path(self, alias: str) -> str:
        return f"{self.base_path}.{alias}" if self.base_path else alias
