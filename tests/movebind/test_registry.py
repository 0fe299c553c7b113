"""Tests for the binding registry and build context."""

import threading

import pytest

from movebind.config import MoveBindSettings
from movebind.errors import UnknownPackageError
from movebind.registry import BuildContext, ReadWriteLock, Registry
from movebind.runtime.types import Address

A = Address.from_hex("0xa")
A_V2 = Address.from_hex("0xa2")
B = Address.from_hex("0xb")


class TestRegistry:
    """Test registration and lookups."""

    def test_register_and_lookup(self):
        """Every registered address maps to the package path."""
        registry = Registry()
        entry = registry.register("a", "bindings.a", [A, A_V2])
        assert entry.addresses == frozenset({A, A_V2})
        assert registry.lookup(A) == "bindings.a"
        assert registry.lookup(A_V2) == "bindings.a"
        assert registry.lookup(B) is None
        assert registry.aliases() == ["a"]
        assert registry.package("a") == entry

    def test_reregistration_moves_address(self, caplog):
        """Registering an address under a new path replaces it and warns."""
        registry = Registry()
        registry.register("a", "bindings.a", [A])
        registry.register("a2", "bindings.a2", [A])
        assert registry.lookup(A) == "bindings.a2"
        assert "moves" in caplog.text

    def test_unregister(self):
        """Shared addresses fall back to the package still holding them."""
        registry = Registry()
        registry.register("a", "bindings.a", [A])
        registry.register("b", "bindings.b", [A, B])
        registry.unregister("b")
        assert registry.aliases() == ["a"]
        assert registry.lookup(A) == "bindings.a"
        assert registry.lookup(B) is None
        registry.unregister("missing")
        with pytest.raises(UnknownPackageError):
            registry.view("a", ["b"])

    def test_view_requires_registration(self):
        """A package must be registered before it gets a view."""
        with pytest.raises(UnknownPackageError):
            Registry().view("a")

    def test_view_requires_known_dependencies(self):
        """Dependencies must be generated earlier in the session."""
        registry = Registry()
        registry.register("b", "bindings.b", [B])
        with pytest.raises(UnknownPackageError) as exc_info:
            registry.view("b", ["a"])
        assert "generate them first" in exc_info.value.message


class TestRegistryView:
    """Test the per-package lookup view."""

    def test_own_and_dependency(self):
        """Own addresses are local; dependency addresses resolve to their path."""
        registry = Registry()
        registry.register("a", "bindings.a", [A])
        registry.register("b", "bindings.b", [B])
        view = registry.view("b", ["a"])
        assert view.is_own(B)
        assert not view.is_own(A)
        assert view.path_for(A) == "bindings.a"

    def test_undeclared_dependency_is_strict(self):
        """A registered but undeclared package is still a miss."""
        registry = Registry()
        registry.register("a", "bindings.a", [A])
        registry.register("b", "bindings.b", [B])
        view = registry.view("b", [])
        with pytest.raises(UnknownPackageError) as exc_info:
            view.path_for(A, "token::Balance")
        assert exc_info.value.address == A.to_hex()
        assert exc_info.value.type_name == "token::Balance"

    def test_miss_is_repeatable(self):
        """The same miss fails the same way every time."""
        registry = Registry()
        registry.register("b", "bindings.b", [B])
        view = registry.view("b")
        messages = []
        for _ in range(2):
            with pytest.raises(UnknownPackageError) as exc_info:
                view.path_for(A)
            messages.append(exc_info.value.message)
        assert messages[0] == messages[1]


class TestReadWriteLock:
    """Test the reader/writer lock."""

    def test_concurrent_readers(self):
        """Readers do not block each other."""
        lock = ReadWriteLock()
        inside = threading.Barrier(2, timeout=5)

        def reader():
            with lock.read():
                inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)
        assert not any(thread.is_alive() for thread in threads)

    def test_writer_excludes_readers(self):
        """A reader waits until the writer is done."""
        lock = ReadWriteLock()
        events = []
        writing = threading.Event()

        def reader():
            writing.wait(timeout=5)
            with lock.read():
                events.append("read")

        thread = threading.Thread(target=reader)
        thread.start()
        with lock.write():
            writing.set()
            thread.join(timeout=0.1)
            events.append("write")
        thread.join(timeout=5)
        assert events == ["write", "read"]


class TestBuildContext:
    """Test binding path computation."""

    def test_binding_path(self):
        context = BuildContext(settings=MoveBindSettings(base_path="app.bindings"))
        assert context.binding_path("pool") == "app.bindings.pool"

    def test_base_path_override(self):
        context = BuildContext(settings=MoveBindSettings(), base_path="gen")
        assert context.binding_path("pool") == "gen.pool"
