"""
Call arguments for generated function stubs.

``Arg`` holds either a raw value that has not been submitted yet or a handle
that a transaction builder already tracks. Resolving is idempotent. ``Ref``
and ``MutRef`` are borrows of a resolved handle, bound to the ``BorrowScope``
they were taken in; borrowing never consumes the ``Arg``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar

from ..errors import BorrowError

if TYPE_CHECKING:
    from .builder import TransactionBuilder

T = TypeVar("T")

_UNSET = object()


class ArgumentKind:
    GAS_COIN = "GasCoin"
    INPUT = "Input"
    RESULT = "Result"
    NESTED_RESULT = "NestedResult"


@dataclass(frozen=True)
class Argument:
    """Handle to a value tracked by a transaction builder."""

    kind: str
    index: int = 0
    sub_index: Optional[int] = None

    @classmethod
    def gas_coin(cls) -> "Argument":
        return cls(ArgumentKind.GAS_COIN)

    @classmethod
    def input(cls, index: int) -> "Argument":
        return cls(ArgumentKind.INPUT, index)

    @classmethod
    def result(cls, index: int) -> "Argument":
        return cls(ArgumentKind.RESULT, index)

    @classmethod
    def nested_result(cls, index: int, sub_index: int) -> "Argument":
        return cls(ArgumentKind.NESTED_RESULT, index, sub_index)

    def nested(self, sub_index: int) -> "Argument":
        """The ``sub_index``-th value of a multi-value command result."""
        if self.kind != ArgumentKind.RESULT:
            raise ValueError(f"Only command results can be split, got {self}")
        return Argument.nested_result(self.index, sub_index)

    def __str__(self) -> str:
        if self.kind == ArgumentKind.GAS_COIN:
            return "GasCoin"
        if self.kind == ArgumentKind.NESTED_RESULT:
            return f"NestedResult({self.index}, {self.sub_index})"
        return f"{self.kind}({self.index})"


class BorrowScope:
    """Lifetime of borrowed arguments.

    Scopes nest; a borrow taken in an enclosing scope stays valid in the
    scopes nested inside it, but not after its own scope is closed.
    """

    def __init__(self, parent: Optional["BorrowScope"] = None):
        self.parent = parent
        self.closed = False

    def close(self) -> None:
        self.closed = True

    def encloses(self, other: "BorrowScope") -> bool:
        scope: Optional[BorrowScope] = other
        while scope is not None:
            if scope is self:
                return True
            scope = scope.parent
        return False

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<BorrowScope {id(self):#x} {state}>"


class Arg(Generic[T]):
    """Either an unresolved raw value or a resolved builder handle."""

    __slots__ = ("_value", "_handle", "_scope")

    def __init__(self, value: Any = _UNSET, *, handle: Optional[Argument] = None,
                 scope: Optional[BorrowScope] = None):
        if (value is _UNSET) == (handle is None):
            raise ValueError("Arg takes exactly one of a value or a handle")
        self._value = value
        self._handle = handle
        self._scope = scope

    @classmethod
    def from_handle(cls, handle: Argument, scope: Optional[BorrowScope] = None) -> "Arg[T]":
        return cls(handle=handle, scope=scope)

    @classmethod
    def wrap(cls, value: Any) -> "Arg[Any]":
        """Accept an ``Arg``, a bare ``Argument`` handle or a raw value."""
        if isinstance(value, Arg):
            return value
        if isinstance(value, (Ref, MutRef)):
            raise BorrowError("A borrowed argument cannot be passed by value")
        if isinstance(value, Argument):
            return cls.from_handle(value)
        return cls(value)

    @property
    def is_resolved(self) -> bool:
        return self._handle is not None

    @property
    def value(self) -> Any:
        if self._handle is not None:
            raise BorrowError(f"Arg was already submitted as {self._handle}")
        return self._value

    @property
    def handle(self) -> Argument:
        if self._handle is None:
            raise BorrowError("Arg has not been resolved against a builder")
        return self._handle

    def resolve(self, builder: "TransactionBuilder", annotation: Any = None) -> "Arg[T]":
        """Submit the raw value as a pure input; a no-op once resolved."""
        if self._handle is None:
            self._handle = builder.pure(annotation, self._value)
            self._value = _UNSET
            self._scope = builder.scope
        return self

    def borrow(self, scope: Optional[BorrowScope] = None) -> "Ref[T]":
        return Ref(self.handle, scope or self._scope)

    def borrow_mut(self, scope: Optional[BorrowScope] = None) -> "MutRef[T]":
        return MutRef(self.handle, scope or self._scope)

    def __repr__(self) -> str:
        if self._handle is not None:
            return f"Arg({self._handle})"
        return f"Arg(unresolved={self._value!r})"


class Ref(Generic[T]):
    """Read-only borrow of a resolved argument."""

    __slots__ = ("handle", "scope")

    mutable = False

    def __init__(self, handle: Argument, scope: Optional[BorrowScope] = None):
        self.handle = handle
        self.scope = scope

    @classmethod
    def expect(cls, value: Any, name: str) -> "Ref[T]":
        """Return ``value`` if it is a borrow of this kind.

        Raises:
            BorrowError: ``value`` is an ``Arg``, a raw value or a read-only
                borrow where a mutable one is required
        """
        if not isinstance(value, cls):
            raise BorrowError(
                f"{name} must be a {cls.__name__}, got {type(value).__name__}; "
                "borrow an Arg with borrow() or borrow_mut()"
            )
        return value

    def resolve(self, builder: "TransactionBuilder",
                scope: Optional[BorrowScope] = None) -> "Ref[T]":
        """Check that the borrow is usable in ``scope`` (default: the builder's)."""
        scope = scope or builder.scope
        if self.scope is None:
            return self
        if self.scope.closed:
            raise BorrowError(f"{self!r} outlived its borrow scope")
        if not self.scope.encloses(scope):
            raise BorrowError(f"{self!r} was borrowed in a different scope")
        return self

    def __eq__(self, other: object) -> bool:
        if type(other) is type(self):
            return self.handle == other.handle and self.scope is other.scope
        return NotImplemented

    def __hash__(self) -> int:
        return hash((type(self), self.handle))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.handle})"


class MutRef(Ref[T]):
    """Mutable borrow of a resolved argument."""

    __slots__ = ()

    mutable = True
