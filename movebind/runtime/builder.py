"""
Transaction builder interface used by generated call stubs.

Signing and submission live outside movebind; ``ProgrammableTransactionBuilder``
only records pure inputs and Move calls so stubs can be exercised and
inspected.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Protocol, Sequence, Tuple

from . import bcs
from .arguments import Argument, BorrowScope
from .types import Address, TypeTag

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MoveCall:
    """Target of a Move call: package, module, function and type arguments."""

    package: Address
    module: str
    function: str
    type_arguments: Tuple[TypeTag, ...] = ()

    def __str__(self) -> str:
        target = f"{self.package.short_hex()}::{self.module}::{self.function}"
        if self.type_arguments:
            return f"{target}<{', '.join(str(t) for t in self.type_arguments)}>"
        return target


@dataclass(frozen=True)
class MoveCallCommand:
    call: MoveCall
    arguments: Tuple[Argument, ...] = field(default_factory=tuple)


class TransactionBuilder(Protocol):
    """What generated stubs need from a builder."""

    scope: BorrowScope

    def pure(self, annotation: Any, value: Any) -> Argument:
        """Add a BCS-serialized input and return its handle."""
        ...

    def move_call(self, call: MoveCall, arguments: Sequence[Argument]) -> Argument:
        """Append a Move call and return the handle of its result."""
        ...


class ProgrammableTransactionBuilder:
    """Recording builder: collects inputs and commands in order."""

    def __init__(self) -> None:
        self.inputs: List[bytes] = []
        self.commands: List[MoveCallCommand] = []
        self.scope = BorrowScope()

    def pure(self, annotation: Any, value: Any) -> Argument:
        if annotation is None:
            annotation = type(value)
        self.inputs.append(bcs.encode(annotation, value))
        logger.debug("Added pure input %d (%d bytes)", len(self.inputs) - 1, len(self.inputs[-1]))
        return Argument.input(len(self.inputs) - 1)

    def move_call(self, call: MoveCall, arguments: Sequence[Argument]) -> Argument:
        self.commands.append(MoveCallCommand(call, tuple(arguments)))
        logger.debug("Added command %d: %s", len(self.commands) - 1, call)
        return Argument.result(len(self.commands) - 1)

    @contextmanager
    def borrow_scope(self) -> Iterator[BorrowScope]:
        """Open a nested scope; borrows taken inside expire when it exits."""
        outer = self.scope
        inner = BorrowScope(parent=outer)
        self.scope = inner
        try:
            yield inner
        finally:
            inner.close()
            self.scope = outer
