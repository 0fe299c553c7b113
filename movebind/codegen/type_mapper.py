"""
Mapping from schema types to host type expressions.

Rules, first match wins: primitives, vectors, references, the known-type
table, datatypes of the package being generated, datatypes of declared
dependencies, type parameters. The mapper is pure: with the same registry
view it always returns the same expression.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from ..errors import UnsupportedPatternError
from ..registry import RegistryView
from ..runtime.types import MOVE_STDLIB, SUI_FRAMEWORK, Address
from ..schema import (
    Primitive,
    PrimitiveType,
    ReferenceType,
    StructType,
    Type,
    TypeParameter,
    VectorType,
)
from . import naming
from .ir import TypeExpr, TypeParam, TypeRef

logger = logging.getLogger(__name__)

_PRIMITIVES = {
    Primitive.BOOL: TypeRef("bool"),
    Primitive.U8: TypeRef("U8"),
    Primitive.U16: TypeRef("U16"),
    Primitive.U32: TypeRef("U32"),
    Primitive.U64: TypeRef("U64"),
    Primitive.U128: TypeRef("U128"),
    Primitive.U256: TypeRef("U256"),
    Primitive.ADDRESS: TypeRef("Address"),
    Primitive.SIGNER: TypeRef("Address"),
}

STR = TypeRef("str")
OBJECT_ID = TypeRef("ObjectId")
OPTIONAL = "Optional"


def _option(args: Tuple[TypeExpr, ...]) -> TypeExpr:
    (inner,) = args
    # typing flattens Optional[Optional[T]] to Optional[T], losing Some(None)
    if isinstance(inner, TypeRef) and inner.name == OPTIONAL and inner.module is None:
        raise UnsupportedPatternError(
            "Option<Option<T>> has no host representation", declaration="option::Option"
        )
    return TypeRef(OPTIONAL, args)


@dataclass(frozen=True)
class KnownType:
    """A well-known datatype replaced by a host idiom."""

    address: Address
    module: str
    name: str
    arity: int
    rule: Callable[[Tuple[TypeExpr, ...]], TypeExpr]

    def matches(self, type_: StructType) -> bool:
        return (type_.address, type_.module, type_.name) == (self.address, self.module, self.name)


KNOWN_TYPES: Tuple[KnownType, ...] = (
    KnownType(MOVE_STDLIB, "type_name", "TypeName", 0, lambda args: STR),
    KnownType(MOVE_STDLIB, "string", "String", 0, lambda args: STR),
    KnownType(MOVE_STDLIB, "ascii", "String", 0, lambda args: STR),
    KnownType(MOVE_STDLIB, "option", "Option", 1, _option),
    KnownType(SUI_FRAMEWORK, "object", "UID", 0, lambda args: OBJECT_ID),
    KnownType(SUI_FRAMEWORK, "object", "ID", 0, lambda args: OBJECT_ID),
)


class TypeMapper:
    """Maps ``schema.Type`` trees for one package being generated."""

    def __init__(self, registry: RegistryView, known_types: Sequence[KnownType] = KNOWN_TYPES):
        self.registry = registry
        self.known_types = tuple(known_types)

    def map(self, type_: Type) -> TypeExpr:
        if isinstance(type_, PrimitiveType):
            return _PRIMITIVES[type_.kind]
        if isinstance(type_, VectorType):
            return TypeRef("List", (self.map(type_.element),))
        if isinstance(type_, ReferenceType):
            return TypeRef("MutRef" if type_.mutable else "Ref", (self.map(type_.target),))
        if isinstance(type_, TypeParameter):
            return TypeParam(type_.index)
        if isinstance(type_, StructType):
            return self._map_datatype(type_)
        raise UnsupportedPatternError(f"No mapping for schema type {type_!r}")

    def known(self, type_: StructType) -> Optional[KnownType]:
        for entry in self.known_types:
            if entry.matches(type_):
                return entry
        return None

    def _map_datatype(self, type_: StructType) -> TypeExpr:
        args = tuple(self.map(arg) for arg in type_.type_arguments)

        entry = self.known(type_)
        if entry is not None:
            if len(args) != entry.arity:
                raise UnsupportedPatternError(
                    f"{type_} has {len(args)} type arguments, expected {entry.arity}",
                    declaration=str(type_),
                )
            return entry.rule(args)

        name = naming.class_name(type_.name)
        module = naming.module_name(type_.module)
        if self.registry.is_own(type_.address):
            return TypeRef(name, args, module=module)

        path = self.registry.path_for(type_.address, f"{type_.module}::{type_.name}")
        logger.debug("Mapped %s through %s", type_, path)
        return TypeRef(name, args, module=module, package_path=path)
