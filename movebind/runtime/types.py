"""
Primitive host types shared by the generator and the generated bindings.

Move integers map to width-annotated ``int`` aliases (``U8`` .. ``U256``) so
that BCS encoding and type tags can recover the on-chain width from the
annotation alone. Addresses and object ids are 32-byte values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import typing
from typing import Annotated, Any, List, Tuple, get_args, get_origin

from pydantic_core import core_schema

ADDRESS_LENGTH = 32


@dataclass(frozen=True)
class MoveInt:
    """Annotation marker carrying the bit width of a Move integer."""

    bits: int

    @property
    def max_value(self) -> int:
        return (1 << self.bits) - 1


U8 = Annotated[int, MoveInt(8)]
U16 = Annotated[int, MoveInt(16)]
U32 = Annotated[int, MoveInt(32)]
U64 = Annotated[int, MoveInt(64)]
U128 = Annotated[int, MoveInt(128)]
U256 = Annotated[int, MoveInt(256)]


class Address:
    """A 32-byte account or package address."""

    __slots__ = ("_bytes",)

    ONE: "Address"
    TWO: "Address"

    def __init__(self, value: bytes):
        value = bytes(value)
        if len(value) != ADDRESS_LENGTH:
            raise ValueError(
                f"Address must be {ADDRESS_LENGTH} bytes, got {len(value)}"
            )
        self._bytes = value

    @classmethod
    def from_hex(cls, text: str) -> "Address":
        """Parse ``0x``-prefixed (or bare) hex, left-padding short forms."""
        if not isinstance(text, str):
            raise ValueError(f"Address must be a string, got {type(text).__name__}")
        digits = text.strip()
        if digits[:2] in ("0x", "0X"):
            digits = digits[2:]
        if not digits or len(digits) > ADDRESS_LENGTH * 2:
            raise ValueError(f"Invalid address: {text!r}")
        try:
            raw = bytes.fromhex(digits.rjust(ADDRESS_LENGTH * 2, "0"))
        except ValueError:
            raise ValueError(f"Invalid address: {text!r}") from None
        return cls(raw)

    @classmethod
    def from_int(cls, value: int) -> "Address":
        return cls(value.to_bytes(ADDRESS_LENGTH, "big"))

    def to_bytes(self) -> bytes:
        return self._bytes

    def to_hex(self) -> str:
        return "0x" + self._bytes.hex()

    def short_hex(self) -> str:
        """Hex form without leading zeros, e.g. ``0x2``."""
        stripped = self._bytes.hex().lstrip("0")
        return "0x" + (stripped or "0")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Address):
            return self._bytes == other._bytes
        return NotImplemented

    def __lt__(self, other: "Address") -> bool:
        return self._bytes < other._bytes

    def __hash__(self) -> int:
        return hash(self._bytes)

    def __str__(self) -> str:
        return self.to_hex()

    def __repr__(self) -> str:
        return f"Address({self.short_hex()})"

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )

    @classmethod
    def _validate(cls, value: Any) -> "Address":
        if isinstance(value, cls):
            return value
        if isinstance(value, Address):
            return cls(value.to_bytes())
        if isinstance(value, (bytes, bytearray)):
            return cls(bytes(value))
        if isinstance(value, str):
            return cls.from_hex(value)
        raise ValueError(f"Cannot interpret {value!r} as {cls.__name__}")


Address.ONE = Address.from_int(1)
Address.TWO = Address.from_int(2)


class ObjectId(Address):
    """Unique identifier of an on-chain object (``UID`` / ``ID``)."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"ObjectId({self.short_hex()})"


class TypeTagKind:
    BOOL = "bool"
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"
    U128 = "u128"
    U256 = "u256"
    ADDRESS = "address"
    SIGNER = "signer"
    VECTOR = "vector"
    STRUCT = "struct"


_INT_KINDS = {
    8: TypeTagKind.U8,
    16: TypeTagKind.U16,
    32: TypeTagKind.U32,
    64: TypeTagKind.U64,
    128: TypeTagKind.U128,
    256: TypeTagKind.U256,
}


@dataclass(frozen=True)
class StructTag:
    """Fully qualified on-chain struct type."""

    address: Address
    module: str
    name: str
    type_params: Tuple["TypeTag", ...] = ()

    def __str__(self) -> str:
        base = f"{self.address.to_hex()}::{self.module}::{self.name}"
        if self.type_params:
            return f"{base}<{', '.join(str(t) for t in self.type_params)}>"
        return base


@dataclass(frozen=True)
class TypeTag:
    """A concrete on-chain type, as passed to calls as a type argument."""

    kind: str
    inner: "TypeTag | None" = None
    struct: StructTag | None = field(default=None)

    @classmethod
    def vector(cls, inner: "TypeTag") -> "TypeTag":
        return cls(TypeTagKind.VECTOR, inner=inner)

    @classmethod
    def of_struct(cls, tag: StructTag) -> "TypeTag":
        return cls(TypeTagKind.STRUCT, struct=tag)

    def __str__(self) -> str:
        if self.kind == TypeTagKind.VECTOR:
            return f"vector<{self.inner}>"
        if self.kind == TypeTagKind.STRUCT:
            return str(self.struct)
        return self.kind


MOVE_STDLIB = Address.ONE
SUI_FRAMEWORK = Address.TWO

STRING_TAG = StructTag(MOVE_STDLIB, "string", "String")
UID_TAG = StructTag(SUI_FRAMEWORK, "object", "UID")


def int_width(annotation: Any) -> int | None:
    """Bit width of a ``U8``..``U256`` annotation, or None."""
    if get_origin(annotation) is Annotated:
        for meta in get_args(annotation)[1:]:
            if isinstance(meta, MoveInt):
                return meta.bits
    return None


def type_tag(annotation: Any) -> TypeTag:
    """Derive the on-chain type tag for a host annotation.

    Generated classes, parametrized generics, integer aliases and the
    known-type substitutions are all accepted.
    """
    width = int_width(annotation)
    if width is not None:
        return TypeTag(_INT_KINDS[width])
    if annotation is bool:
        return TypeTag(TypeTagKind.BOOL)
    if annotation is str:
        return TypeTag.of_struct(STRING_TAG)
    if annotation is ObjectId:
        return TypeTag.of_struct(UID_TAG)
    if annotation is Address:
        return TypeTag(TypeTagKind.ADDRESS)

    origin = get_origin(annotation)
    args = get_args(annotation)
    if origin in (list, List):
        return TypeTag.vector(type_tag(args[0]))
    if _is_optional(annotation):
        inner = [a for a in args if a is not type(None)][0]
        return TypeTag.of_struct(
            StructTag(MOVE_STDLIB, "option", "Option", (type_tag(inner),))
        )

    struct_type = getattr(origin or annotation, "struct_tag", None)
    if struct_type is not None:
        return TypeTag.of_struct(struct_type(annotation))
    raise TypeError(f"{annotation!r} has no on-chain type tag")


def _is_optional(annotation: Any) -> bool:
    if get_origin(annotation) is typing.Union:
        args = get_args(annotation)
        return len(args) == 2 and type(None) in args
    return False


def require_key(annotation: Any) -> Any:
    """Check that a type argument has the ``key`` ability."""
    from .structs import Key

    base = get_origin(annotation) or annotation
    if not (isinstance(base, type) and issubclass(base, Key)):
        raise TypeError(f"{annotation!r} does not have the key ability")
    return annotation
