"""
Normalized schema of a published package.

The ModuleProvider builds these records from the binary module payload; the
code synthesizer consumes them. Every ``StructType`` carries the defining
address of the type it names, never the current package address.

Example:
    ```python
    coin = StructType(SUI, "coin", "Coin", (TypeParameter(0),))
    field = Field("balance", StructType(SUI, "balance", "Balance", (TypeParameter(0),)))
    ```
"""

from dataclasses import dataclass, field
import enum
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from .runtime.types import Address


class Ability(str, enum.Enum):
    """Capability tags of types and type parameters."""

    COPY = "copy"
    DROP = "drop"
    STORE = "store"
    KEY = "key"

    @classmethod
    def from_mask(cls, mask: int) -> FrozenSet["Ability"]:
        abilities = set()
        for bit, ability in ((0x1, cls.COPY), (0x2, cls.DROP), (0x4, cls.STORE), (0x8, cls.KEY)):
            if mask & bit:
                abilities.add(ability)
        return frozenset(abilities)


class Primitive(str, enum.Enum):
    BOOL = "bool"
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"
    U128 = "u128"
    U256 = "u256"
    ADDRESS = "address"
    SIGNER = "signer"


@dataclass(frozen=True)
class PrimitiveType:
    kind: Primitive

    def __str__(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class StructType:
    """Reference to a struct or enum by defining address."""

    address: Address
    module: str
    name: str
    type_arguments: Tuple["Type", ...] = ()

    def __str__(self) -> str:
        base = f"{self.address.short_hex()}::{self.module}::{self.name}"
        if self.type_arguments:
            return f"{base}<{', '.join(str(t) for t in self.type_arguments)}>"
        return base


@dataclass(frozen=True)
class VectorType:
    element: "Type"

    def __str__(self) -> str:
        return f"vector<{self.element}>"


@dataclass(frozen=True)
class ReferenceType:
    target: "Type"
    mutable: bool = False

    def __str__(self) -> str:
        return f"&mut {self.target}" if self.mutable else f"&{self.target}"


@dataclass(frozen=True)
class TypeParameter:
    index: int

    def __str__(self) -> str:
        return f"T{self.index}"


Type = Union[PrimitiveType, StructType, VectorType, ReferenceType, TypeParameter]

BOOL = PrimitiveType(Primitive.BOOL)
U8 = PrimitiveType(Primitive.U8)
U16 = PrimitiveType(Primitive.U16)
U32 = PrimitiveType(Primitive.U32)
U64 = PrimitiveType(Primitive.U64)
U128 = PrimitiveType(Primitive.U128)
U256 = PrimitiveType(Primitive.U256)
ADDRESS = PrimitiveType(Primitive.ADDRESS)
SIGNER = PrimitiveType(Primitive.SIGNER)


@dataclass(frozen=True)
class Field:
    name: str
    type: Type


@dataclass(frozen=True)
class DatatypeTypeParameter:
    constraints: FrozenSet[Ability] = frozenset()
    is_phantom: bool = False


@dataclass(frozen=True)
class Struct:
    fields: Tuple[Field, ...] = ()
    type_parameters: Tuple[DatatypeTypeParameter, ...] = ()
    abilities: FrozenSet[Ability] = frozenset()


@dataclass(frozen=True)
class Variant:
    name: str
    fields: Tuple[Field, ...] = ()


@dataclass(frozen=True)
class Enum:
    variants: Tuple[Variant, ...] = ()
    type_parameters: Tuple[DatatypeTypeParameter, ...] = ()
    abilities: FrozenSet[Ability] = frozenset()


class Visibility(str, enum.Enum):
    PRIVATE = "private"
    PUBLIC = "public"
    FRIEND = "friend"


@dataclass(frozen=True)
class Function:
    parameters: Tuple[Type, ...] = ()
    type_parameters: Tuple[FrozenSet[Ability], ...] = ()
    returns: Tuple[Type, ...] = ()
    visibility: Visibility = Visibility.PUBLIC
    is_entry: bool = False


@dataclass
class Module:
    name: str
    address: Address
    structs: Dict[str, Struct] = field(default_factory=dict)
    enums: Dict[str, "Enum"] = field(default_factory=dict)
    functions: Dict[str, Function] = field(default_factory=dict)


@dataclass(frozen=True)
class TypeOrigin:
    module: str
    name: str
    defining_id: Address


class TypeOriginTable:
    """(module, datatype name) -> defining address."""

    def __init__(self, entries: Optional[Dict[Tuple[str, str], Address]] = None):
        self._entries: Dict[Tuple[str, str], Address] = dict(entries or {})

    @classmethod
    def from_origins(cls, origins: List[TypeOrigin]) -> "TypeOriginTable":
        return cls({(o.module, o.name): o.defining_id for o in origins})

    def get(self, module: str, name: str) -> Optional[Address]:
        return self._entries.get((module, name))

    def addresses(self) -> FrozenSet[Address]:
        return frozenset(self._entries.values())

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class Package:
    """A fetched and decoded package; modules are ordered by name."""

    address: Address
    version: int
    modules: Dict[str, Module] = field(default_factory=dict)
    type_origins: TypeOriginTable = field(default_factory=TypeOriginTable)
