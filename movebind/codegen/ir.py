"""
Declaration IR for generated bindings.

The synthesizer produces these records and the printer renders them.
Type expressions are trees, so tests can assert on how a type was mapped
without parsing generated text.
"""

from dataclasses import dataclass, field
import enum
from typing import Iterator, List, Optional, Tuple, Union

from ..runtime.types import Address
from . import naming


@dataclass(frozen=True)
class TypeRef:
    """A named host type, optionally generic.

    ``module`` is set for datatypes declared by a binding package;
    ``package_path`` is set when that package is a dependency.
    """

    name: str
    args: Tuple["TypeExpr", ...] = ()
    module: Optional[str] = None
    package_path: Optional[str] = None


@dataclass(frozen=True)
class TypeParam:
    """The i-th type parameter of the enclosing declaration."""

    index: int


TypeExpr = Union[TypeRef, TypeParam]


def iter_type(expr: TypeExpr) -> Iterator[TypeExpr]:
    """Yield ``expr`` and all nested expressions."""
    yield expr
    if isinstance(expr, TypeRef):
        for arg in expr.args:
            yield from iter_type(arg)


def type_params_used(expr: TypeExpr) -> List[int]:
    return sorted({e.index for e in iter_type(expr) if isinstance(e, TypeParam)})


@dataclass(frozen=True)
class FieldDecl:
    name: str
    type: TypeExpr
    move_name: str
    default: Optional[str] = None


@dataclass
class StructDecl:
    name: str
    move_name: str
    type_origin: Address
    type_param_count: int = 0
    fields: List[FieldDecl] = field(default_factory=list)
    phantom_markers: Tuple[int, ...] = ()
    is_key: bool = False
    abilities: Tuple[str, ...] = ()


class VariantKind(str, enum.Enum):
    UNIT = "unit"
    TUPLE = "tuple"
    NAMED = "named"


@dataclass
class VariantDecl:
    name: str
    move_name: str
    kind: VariantKind
    fields: List[FieldDecl] = field(default_factory=list)


@dataclass
class EnumDecl:
    name: str
    move_name: str
    type_origin: Address
    type_param_count: int = 0
    variants: List[VariantDecl] = field(default_factory=list)
    abilities: Tuple[str, ...] = ()


class ParamKind(str, enum.Enum):
    ARG = "arg"
    REF = "ref"
    MUT_REF = "mut_ref"

    @property
    def wrapper(self) -> str:
        return {"arg": "Arg", "ref": "Ref", "mut_ref": "MutRef"}[self.value]


@dataclass(frozen=True)
class ParamDecl:
    name: str
    position: int
    kind: ParamKind
    type: TypeExpr


@dataclass(frozen=True)
class TypeArgDecl:
    index: int
    requires_key: bool = False

    @property
    def name(self) -> str:
        return f"t{self.index}"


@dataclass(frozen=True)
class ReturnDecl:
    kind: ParamKind
    type: TypeExpr


@dataclass
class FunctionDecl:
    name: str
    move_name: str
    type_args: List[TypeArgDecl] = field(default_factory=list)
    params: List[ParamDecl] = field(default_factory=list)
    returns: List[ReturnDecl] = field(default_factory=list)
    needs_scope: bool = False
    is_entry: bool = False


@dataclass
class ModuleDecl:
    name: str
    package_id: Address
    structs: List[StructDecl] = field(default_factory=list)
    enums: List[EnumDecl] = field(default_factory=list)
    functions: List[FunctionDecl] = field(default_factory=list)

    @property
    def python_name(self) -> str:
        """File and attribute name of the generated module."""
        return naming.module_name(self.name)

    def is_empty(self) -> bool:
        return not (self.structs or self.enums or self.functions)

    def type_exprs(self) -> Iterator[TypeExpr]:
        for struct in self.structs:
            for f in struct.fields:
                yield f.type
        for enum_decl in self.enums:
            for variant in enum_decl.variants:
                for f in variant.fields:
                    yield f.type
        for function in self.functions:
            for param in function.params:
                yield param.type
            for ret in function.returns:
                yield ret.type


@dataclass
class PackageDecl:
    alias: str
    path: str
    address: Address
    version: int
    modules: List[ModuleDecl] = field(default_factory=list)
