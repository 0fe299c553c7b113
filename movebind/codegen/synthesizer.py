"""
Declaration synthesis.

Builds the declaration IR for structs, enums and function stubs of a
normalized package, using the ``TypeMapper`` for every type it meets.
"""

import logging
from typing import Iterable, List, Optional, Set

from ..errors import DecodeError, UnsupportedPatternError
from ..runtime.types import SUI_FRAMEWORK
from ..schema import (
    Ability,
    Enum,
    Field,
    Function,
    Module,
    Package,
    ReferenceType,
    Struct,
    StructType,
    Type,
    TypeOriginTable,
)
from . import naming
from .ir import (
    EnumDecl,
    FieldDecl,
    FunctionDecl,
    ModuleDecl,
    PackageDecl,
    ParamDecl,
    ParamKind,
    ReturnDecl,
    StructDecl,
    TypeArgDecl,
    TypeParam,
    TypeRef,
    VariantDecl,
    VariantKind,
    type_params_used,
)
from .type_mapper import TypeMapper

logger = logging.getLogger(__name__)

TX_CONTEXT = "TxContext"


def is_tx_context(type_: Type) -> bool:
    """True for ``&TxContext`` / ``&mut TxContext`` of the Sui framework."""
    if not isinstance(type_, ReferenceType):
        return False
    target = type_.target
    return (
        isinstance(target, StructType)
        and target.address == SUI_FRAMEWORK
        and target.name == TX_CONTEXT
    )


def is_positional(fields) -> bool:
    """Fields named ``pos0``, ``pos1``, ... in order."""
    return bool(fields) and all(f.name == f"pos{i}" for i, f in enumerate(fields))


class CodeSynthesizer:
    """Builds declaration IR for one package."""

    def __init__(self, mapper: TypeMapper, origins: Optional[TypeOriginTable] = None):
        self.mapper = mapper
        self.origins = origins or TypeOriginTable()

    def build_package(self, package: Package, alias: str, path: str) -> PackageDecl:
        self.origins = package.type_origins
        modules = []
        for module in package.modules.values():
            decl = self.build_module(module, package)
            if decl.is_empty():
                logger.debug("Skipping empty module %s", module.name)
                continue
            modules.append(decl)
        return PackageDecl(
            alias=alias,
            path=path,
            address=package.address,
            version=package.version,
            modules=modules,
        )

    def build_module(self, module: Module, package: Optional[Package] = None) -> ModuleDecl:
        package_id = package.address if package is not None else module.address
        decl = ModuleDecl(name=module.name, package_id=package_id)
        decl.structs = [
            self.build_struct(module.name, name, struct)
            for name, struct in module.structs.items()
        ]
        class_names = {s.name for s in decl.structs} | {
            naming.class_name(name) for name in module.enums
        }
        decl.enums = [
            self.build_enum(module.name, name, enum_def, class_names)
            for name, enum_def in module.enums.items()
        ]
        decl.functions = [
            self.build_function(module.name, name, function)
            for name, function in module.functions.items()
        ]
        for function in decl.functions:
            while function.name in class_names:
                function.name = f"{function.name}_"
        return decl

    def _type_origin(self, module: str, name: str):
        address = self.origins.get(module, name)
        if address is None:
            raise DecodeError(f"No type origin for {module}::{name}", module=module)
        return address

    def _fields(self, fields: List[Field]) -> List[FieldDecl]:
        names = naming.unique(naming.field_name(f.name) for f in fields)
        return [
            FieldDecl(name, self.mapper.map(f.type), f.name)
            for name, f in zip(names, fields)
        ]

    def build_struct(self, module: str, name: str, struct: Struct) -> StructDecl:
        fields = self._fields(struct.fields)
        used: Set[int] = set()
        for f in fields:
            used.update(type_params_used(f.type))

        markers = tuple(
            i
            for i, param in enumerate(struct.type_parameters)
            if param.is_phantom and i not in used
        )
        taken = {f.name for f in fields}
        for i in markers:
            marker = f"phantom_data_{i}"
            while marker in taken:
                marker = f"{marker}_"
            taken.add(marker)
            fields.append(
                FieldDecl(
                    marker,
                    TypeRef("PhantomData", (TypeParam(i),)),
                    move_name="",
                    default="PhantomData()",
                )
            )

        is_key = Ability.KEY in struct.abilities
        if is_key and not any(f.move_name == "id" for f in fields):
            raise UnsupportedPatternError(
                f"Struct {name} has the key ability but no 'id' field",
                module=module,
                declaration=name,
            )

        logger.debug(
            "Struct %s::%s: %d fields, phantom markers %s", module, name, len(struct.fields), markers
        )
        return StructDecl(
            name=naming.class_name(name),
            move_name=name,
            type_origin=self._type_origin(module, name),
            type_param_count=len(struct.type_parameters),
            fields=fields,
            phantom_markers=markers,
            is_key=is_key,
            abilities=tuple(sorted(a.value for a in struct.abilities)),
        )

    def build_enum(
        self, module: str, name: str, enum_def: Enum, reserved: Iterable[str] = ()
    ) -> EnumDecl:
        reserved = set(reserved)
        variant_names = naming.unique(
            naming.variant_name(v.name, reserved) for v in enum_def.variants
        )
        variants = []
        for py_name, variant in zip(variant_names, enum_def.variants):
            if not variant.fields:
                kind = VariantKind.UNIT
            elif is_positional(variant.fields):
                kind = VariantKind.TUPLE
            else:
                kind = VariantKind.NAMED
            variants.append(VariantDecl(py_name, variant.name, kind, self._fields(variant.fields)))

        logger.debug("Enum %s::%s: %d variants", module, name, len(variants))
        return EnumDecl(
            name=naming.class_name(name),
            move_name=name,
            type_origin=self._type_origin(module, name),
            type_param_count=len(enum_def.type_parameters),
            variants=variants,
            abilities=tuple(sorted(a.value for a in enum_def.abilities)),
        )

    def _param_kind(self, type_: Type) -> ParamKind:
        if isinstance(type_, ReferenceType):
            return ParamKind.MUT_REF if type_.mutable else ParamKind.REF
        return ParamKind.ARG

    def _unwrapped(self, type_: Type) -> Type:
        return type_.target if isinstance(type_, ReferenceType) else type_

    def build_function(self, module: str, name: str, function: Function) -> FunctionDecl:
        params = []
        for position, type_ in enumerate(function.parameters):
            if is_tx_context(type_):
                continue
            params.append(
                ParamDecl(
                    name=f"p{position}",
                    position=position,
                    kind=self._param_kind(type_),
                    type=self.mapper.map(self._unwrapped(type_)),
                )
            )

        returns = [
            ReturnDecl(self._param_kind(t), self.mapper.map(self._unwrapped(t)))
            for t in function.returns
        ]
        needs_scope = any(p.kind != ParamKind.ARG for p in params) or any(
            r.kind != ParamKind.ARG for r in returns
        )

        logger.debug(
            "Function %s::%s: %d of %d parameters kept",
            module,
            name,
            len(params),
            len(function.parameters),
        )
        return FunctionDecl(
            name=naming.function_name(name),
            move_name=name,
            type_args=[
                TypeArgDecl(i, Ability.KEY in constraints)
                for i, constraints in enumerate(function.type_parameters)
            ],
            params=params,
            returns=returns,
            needs_scope=needs_scope,
            is_entry=function.is_entry,
        )
