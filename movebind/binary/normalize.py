"""
Normalization of compiled modules into the schema model.
"""

import logging
from typing import Dict, Tuple

from ..errors import DecodeError
from ..runtime.types import Address
from ..schema import (
    ADDRESS,
    BOOL,
    SIGNER,
    U8,
    U16,
    U32,
    U64,
    U128,
    U256,
    Ability,
    DatatypeTypeParameter,
    Enum,
    Field,
    Function,
    Module,
    ReferenceType,
    Struct,
    StructType,
    Type,
    TypeOriginTable,
    TypeParameter,
    Variant,
    VectorType,
    Visibility,
)
from .format import CompiledModule, SerializedType, SignatureToken, Visibility as RawVisibility

logger = logging.getLogger(__name__)

_PRIMITIVES = {
    SerializedType.BOOL: BOOL,
    SerializedType.U8: U8,
    SerializedType.U16: U16,
    SerializedType.U32: U32,
    SerializedType.U64: U64,
    SerializedType.U128: U128,
    SerializedType.U256: U256,
    SerializedType.ADDRESS: ADDRESS,
    SerializedType.SIGNER: SIGNER,
}

_VISIBILITY = {
    RawVisibility.PRIVATE: Visibility.PRIVATE,
    RawVisibility.PUBLIC: Visibility.PUBLIC,
    RawVisibility.FRIEND: Visibility.FRIEND,
}


class ModuleNormalizer:
    """Resolves pool indices of one compiled module into schema records.

    Datatypes declared by the module's own package are addressed by their
    defining id from ``origins``; foreign datatypes keep the address of the
    module that declares them.
    """

    def __init__(self, compiled: CompiledModule, name: str, origins: TypeOriginTable):
        self.compiled = compiled
        self.name = name
        self.origins = origins
        self.self_address = compiled.module_address()

    def normalize(self) -> Module:
        compiled = self.compiled
        module_name = compiled.module_name()
        if module_name != self.name:
            raise DecodeError(
                f"Payload for '{self.name}' contains module '{module_name}'", module=self.name
            )

        structs: Dict[str, Struct] = {}
        for definition in compiled.struct_defs:
            handle = compiled.datatype_handles[definition.handle]
            structs[compiled.identifier(handle.name)] = Struct(
                fields=self._fields(definition.fields),
                type_parameters=self._datatype_params(handle.type_parameters),
                abilities=Ability.from_mask(handle.abilities),
            )

        enums: Dict[str, Enum] = {}
        for definition in compiled.enum_defs:
            handle = compiled.datatype_handles[definition.handle]
            enums[compiled.identifier(handle.name)] = Enum(
                variants=tuple(
                    Variant(compiled.identifier(v.name), self._fields(v.fields))
                    for v in definition.variants
                ),
                type_parameters=self._datatype_params(handle.type_parameters),
                abilities=Ability.from_mask(handle.abilities),
            )

        functions: Dict[str, Function] = {}
        for definition in compiled.function_defs:
            if definition.visibility != RawVisibility.PUBLIC and not definition.is_entry:
                continue
            handle = compiled.function_handles[definition.handle]
            functions[compiled.identifier(handle.name)] = Function(
                parameters=self._signature(handle.parameters),
                type_parameters=tuple(Ability.from_mask(m) for m in handle.type_parameters),
                returns=self._signature(handle.returns),
                visibility=_VISIBILITY[definition.visibility],
                is_entry=definition.is_entry,
            )

        logger.debug(
            "Normalized %s: %d structs, %d enums, %d exposed functions",
            self.name,
            len(structs),
            len(enums),
            len(functions),
        )
        return Module(
            name=self.name,
            address=Address(self.self_address),
            structs=dict(sorted(structs.items())),
            enums=dict(sorted(enums.items())),
            functions=dict(sorted(functions.items())),
        )

    def _datatype_params(self, params) -> Tuple[DatatypeTypeParameter, ...]:
        return tuple(
            DatatypeTypeParameter(Ability.from_mask(mask), is_phantom)
            for mask, is_phantom in params
        )

    def _fields(self, fields) -> Tuple[Field, ...]:
        return tuple(
            Field(self.compiled.identifier(f.name), self._type(f.type)) for f in fields
        )

    def _signature(self, index: int) -> Tuple[Type, ...]:
        return tuple(self._type(token) for token in self.compiled.signatures[index])

    def _type(self, token: SignatureToken) -> Type:
        kind = token.kind
        if kind in _PRIMITIVES:
            return _PRIMITIVES[kind]
        if kind == SerializedType.VECTOR:
            return VectorType(self._type(token.children[0]))
        if kind == SerializedType.REFERENCE:
            return ReferenceType(self._type(token.children[0]))
        if kind == SerializedType.MUTABLE_REFERENCE:
            return ReferenceType(self._type(token.children[0]), mutable=True)
        if kind == SerializedType.TYPE_PARAMETER:
            return TypeParameter(token.index)
        return self._datatype(token)

    def _datatype(self, token: SignatureToken) -> StructType:
        compiled = self.compiled
        if token.index >= len(compiled.datatype_handles):
            raise DecodeError(
                f"Datatype handle index {token.index} out of bounds", module=self.name
            )
        handle = compiled.datatype_handles[token.index]
        module = compiled.module_name(handle.module)
        name = compiled.identifier(handle.name)
        raw_address = compiled.module_address(handle.module)
        if raw_address == self.self_address:
            address = self.origins.get(module, name)
            if address is None:
                raise DecodeError(
                    f"No type origin for {module}::{name}", module=self.name
                )
        else:
            address = Address(raw_address)
        arguments = tuple(self._type(child) for child in token.children)
        expected = len(handle.type_parameters)
        if len(arguments) != expected:
            raise DecodeError(
                f"{module}::{name} expects {expected} type arguments, got {len(arguments)}",
                module=self.name,
            )
        return StructType(address, module, name, arguments)


def normalize_module(
    compiled: CompiledModule, name: str, origins: TypeOriginTable
) -> Module:
    """Normalize one compiled module; see ``ModuleNormalizer``."""
    return ModuleNormalizer(compiled, name, origins).normalize()

