"""
Deserializer for compiled Move modules.

Reads the table directory, checks that table contents are contiguous and
non-overlapping, then reads each table into a ``CompiledModule``. Function
bodies are walked opcode by opcode only to find where the next definition
starts.
"""

import logging
import struct
from typing import Callable, Dict, List, Optional, Tuple

from canoser import Cursor, Uint8, Uint32, Uint64

from ..errors import DecodeError
from .format import (
    ENUM_DECLARED,
    FUNCTION_ENTRY,
    FUNCTION_NATIVE,
    JUMP_TABLE_FULL,
    MAGIC,
    MAX_VERSION,
    MIN_VERSION,
    OPCODE_OPERANDS,
    STRUCT_DECLARED,
    STRUCT_NATIVE,
    VERSION_WITH_ENUMS,
    CompiledModule,
    DatatypeHandle,
    EnumDefinition,
    FieldDefinition,
    FunctionDefinition,
    FunctionHandle,
    ModuleHandle,
    SerializedType,
    SignatureToken,
    StructDefinition,
    TableKind,
    VariantDefinition,
    Visibility,
)

logger = logging.getLogger(__name__)

ADDRESS_SIZE = 32
MAX_TYPE_DEPTH = 256

_READ_ERRORS = (OSError, ValueError, IndexError, struct.error)
# canoser reports a truncated or overlong ULEB128 through an undefined `bail`
_ULEB_ERRORS = _READ_ERRORS + (NameError,)


class BinaryReader:
    """Cursor over a byte slice that reports failures as ``DecodeError``."""

    def __init__(self, data: bytes, module: Optional[str] = None, base: int = 0):
        self._data = bytes(data)
        self._cursor = Cursor(self._data)
        self.module = module
        self.base = base

    @property
    def position(self) -> int:
        return self.base + self._cursor.offset

    def remaining(self) -> int:
        return len(self._data) - self._cursor.offset

    def is_finished(self) -> bool:
        return self.remaining() == 0

    def error(self, reason: str) -> DecodeError:
        return DecodeError(reason, module=self.module, offset=self.position)

    def _read(self, decoder: Callable, what: str):
        start = self.position
        try:
            return decoder(self._cursor)
        except _READ_ERRORS as exc:
            raise DecodeError(
                f"Truncated or malformed {what}: {exc}", module=self.module, offset=start
            ) from None

    def read_u8(self) -> int:
        if self.remaining() < 1:
            raise self.error("Unexpected end of data reading u8")
        return self._read(Uint8.decode, "u8")

    def read_u32(self) -> int:
        if self.remaining() < 4:
            raise self.error("Unexpected end of data reading u32")
        return self._read(Uint32.decode, "u32")

    def read_u64(self) -> int:
        if self.remaining() < 8:
            raise self.error("Unexpected end of data reading u64")
        return self._read(Uint64.decode, "u64")

    def read_uleb(self) -> int:
        start = self.position
        try:
            return Uint32.parse_uint32_from_uleb128(self._cursor)
        except _ULEB_ERRORS:
            raise DecodeError(
                "Truncated or overlong ULEB128 value", module=self.module, offset=start
            ) from None

    def read_raw(self, size: int) -> bytes:
        if size < 0 or self.remaining() < size:
            raise self.error(f"Unexpected end of data: need {size} bytes, have {self.remaining()}")
        return bytes(self._cursor.read_bytes(size))

    def read_bytes(self) -> bytes:
        return self.read_raw(self.read_uleb())


def decode_module_map(blob: bytes) -> Dict[str, bytes]:
    """Decode the BCS ``map<string, vector<u8>>`` of module name to module bytes."""
    reader = BinaryReader(blob, module="<package>")
    modules: Dict[str, bytes] = {}
    for _ in range(reader.read_uleb()):
        try:
            name = reader.read_bytes().decode("utf-8")
        except UnicodeDecodeError:
            raise reader.error("Module name is not valid UTF-8") from None
        if name in modules:
            raise reader.error(f"Duplicate module '{name}' in package payload")
        modules[name] = reader.read_bytes()
    if not reader.is_finished():
        raise reader.error(f"{reader.remaining()} trailing bytes after module map")
    return dict(sorted(modules.items()))


def deserialize_module(data: bytes, name: Optional[str] = None) -> CompiledModule:
    """Parse one compiled module.

    Raises:
        DecodeError: bad magic, unsupported version, malformed table
            directory, unknown type tag, truncated data or trailing bytes
    """
    reader = BinaryReader(data, module=name)
    if reader.read_raw(len(MAGIC)) != MAGIC:
        raise DecodeError("Bad magic: not a compiled Move module", module=name, offset=0)

    raw_version = reader.read_u32()
    flavor = raw_version >> 24 or None
    version = raw_version & 0x00FFFFFF
    if not MIN_VERSION <= version <= MAX_VERSION:
        raise DecodeError(
            f"Unsupported bytecode version {version} "
            f"(supported: {MIN_VERSION}..{MAX_VERSION})",
            module=name,
            offset=len(MAGIC),
        )

    headers = _read_table_headers(reader, version)
    content_start = reader.position
    content_size = _check_table_layout(reader, headers)
    if reader.remaining() < content_size:
        raise reader.error(
            f"Table contents need {content_size} bytes, only {reader.remaining()} remain"
        )

    module = CompiledModule(version=version, flavor=flavor)
    for kind, offset, length in headers:
        start = content_start + offset
        table = BinaryReader(data[start:start + length], module=name, base=start)
        _TABLE_READERS[kind](table, module)
        if not table.is_finished():
            raise table.error(f"{table.remaining()} trailing bytes in table {kind.name}")

    reader.read_raw(content_size)
    module.self_handle = reader.read_uleb()
    if not reader.is_finished():
        raise reader.error(f"{reader.remaining()} trailing bytes after module")

    _check_handles(module, name)
    logger.debug(
        "Deserialized module %s: v%d, %d structs, %d enums, %d functions",
        name,
        version,
        len(module.struct_defs),
        len(module.enum_defs),
        len(module.function_defs),
    )
    return module


def _read_table_headers(reader: BinaryReader, version: int) -> List[Tuple[TableKind, int, int]]:
    headers = []
    seen = set()
    for _ in range(reader.read_uleb()):
        raw_kind = reader.read_u8()
        try:
            kind = TableKind(raw_kind)
        except ValueError:
            raise reader.error(f"Unknown table kind {raw_kind:#x}") from None
        if kind in seen:
            raise reader.error(f"Duplicate table {kind.name}")
        if kind >= TableKind.ENUM_DEFS and version < VERSION_WITH_ENUMS:
            raise reader.error(f"Table {kind.name} requires bytecode version {VERSION_WITH_ENUMS}")
        seen.add(kind)
        headers.append((kind, reader.read_uleb(), reader.read_uleb()))
    return headers


def _check_table_layout(reader: BinaryReader, headers: List[Tuple[TableKind, int, int]]) -> int:
    """Tables must tile the content area starting at offset 0."""
    expected = 0
    for kind, offset, length in sorted(headers, key=lambda h: h[1]):
        if offset < expected:
            raise reader.error(f"Table {kind.name} overlaps the previous table")
        if offset > expected:
            raise reader.error(f"Gap before table {kind.name} at content offset {expected}")
        expected = offset + length
    return expected


def _read_token(reader: BinaryReader, depth: int = 0) -> SignatureToken:
    if depth > MAX_TYPE_DEPTH:
        raise reader.error("Type nesting too deep")
    tag = reader.read_u8()
    try:
        kind = SerializedType(tag)
    except ValueError:
        raise reader.error(f"Unknown type tag {tag:#x}") from None

    if kind in (SerializedType.VECTOR, SerializedType.REFERENCE, SerializedType.MUTABLE_REFERENCE):
        return SignatureToken(kind, children=(_read_token(reader, depth + 1),))
    if kind in (SerializedType.STRUCT, SerializedType.TYPE_PARAMETER):
        return SignatureToken(kind, reader.read_uleb())
    if kind == SerializedType.STRUCT_INST:
        handle = reader.read_uleb()
        arity = reader.read_uleb()
        if arity == 0:
            raise reader.error("Generic datatype instantiation without type arguments")
        args = tuple(_read_token(reader, depth + 1) for _ in range(arity))
        return SignatureToken(kind, handle, args)
    return SignatureToken(kind)


def _read_fields(reader: BinaryReader) -> Tuple[FieldDefinition, ...]:
    return tuple(
        FieldDefinition(reader.read_uleb(), _read_token(reader))
        for _ in range(reader.read_uleb())
    )


def _read_module_handles(reader: BinaryReader, module: CompiledModule) -> None:
    while not reader.is_finished():
        module.module_handles.append(ModuleHandle(reader.read_uleb(), reader.read_uleb()))


def _read_datatype_handles(reader: BinaryReader, module: CompiledModule) -> None:
    while not reader.is_finished():
        owner = reader.read_uleb()
        name = reader.read_uleb()
        abilities = reader.read_u8()
        params = tuple(
            (reader.read_u8(), reader.read_u8() != 0) for _ in range(reader.read_uleb())
        )
        module.datatype_handles.append(DatatypeHandle(owner, name, abilities, params))


def _read_function_handles(reader: BinaryReader, module: CompiledModule) -> None:
    while not reader.is_finished():
        owner = reader.read_uleb()
        name = reader.read_uleb()
        parameters = reader.read_uleb()
        returns = reader.read_uleb()
        type_params = tuple(reader.read_u8() for _ in range(reader.read_uleb()))
        module.function_handles.append(
            FunctionHandle(owner, name, parameters, returns, type_params)
        )


def _read_index_pairs(reader: BinaryReader, module: CompiledModule) -> None:
    # Instantiation and handle tables are pairs of indices the normalized
    # schema does not need.
    while not reader.is_finished():
        reader.read_uleb()
        reader.read_uleb()


def _read_signatures(reader: BinaryReader, module: CompiledModule) -> None:
    while not reader.is_finished():
        module.signatures.append(
            tuple(_read_token(reader) for _ in range(reader.read_uleb()))
        )


def _read_constants(reader: BinaryReader, module: CompiledModule) -> None:
    while not reader.is_finished():
        _read_token(reader)
        reader.read_bytes()
        module.constant_count += 1


def _read_identifiers(reader: BinaryReader, module: CompiledModule) -> None:
    while not reader.is_finished():
        raw = reader.read_bytes()
        try:
            module.identifiers.append(raw.decode("utf-8"))
        except UnicodeDecodeError:
            raise reader.error("Identifier is not valid UTF-8") from None


def _read_addresses(reader: BinaryReader, module: CompiledModule) -> None:
    if reader.remaining() % ADDRESS_SIZE:
        raise reader.error("Address table size is not a multiple of 32")
    while not reader.is_finished():
        module.address_identifiers.append(reader.read_raw(ADDRESS_SIZE))


def _read_struct_defs(reader: BinaryReader, module: CompiledModule) -> None:
    while not reader.is_finished():
        handle = reader.read_uleb()
        flag = reader.read_u8()
        if flag == STRUCT_NATIVE:
            module.struct_defs.append(StructDefinition(handle, native=True))
        elif flag == STRUCT_DECLARED:
            module.struct_defs.append(StructDefinition(handle, False, _read_fields(reader)))
        else:
            raise reader.error(f"Invalid struct field flag {flag:#x}")


def _read_enum_defs(reader: BinaryReader, module: CompiledModule) -> None:
    while not reader.is_finished():
        handle = reader.read_uleb()
        flag = reader.read_u8()
        if flag != ENUM_DECLARED:
            raise reader.error(f"Invalid enum flag {flag:#x}")
        variants = tuple(
            VariantDefinition(reader.read_uleb(), _read_fields(reader))
            for _ in range(reader.read_uleb())
        )
        module.enum_defs.append(EnumDefinition(handle, variants))


def _read_function_defs(reader: BinaryReader, module: CompiledModule) -> None:
    while not reader.is_finished():
        handle = reader.read_uleb()
        raw_visibility = reader.read_u8()
        try:
            visibility = Visibility(raw_visibility)
        except ValueError:
            raise reader.error(f"Invalid visibility {raw_visibility:#x}") from None
        flags = reader.read_u8()
        acquires = tuple(reader.read_uleb() for _ in range(reader.read_uleb()))
        is_native = bool(flags & FUNCTION_NATIVE)
        if not is_native:
            _skip_code_unit(reader, module.version)
        module.function_defs.append(
            FunctionDefinition(
                handle,
                visibility,
                is_entry=bool(flags & FUNCTION_ENTRY),
                is_native=is_native,
                acquires=acquires,
            )
        )


def _skip_code_unit(reader: BinaryReader, version: int) -> None:
    reader.read_uleb()  # locals signature
    for _ in range(reader.read_uleb()):
        opcode = reader.read_u8()
        if opcode not in OPCODE_OPERANDS:
            raise reader.error(f"Unknown opcode {opcode:#x}")
        operand = OPCODE_OPERANDS[opcode]
        if operand == "uleb":
            reader.read_uleb()
        elif operand == "u8":
            reader.read_u8()
        elif operand == "vec":
            reader.read_uleb()
            reader.read_u64()
        elif isinstance(operand, int):
            reader.read_raw(operand)
    if version >= VERSION_WITH_ENUMS:
        for _ in range(reader.read_uleb()):
            reader.read_uleb()  # enum definition
            kind = reader.read_u8()
            if kind != JUMP_TABLE_FULL:
                raise reader.error(f"Invalid jump table kind {kind:#x}")
            for _ in range(reader.read_uleb()):
                reader.read_uleb()


def _read_friends(reader: BinaryReader, module: CompiledModule) -> None:
    while not reader.is_finished():
        module.friend_decls.append(ModuleHandle(reader.read_uleb(), reader.read_uleb()))


def _read_metadata(reader: BinaryReader, module: CompiledModule) -> None:
    while not reader.is_finished():
        reader.read_bytes()
        reader.read_bytes()


_TABLE_READERS: Dict[TableKind, Callable[[BinaryReader, CompiledModule], None]] = {
    TableKind.MODULE_HANDLES: _read_module_handles,
    TableKind.DATATYPE_HANDLES: _read_datatype_handles,
    TableKind.FUNCTION_HANDLES: _read_function_handles,
    TableKind.FUNCTION_INST: _read_index_pairs,
    TableKind.SIGNATURES: _read_signatures,
    TableKind.CONSTANT_POOL: _read_constants,
    TableKind.IDENTIFIERS: _read_identifiers,
    TableKind.ADDRESS_IDENTIFIERS: _read_addresses,
    TableKind.STRUCT_DEFS: _read_struct_defs,
    TableKind.STRUCT_DEF_INST: _read_index_pairs,
    TableKind.FUNCTION_DEFS: _read_function_defs,
    TableKind.FIELD_HANDLE: _read_index_pairs,
    TableKind.FIELD_INST: _read_index_pairs,
    TableKind.FRIEND_DECLS: _read_friends,
    TableKind.METADATA: _read_metadata,
    TableKind.ENUM_DEFS: _read_enum_defs,
    TableKind.ENUM_DEF_INST: _read_index_pairs,
    TableKind.VARIANT_HANDLES: _read_index_pairs,
    TableKind.VARIANT_INST_HANDLES: _read_index_pairs,
}


def _check_handles(module: CompiledModule, name: Optional[str]) -> None:
    def check(index: int, table: list, what: str) -> None:
        if index >= len(table):
            raise DecodeError(
                f"{what} index {index} out of bounds (table has {len(table)} entries)",
                module=name,
            )

    check(module.self_handle, module.module_handles, "Self module handle")
    for handle in module.module_handles + module.friend_decls:
        check(handle.address, module.address_identifiers, "Address")
        check(handle.name, module.identifiers, "Identifier")
    for handle in module.datatype_handles:
        check(handle.module, module.module_handles, "Module handle")
        check(handle.name, module.identifiers, "Identifier")
    for handle in module.function_handles:
        check(handle.module, module.module_handles, "Module handle")
        check(handle.name, module.identifiers, "Identifier")
        check(handle.parameters, module.signatures, "Signature")
        check(handle.returns, module.signatures, "Signature")
    for definition in module.struct_defs + module.enum_defs:
        check(definition.handle, module.datatype_handles, "Datatype handle")
    for definition in module.function_defs:
        check(definition.handle, module.function_handles, "Function handle")
