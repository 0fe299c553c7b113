"""
Compiled Move module format: constants and table records.

Records keep raw pool indices; ``normalize`` turns them into schema objects.
"""

from dataclasses import dataclass, field
import enum
from typing import List, Optional, Tuple

MAGIC = b"\xa1\x1c\xeb\x0b"
MIN_VERSION = 5
MAX_VERSION = 7
# Versions from 7 on carry enum tables and variant jump tables.
VERSION_WITH_ENUMS = 7


class TableKind(enum.IntEnum):
    MODULE_HANDLES = 0x1
    DATATYPE_HANDLES = 0x2
    FUNCTION_HANDLES = 0x3
    FUNCTION_INST = 0x4
    SIGNATURES = 0x5
    CONSTANT_POOL = 0x6
    IDENTIFIERS = 0x7
    ADDRESS_IDENTIFIERS = 0x8
    STRUCT_DEFS = 0xA
    STRUCT_DEF_INST = 0xB
    FUNCTION_DEFS = 0xC
    FIELD_HANDLE = 0xD
    FIELD_INST = 0xE
    FRIEND_DECLS = 0xF
    METADATA = 0x10
    ENUM_DEFS = 0x11
    ENUM_DEF_INST = 0x12
    VARIANT_HANDLES = 0x13
    VARIANT_INST_HANDLES = 0x14


class SerializedType(enum.IntEnum):
    BOOL = 0x1
    U8 = 0x2
    U64 = 0x3
    U128 = 0x4
    ADDRESS = 0x5
    REFERENCE = 0x6
    MUTABLE_REFERENCE = 0x7
    STRUCT = 0x8
    TYPE_PARAMETER = 0x9
    VECTOR = 0xA
    STRUCT_INST = 0xB
    SIGNER = 0xC
    U16 = 0xD
    U32 = 0xE
    U256 = 0xF


class Visibility(enum.IntEnum):
    PRIVATE = 0x0
    PUBLIC = 0x1
    # 0x2 was the retired "script" visibility
    FRIEND = 0x3


FUNCTION_NATIVE = 0x2
FUNCTION_ENTRY = 0x4

STRUCT_NATIVE = 0x1
STRUCT_DECLARED = 0x2
ENUM_DECLARED = 0x2

JUMP_TABLE_FULL = 0x1

# Opcode -> operand layout. "uleb": one ULEB128 index; "u8": one byte;
# an int: that many raw bytes; "vec": ULEB128 signature index + u64 length.
OPCODE_OPERANDS = {
    0x01: None,  # POP
    0x02: None,  # RET
    0x03: "uleb",  # BR_TRUE
    0x04: "uleb",  # BR_FALSE
    0x05: "uleb",  # BRANCH
    0x06: 8,  # LD_U64
    0x07: "uleb",  # LD_CONST
    0x08: None,  # LD_TRUE
    0x09: None,  # LD_FALSE
    0x0A: "u8",  # COPY_LOC
    0x0B: "u8",  # MOVE_LOC
    0x0C: "u8",  # ST_LOC
    0x0D: "u8",  # MUT_BORROW_LOC
    0x0E: "u8",  # IMM_BORROW_LOC
    0x0F: "uleb",  # MUT_BORROW_FIELD
    0x10: "uleb",  # IMM_BORROW_FIELD
    0x11: "uleb",  # CALL
    0x12: "uleb",  # PACK
    0x13: "uleb",  # UNPACK
    0x14: None,  # READ_REF
    0x15: None,  # WRITE_REF
    0x16: None,  # ADD
    0x17: None,  # SUB
    0x18: None,  # MUL
    0x19: None,  # MOD
    0x1A: None,  # DIV
    0x1B: None,  # BIT_OR
    0x1C: None,  # BIT_AND
    0x1D: None,  # XOR
    0x1E: None,  # OR
    0x1F: None,  # AND
    0x20: None,  # NOT
    0x21: None,  # EQ
    0x22: None,  # NEQ
    0x23: None,  # LT
    0x24: None,  # GT
    0x25: None,  # LE
    0x26: None,  # GE
    0x27: None,  # ABORT
    0x28: None,  # NOP
    0x29: "uleb",  # EXISTS (deprecated)
    0x2A: "uleb",  # MUT_BORROW_GLOBAL (deprecated)
    0x2B: "uleb",  # IMM_BORROW_GLOBAL (deprecated)
    0x2C: "uleb",  # MOVE_FROM (deprecated)
    0x2D: "uleb",  # MOVE_TO (deprecated)
    0x2E: None,  # FREEZE_REF
    0x2F: None,  # SHL
    0x30: None,  # SHR
    0x31: "u8",  # LD_U8
    0x32: 16,  # LD_U128
    0x33: None,  # CAST_U8
    0x34: None,  # CAST_U64
    0x35: None,  # CAST_U128
    0x36: "uleb",  # MUT_BORROW_FIELD_GENERIC
    0x37: "uleb",  # IMM_BORROW_FIELD_GENERIC
    0x38: "uleb",  # CALL_GENERIC
    0x39: "uleb",  # PACK_GENERIC
    0x3A: "uleb",  # UNPACK_GENERIC
    0x3B: "uleb",  # EXISTS_GENERIC
    0x3C: "uleb",  # MUT_BORROW_GLOBAL_GENERIC
    0x3D: "uleb",  # IMM_BORROW_GLOBAL_GENERIC
    0x3E: "uleb",  # MOVE_FROM_GENERIC
    0x3F: "uleb",  # MOVE_TO_GENERIC
    0x40: "vec",  # VEC_PACK
    0x41: "uleb",  # VEC_LEN
    0x42: "uleb",  # VEC_IMM_BORROW
    0x43: "uleb",  # VEC_MUT_BORROW
    0x44: "uleb",  # VEC_PUSH_BACK
    0x45: "uleb",  # VEC_POP_BACK
    0x46: "vec",  # VEC_UNPACK
    0x47: "uleb",  # VEC_SWAP
    0x48: 2,  # LD_U16
    0x49: 4,  # LD_U32
    0x4A: 32,  # LD_U256
    0x4B: None,  # CAST_U16
    0x4C: None,  # CAST_U32
    0x4D: None,  # CAST_U256
    0x4E: "uleb",  # PACK_VARIANT
    0x4F: "uleb",  # PACK_VARIANT_GENERIC
    0x50: "uleb",  # UNPACK_VARIANT
    0x51: "uleb",  # UNPACK_VARIANT_IMM_REF
    0x52: "uleb",  # UNPACK_VARIANT_MUT_REF
    0x53: "uleb",  # UNPACK_VARIANT_GENERIC
    0x54: "uleb",  # UNPACK_VARIANT_GENERIC_IMM_REF
    0x55: "uleb",  # UNPACK_VARIANT_GENERIC_MUT_REF
    0x56: "uleb",  # VARIANT_SWITCH
}


@dataclass(frozen=True)
class SignatureToken:
    """One node of a serialized type; ``index`` is a handle or type parameter."""

    kind: SerializedType
    index: int = 0
    children: Tuple["SignatureToken", ...] = ()


@dataclass(frozen=True)
class ModuleHandle:
    address: int
    name: int


@dataclass(frozen=True)
class DatatypeHandle:
    module: int
    name: int
    abilities: int
    type_parameters: Tuple[Tuple[int, bool], ...] = ()


@dataclass(frozen=True)
class FunctionHandle:
    module: int
    name: int
    parameters: int
    returns: int
    type_parameters: Tuple[int, ...] = ()


@dataclass(frozen=True)
class FieldDefinition:
    name: int
    type: SignatureToken


@dataclass(frozen=True)
class StructDefinition:
    handle: int
    native: bool
    fields: Tuple[FieldDefinition, ...] = ()


@dataclass(frozen=True)
class VariantDefinition:
    name: int
    fields: Tuple[FieldDefinition, ...] = ()


@dataclass(frozen=True)
class EnumDefinition:
    handle: int
    variants: Tuple[VariantDefinition, ...] = ()


@dataclass(frozen=True)
class FunctionDefinition:
    handle: int
    visibility: Visibility
    is_entry: bool
    is_native: bool
    acquires: Tuple[int, ...] = ()


@dataclass
class CompiledModule:
    """Tables of one compiled module, as read from the binary."""

    version: int
    self_handle: int = 0
    module_handles: List[ModuleHandle] = field(default_factory=list)
    datatype_handles: List[DatatypeHandle] = field(default_factory=list)
    function_handles: List[FunctionHandle] = field(default_factory=list)
    signatures: List[Tuple[SignatureToken, ...]] = field(default_factory=list)
    identifiers: List[str] = field(default_factory=list)
    address_identifiers: List[bytes] = field(default_factory=list)
    constant_count: int = 0
    struct_defs: List[StructDefinition] = field(default_factory=list)
    enum_defs: List[EnumDefinition] = field(default_factory=list)
    function_defs: List[FunctionDefinition] = field(default_factory=list)
    friend_decls: List[ModuleHandle] = field(default_factory=list)
    flavor: Optional[int] = None

    def identifier(self, index: int) -> str:
        return self.identifiers[index]

    def module_name(self, handle_index: Optional[int] = None) -> str:
        handle = self.module_handles[self.self_handle if handle_index is None else handle_index]
        return self.identifiers[handle.name]

    def module_address(self, handle_index: Optional[int] = None) -> bytes:
        handle = self.module_handles[self.self_handle if handle_index is None else handle_index]
        return self.address_identifiers[handle.address]
