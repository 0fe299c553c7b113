"""
Runtime support imported by generated bindings.
"""

from .arguments import Arg, Argument, ArgumentKind, BorrowScope, MutRef, Ref
from .builder import MoveCall, MoveCallCommand, ProgrammableTransactionBuilder, TransactionBuilder
from .structs import (
    Key,
    MoveEnum,
    MoveStruct,
    NamedVariant,
    PhantomData,
    TupleVariant,
    UnitVariant,
    rebuild_models,
)
from .types import (
    U8,
    U16,
    U32,
    U64,
    U128,
    U256,
    Address,
    ObjectId,
    StructTag,
    TypeTag,
    require_key,
    type_tag,
)
from ..errors import BorrowError

__all__ = [
    "Address",
    "Arg",
    "Argument",
    "ArgumentKind",
    "BorrowError",
    "BorrowScope",
    "Key",
    "MoveCall",
    "MoveCallCommand",
    "MoveEnum",
    "MoveStruct",
    "MutRef",
    "NamedVariant",
    "ObjectId",
    "PhantomData",
    "ProgrammableTransactionBuilder",
    "Ref",
    "StructTag",
    "TransactionBuilder",
    "TupleVariant",
    "TypeTag",
    "U8",
    "U16",
    "U32",
    "U64",
    "U128",
    "U256",
    "UnitVariant",
    "rebuild_models",
    "require_key",
    "type_tag",
]
