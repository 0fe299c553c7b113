"""Identifier escaping for generated Python source."""

import keyword
import re
from typing import Iterable, List

# Names every generated module imports or defines at module level.
MODULE_NAMES = frozenset({
    "annotations",
    "bool",
    "str",
    "Any",
    "ClassVar",
    "Generic",
    "List",
    "Optional",
    "Tuple",
    "TypeVar",
    "Address",
    "Arg",
    "BorrowScope",
    "Key",
    "MoveCall",
    "MoveEnum",
    "MoveStruct",
    "MutRef",
    "NamedVariant",
    "ObjectId",
    "PhantomData",
    "Ref",
    "TransactionBuilder",
    "TupleVariant",
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
    "PACKAGE_ID",
    "MODULE_NAME",
})

# Attributes of the generated base classes that fields must not shadow.
MODEL_ATTRIBUTES = frozenset({
    "construct",
    "copy",
    "dict",
    "from_orm",
    "json",
    "parse_file",
    "parse_obj",
    "parse_raw",
    "schema",
    "schema_json",
    "update_forward_refs",
    "validate",
    "to_bcs",
    "from_bcs",
    "struct_tag",
    "type_tag",
    "object_id",
    "bcs_layout",
    "bcs_values",
    "bcs_build",
    "root",
})

# Attributes of MoveEnum that variant classes must not shadow.
ENUM_ATTRIBUTES = frozenset({
    "TYPE_ORIGIN_ID",
    "MOVE_MODULE",
    "MOVE_NAME",
    "variant_index",
    "struct_tag",
    "type_tag",
    "to_bcs",
    "from_bcs",
})

_TYPE_VAR = re.compile(r"^T\d+$")
_ALIAS = re.compile(r"^_(mod|pkg)_")


def _escape(name: str) -> str:
    return f"{name}_"


def class_name(name: str) -> str:
    """Module-level class name for a Move datatype."""
    if keyword.iskeyword(name) or name in MODULE_NAMES or _TYPE_VAR.match(name):
        return _escape(name)
    return name


def function_name(name: str) -> str:
    if keyword.iskeyword(name) or name in MODULE_NAMES or _ALIAS.match(name):
        return _escape(name)
    return name


def field_name(name: str) -> str:
    if name.startswith("_"):
        name = f"f{name}"
    if keyword.iskeyword(name) or name in MODEL_ATTRIBUTES or name.startswith("model_"):
        return _escape(name)
    return name


def variant_name(name: str, reserved: Iterable[str] = ()) -> str:
    """Nested class name of an enum variant.

    Variant classes live in the enum body, where they would shadow
    module-level names used by later annotations; ``reserved`` holds the
    class names of the module.
    """
    if (
        keyword.iskeyword(name)
        or name in ENUM_ATTRIBUTES
        or name in MODULE_NAMES
        or name in reserved
        or name.startswith("__")
        or _TYPE_VAR.match(name)
    ):
        return _escape(name)
    return name


def unique(names: Iterable[str]) -> List[str]:
    """Disambiguate escaped names that collided with each other."""
    seen = set()
    result = []
    for name in names:
        while name in seen:
            name = _escape(name)
        seen.add(name)
        result.append(name)
    return result


def module_alias(module: str) -> str:
    """Import alias of a sibling module of the same binding package."""
    return f"_mod_{module}"


def package_alias(path: str) -> str:
    """Import alias of a dependency binding package."""
    return "_pkg_" + path.replace(".", "_")


def module_name(name: str) -> str:
    """File and attribute name of a generated module."""
    if keyword.iskeyword(name):
        return _escape(name)
    return name
