"""
BCS encoding and decoding driven by host type annotations.

Integers are little-endian, lengths and variant tags are ULEB128, vectors
and strings are length-prefixed, ``Option`` is a vector of zero or one
element. Generated classes plug in through the ``__bcs_encode__`` /
``__bcs_decode__`` hooks; generic parameters are resolved through a
substitution map that follows the annotation being walked.

``Optional[T]`` stands for ``Option<T>``. Python cannot tell ``None`` from
``Some(None)``, so ``Option<Option<T>>`` has no host form and the generator
rejects it.
"""

from __future__ import annotations

import typing
from typing import Any, Dict, List, Optional, Tuple, TypeVar, get_args, get_origin

from canoser import Cursor, Uint8, Uint16, Uint32, Uint64, Uint128

from .types import Address, int_width

Subst = Dict[Any, Any]

_FIXED_INTS = {
    8: Uint8,
    16: Uint16,
    32: Uint32,
    64: Uint64,
    128: Uint128,
}


def encode(annotation: Any, value: Any) -> bytes:
    """Serialize ``value`` as the Move type described by ``annotation``."""
    writer = BcsWriter()
    writer.write(annotation, value, {})
    return bytes(writer.buffer)


def decode(annotation: Any, data: bytes) -> Any:
    """Deserialize ``data`` as the Move type described by ``annotation``."""
    reader = BcsReader(data)
    value = reader.read(annotation, {})
    if not reader.is_finished():
        raise ValueError(
            f"{len(data) - reader.position} trailing bytes after {annotation!r}"
        )
    return value


def substitute(annotation: Any, subst: Subst) -> Any:
    """Replace type parameters inside ``annotation`` using ``subst``."""
    if not subst:
        return annotation
    if isinstance(annotation, TypeVar):
        return subst.get(annotation, annotation)
    meta = getattr(annotation, "__pydantic_generic_metadata__", None)
    if meta is not None:
        if meta["origin"] is not None and meta["args"]:
            args = tuple(substitute(a, subst) for a in meta["args"])
            return meta["origin"][args if len(args) > 1 else args[0]]
        return annotation
    origin = get_origin(annotation)
    if origin is None or origin is typing.Annotated:
        return annotation
    args = tuple(substitute(a, subst) for a in get_args(annotation))
    if origin is list:
        return List[args[0]]
    if origin is tuple:
        return Tuple[args]
    if origin is typing.Union:
        return typing.Union[args]
    return origin[args if len(args) > 1 else args[0]]


def bindings(annotation: Any, subst: Subst) -> Subst:
    """Type-parameter bindings in effect inside a generic declaration."""
    meta = getattr(annotation, "__pydantic_generic_metadata__", None)
    if meta is not None:
        if meta["origin"] is None:
            # Unparametrized (or identity-parametrized) class shares the
            # enclosing bindings.
            return subst
        params = meta["origin"].__pydantic_generic_metadata__["parameters"]
        return {
            param: substitute(arg, subst) for param, arg in zip(params, meta["args"])
        }
    origin = get_origin(annotation)
    if origin is None:
        return subst
    params = getattr(origin, "__parameters__", ())
    return {
        param: substitute(arg, subst)
        for param, arg in zip(params, get_args(annotation))
    }


def _is_optional(annotation: Any) -> bool:
    if get_origin(annotation) is typing.Union:
        args = get_args(annotation)
        return len(args) == 2 and type(None) in args
    return False


def _optional_inner(annotation: Any) -> Any:
    return [a for a in get_args(annotation) if a is not type(None)][0]


def _hook_owner(annotation: Any) -> Any:
    meta = getattr(annotation, "__pydantic_generic_metadata__", None)
    if meta is not None:
        return annotation
    return get_origin(annotation) or annotation


class BcsWriter:
    """Accumulates BCS bytes."""

    def __init__(self) -> None:
        self.buffer = bytearray()

    def write_uleb128(self, value: int) -> None:
        self.buffer += Uint32.serialize_uint32_as_uleb128(value)

    def write_bytes(self, data: bytes) -> None:
        self.write_uleb128(len(data))
        self.buffer += data

    def write(self, annotation: Any, value: Any, subst: Subst) -> None:
        if isinstance(annotation, TypeVar):
            bound = subst.get(annotation)
            if bound is None:
                bound = _infer_annotation(value)
            if bound is None:
                raise TypeError(
                    f"Unbound type parameter {annotation.__name__}; "
                    "parametrize the generic type before encoding"
                )
            self.write(bound, value, subst)
            return

        width = int_width(annotation)
        if width is not None:
            self._write_int(width, value)
            return
        if annotation is bool:
            if not isinstance(value, bool):
                raise TypeError(f"Expected bool, got {type(value).__name__}")
            self.buffer += b"\x01" if value else b"\x00"
            return
        if annotation is str:
            if not isinstance(value, str):
                raise TypeError(f"Expected str, got {type(value).__name__}")
            self.write_bytes(value.encode("utf-8"))
            return
        if isinstance(annotation, type) and issubclass(annotation, Address):
            self.buffer += annotation._validate(value).to_bytes()
            return

        origin = get_origin(annotation)
        if origin is list:
            (item,) = get_args(annotation)
            items = list(value)
            self.write_uleb128(len(items))
            for element in items:
                self.write(item, element, subst)
            return
        if _is_optional(annotation):
            if value is None:
                self.write_uleb128(0)
            else:
                self.write_uleb128(1)
                self.write(_optional_inner(annotation), value, subst)
            return

        owner = _hook_owner(annotation)
        hook = getattr(owner, "__bcs_encode__", None)
        if hook is None:
            raise TypeError(f"{annotation!r} is not BCS-serializable")
        hook(annotation, value, self, subst)

    def _write_int(self, width: int, value: Any) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Expected int for u{width}, got {type(value).__name__}")
        if value < 0 or value >= (1 << width):
            raise ValueError(f"{value} out of range for u{width}")
        if width == 256:
            self.buffer += value.to_bytes(32, "little")
        else:
            self.buffer += _FIXED_INTS[width].encode(value)


class BcsReader:
    """Reads BCS values from a byte buffer."""

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)
        self.cursor = Cursor(self.data)

    @property
    def position(self) -> int:
        return self.cursor.offset

    def is_finished(self) -> bool:
        return self.cursor.is_finished()

    def read_uleb128(self) -> int:
        start = self.position
        try:
            return Uint32.parse_uint32_from_uleb128(self.cursor)
        # canoser reports a truncated or overlong ULEB128 through an undefined `bail`
        except (NameError, OSError, IndexError):
            raise ValueError(f"Truncated or overlong ULEB128 at offset {start}") from None

    def _need(self, size: int) -> None:
        if len(self.data) - self.position < size:
            raise ValueError(
                f"Unexpected end of data at offset {self.position}: need {size} bytes"
            )

    def read_raw(self, size: int) -> bytes:
        self._need(size)
        return bytes(self.cursor.read_bytes(size))

    def read_bytes(self) -> bytes:
        return self.read_raw(self.read_uleb128())

    def read(self, annotation: Any, subst: Subst) -> Any:
        if isinstance(annotation, TypeVar):
            bound = subst.get(annotation)
            if bound is None:
                raise TypeError(
                    f"Unbound type parameter {annotation.__name__}; "
                    "parametrize the generic type before decoding"
                )
            return self.read(bound, subst)

        width = int_width(annotation)
        if width is not None:
            if width == 256:
                return int.from_bytes(self.read_raw(32), "little")
            self._need(width // 8)
            return _FIXED_INTS[width].decode(self.cursor)
        if annotation is bool:
            flag = self.read_raw(1)[0]
            if flag > 1:
                raise ValueError(f"Invalid bool byte {flag}")
            return flag == 1
        if annotation is str:
            return self.read_bytes().decode("utf-8")
        if isinstance(annotation, type) and issubclass(annotation, Address):
            return annotation(self.read_raw(32))

        origin = get_origin(annotation)
        if origin is list:
            (item,) = get_args(annotation)
            return [self.read(item, subst) for _ in range(self.read_uleb128())]
        if _is_optional(annotation):
            count = self.read_uleb128()
            if count == 0:
                return None
            if count != 1:
                raise ValueError(f"Option with {count} elements")
            return self.read(_optional_inner(annotation), subst)

        owner = _hook_owner(annotation)
        hook = getattr(owner, "__bcs_decode__", None)
        if hook is None:
            raise TypeError(f"{annotation!r} is not BCS-deserializable")
        return hook(annotation, self, subst)


def _infer_annotation(value: Any) -> Optional[Any]:
    """Best-effort annotation for values whose Python type is unambiguous."""
    if isinstance(value, bool):
        return bool
    if isinstance(value, str):
        return str
    if isinstance(value, Address):
        return type(value)
    if hasattr(type(value), "__bcs_encode__"):
        return type(value)
    return None
