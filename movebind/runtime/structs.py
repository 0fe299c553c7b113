"""
Base classes for generated struct and enum bindings.

Structs are pydantic models whose field order is the on-chain field order.
Enums are plain classes holding one nested pydantic model per variant; a
value of the enum is an instance of one of its variants.
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Generic, List, Tuple, TypeVar, get_args, get_origin

from pydantic import BaseModel, ConfigDict, RootModel
from pydantic_core import core_schema

from . import bcs
from .types import Address, ObjectId, StructTag, TypeTag
from .types import type_tag as tag_of

T = TypeVar("T")


class PhantomData(Generic[T]):
    """Zero-size marker that ties an otherwise unused type parameter to a struct."""

    __slots__ = ()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, PhantomData)

    def __hash__(self) -> int:
        return 0

    def __repr__(self) -> str:
        return "PhantomData()"

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            lambda value: value if isinstance(value, PhantomData) else PhantomData()
        )

    @classmethod
    def __bcs_encode__(cls, annotation, value, writer, subst) -> None:
        pass

    @classmethod
    def __bcs_decode__(cls, annotation, reader, subst) -> "PhantomData":
        return PhantomData()


def _annotation_of(info: Any) -> Any:
    # pydantic moves Annotated metadata such as the MoveInt width into FieldInfo
    if info.metadata:
        return Annotated[(info.annotation, *info.metadata)]
    return info.annotation


class _FieldCodec:
    """Field-by-field BCS codec shared by struct and variant models."""

    @classmethod
    def bcs_layout(cls) -> List[Tuple[str, Any]]:
        """(field name, annotation) pairs in serialization order."""
        return [(name, _annotation_of(info)) for name, info in cls.model_fields.items()]

    def bcs_values(self) -> List[Any]:
        return [getattr(self, name) for name in type(self).model_fields]

    @classmethod
    def bcs_build(cls, values: List[Any]) -> "MoveValue":
        return cls.model_construct(**dict(zip(cls.model_fields, values)))

    @classmethod
    def _encode_fields(cls, value, writer, subst) -> None:
        for (_, annotation), item in zip(cls.bcs_layout(), value.bcs_values()):
            writer.write(annotation, item, subst)

    @classmethod
    def _decode_fields(cls, reader, subst) -> "MoveValue":
        return cls.bcs_build(
            [reader.read(annotation, subst) for _, annotation in cls.bcs_layout()]
        )


class MoveValue(_FieldCodec, BaseModel):
    """Shared behaviour of struct and variant models."""

    model_config = ConfigDict(arbitrary_types_allowed=True, protected_namespaces=())

    def to_bcs(self) -> bytes:
        return bcs.encode(type(self), self)

    @classmethod
    def from_bcs(cls, data: bytes) -> Any:
        return bcs.decode(cls, data)


class MoveStruct(MoveValue):
    """Base class of generated struct bindings."""

    TYPE_ORIGIN_ID: ClassVar[Address]
    MOVE_MODULE: ClassVar[str]
    MOVE_NAME: ClassVar[str]

    @classmethod
    def struct_tag(cls, annotation: Any = None) -> StructTag:
        """On-chain type of this struct; generic structs must be parametrized."""
        target = cls if annotation is None else annotation
        meta = target.__pydantic_generic_metadata__
        if meta["parameters"]:
            raise TypeError(
                f"{cls.MOVE_NAME} has unbound type parameters; "
                f"use {cls.__name__}[...] to parametrize it"
            )
        return StructTag(
            cls.TYPE_ORIGIN_ID,
            cls.MOVE_MODULE,
            cls.MOVE_NAME,
            tuple(tag_of(arg) for arg in meta["args"]),
        )

    @classmethod
    def type_tag(cls) -> TypeTag:
        return TypeTag.of_struct(cls.struct_tag())

    @classmethod
    def __bcs_encode__(cls, annotation, value, writer, subst) -> None:
        if not isinstance(value, MoveStruct):
            value = annotation.model_validate(value)
        inner = bcs.bindings(annotation, subst)
        layout_cls = annotation
        if annotation.__pydantic_generic_metadata__["origin"] is not None:
            layout_cls = annotation.__pydantic_generic_metadata__["origin"]
        for (_, field_annotation), item in zip(layout_cls.bcs_layout(), value.bcs_values()):
            writer.write(field_annotation, item, inner)

    @classmethod
    def __bcs_decode__(cls, annotation, reader, subst) -> "MoveStruct":
        inner = bcs.bindings(annotation, subst)
        layout_cls = annotation
        if annotation.__pydantic_generic_metadata__["origin"] is not None:
            layout_cls = annotation.__pydantic_generic_metadata__["origin"]
        values = [reader.read(field, inner) for _, field in layout_cls.bcs_layout()]
        return annotation.bcs_build(values)


class Key:
    """Mixin for structs with the ``key`` ability."""

    def object_id(self) -> ObjectId:
        """Unique id of the object (its ``id`` field)."""
        return ObjectId._validate(getattr(self, "id"))


class UnitVariant(MoveValue):
    """Enum variant without fields."""


class NamedVariant(MoveValue):
    """Enum variant with named fields."""


class TupleVariant(_FieldCodec, RootModel):
    """Enum variant with positional fields, built from a tuple."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __init__(self, *values: Any) -> None:
        if len(values) == 1 and isinstance(values[0], tuple):
            values = values[0]
        super().__init__(tuple(values))

    def __getitem__(self, index: int) -> Any:
        return self.root[index]

    def __len__(self) -> int:
        return len(self.root)

    @classmethod
    def bcs_layout(cls) -> List[Tuple[str, Any]]:
        annotation = cls.model_fields["root"].annotation
        return [(f"pos{i}", arg) for i, arg in enumerate(get_args(annotation))]

    def bcs_values(self) -> List[Any]:
        return list(self.root)

    @classmethod
    def bcs_build(cls, values: List[Any]) -> "TupleVariant":
        return cls.model_construct(tuple(values))


_VARIANT_BASES = (UnitVariant, NamedVariant, TupleVariant)


class MoveEnum:
    """Base class of generated enum bindings.

    Variants are nested classes deriving from ``UnitVariant``,
    ``TupleVariant`` or ``NamedVariant``. Declaration order is the on-chain
    variant index.
    """

    TYPE_ORIGIN_ID: ClassVar[Address]
    MOVE_MODULE: ClassVar[str]
    MOVE_NAME: ClassVar[str]
    __variants__: ClassVar[Tuple[type, ...]] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls.__variants__ = tuple(
            member
            for member in vars(cls).values()
            if isinstance(member, type) and issubclass(member, _VARIANT_BASES)
        )

    def __new__(cls, *args: Any, **kwargs: Any):
        raise TypeError(
            f"{cls.__name__} is an enum; instantiate one of its variants instead"
        )

    @classmethod
    def variant_index(cls, value: Any) -> int:
        for index, variant in enumerate(cls.__variants__):
            if isinstance(value, variant):
                return index
        raise TypeError(f"{value!r} is not a variant of {cls.__name__}")

    @classmethod
    def struct_tag(cls, annotation: Any = None) -> StructTag:
        params = getattr(cls, "__parameters__", ())
        args = get_args(annotation) if annotation is not None else ()
        if len(args) != len(params) or any(isinstance(a, TypeVar) for a in args):
            raise TypeError(
                f"{cls.MOVE_NAME} has unbound type parameters; "
                f"use {cls.__name__}[...] to parametrize it"
            )
        return StructTag(
            cls.TYPE_ORIGIN_ID,
            cls.MOVE_MODULE,
            cls.MOVE_NAME,
            tuple(tag_of(arg) for arg in args),
        )

    @classmethod
    def type_tag(cls) -> TypeTag:
        return TypeTag.of_struct(cls.struct_tag())

    @classmethod
    def to_bcs(cls, value: Any) -> bytes:
        """Serialize a variant instance of a non-generic enum."""
        return bcs.encode(cls, value)

    @classmethod
    def from_bcs(cls, data: bytes) -> Any:
        return bcs.decode(cls, data)

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: Any) -> core_schema.CoreSchema:
        enum_cls = get_origin(source) or source

        def validate(value: Any) -> Any:
            enum_cls.variant_index(value)
            return value

        return core_schema.no_info_plain_validator_function(validate)

    @classmethod
    def __bcs_encode__(cls, annotation, value, writer, subst) -> None:
        enum_cls = get_origin(annotation) or annotation
        index = enum_cls.variant_index(value)
        writer.write_uleb128(index)
        enum_cls.__variants__[index]._encode_fields(
            value, writer, bcs.bindings(annotation, subst)
        )

    @classmethod
    def __bcs_decode__(cls, annotation, reader, subst) -> Any:
        enum_cls = get_origin(annotation) or annotation
        index = reader.read_uleb128()
        if index >= len(enum_cls.__variants__):
            raise ValueError(f"{enum_cls.__name__} has no variant {index}")
        variant = enum_cls.__variants__[index]
        return variant._decode_fields(reader, bcs.bindings(annotation, subst))


def rebuild_models(*classes: type) -> None:
    """Resolve forward references once every class of a module is defined."""
    for cls in classes:
        if isinstance(cls, type) and issubclass(cls, MoveEnum):
            for variant in cls.__variants__:
                variant.model_rebuild()
        else:
            cls.model_rebuild()
