"""Tests for compiled module decoding and normalization."""

import pytest

from movebind.binary import decode_module_map, deserialize_module, normalize_module
from movebind.binary.format import TableKind, Visibility as RawVisibility
from movebind.errors import DecodeError
from movebind.runtime.types import MOVE_STDLIB, SUI_FRAMEWORK, Address
from movebind.schema import (
    U64,
    Ability,
    ReferenceType,
    StructType,
    TypeOrigin,
    TypeOriginTable,
    TypeParameter,
    VectorType,
    Visibility,
)

from sample_packages import PKG_A, build_market_module, build_token_module
from module_writer import (
    ModuleWriter,
    module_map,
    string,
    t_datatype,
    t_param,
    t_u64,
    uleb,
)

TOKEN_ORIGINS = TypeOriginTable.from_origins([
    TypeOrigin("token", name, PKG_A)
    for name in ("Action", "Balance", "Metadata", "Token", "Vault")
])


def token_module():
    return normalize_module(deserialize_module(build_token_module(), "token"), "token", TOKEN_ORIGINS)


class TestModuleMap:
    """Test decoding of the BCS module map."""

    def test_sorted_by_name(self):
        """Modules come back ordered by name."""
        blob = module_map({"b": b"\x01", "a": b"\x02\x03"})
        assert list(decode_module_map(blob)) == ["a", "b"]
        assert decode_module_map(blob)["a"] == b"\x02\x03"

    def test_trailing_bytes(self):
        """Bytes after the map are a decode error."""
        with pytest.raises(DecodeError) as exc_info:
            decode_module_map(module_map({"a": b""}) + b"\x00")
        assert "trailing" in exc_info.value.message

    def test_duplicate_module(self):
        """A module name may appear only once."""
        blob = uleb(2) + string("a") + uleb(0) + string("a") + uleb(0)
        with pytest.raises(DecodeError):
            decode_module_map(blob)

    def test_truncated(self):
        """A length prefix larger than the remaining data fails with an offset."""
        blob = uleb(1) + string("a") + uleb(10) + b"\x00"
        with pytest.raises(DecodeError) as exc_info:
            decode_module_map(blob)
        assert exc_info.value.offset is not None

    def test_multibyte_lengths(self):
        """Lengths of 128 bytes and more use several ULEB128 bytes."""
        body = bytes(range(200))
        assert decode_module_map(module_map({"big": body}))["big"] == body

    @pytest.mark.parametrize(
        "blob",
        [
            b"\x80",
            uleb(1) + b"\x81",
            b"\xff\xff\xff\xff\xff\x01",
        ],
    )
    def test_malformed_uleb(self, blob):
        """A ULEB128 cut short or too long for u32 is a decode error."""
        with pytest.raises(DecodeError) as exc_info:
            decode_module_map(blob)
        assert "ULEB128" in exc_info.value.message


class TestDeserializer:
    """Test the compiled module deserializer."""

    def test_tables(self):
        """Handles, definitions and identifiers are read back."""
        compiled = deserialize_module(build_token_module(), "token")
        assert compiled.version == 7
        assert compiled.module_name() == "token"
        assert compiled.module_address() == PKG_A.to_bytes()
        assert len(compiled.struct_defs) == 4
        assert len(compiled.enum_defs) == 1
        assert len(compiled.function_defs) == 6

    def test_flavor(self):
        """The upper byte of the version word is the flavor."""
        w = ModuleWriter("m", PKG_A, version=7, flavor=5)
        compiled = deserialize_module(w.serialize(), "m")
        assert compiled.version == 7
        assert compiled.flavor == 5

    def test_version_6_without_enums(self):
        """Version 6 modules have no jump tables in code units."""
        w = ModuleWriter("m", PKG_A, version=6)
        w.add_function("f", [t_u64()], [t_u64()])
        compiled = deserialize_module(w.serialize(), "m")
        assert compiled.version == 6
        assert len(compiled.function_defs) == 1

    def test_bad_magic(self):
        """Data that does not start with the magic is rejected at offset 0."""
        with pytest.raises(DecodeError) as exc_info:
            deserialize_module(b"\x00\x00\x00\x00" + b"\x07\x00\x00\x00", "m")
        assert exc_info.value.offset == 0

    @pytest.mark.parametrize("version", [4, 8])
    def test_unsupported_version(self, version):
        """Versions outside 5..7 are rejected."""
        data = ModuleWriter("m", PKG_A, version=7).serialize()
        data = data[:4] + bytes([version]) + data[5:]
        with pytest.raises(DecodeError) as exc_info:
            deserialize_module(data, "m")
        assert "version" in exc_info.value.message

    def test_enum_table_requires_version_7(self):
        """Enum tables in an older module are a decode error."""
        w = ModuleWriter("m", PKG_A, version=6)
        w.add_enum("E", [("A", [])])
        with pytest.raises(DecodeError):
            deserialize_module(w.serialize(), "m")

    def test_unknown_table_kind(self):
        """An unknown table kind in the directory fails."""
        data = bytearray(ModuleWriter("m", PKG_A).serialize())
        # First table header directly follows magic, version and table count.
        data[9] = 0x7F
        with pytest.raises(DecodeError) as exc_info:
            deserialize_module(bytes(data), "m")
        assert "table kind" in exc_info.value.message

    def test_unknown_type_tag(self):
        """A signature token with an unknown tag fails."""
        w = ModuleWriter("m", PKG_A)
        w.add_struct("S", [("f", b"\x30")])
        with pytest.raises(DecodeError) as exc_info:
            deserialize_module(w.serialize(), "m")
        assert "type tag" in exc_info.value.message

    def test_trailing_bytes(self):
        """Bytes after the self handle index fail."""
        data = ModuleWriter("m", PKG_A).serialize() + b"\x00"
        with pytest.raises(DecodeError) as exc_info:
            deserialize_module(data, "m")
        assert "trailing" in exc_info.value.message

    def test_truncated(self):
        """Cutting the module short fails."""
        data = build_token_module()
        with pytest.raises(DecodeError):
            deserialize_module(data[: len(data) // 2], "token")

    def test_metadata_table_is_skipped(self):
        """Metadata entries do not affect the decoded tables."""
        w = ModuleWriter("m", PKG_A)
        w.extra_tables[TableKind.METADATA] = string("key") + string("value")
        compiled = deserialize_module(w.serialize(), "m")
        assert compiled.module_name() == "m"

    def test_handle_out_of_bounds(self):
        """A struct definition pointing past the handle table fails."""
        w = ModuleWriter("m", PKG_A)
        w.add_struct("S", [("f", t_u64())], handle=5)
        with pytest.raises(DecodeError) as exc_info:
            deserialize_module(w.serialize(), "m")
        assert "out of bounds" in exc_info.value.message


class TestNormalize:
    """Test normalization into the schema model."""

    def test_structs_sorted(self):
        """Structs and enums are keyed by name in sorted order."""
        module = token_module()
        assert list(module.structs) == ["Balance", "Metadata", "Token", "Vault"]
        assert list(module.enums) == ["Action"]
        assert module.address == PKG_A

    def test_exposed_functions_only(self):
        """Public and entry functions are kept; private helpers are not."""
        module = token_module()
        assert list(module.functions) == ["balance_ref", "burn", "mint", "split", "value"]
        burn = module.functions["burn"]
        assert burn.is_entry
        assert burn.visibility == Visibility.PRIVATE
        assert burn.type_parameters == (frozenset({Ability.KEY}),)

    def test_struct_details(self):
        """Abilities, phantom flags and field types are resolved."""
        module = token_module()
        token = module.structs["Token"]
        assert token.abilities == frozenset({Ability.KEY, Ability.STORE})
        assert token.type_parameters[0].is_phantom
        assert [f.name for f in token.fields] == ["id", "value"]
        assert token.fields[0].type == StructType(SUI_FRAMEWORK, "object", "UID")
        assert token.fields[1].type == U64

        metadata = module.structs["Metadata"]
        string_type = StructType(MOVE_STDLIB, "string", "String")
        assert metadata.fields[2].type == StructType(
            MOVE_STDLIB, "option", "Option", (string_type,)
        )
        assert metadata.fields[3].type == VectorType(string_type)

    def test_own_types_use_defining_id(self):
        """Own-package references resolve through the type-origin table."""
        vault = token_module().structs["Vault"]
        assert vault.fields[1].type == StructType(PKG_A, "token", "Balance", (TypeParameter(0),))

    def test_upgraded_package_addresses(self):
        """Types introduced by an upgrade carry the new defining id."""
        upgraded = Address.from_hex("0xa11ce2")
        w = ModuleWriter("token", PKG_A)
        balance = w.add_struct("Balance", [("value", t_u64())])
        receipt = w.add_struct("Receipt", [("paid", t_datatype(balance))])
        origins = TypeOriginTable.from_origins([
            TypeOrigin("token", "Balance", PKG_A),
            TypeOrigin("token", "Receipt", upgraded),
        ])
        w.add_function("touch", [t_datatype(receipt)])
        module = normalize_module(deserialize_module(w.serialize(), "token"), "token", origins)
        assert module.structs["Receipt"].fields[0].type.address == PKG_A
        assert module.functions["touch"].parameters[0] == StructType(upgraded, "token", "Receipt")

    def test_missing_origin(self):
        """An own-package type without an origin entry is a decode error."""
        with pytest.raises(DecodeError) as exc_info:
            normalize_module(
                deserialize_module(build_token_module(), "token"), "token", TypeOriginTable()
            )
        assert "type origin" in exc_info.value.message

    def test_function_signatures(self):
        """References keep their mutability; returns keep their order."""
        module = token_module()
        split = module.functions["split"]
        assert split.parameters[0] == ReferenceType(
            StructType(SUI_FRAMEWORK, "tx_context", "TxContext"), mutable=True
        )
        assert split.parameters[1].mutable
        assert len(split.returns) == 2
        assert module.functions["value"].returns == (U64,)

    def test_foreign_types_keep_their_address(self):
        """References to other packages use the declaring module's address."""
        compiled = deserialize_module(build_market_module(), "market")
        origins = TypeOriginTable.from_origins([
            TypeOrigin("market", "Listing", Address.from_hex("0xb0b"))
        ])
        module = normalize_module(compiled, "market", origins)
        escrow = module.structs["Listing"].fields[2].type
        assert escrow == StructType(PKG_A, "token", "Balance", (TypeParameter(0),))

    def test_module_name_mismatch(self):
        """The payload key must match the module's own name."""
        compiled = deserialize_module(ModuleWriter("m", PKG_A).serialize(), "other")
        with pytest.raises(DecodeError):
            normalize_module(compiled, "other", TypeOriginTable())

    def test_arity_mismatch(self):
        """Instantiating a datatype with the wrong number of arguments fails."""
        w = ModuleWriter("m", PKG_A)
        box = w.add_struct("Box", [("v", t_u64())])
        w.add_struct("Outer", [("b", t_datatype(box, t_param(0)))], type_params=[(0, False)])
        origins = TypeOriginTable.from_origins([
            TypeOrigin("m", "Box", PKG_A), TypeOrigin("m", "Outer", PKG_A)
        ])
        with pytest.raises(DecodeError) as exc_info:
            normalize_module(deserialize_module(w.serialize(), "m"), "m", origins)
        assert "type arguments" in exc_info.value.message

    def test_visibility_values(self):
        """Friend functions are not exposed unless they are entry functions."""
        w = ModuleWriter("m", PKG_A)
        w.add_function("friendly", visibility=RawVisibility.FRIEND)
        w.add_function("friendly_entry", visibility=RawVisibility.FRIEND, entry=True)
        module = normalize_module(deserialize_module(w.serialize(), "m"), "m", TypeOriginTable())
        assert list(module.functions) == ["friendly_entry"]
        assert module.functions["friendly_entry"].visibility == Visibility.FRIEND
