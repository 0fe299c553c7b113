"""Tests for declaration synthesis."""

import pytest

from movebind.codegen import CodeSynthesizer, TypeMapper, TypeParam, TypeRef, is_tx_context
from movebind.codegen.ir import ParamKind, VariantKind
from movebind.errors import DecodeError, UnknownPackageError, UnsupportedPatternError
from movebind.generator import package_addresses
from movebind.registry import Registry
from movebind.runtime.types import SUI_FRAMEWORK
from movebind.schema import (
    U8,
    U64,
    Ability,
    DatatypeTypeParameter,
    Enum,
    Field,
    Function,
    Module,
    ReferenceType,
    Struct,
    StructType,
    TypeOrigin,
    TypeOriginTable,
    Variant,
)

from sample_packages import PKG_A, PKG_B

TX_CONTEXT = StructType(SUI_FRAMEWORK, "tx_context", "TxContext")


def synthesize(package, alias, deps=(), registry=None):
    registry = registry or Registry()
    registry.register(alias, f"bindings.{alias}", package_addresses(package))
    mapper = TypeMapper(registry.view(alias, deps))
    return CodeSynthesizer(mapper).build_package(package, alias, f"bindings.{alias}")


def synthesizer_for(address, origins):
    registry = Registry()
    registry.register("x", "bindings.x", [address])
    return CodeSynthesizer(TypeMapper(registry.view("x")), origins)


def by_name(decls):
    return {d.name: d for d in decls}


@pytest.fixture
def decl_a(package_a):
    return synthesize(package_a, "a")


@pytest.fixture
def token(decl_a):
    return by_name(decl_a.modules)["token"]


class TestPackage:
    """Test package-level assembly."""

    def test_modules(self, decl_a, package_a):
        """Modules without declarations are skipped; the rest keep their order."""
        assert [m.name for m in decl_a.modules] == ["pool", "token"]
        assert decl_a.version == package_a.version
        assert decl_a.address == PKG_A
        assert all(m.package_id == PKG_A for m in decl_a.modules)


class TestStructs:
    """Test struct synthesis."""

    def test_phantom_marker_for_unused_parameter(self, token):
        """A phantom parameter unused by any field gets exactly one marker."""
        balance = by_name(token.structs)["Balance"]
        assert balance.phantom_markers == (0,)
        assert [f.name for f in balance.fields] == ["value", "phantom_data_0"]
        marker = balance.fields[1]
        assert marker.type == TypeRef("PhantomData", (TypeParam(0),))
        assert marker.default == "PhantomData()"

    def test_no_marker_for_used_parameter(self, token):
        """A phantom parameter used in a field gets no marker."""
        vault = by_name(token.structs)["Vault"]
        assert vault.phantom_markers == ()
        assert vault.fields[1].type == TypeRef("Balance", (TypeParam(0),), module="token")

    def test_key_struct(self, token):
        structs = by_name(token.structs)
        assert structs["Token"].is_key
        assert structs["Token"].fields[0].type == TypeRef("ObjectId")
        assert not structs["Balance"].is_key
        assert structs["Token"].type_origin == PKG_A

    def test_known_types(self, token):
        metadata = by_name(token.structs)["Metadata"]
        types = {f.name: f.type for f in metadata.fields}
        assert types["name"] == TypeRef("str")
        assert types["decimals"] == TypeRef("U8")
        assert types["icon"] == TypeRef("Optional", (TypeRef("str"),))
        assert types["tags"] == TypeRef("List", (TypeRef("str"),))
        assert metadata.abilities == ("copy", "drop", "store")

    def test_sibling_module_reference(self, decl_a):
        pool = by_name(by_name(decl_a.modules)["pool"].structs)["Pool"]
        assert pool.fields[1].type == TypeRef("Balance", (TypeParam(0),), module="token")

    def test_key_without_id(self):
        """A key struct needs an ``id`` field for its identity accessor."""
        struct = Struct(
            fields=(Field("value", U64),), abilities=frozenset({Ability.KEY})
        )
        origins = TypeOriginTable.from_origins([TypeOrigin("m", "S", PKG_A)])
        with pytest.raises(UnsupportedPatternError):
            synthesizer_for(PKG_A, origins).build_struct("m", "S", struct)

    def test_escaped_field_names(self):
        """Fields colliding with keywords or model attributes are escaped."""
        struct = Struct(fields=(Field("from", U8), Field("json", U8), Field("_hidden", U8)))
        origins = TypeOriginTable.from_origins([TypeOrigin("m", "S", PKG_A)])
        decl = synthesizer_for(PKG_A, origins).build_struct("m", "S", struct)
        assert [f.name for f in decl.fields] == ["from_", "json_", "f_hidden"]
        assert [f.move_name for f in decl.fields] == ["from", "json", "_hidden"]

    def test_phantom_marker_name_collision(self):
        """Markers never reuse an existing field name."""
        struct = Struct(
            fields=(Field("phantom_data_0", U8),),
            type_parameters=(DatatypeTypeParameter(is_phantom=True),),
        )
        origins = TypeOriginTable.from_origins([TypeOrigin("m", "S", PKG_A)])
        decl = synthesizer_for(PKG_A, origins).build_struct("m", "S", struct)
        assert [f.name for f in decl.fields] == ["phantom_data_0", "phantom_data_0_"]


class TestEnums:
    """Test enum variant encoding."""

    def test_variant_kinds(self, token):
        action = by_name(token.enums)["Action"]
        kinds = {v.name: v.kind for v in action.variants}
        assert kinds == {
            "Stop": VariantKind.UNIT,
            "Move": VariantKind.NAMED,
            "Attack": VariantKind.NAMED,
            "Say": VariantKind.TUPLE,
        }
        assert [v.name for v in action.variants] == ["Stop", "Move", "Attack", "Say"]

    def test_positional_fields_must_be_in_order(self):
        """Fields named pos1, pos0 are not a tuple variant."""
        enum_def = Enum(variants=(Variant("V", (Field("pos1", U8), Field("pos0", U8))),))
        origins = TypeOriginTable.from_origins([TypeOrigin("m", "E", PKG_A)])
        decl = synthesizer_for(PKG_A, origins).build_enum("m", "E", enum_def)
        assert decl.variants[0].kind == VariantKind.NAMED

    def test_variant_shadowing_class_is_escaped(self):
        """A variant named like a class of the module is renamed."""
        enum_def = Enum(variants=(Variant("Coin"), Variant("Other")))
        origins = TypeOriginTable.from_origins([TypeOrigin("m", "E", PKG_A)])
        decl = synthesizer_for(PKG_A, origins).build_enum("m", "E", enum_def, {"Coin", "E"})
        assert [v.name for v in decl.variants] == ["Coin_", "Other"]
        assert decl.variants[0].move_name == "Coin"


class TestFunctions:
    """Test function stub synthesis."""

    def test_context_elided(self, token):
        """The transaction context is dropped but positions are kept."""
        mint = by_name(token.functions)["mint"]
        assert [p.name for p in mint.params] == ["p0"]
        assert mint.params[0].kind == ParamKind.ARG
        assert not mint.needs_scope
        assert mint.returns[0].type == TypeRef("Token", (TypeParam(0),), module="token")

        split = by_name(token.functions)["split"]
        assert [(p.name, p.kind) for p in split.params] == [
            ("p1", ParamKind.MUT_REF),
            ("p2", ParamKind.ARG),
        ]
        assert split.needs_scope
        assert len(split.returns) == 2

    @pytest.mark.parametrize("position", [0, 1, 2])
    def test_context_elided_at_any_position(self, position):
        params = [U64, U8]
        params.insert(position, ReferenceType(TX_CONTEXT, mutable=position % 2 == 0))
        function = Function(parameters=tuple(params))
        decl = synthesizer_for(PKG_A, TypeOriginTable()).build_function("m", "f", function)
        assert len(decl.params) == 2
        assert all(p.position != position for p in decl.params)

    def test_context_by_value_is_kept(self):
        """Only references to the context are elided."""
        assert not is_tx_context(TX_CONTEXT)
        assert not is_tx_context(ReferenceType(StructType(PKG_A, "tx_context", "TxContext")))

    def test_reference_params_and_returns(self, token):
        functions = by_name(token.functions)
        assert functions["value"].params[0].kind == ParamKind.REF
        assert functions["value"].needs_scope
        balance_ref = functions["balance_ref"]
        assert balance_ref.returns[0].kind == ParamKind.REF
        assert balance_ref.needs_scope

    def test_type_argument_constraints(self, token):
        functions = by_name(token.functions)
        burn = functions["burn"]
        assert burn.type_args[0].requires_key
        assert burn.is_entry
        assert burn.returns == []
        assert not functions["mint"].type_args[0].requires_key

    def test_function_named_like_class(self):
        """A function named like a class of its module is renamed."""
        module = Module(
            name="m",
            address=PKG_A,
            structs={"Thing": Struct(fields=(Field("v", U8),))},
            functions={"Thing": Function()},
        )
        origins = TypeOriginTable.from_origins([TypeOrigin("m", "Thing", PKG_A)])
        decl = synthesizer_for(PKG_A, origins).build_module(module)
        assert decl.structs[0].name == "Thing"
        assert decl.functions[0].name == "Thing_"


class TestCrossPackage:
    """Test resolution of datatypes declared by dependencies."""

    def test_declared_dependency(self, package_a, package_b):
        registry = Registry()
        synthesize(package_a, "a", registry=registry)
        decl_b = synthesize(package_b, "b", ["a"], registry=registry)
        listing = decl_b.modules[0].structs[0]
        assert listing.fields[2].type == TypeRef(
            "Balance", (TypeParam(0),), module="token", package_path="bindings.a"
        )

    def test_undeclared_dependency(self, package_a, package_b):
        registry = Registry()
        synthesize(package_a, "a", registry=registry)
        with pytest.raises(UnknownPackageError):
            synthesize(package_b, "b", [], registry=registry)

    def test_type_origin_required(self):
        """Every declared datatype needs an origin entry."""
        with pytest.raises(DecodeError) as exc_info:
            synthesizer_for(PKG_B, TypeOriginTable()).build_struct(
                "m", "S", Struct(fields=(Field("v", U8),))
            )
        assert "type origin" in exc_info.value.message
