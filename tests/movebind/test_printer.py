"""Tests for Python source rendering."""

import pytest

from movebind.codegen import CodeSynthesizer, PythonPrinter, TypeMapper, TypeParam, TypeRef
from movebind.codegen.ir import FieldDecl, ModuleDecl, StructDecl
from movebind.generator import package_addresses
from movebind.registry import Registry
from movebind.schema import (
    BOOL,
    Field,
    Module,
    Package,
    Struct,
    StructType,
    TypeOriginTable,
)

from sample_packages import PKG_A


def render(package, alias="a", deps=(), registry=None):
    registry = registry or Registry()
    registry.register(alias, f"bindings.{alias}", package_addresses(package))
    mapper = TypeMapper(registry.view(alias, deps))
    decl = CodeSynthesizer(mapper).build_package(package, alias, f"bindings.{alias}")
    return PythonPrinter().render_package(decl)


@pytest.fixture
def files_a(package_a):
    return render(package_a)


@pytest.fixture
def token_source(files_a):
    return files_a["token.py"]


class TestTypeExpressions:
    """Test rendering of mapped type expressions."""

    def test_plain_and_generic(self):
        printer = PythonPrinter()
        assert printer.type_expr(TypeRef("U64"), "m") == "U64"
        expr = TypeRef("List", (TypeRef("Optional", (TypeParam(1),)),))
        assert printer.type_expr(expr, "m") == "List[Optional[T1]]"
        assert printer.type_expr(expr, "m", body=True) == "List[Optional[t1]]"

    def test_qualified(self):
        printer = PythonPrinter()
        own = TypeRef("Balance", (TypeParam(0),), module="token")
        assert printer.type_expr(own, "token") == "Balance[T0]"
        assert printer.type_expr(own, "pool") == "_mod_token.Balance[T0]"
        dep = TypeRef("Balance", (), module="token", package_path="app.bindings.a")
        assert printer.type_expr(dep, "market") == "_pkg_app_bindings_a.token.Balance"


class TestModules:
    """Test rendered module files."""

    def test_files(self, files_a):
        assert sorted(files_a) == ["__init__.py", "pool.py", "token.py"]

    def test_header(self, token_source):
        assert token_source.startswith('"""\nBindings for module token of package a.\n')
        assert "DO NOT EDIT: This file is auto-generated by movebind." in token_source
        assert "from __future__ import annotations" in token_source
        assert f'PACKAGE_ID = Address.from_hex("{PKG_A.to_hex()}")' in token_source
        assert 'MODULE_NAME = "token"' in token_source
        assert 'T0 = TypeVar("T0")' in token_source
        assert 'T1 = TypeVar("T1")' not in token_source

    def test_imports(self, token_source, files_a):
        assert "from typing import Any, ClassVar, Generic, List, Optional, Tuple, TypeVar" in token_source
        assert "    MoveStruct,\n" in token_source
        assert "    UnitVariant,\n" in token_source
        assert "    BorrowScope,\n" in token_source
        assert "from . import token as _mod_token" in files_a["pool.py"]
        assert "BorrowScope" not in files_a["pool.py"]

    def test_structs(self, token_source):
        assert "class Token(MoveStruct, Key, Generic[T0]):" in token_source
        assert '    """Move struct ``token::Token`` (key, store)."""' in token_source
        assert '    MOVE_NAME: ClassVar[str] = "Token"' in token_source
        assert "    id: ObjectId\n" in token_source
        assert "    phantom_data_0: PhantomData[T0] = PhantomData()" in token_source
        assert "class Vault(MoveStruct, Key, Generic[T0]):" in token_source
        assert "    balance: Balance[T0]\n" in token_source
        assert "class Metadata(MoveStruct):" in token_source
        assert "    icon: Optional[str]\n" in token_source
        assert "    tags: List[str]\n" in token_source

    def test_sibling_reference(self, files_a):
        assert "    reserve: _mod_token.Balance[T0]\n" in files_a["pool.py"]

    def test_enum(self, token_source):
        expected = "\n".join([
            "class Action(MoveEnum):",
            '    """Move enum ``token::Action``."""',
            "",
            f'    TYPE_ORIGIN_ID: ClassVar[Address] = Address.from_hex("{PKG_A.to_hex()}")',
            "    MOVE_MODULE: ClassVar[str] = MODULE_NAME",
            '    MOVE_NAME: ClassVar[str] = "Action"',
            "",
            "    class Stop(UnitVariant):",
            "        pass",
            "",
            "    class Move(NamedVariant):",
            "        x: U64",
            "        y: U64",
        ])
        assert expected in token_source
        assert "    class Say(TupleVariant):\n        root: Tuple[str]\n" in token_source

    def test_declaration_order(self, token_source):
        """Structs, then enums, then functions, each in schema order."""
        positions = [
            token_source.index(marker)
            for marker in (
                "class Balance(",
                "class Metadata(",
                "class Token(",
                "class Vault(",
                "class Action(",
                "def balance_ref(",
                "def burn(",
                "def mint(",
                "def split(",
                "def value(",
                "rebuild_models(Balance, Metadata, Token, Vault, Action)",
            )
        ]
        assert positions == sorted(positions)

    def test_no_private_functions(self, token_source):
        assert "def helper(" not in token_source


class TestFunctions:
    """Test rendered call stubs."""

    def test_by_value_call(self, token_source):
        expected = "\n".join([
            "def mint(",
            "    builder: TransactionBuilder,",
            "    t0: Any,",
            "    p0: Arg[U64],",
            ") -> Arg[Token[T0]]:",
            '    """Call Move function ``token::mint``."""',
            "    p0 = Arg.wrap(p0).resolve(builder, U64)",
            "    result = builder.move_call(",
            '        MoveCall(PACKAGE_ID, MODULE_NAME, "mint", (type_tag(t0),)),',
            "        [p0.handle],",
            "    )",
            "    return Arg.from_handle(result)",
        ])
        assert expected in token_source

    def test_scoped_call_with_multiple_returns(self, token_source):
        expected = "\n".join([
            "def split(",
            "    builder: TransactionBuilder,",
            "    t0: Any,",
            "    p1: MutRef[Vault[T0]],",
            "    p2: Arg[U64],",
            "    *,",
            "    scope: Optional[BorrowScope] = None,",
            ") -> Tuple[Arg[Balance[T0]], Arg[U64]]:",
            '    """Call Move function ``token::split``."""',
            "    scope = scope or builder.scope",
            "    p1 = MutRef.expect(p1, \"p1\").resolve(builder, scope)",
            "    p2 = Arg.wrap(p2).resolve(builder, U64)",
        ])
        assert expected in token_source
        assert "        Arg.from_handle(result.nested(0), scope),\n" in token_source
        assert "        Arg.from_handle(result.nested(1), scope),\n" in token_source

    def test_reference_return(self, token_source):
        assert ") -> Ref[Balance[T0]]:" in token_source
        assert "    return Ref(result, scope)" in token_source

    def test_entry_without_returns(self, token_source):
        expected = "\n".join([
            ") -> None:",
            '    """Call Move entry function ``token::burn``."""',
            "    require_key(t0)",
            "    p0 = Arg.wrap(p0).resolve(builder, Token[t0])",
            "    builder.move_call(",
        ])
        assert expected in token_source

    def test_context_not_in_signature(self, token_source):
        assert "TxContext" not in token_source


class TestPackages:
    """Test package init files and cross-package imports."""

    def test_init(self, files_a):
        init = files_a["__init__.py"]
        assert "from . import pool\nfrom . import token\n" in init
        assert init.endswith("PACKAGE_VERSION = 3\n")
        assert "util" not in init

    def test_dependency_import(self, package_a, package_b):
        registry = Registry()
        render(package_a, registry=registry)
        market = render(package_b, "b", ["a"], registry)["market.py"]
        assert "import bindings.a as _pkg_bindings_a" in market
        assert "    escrow: _pkg_bindings_a.token.Balance[T0]\n" in market
        assert "p0 = Arg.wrap(p0).resolve(builder, _pkg_bindings_a.token.Balance[t0])" in market

    def test_deterministic(self, package_a):
        assert render(package_a) == render(package_a)

    def test_sources_compile(self, files_a):
        for name, source in files_a.items():
            compile(source, name, "exec")

    def test_module_without_generics(self):
        decl = ModuleDecl(
            name="m",
            package_id=PKG_A,
            structs=[StructDecl("S", "S", PKG_A, fields=[FieldDecl("v", TypeRef("bool"), "v")])],
        )
        source = PythonPrinter().render_module(decl, "x")
        assert "TypeVar" not in source
        assert "from typing import ClassVar\n" in source
        assert "rebuild_models(S)" in source
        compile(source, "m.py", "exec")


class TestKeywordModules:
    """Test Move modules whose names are Python keywords."""

    @pytest.fixture
    def files(self):
        tag = StructType(PKG_A, "class", "Tag")
        item = StructType(PKG_A, "with", "Item")
        package = Package(
            address=PKG_A,
            version=1,
            modules={
                "class": Module(
                    "class", PKG_A, structs={"Tag": Struct(fields=(Field("flag", BOOL),))}
                ),
                "with": Module(
                    "with",
                    PKG_A,
                    structs={
                        "Box": Struct(fields=(Field("item", item),)),
                        "Item": Struct(fields=(Field("tag", tag),)),
                    },
                ),
            },
            type_origins=TypeOriginTable({
                ("class", "Tag"): PKG_A,
                ("with", "Box"): PKG_A,
                ("with", "Item"): PKG_A,
            }),
        )
        return render(package)

    def test_file_names(self, files):
        assert sorted(files) == ["__init__.py", "class_.py", "with_.py"]
        assert "from . import class_\nfrom . import with_\n" in files["__init__.py"]

    def test_references(self, files):
        """Same-module types stay local; sibling imports use the escaped name."""
        source = files["with_.py"]
        assert 'MODULE_NAME = "with"' in source
        assert "    item: Item\n" in source
        assert "from . import class_ as _mod_class_\n" in source
        assert "    tag: _mod_class_.Tag\n" in source
        assert "_mod_with_" not in source

    def test_sources_compile(self, files):
        for name, source in files.items():
            compile(source, name, "exec")
