"""
Python source rendering of the declaration IR.

Output is a pure function of the IR: no timestamps, sorted imports and
declarations in schema order, so regenerating an unchanged package yields
byte-identical files.
"""

import re
from typing import Dict, List, Set

from .ir import (
    EnumDecl,
    FieldDecl,
    FunctionDecl,
    ModuleDecl,
    PackageDecl,
    ParamKind,
    StructDecl,
    TypeExpr,
    TypeParam,
    VariantKind,
)
from . import naming

HEADER_NOTE = "DO NOT EDIT: This file is auto-generated by movebind."

TYPING_NAMES = ("Any", "ClassVar", "Generic", "List", "Optional", "Tuple", "TypeVar")

RUNTIME_NAMES = (
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
)


class PythonPrinter:
    """Renders modules and packages of declaration IR as Python source."""

    def __init__(self, indent: str = "    "):
        self.indent = indent

    # Type expressions

    def type_expr(self, expr: TypeExpr, module: str, body: bool = False) -> str:
        """Render ``expr`` as seen from ``module``.

        In a function body, type parameters are the ``t<i>`` arguments
        rather than the module-level ``T<i>`` type variables.
        """
        if isinstance(expr, TypeParam):
            return f"t{expr.index}" if body else f"T{expr.index}"

        if expr.package_path is not None:
            base = f"{naming.package_alias(expr.package_path)}.{expr.module}.{expr.name}"
        elif expr.module is not None and expr.module != naming.module_name(module):
            base = f"{naming.module_alias(expr.module)}.{expr.name}"
        else:
            base = expr.name

        if not expr.args:
            return base
        args = ", ".join(self.type_expr(arg, module, body) for arg in expr.args)
        return f"{base}[{args}]"

    # Modules

    def render_module(self, decl: ModuleDecl, alias: str) -> str:
        body = self._module_body(decl)
        lines = [
            '"""',
            f"Bindings for module {decl.name} of package {alias}.",
            "",
            HEADER_NOTE,
            '"""',
            "",
            "from __future__ import annotations",
            "",
        ]
        lines.extend(self._imports(decl, body))
        lines.append("")
        lines.append(f'PACKAGE_ID = Address.from_hex("{decl.package_id.to_hex()}")')
        lines.append(f'MODULE_NAME = "{decl.name}"')

        type_var_count = self._type_var_count(decl)
        if type_var_count:
            lines.append("")
            for i in range(type_var_count):
                lines.append(f'T{i} = TypeVar("T{i}")')

        lines.extend(body)
        return "\n".join(lines) + "\n"

    def _type_var_count(self, decl: ModuleDecl) -> int:
        counts = [s.type_param_count for s in decl.structs]
        counts += [e.type_param_count for e in decl.enums]
        counts += [len(f.type_args) for f in decl.functions]
        return max(counts, default=0)

    def _imports(self, decl: ModuleDecl, body: List[str]) -> List[str]:
        text = "\n".join(body)
        used = {name for name in TYPING_NAMES + RUNTIME_NAMES if re.search(rf"\b{name}\b", text)}
        if self._type_var_count(decl):
            used.add("TypeVar")
        used.add("Address")

        lines = []
        typing_names = [n for n in TYPING_NAMES if n in used]
        if typing_names:
            lines.append(f"from typing import {', '.join(typing_names)}")
            lines.append("")

        lines.append("from movebind.runtime import (")
        for name in sorted((n for n in RUNTIME_NAMES if n in used), key=str.lower):
            lines.append(f"{self.indent}{name},")
        lines.append(")")

        packages: Set[str] = set()
        siblings: Set[str] = set()
        for expr in decl.type_exprs():
            self._collect_imports(expr, decl.name, packages, siblings)
        if packages or siblings:
            lines.append("")
        for path in sorted(packages):
            lines.append(f"import {path} as {naming.package_alias(path)}")
        for module in sorted(siblings):
            lines.append(f"from . import {module} as {naming.module_alias(module)}")
        return lines

    def _collect_imports(self, expr: TypeExpr, module: str, packages: Set[str], siblings: Set[str]):
        if isinstance(expr, TypeParam):
            return
        if expr.package_path is not None:
            packages.add(expr.package_path)
        elif expr.module is not None and expr.module != naming.module_name(module):
            siblings.add(expr.module)
        for arg in expr.args:
            self._collect_imports(arg, module, packages, siblings)

    def _module_body(self, decl: ModuleDecl) -> List[str]:
        lines: List[str] = []
        for struct in decl.structs:
            lines.extend(["", ""])
            lines.extend(self.render_struct(struct, decl.name))
        for enum_decl in decl.enums:
            lines.extend(["", ""])
            lines.extend(self.render_enum(enum_decl, decl.name))
        for function in decl.functions:
            lines.extend(["", ""])
            lines.extend(self.render_function(function, decl.name))

        models = [s.name for s in decl.structs] + [e.name for e in decl.enums]
        if models:
            lines.extend(["", ""])
            lines.append(f"rebuild_models({', '.join(models)})")
        return lines

    # Declarations

    def _generic(self, count: int) -> str:
        return f"Generic[{', '.join(f'T{i}' for i in range(count))}]"

    def _class_header(self, move_name: str, type_origin) -> List[str]:
        i = self.indent
        return [
            f'{i}TYPE_ORIGIN_ID: ClassVar[Address] = Address.from_hex("{type_origin.to_hex()}")',
            f"{i}MOVE_MODULE: ClassVar[str] = MODULE_NAME",
            f'{i}MOVE_NAME: ClassVar[str] = "{move_name}"',
        ]

    def _field_line(self, field: FieldDecl, module: str, depth: int) -> str:
        line = f"{self.indent * depth}{field.name}: {self.type_expr(field.type, module)}"
        if field.default is not None:
            line += f" = {field.default}"
        return line

    def render_struct(self, struct: StructDecl, module: str) -> List[str]:
        bases = ["MoveStruct"]
        if struct.is_key:
            bases.append("Key")
        if struct.type_param_count:
            bases.append(self._generic(struct.type_param_count))

        abilities = f" ({', '.join(struct.abilities)})" if struct.abilities else ""
        lines = [
            f"class {struct.name}({', '.join(bases)}):",
            f'{self.indent}"""Move struct ``{module}::{struct.move_name}``{abilities}."""',
            "",
        ]
        lines.extend(self._class_header(struct.move_name, struct.type_origin))
        if struct.fields:
            lines.append("")
            for field in struct.fields:
                lines.append(self._field_line(field, module, 1))
        return lines

    def render_enum(self, enum_decl: EnumDecl, module: str) -> List[str]:
        i = self.indent
        bases = ["MoveEnum"]
        if enum_decl.type_param_count:
            bases.append(self._generic(enum_decl.type_param_count))

        lines = [
            f"class {enum_decl.name}({', '.join(bases)}):",
            f'{i}"""Move enum ``{module}::{enum_decl.move_name}``."""',
            "",
        ]
        lines.extend(self._class_header(enum_decl.move_name, enum_decl.type_origin))
        for variant in enum_decl.variants:
            lines.append("")
            if variant.kind == VariantKind.UNIT:
                lines.append(f"{i}class {variant.name}(UnitVariant):")
                lines.append(f"{i}{i}pass")
            elif variant.kind == VariantKind.TUPLE:
                types = ", ".join(self.type_expr(f.type, module) for f in variant.fields)
                lines.append(f"{i}class {variant.name}(TupleVariant):")
                lines.append(f"{i}{i}root: Tuple[{types}]")
            else:
                lines.append(f"{i}class {variant.name}(NamedVariant):")
                for field in variant.fields:
                    lines.append(self._field_line(field, module, 2))
        return lines

    def _wrapped(self, kind: ParamKind, expr: TypeExpr, module: str) -> str:
        return f"{kind.wrapper}[{self.type_expr(expr, module)}]"

    def _return_annotation(self, function: FunctionDecl, module: str) -> str:
        if not function.returns:
            return "None"
        wrapped = [self._wrapped(r.kind, r.type, module) for r in function.returns]
        if len(wrapped) == 1:
            return wrapped[0]
        return f"Tuple[{', '.join(wrapped)}]"

    def _return_value(self, kind: ParamKind, handle: str, scoped: bool) -> str:
        scope = ", scope" if scoped else ""
        if kind == ParamKind.ARG:
            return f"Arg.from_handle({handle}{scope})"
        return f"{kind.wrapper}({handle}{scope})"

    def render_function(self, function: FunctionDecl, module: str) -> List[str]:
        i = self.indent
        signature = [f"{i}builder: TransactionBuilder,"]
        signature += [f"{i}{t.name}: Any," for t in function.type_args]
        signature += [
            f"{i}{p.name}: {self._wrapped(p.kind, p.type, module)},"
            for p in function.params
        ]
        if function.needs_scope:
            signature += [f"{i}*,", f"{i}scope: Optional[BorrowScope] = None,"]

        lines = [f"def {function.name}("]
        lines.extend(signature)
        lines.append(f") -> {self._return_annotation(function, module)}:")
        kind = "entry function" if function.is_entry else "function"
        lines.append(f'{i}"""Call Move {kind} ``{module}::{function.move_name}``."""')

        if function.needs_scope:
            lines.append(f"{i}scope = scope or builder.scope")
        for type_arg in function.type_args:
            if type_arg.requires_key:
                lines.append(f"{i}require_key({type_arg.name})")
        for param in function.params:
            if param.kind == ParamKind.ARG:
                annotation = self.type_expr(param.type, module, body=True)
                lines.append(
                    f"{i}{param.name} = Arg.wrap({param.name}).resolve(builder, {annotation})"
                )
            else:
                wrapper = param.kind.wrapper
                lines.append(
                    f"{i}{param.name} = {wrapper}.expect({param.name}, \"{param.name}\")"
                    ".resolve(builder, scope)"
                )

        type_tags = "".join(f"type_tag({t.name}), " for t in function.type_args)
        if len(function.type_args) == 1:
            type_tags = type_tags.rstrip(" ")
        else:
            type_tags = type_tags.rstrip(", ")
        handles = ", ".join(f"{p.name}.handle" for p in function.params)

        call = [
            f"builder.move_call(",
            f'{i}MoveCall(PACKAGE_ID, MODULE_NAME, "{function.move_name}", ({type_tags})),',
            f"{i}[{handles}],",
            ")",
        ]
        if not function.returns:
            lines.append(f"{i}{call[0]}")
            lines.extend(f"{i}{line}" for line in call[1:])
            return lines

        lines.append(f"{i}result = {call[0]}")
        lines.extend(f"{i}{line}" for line in call[1:])
        scoped = function.needs_scope
        if len(function.returns) == 1:
            lines.append(f"{i}return {self._return_value(function.returns[0].kind, 'result', scoped)}")
        else:
            lines.append(f"{i}return (")
            for index, ret in enumerate(function.returns):
                value = self._return_value(ret.kind, f"result.nested({index})", scoped)
                lines.append(f"{i}{i}{value},")
            lines.append(f"{i})")
        return lines

    # Packages

    def render_package_init(self, decl: PackageDecl) -> str:
        lines = [
            '"""',
            f"Bindings for package {decl.alias} ({decl.address.to_hex()}).",
            "",
            HEADER_NOTE,
            '"""',
            "",
        ]
        for module in decl.modules:
            lines.append(f"from . import {module.python_name}")
        if decl.modules:
            lines.append("")
        lines.append(f"PACKAGE_VERSION = {decl.version}")
        return "\n".join(lines) + "\n"

    def render_package(self, decl: PackageDecl) -> Dict[str, str]:
        """Relative file name -> source for every file of the binding package."""
        files = {"__init__.py": self.render_package_init(decl)}
        for module in decl.modules:
            files[f"{module.python_name}.py"] = self.render_module(module, decl.alias)
        return files
