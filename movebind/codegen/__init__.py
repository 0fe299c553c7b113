"""
Binding synthesis and rendering.

``TypeMapper`` maps schema types, ``CodeSynthesizer`` builds the declaration
IR and ``PythonPrinter`` renders it as source.
"""

from .ir import ModuleDecl, PackageDecl, TypeParam, TypeRef
from .printer import PythonPrinter
from .synthesizer import CodeSynthesizer, is_tx_context
from .type_mapper import KNOWN_TYPES, KnownType, TypeMapper

__all__ = [
    "CodeSynthesizer",
    "KNOWN_TYPES",
    "KnownType",
    "ModuleDecl",
    "PackageDecl",
    "PythonPrinter",
    "TypeMapper",
    "TypeParam",
    "TypeRef",
    "is_tx_context",
]
