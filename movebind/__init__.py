"""
movebind: typed Python bindings for Move packages.

Fetches a package's on-chain schema, decodes its compiled modules and
generates Python modules with pydantic models for its structs and enums and
typed call stubs for its functions. Generated code imports only
``movebind.runtime``.
"""

from .errors import (
    BorrowError,
    DecodeError,
    FetchError,
    ManifestError,
    MoveBindError,
    ResolutionError,
    UnknownPackageError,
    UnsupportedPatternError,
)
from .network import Network

__version__ = "0.1.0"

__all__ = [
    "BorrowError",
    "DecodeError",
    "FetchError",
    "ManifestError",
    "MoveBindError",
    "Network",
    "ResolutionError",
    "UnknownPackageError",
    "UnsupportedPatternError",
    "__version__",
]
