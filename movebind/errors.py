"""
Error types for movebind.

Every failure aborts generation of the current package. Errors carry a
stable code and a details dictionary so callers (and the CLI) can report
them in a structured way.
"""

from typing import Any, Dict, Optional


class MoveBindError(Exception):
    """Base exception for all movebind errors."""

    def __init__(
        self,
        message: str,
        code: str = "MB001",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to structured dictionary."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }

    def format(self) -> str:
        """Single-line rendering used by the CLI."""
        return f"{self.message} ({self.code})"


class ResolutionError(MoveBindError):
    """A package reference could not be turned into an address."""

    def __init__(
        self,
        message: str,
        reference: Optional[str] = None,
        endpoint: Optional[str] = None,
    ):
        super().__init__(
            message,
            code="MB002",
            details={"reference": reference, "endpoint": endpoint},
        )
        self.reference = reference
        self.endpoint = endpoint


class FetchError(MoveBindError):
    """The schema query failed in transport or returned no package."""

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(
            message,
            code="MB003",
            details={
                "address": address,
                "endpoint": endpoint,
                "status_code": status_code,
            },
        )
        self.address = address
        self.endpoint = endpoint
        self.status_code = status_code


class DecodeError(MoveBindError):
    """Malformed binary payload or malformed type-origin entry."""

    def __init__(
        self,
        message: str,
        module: Optional[str] = None,
        offset: Optional[int] = None,
    ):
        super().__init__(
            message,
            code="MB004",
            details={"module": module, "offset": offset},
        )
        self.module = module
        self.offset = offset

    def format(self) -> str:
        where = []
        if self.module:
            where.append(f"module {self.module}")
        if self.offset is not None:
            where.append(f"offset {self.offset}")
        if where:
            return f"{self.message} [{', '.join(where)}] ({self.code})"
        return super().format()


class UnknownPackageError(MoveBindError):
    """A foreign type references a package that is not a declared dependency."""

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
        type_name: Optional[str] = None,
    ):
        super().__init__(
            message,
            code="MB005",
            details={"address": address, "type_name": type_name},
        )
        self.address = address
        self.type_name = type_name


class UnsupportedPatternError(MoveBindError):
    """The schema contains a shape the synthesizer has no rule for."""

    def __init__(
        self,
        message: str,
        module: Optional[str] = None,
        declaration: Optional[str] = None,
    ):
        super().__init__(
            message,
            code="MB006",
            details={"module": module, "declaration": declaration},
        )
        self.module = module
        self.declaration = declaration


class ManifestError(MoveBindError):
    """A generation manifest or directive is invalid."""

    def __init__(self, message: str, source_path: Optional[str] = None):
        super().__init__(
            message,
            code="MB007",
            details={"source_path": source_path},
        )
        self.source_path = source_path


class BorrowError(MoveBindError):
    """A borrowed argument was used outside the scope it was minted in."""

    def __init__(self, message: str):
        super().__init__(message, code="MB008")
