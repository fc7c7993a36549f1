"""Structured error objects for the tlang front end.

Every diagnostic is a data object first and an exception second, so the
evaluation loop can print it, log it, or serialize it as JSON.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    SYNTAX_ERROR = "syntax_error"
    SEMANTIC_ERROR = "semantic_error"
    INTERNAL_ERROR = "internal_error"


@dataclass
class SourceLocation:
    line: int
    column: int
    file: str = "<stdin>"

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass
class TlangError:
    kind: ErrorKind
    message: str
    location: Optional[SourceLocation] = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.location:
            d["location"] = {
                "file": self.location.file,
                "line": self.location.line,
                "column": self.location.column,
            }
        if self.details:
            d["details"] = self.details
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __str__(self) -> str:
        loc = f" at {self.location}" if self.location else ""
        return f"[{self.kind.value}]{loc}: {self.message}"


def syntax_error(
    message: str,
    location: Optional[SourceLocation] = None,
) -> TlangError:
    return TlangError(
        kind=ErrorKind.SYNTAX_ERROR,
        message=message,
        location=location,
    )


def unknown_variable(
    name: str,
    location: Optional[SourceLocation] = None,
) -> TlangError:
    return TlangError(
        kind=ErrorKind.SEMANTIC_ERROR,
        message=f"Unknown variable name '{name}'",
        location=location,
        details={"name": name},
    )


def unknown_function(
    name: str,
    location: Optional[SourceLocation] = None,
) -> TlangError:
    return TlangError(
        kind=ErrorKind.SEMANTIC_ERROR,
        message=f"Unknown function referenced '{name}'",
        location=location,
        details={"name": name},
    )


def argument_count(
    name: str,
    expected: int,
    actual: int,
    location: Optional[SourceLocation] = None,
) -> TlangError:
    return TlangError(
        kind=ErrorKind.SEMANTIC_ERROR,
        message=f"Incorrect number of arguments to '{name}': expected {expected}, got {actual}",
        location=location,
        details={"name": name, "expected": expected, "actual": actual},
    )


def invalid_operator(
    op: str,
    location: Optional[SourceLocation] = None,
) -> TlangError:
    return TlangError(
        kind=ErrorKind.SEMANTIC_ERROR,
        message=f"Invalid binary operator '{op}'",
        location=location,
        details={"operator": op},
    )


def redefinition(
    name: str,
    location: Optional[SourceLocation] = None,
) -> TlangError:
    return TlangError(
        kind=ErrorKind.SEMANTIC_ERROR,
        message=f"Function '{name}' cannot be redefined in the same unit",
        location=location,
        details={"name": name},
    )


def verification_failed(name: str, reason: str) -> TlangError:
    return TlangError(
        kind=ErrorKind.SEMANTIC_ERROR,
        message=f"Function '{name}' failed verification",
        details={"name": name, "reason": reason.strip()},
    )


def unresolved_symbol(name: str) -> TlangError:
    return TlangError(
        kind=ErrorKind.SEMANTIC_ERROR,
        message=f"Unresolved external function '{name}'",
        details={"name": name},
    )


class CompileError(Exception):
    """Exception wrapping one or more TlangErrors."""

    def __init__(self, errors: list[TlangError] | TlangError):
        if isinstance(errors, TlangError):
            errors = [errors]
        self.errors = errors
        super().__init__(self._format())

    def _format(self) -> str:
        return "\n".join(str(e) for e in self.errors)

    @property
    def error(self) -> TlangError:
        return self.errors[0]

    def to_json(self, indent: int = 2) -> str:
        return json.dumps([e.to_dict() for e in self.errors], indent=indent)


class ParseError(CompileError):
    """Raised by the lexer and parser."""


class CodegenError(CompileError):
    """Raised by the code generator and the execution engine adapter."""
