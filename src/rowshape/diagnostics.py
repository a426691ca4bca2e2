"""Diagnostic values produced while analyzing a file."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class Severity(enum.StrEnum):
    ERROR = "error"
    WARNING = "warning"


class DiagnosticKind(enum.StrEnum):
    """Tag identifying the kind of failure a diagnostic reports."""

    UNKNOWN_ENUM = "unknown_enum"
    NOT_AN_ENUM = "not_an_enum"
    DUPLICATE_CONVERTER = "duplicate_converter"
    UNKNOWN_CONVERTER = "unknown_converter"
    INVALID_PRIMARY_KEY_DECLARATION = "invalid_primary_key_declaration"
    DUPLICATE_COLUMN_NAME = "duplicate_column_name"
    UNKNOWN_REFERENCE = "unknown_reference"
    UNKNOWN_TABLE = "unknown_table"
    UNKNOWN_COLUMN = "unknown_column"
    DUPLICATE_RESULT_COLUMN_NAME = "duplicate_result_column_name"
    MAX_DEPTH_EXCEEDED = "max_depth_exceeded"
    CYCLIC_DEPENDENCY = "cyclic_dependency"
    UNKNOWN_ROW_TYPE = "unknown_row_type"
    ARITY_MISMATCH = "arity_mismatch"
    POSITIONAL_ARITY_MISMATCH = "positional_arity_mismatch"
    UNMATCHED_FIELD = "unmatched_field"
    SCALAR_TYPE_MISMATCH = "scalar_type_mismatch"
    NULLABILITY_MISMATCH = "nullability_mismatch"
    NOT_A_LIST = "not_a_list"
    NO_USABLE_CONSTRUCTOR = "no_usable_constructor"
    SYNTAX_ERROR = "syntax_error"


@dataclass(frozen=True)
class Span:
    """A region of the analyzed source, with the text it covers."""

    start: int = 0
    end: int = 0
    text: str = ""

    @classmethod
    def of(cls, source: str, start: int, end: int) -> Span:
        return cls(start, end, source[start:end])


NO_SPAN = Span()


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    kind: DiagnosticKind
    message: str
    span: Span = NO_SPAN

    @classmethod
    def error(cls, kind: DiagnosticKind, message: str, span: Span = NO_SPAN) -> Diagnostic:
        return cls(Severity.ERROR, kind, message, span)

    @classmethod
    def warning(cls, kind: DiagnosticKind, message: str, span: Span = NO_SPAN) -> Diagnostic:
        return cls(Severity.WARNING, kind, message, span)

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def __str__(self) -> str:
        where = f" at {self.span.text!r}" if self.span.text else ""
        return f"{self.severity}[{self.kind}]{where}: {self.message}"


@dataclass(frozen=True)
class Resolved(Generic[T]):
    """A best-effort value paired with the diagnostics found producing it.

    Resolution steps return this instead of raising so that one pass over
    a file reports every independent problem.
    """

    value: T
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self.diagnostics)


class DiagnosticList:
    """Ordered, append-only collection of diagnostics for one file."""

    def __init__(self, diagnostics: Iterable[Diagnostic] = ()) -> None:
        self._items: list[Diagnostic] = list(diagnostics)

    def add(self, diagnostic: Diagnostic) -> None:
        self._items.append(diagnostic)

    def take(self, resolved: Resolved[T]) -> T:
        """Record the diagnostics of ``resolved`` and return its value."""
        self._items.extend(resolved.diagnostics)
        return resolved.value

    def freeze(self) -> tuple[Diagnostic, ...]:
        return tuple(self._items)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self._items if d.is_error]

    def __iter__(self):
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)
