"""Parsed declarations: the input of schema and query analysis.

Declarations come either from SQL source (see :func:`rowshape.parse`) or
from :class:`rowshape.declarative.Table` subclasses. They carry source spans
but no resolved information.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from rowshape.diagnostics import NO_SPAN, Span
from rowshape.schema import Constraint

if TYPE_CHECKING:
    from lark import Tree


@dataclass(frozen=True)
class EnumReference:
    """An ``ENUM(Name)`` / ``ENUMNAME(Name)`` mapping of a column."""

    name: str
    span: Span = NO_SPAN
    python_type: Any = field(default=None, compare=False)


@dataclass(frozen=True)
class ConverterReference:
    """A ``MAPPED BY `Converter()``` clause."""

    expression: str
    span: Span = NO_SPAN

    @property
    def name(self) -> str:
        return self.expression.split("(", 1)[0].strip()


@dataclass(frozen=True)
class ColumnDeclaration:
    name: str
    type_name: str
    span: Span = NO_SPAN
    nullable: bool = False
    constraints: tuple[Constraint, ...] = ()
    custom_constraint: str | None = None
    enum_index: EnumReference | None = None
    enum_name: EnumReference | None = None
    converter: ConverterReference | None = None
    json_key: str | None = None
    autoincrement: bool = False


@dataclass(frozen=True)
class TableDeclaration:
    """A table as declared.

    ``primary_key`` is kept exactly as written so the assembler can reject
    computed declarations; the SQL parser always produces a tuple of names.
    """

    name: str
    columns: tuple[ColumnDeclaration, ...]
    span: Span = NO_SPAN
    primary_key: Any = None
    primary_key_span: Span = NO_SPAN
    unique_keys: tuple[tuple[str, ...], ...] = ()
    checks: tuple[str, ...] = ()
    row_type_name: str | None = None
    existing_row_class: str | None = None
    without_rowid: bool = False
    strict: bool = False


@dataclass(frozen=True)
class ViewDeclaration:
    name: str
    select: Tree = field(compare=False, repr=False)
    span: Span = NO_SPAN
    existing_row_class: str | None = None


@dataclass(frozen=True)
class QueryDeclaration:
    """A named query, optionally mapped into an existing row type."""

    name: str
    select: Tree = field(compare=False, repr=False)
    span: Span = NO_SPAN
    row_type: str | None = None
    row_type_span: Span = NO_SPAN


Declaration = TableDeclaration | ViewDeclaration | QueryDeclaration


@dataclass(frozen=True)
class Declarations:
    """All declarations of one file, in source order."""

    elements: tuple[Declaration, ...] = ()
    source: str = ""

    @property
    def tables(self) -> list[TableDeclaration]:
        return [e for e in self.elements if isinstance(e, TableDeclaration)]

    @property
    def views(self) -> list[ViewDeclaration]:
        return [e for e in self.elements if isinstance(e, ViewDeclaration)]

    @property
    def queries(self) -> list[QueryDeclaration]:
        return [e for e in self.elements if isinstance(e, QueryDeclaration)]

    def __add__(self, other: Declarations) -> Declarations:
        return Declarations(self.elements + other.elements, self.source or other.source)
