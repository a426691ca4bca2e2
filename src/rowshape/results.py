"""Result shapes of queries and their bindings to existing row types."""

from __future__ import annotations

from dataclasses import dataclass, field

from rowshape.diagnostics import NO_SPAN, Diagnostic, Span
from rowshape.host import HostType
from rowshape.schema import AppliedConverter, Column, Schema, SchemaEntity, SqlType

# ---- Shapes ----


@dataclass(frozen=True)
class ScalarResultColumn:
    name: str
    sql_type: SqlType
    nullable: bool = False
    converter: AppliedConverter | None = None
    source: Column | None = field(default=None, compare=False)
    span: Span = field(default=NO_SPAN, compare=False)


@dataclass(frozen=True)
class NestedResultTable:
    """``tbl.**``: all columns of one table, read into the table's row type."""

    name: str
    table: SchemaEntity = field(compare=False)
    nullable: bool = False
    span: Span = field(default=NO_SPAN, compare=False)


@dataclass(frozen=True)
class NestedResultList:
    """``LIST(SELECT ...)``: a correlated sub-query returning many rows."""

    name: str
    result_set: ResultSet
    span: Span = field(default=NO_SPAN, compare=False)

    @property
    def columns(self) -> tuple[ResultColumn, ...]:
        return self.result_set.columns


ResultColumn = ScalarResultColumn | NestedResultTable | NestedResultList


@dataclass(frozen=True)
class ResultSet:
    """Ordered columns of a query.

    ``matching_table`` is set when the columns are exactly the columns of
    one table, as in ``SELECT * FROM tbl``.
    """

    columns: tuple[ResultColumn, ...] = ()
    matching_table: SchemaEntity | None = field(default=None, compare=False)
    references: frozenset[str] = frozenset()

    def column(self, name: str) -> ResultColumn | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def is_single_scalar(self) -> bool:
        return len(self.columns) == 1 and isinstance(self.columns[0], ScalarResultColumn)


# ---- Bindings ----


@dataclass(frozen=True)
class FieldTarget:
    """The parameter or record field a binding fills.

    ``name`` is None for tuple elements, and ``keyword`` tells whether the
    value is passed by keyword or by position.
    """

    name: str | None
    index: int
    keyword: bool = True


@dataclass(frozen=True)
class ScalarBinding:
    column: ScalarResultColumn
    target: FieldTarget | None = None


@dataclass(frozen=True)
class MatchingTableBinding:
    """Columns read straight into the row type of ``table``."""

    table: SchemaEntity = field(compare=False)
    column: NestedResultTable | None = None
    target: FieldTarget | None = None


@dataclass(frozen=True)
class NestedTableBinding:
    column: NestedResultTable
    row_type: ExistingRowType
    target: FieldTarget | None = None


@dataclass(frozen=True)
class NestedListBinding:
    column: NestedResultList
    row_type: ExistingRowType
    target: FieldTarget | None = None


Binding = ScalarBinding | MatchingTableBinding | NestedTableBinding | NestedListBinding


@dataclass(frozen=True)
class ExistingRowType:
    """A verified mapping of a result set into ``host_type``.

    Either there is exactly one binding without a target (the whole row is a
    single value, or rows are read as the table's own row type), or every
    binding names the field it fills.
    """

    host_type: HostType
    bindings: tuple[Binding, ...] = ()

    @property
    def single_value(self) -> Binding | None:
        if len(self.bindings) == 1 and self.bindings[0].target is None:
            return self.bindings[0]
        return None

    @property
    def positional(self) -> list[Binding]:
        return [b for b in self.bindings if b.target is not None and not b.target.keyword]

    @property
    def named(self) -> dict[str, Binding]:
        return {
            b.target.name: b
            for b in self.bindings
            if b.target is not None and b.target.keyword and b.target.name is not None
        }


# ---- Analysis output ----


@dataclass(frozen=True)
class ResolvedQuery:
    name: str
    result_set: ResultSet
    existing_row_type: ExistingRowType | None = None
    row_type_name: str | None = None
    span: Span = field(default=NO_SPAN, compare=False)


@dataclass(frozen=True)
class FileAnalysis:
    """Everything known about one analyzed file."""

    source_name: str
    schema: Schema = field(default_factory=Schema, compare=False)
    queries: dict[str, ResolvedQuery] = field(default_factory=dict)
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if not d.is_error]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
