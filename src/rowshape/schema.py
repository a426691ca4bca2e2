"""Schema model: scalar types, constraints, columns, tables and views."""

from __future__ import annotations

import enum
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from rowshape.diagnostics import NO_SPAN, Span

if TYPE_CHECKING:
    from lark import Tree

    from rowshape.host import HostType


class SqlType(enum.Enum):
    """Scalar types a column or expression can have."""

    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    REAL = "REAL"
    TEXT = "TEXT"
    BLOB = "BLOB"
    BOOLEAN = "BOOLEAN"
    DATETIME = "DATETIME"
    ANY = "ANY"

    @property
    def is_integer(self) -> bool:
        return self in (SqlType.INTEGER, SqlType.BIGINT)

    @property
    def is_numeric(self) -> bool:
        return self in (SqlType.INTEGER, SqlType.BIGINT, SqlType.REAL)


_EXACT_TYPE_NAMES: dict[str, SqlType] = {
    "INT": SqlType.INTEGER,
    "INTEGER": SqlType.INTEGER,
    "BIGINT": SqlType.BIGINT,
    "INT64": SqlType.BIGINT,
    "BOOL": SqlType.BOOLEAN,
    "BOOLEAN": SqlType.BOOLEAN,
    "DATE": SqlType.DATETIME,
    "DATETIME": SqlType.DATETIME,
    "TIMESTAMP": SqlType.DATETIME,
    "ANY": SqlType.ANY,
}


def sql_type_from_name(type_name: str) -> SqlType:
    """Map a declared column type to a :class:`SqlType`.

    Known names map directly; everything else follows SQLite's type
    affinity rules, so this never fails.
    """
    upper = type_name.strip().upper()
    base = re.split(r"[\s(]", upper, maxsplit=1)[0]
    if base in _EXACT_TYPE_NAMES:
        return _EXACT_TYPE_NAMES[base]
    if "INT" in upper:
        return SqlType.INTEGER
    if any(part in upper for part in ("CHAR", "CLOB", "TEXT")):
        return SqlType.TEXT
    if "BLOB" in upper or not upper:
        return SqlType.BLOB
    return SqlType.REAL


class ReferenceAction(enum.Enum):
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"
    CASCADE = "CASCADE"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"


@dataclass(frozen=True)
class PrimaryKeyConstraint:
    autoincrement: bool = False


@dataclass(frozen=True)
class UniqueConstraint:
    """Unique constraint; ``columns`` is empty for a column-local one."""

    columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class ForeignKeyConstraint:
    """Reference to ``table.column``; a missing column means the target's primary key."""

    table: str
    column: str | None = None
    on_update: ReferenceAction | None = None
    on_delete: ReferenceAction | None = None


@dataclass(frozen=True)
class CheckConstraint:
    expression: str


@dataclass(frozen=True)
class DefaultConstraint:
    """Default value, either a SQL constant or computed by the client."""

    expression: str | None = None
    client_default: Callable[[], Any] | None = field(default=None, compare=False)

    @property
    def is_client_side(self) -> bool:
        return self.client_default is not None


@dataclass(frozen=True)
class GeneratedConstraint:
    expression: str
    stored: bool = False


Constraint = (
    PrimaryKeyConstraint
    | UniqueConstraint
    | ForeignKeyConstraint
    | CheckConstraint
    | DefaultConstraint
    | GeneratedConstraint
)


class ConverterKind(enum.Enum):
    ENUM_INDEX = "enum_index"
    ENUM_NAME = "enum_name"
    CUSTOM = "custom"


@dataclass(frozen=True)
class AppliedConverter:
    """A type converter applied to a column.

    ``host_type`` is the type the column exposes to callers, ``sql_type``
    the type stored in the database.
    """

    kind: ConverterKind
    expression: str
    sql_type: SqlType
    host_type: HostType


@dataclass(frozen=True)
class Column:
    name: str
    sql_type: SqlType
    nullable: bool = False
    constraints: tuple[Constraint, ...] = ()
    custom_constraints: str | None = None
    converter: AppliedConverter | None = None
    json_key: str | None = None
    span: Span = field(default=NO_SPAN, compare=False)

    @property
    def json_name(self) -> str:
        return self.json_key or self.name

    @property
    def default(self) -> DefaultConstraint | None:
        for constraint in self.constraints:
            if isinstance(constraint, DefaultConstraint):
                return constraint
        return None

    @property
    def has_default(self) -> bool:
        return self.default is not None

    @property
    def is_generated(self) -> bool:
        return any(isinstance(c, GeneratedConstraint) for c in self.constraints)

    @property
    def foreign_keys(self) -> list[ForeignKeyConstraint]:
        return [c for c in self.constraints if isinstance(c, ForeignKeyConstraint)]

    def has_constraint(self, kind: type) -> bool:
        return any(isinstance(c, kind) for c in self.constraints)


class _ColumnSet:
    """Shared lookups for tables and views."""

    name: str
    columns: tuple[Column, ...]
    row_type_name: str
    existing_row_class: str | None

    def column(self, name: str) -> Column | None:
        lowered = name.lower()
        for column in self.columns:
            if column.name.lower() == lowered:
                return column
        return None

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def is_row_type(self, type_name: str) -> bool:
        """Whether ``type_name`` names the row type rows of this table map to."""
        return type_name in (self.row_type_name, self.existing_row_class)


@dataclass(frozen=True)
class Table(_ColumnSet):
    name: str
    columns: tuple[Column, ...]
    primary_key: tuple[str, ...] = ()
    unique_keys: tuple[tuple[str, ...], ...] = ()
    checks: tuple[str, ...] = ()
    row_type_name: str = ""
    existing_row_class: str | None = None
    without_rowid: bool = False
    strict: bool = False
    span: Span = field(default=NO_SPAN, compare=False)

    def is_rowid_alias(self, column: Column) -> bool:
        """Whether ``column`` is an alias for SQLite's implicit rowid."""
        if self.without_rowid or len(self.primary_key) != 1:
            return False
        return (
            self.primary_key[0].lower() == column.name.lower()
            and column.sql_type is SqlType.INTEGER
        )

    def is_column_required_for_insert(self, column: Column) -> bool:
        if column.nullable or column.has_default or column.is_generated:
            return False
        return not self.is_rowid_alias(column)


@dataclass(frozen=True)
class View(_ColumnSet):
    name: str
    columns: tuple[Column, ...]
    select: Tree | None = field(default=None, compare=False, repr=False)
    references: frozenset[str] = frozenset()
    row_type_name: str = ""
    existing_row_class: str | None = None
    span: Span = field(default=NO_SPAN, compare=False)


SchemaEntity = Table | View


class Schema:
    """Resolved tables and views of one file with O(1) lookup by name."""

    def __init__(self, entities: Iterable[SchemaEntity] = ()) -> None:
        self._entities: list[SchemaEntity] = []
        self._index: dict[str, SchemaEntity] = {}
        for entity in entities:
            self.add(entity)

    def add(self, entity: SchemaEntity) -> None:
        key = entity.name.lower()
        if key in self._index:
            self._entities.remove(self._index[key])
        self._entities.append(entity)
        self._index[key] = entity

    def find(self, name: str) -> SchemaEntity | None:
        return self._index.get(name.lower())

    @property
    def tables(self) -> list[Table]:
        return [e for e in self._entities if isinstance(e, Table)]

    @property
    def views(self) -> list[View]:
        return [e for e in self._entities if isinstance(e, View)]

    def resolve_reference(self, reference: ForeignKeyConstraint) -> Column | None:
        """Return the column a foreign key points to, if it exists."""
        target = self.find(reference.table)
        if target is None:
            return None
        if reference.column is not None:
            return target.column(reference.column)
        if isinstance(target, Table) and len(target.primary_key) == 1:
            return target.column(target.primary_key[0])
        return None

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._index

    def __len__(self) -> int:
        return len(self._entities)
