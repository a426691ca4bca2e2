"""Declare tables as Python classes.

Example::

    class Users(Table):
        id = column("INTEGER", autoincrement=True)
        name = column("TEXT", json_key="userName")
        mood = column("INTEGER", enum_index=Mood, nullable=True)

``Users.declaration()`` returns the same :class:`TableDeclaration` the SQL
parser produces for the equivalent ``CREATE TABLE`` statement.
"""

from __future__ import annotations

import inspect
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar

from rowshape.declarations import (
    ColumnDeclaration,
    ConverterReference,
    EnumReference,
    TableDeclaration,
)
from rowshape.diagnostics import Span
from rowshape.schema import (
    CheckConstraint,
    Constraint,
    DefaultConstraint,
    ForeignKeyConstraint,
    ReferenceAction,
    UniqueConstraint,
)


@dataclass(frozen=True, eq=False)
class ColumnSpec:
    """Options of a column declared with :func:`column`.

    Specs compare by identity so that a primary key set can hold several
    columns with identical options.
    """

    type_name: str
    nullable: bool = False
    autoincrement: bool = False
    unique: bool = False
    default: str | None = None
    client_default: Callable[[], Any] | None = None
    references: str | None = None
    on_update: ReferenceAction | None = None
    on_delete: ReferenceAction | None = None
    check: str | None = None
    custom_constraint: str | None = None
    enum_index: Any = None
    enum_name: Any = None
    converter: str | None = None
    json_key: str | None = None
    sql_name: str | None = None


def column(type_name: str, **options: Any) -> ColumnSpec:
    """Declare a column of SQL type ``type_name``.

    Args:
        type_name: The SQL type, e.g. ``"INTEGER"`` or ``"TEXT"``.
        **options: Any field of :class:`ColumnSpec`. ``references`` takes
            ``"table.column"`` or just ``"table"`` for its primary key.
            ``enum_index``/``enum_name`` take an enum class or its name.
    """
    return ColumnSpec(type_name, **options)


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


class Table:
    """Base class for tables declared in Python.

    Class attributes control the table: ``__tablename__`` (defaults to the
    snake-cased class name), ``__row_type_name__``, ``__row_class__``,
    ``__without_rowid__`` and ``primary_key``, which must be a literal set
    of column names.
    """

    __tablename__: ClassVar[str | None] = None
    __row_type_name__: ClassVar[str | None] = None
    __row_class__: ClassVar[str | None] = None
    __without_rowid__: ClassVar[bool] = False

    @classmethod
    def declaration(cls) -> TableDeclaration:
        specs = {
            attribute: spec
            for attribute, spec in vars(cls).items()
            if isinstance(spec, ColumnSpec)
        }
        columns = [
            _column_declaration(cls, attribute, spec) for attribute, spec in specs.items()
        ]
        primary_key = None
        for klass in cls.__mro__:
            if klass is Table:
                break
            if "primary_key" in vars(klass):
                primary_key = _column_names(
                    inspect.getattr_static(klass, "primary_key"), specs
                )
                break
        return TableDeclaration(
            name=cls.__tablename__ or _snake_case(cls.__name__),
            columns=tuple(columns),
            span=Span(text=cls.__name__),
            primary_key=primary_key,
            primary_key_span=Span(text=f"{cls.__name__}.primary_key"),
            row_type_name=cls.__row_type_name__,
            existing_row_class=cls.__row_class__,
            without_rowid=cls.__without_rowid__,
        )


def _column_names(primary_key: Any, specs: dict[str, ColumnSpec]) -> Any:
    """Replace column objects in a literal primary key with their SQL names.

    Anything other than a literal collection is returned unchanged, for the
    assembler to reject.
    """
    if not isinstance(primary_key, (set, frozenset, tuple, list)):
        return primary_key
    names = {id(spec): spec.sql_name or attribute for attribute, spec in specs.items()}
    return type(primary_key)(
        names.get(id(item), item) if isinstance(item, ColumnSpec) else item
        for item in primary_key
    )


def _enum_reference(value: Any, span: Span) -> EnumReference | None:
    if value is None:
        return None
    if isinstance(value, str):
        return EnumReference(value, span)
    return EnumReference(getattr(value, "__name__", repr(value)), span, python_type=value)


def _column_declaration(owner: type, attribute: str, spec: ColumnSpec) -> ColumnDeclaration:
    span = Span(text=f"{owner.__name__}.{attribute}")
    constraints: list[Constraint] = []
    if spec.unique:
        constraints.append(UniqueConstraint())
    if spec.references:
        table, _, target = spec.references.partition(".")
        constraints.append(
            ForeignKeyConstraint(table, target or None, spec.on_update, spec.on_delete)
        )
    if spec.check:
        constraints.append(CheckConstraint(spec.check))
    if spec.default is not None or spec.client_default is not None:
        constraints.append(DefaultConstraint(spec.default, spec.client_default))

    return ColumnDeclaration(
        name=spec.sql_name or attribute,
        type_name=spec.type_name,
        span=span,
        nullable=spec.nullable,
        constraints=tuple(constraints),
        custom_constraint=spec.custom_constraint,
        enum_index=_enum_reference(spec.enum_index, Span(text=f"{span.text}.enum_index")),
        enum_name=_enum_reference(spec.enum_name, Span(text=f"{span.text}.enum_name")),
        converter=ConverterReference(spec.converter, span) if spec.converter else None,
        json_key=spec.json_key,
        autoincrement=spec.autoincrement,
    )
