"""Assembles resolved columns into tables and views."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from rowshape._errors import (
    ERR_MSG_DUPLICATE_COLUMN,
    ERR_MSG_INVALID_PRIMARY_KEY,
    ERR_MSG_PRIMARY_KEY_NOT_A_COLUMN,
    ERR_MSG_UNKNOWN_REFERENCE,
    SchemaError,
)
from rowshape._utils import row_type_name_for
from rowshape.declarations import TableDeclaration, ViewDeclaration
from rowshape.diagnostics import Diagnostic, DiagnosticKind, Resolved
from rowshape.results import NestedResultList, NestedResultTable, ResultSet
from rowshape.schema import Column, PrimaryKeyConstraint, Schema, Table, View

_LITERAL_COLLECTIONS = (set, frozenset, tuple, list)


def assemble_table(declaration: TableDeclaration, columns: Sequence[Column]) -> Resolved[Table]:
    """Build a table from its declaration and resolved columns.

    Duplicate columns and invalid primary keys are reported; the table is
    still built from what is usable.
    """
    diagnostics: list[Diagnostic] = []

    unique: list[Column] = []
    seen: set[str] = set()
    for column in columns:
        if column.name.lower() in seen:
            diagnostics.append(
                Diagnostic.error(
                    DiagnosticKind.DUPLICATE_COLUMN_NAME,
                    ERR_MSG_DUPLICATE_COLUMN.format(name=column.name, table=declaration.name),
                    column.span,
                )
            )
            continue
        seen.add(column.name.lower())
        unique.append(column)

    if declaration.primary_key is not None:
        try:
            primary_key = _primary_key_names(declaration.primary_key, declaration.name, unique)
        except SchemaError as exc:
            diagnostics.append(
                Diagnostic.error(
                    DiagnosticKind.INVALID_PRIMARY_KEY_DECLARATION,
                    exc.user_message,
                    declaration.primary_key_span,
                )
            )
            primary_key = ()
    else:
        primary_key = tuple(
            c.name for c in unique if c.has_constraint(PrimaryKeyConstraint)
        )

    table = Table(
        name=declaration.name,
        columns=tuple(unique),
        primary_key=primary_key,
        unique_keys=declaration.unique_keys,
        checks=declaration.checks,
        row_type_name=(
            declaration.row_type_name
            or declaration.existing_row_class
            or row_type_name_for(declaration.name)
        ),
        existing_row_class=declaration.existing_row_class,
        without_rowid=declaration.without_rowid,
        strict=declaration.strict,
        span=declaration.span,
    )
    return Resolved(table, tuple(diagnostics))


def _primary_key_names(raw: Any, table: str, columns: Sequence[Column]) -> tuple[str, ...]:
    """Validate a declared primary key and return its names in column order.

    Raises:
        SchemaError: If ``raw`` is not a literal collection of column names.
    """
    if not isinstance(raw, _LITERAL_COLLECTIONS) or not all(isinstance(n, str) for n in raw):
        raise SchemaError(
            ERR_MSG_INVALID_PRIMARY_KEY,
            f"primary key of {table} is a {type(raw).__name__}",
        )
    by_name = {c.name.lower(): c.name for c in columns}
    for name in raw:
        if name.lower() not in by_name:
            raise SchemaError(ERR_MSG_PRIMARY_KEY_NOT_A_COLUMN.format(name=name, table=table))
    wanted = {n.lower() for n in raw}
    if isinstance(raw, (tuple, list)):
        return tuple(by_name[n.lower()] for n in raw)
    return tuple(c.name for c in columns if c.name.lower() in wanted)


def assemble_view(declaration: ViewDeclaration, result_set: ResultSet) -> Resolved[View]:
    """Build a view from the resolved shape of its SELECT.

    ``tbl.**`` columns are flattened into the view. ``LIST(...)`` columns
    have no place in a view and are left out.
    """
    columns: list[Column] = []
    for result in result_set.columns:
        if isinstance(result, NestedResultList):
            continue
        if isinstance(result, NestedResultTable):
            columns.extend(
                Column(
                    c.name,
                    c.sql_type,
                    c.nullable or result.nullable,
                    converter=c.converter,
                    json_key=c.json_key,
                    span=result.span,
                )
                for c in result.table.columns
            )
            continue
        columns.append(
            Column(
                result.name,
                result.sql_type,
                result.nullable,
                converter=result.converter,
                json_key=result.source.json_key if result.source else None,
                span=result.span,
            )
        )

    view = View(
        name=declaration.name,
        columns=tuple(columns),
        select=declaration.select,
        references=result_set.references,
        row_type_name=declaration.existing_row_class or row_type_name_for(declaration.name),
        existing_row_class=declaration.existing_row_class,
        span=declaration.span,
    )
    return Resolved(view)


def validate_references(schema: Schema) -> list[Diagnostic]:
    """Report foreign keys whose target table or column does not exist."""
    diagnostics: list[Diagnostic] = []
    for table in schema.tables:
        for column in table.columns:
            for reference in column.foreign_keys:
                if schema.resolve_reference(reference) is not None:
                    continue
                target = reference.table
                if reference.column is not None:
                    target = f"{reference.table}.{reference.column}"
                diagnostics.append(
                    Diagnostic.error(
                        DiagnosticKind.UNKNOWN_REFERENCE,
                        ERR_MSG_UNKNOWN_REFERENCE.format(target=target),
                        column.span,
                    )
                )
    return diagnostics
