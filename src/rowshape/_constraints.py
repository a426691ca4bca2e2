"""Turns column declarations into resolved columns."""

from __future__ import annotations

from rowshape._constants import NOT_NULL_MARKER
from rowshape._errors import (
    ERR_MSG_DUPLICATE_CONVERTER,
    ERR_MSG_NOT_AN_ENUM,
    ERR_MSG_UNKNOWN_CONVERTER,
    ERR_MSG_UNKNOWN_ENUM,
)
from rowshape._logging import get_logger
from rowshape.declarations import ColumnDeclaration, EnumReference
from rowshape.diagnostics import Diagnostic, DiagnosticKind, Resolved
from rowshape.host import HostTypeKind, HostTypes
from rowshape.schema import (
    AppliedConverter,
    Column,
    Constraint,
    ConverterKind,
    PrimaryKeyConstraint,
    SqlType,
    sql_type_from_name,
)

_ENUM_CONVERTERS = {
    ConverterKind.ENUM_INDEX: ("EnumIndexConverter", SqlType.INTEGER),
    ConverterKind.ENUM_NAME: ("EnumNameConverter", SqlType.TEXT),
}


def resolve_column(declaration: ColumnDeclaration, host_types: HostTypes) -> Resolved[Column]:
    """Resolve type, nullability, constraints and converter of a column.

    Unknown enums and converters are reported and leave the column without
    their converter. A ``MAPPED BY`` converter is only dropped in favor of an
    enum converter that resolved. This never fails outright.
    """
    diagnostics: list[Diagnostic] = []
    sql_type = sql_type_from_name(declaration.type_name)
    converter: AppliedConverter | None = None

    enum_forms = [
        (ConverterKind.ENUM_INDEX, declaration.enum_index),
        (ConverterKind.ENUM_NAME, declaration.enum_name),
    ]
    has_enum = False
    for kind, reference in enum_forms:
        if reference is None:
            continue
        applied = _enum_converter(kind, reference, host_types, diagnostics)
        if has_enum:
            diagnostics.append(
                Diagnostic.warning(
                    DiagnosticKind.DUPLICATE_CONVERTER,
                    ERR_MSG_DUPLICATE_CONVERTER,
                    reference.span,
                )
            )
            continue
        has_enum = True
        sql_type = _ENUM_CONVERTERS[kind][1]
        converter = applied

    if declaration.converter is not None:
        if converter is not None:
            diagnostics.append(
                Diagnostic.warning(
                    DiagnosticKind.DUPLICATE_CONVERTER,
                    ERR_MSG_DUPLICATE_CONVERTER,
                    declaration.converter.span,
                )
            )
        else:
            host_type = host_types.converter_type(declaration.converter.name)
            if host_type is None:
                diagnostics.append(
                    Diagnostic.error(
                        DiagnosticKind.UNKNOWN_CONVERTER,
                        ERR_MSG_UNKNOWN_CONVERTER.format(name=declaration.converter.name),
                        declaration.converter.span,
                    )
                )
            else:
                converter = AppliedConverter(
                    ConverterKind.CUSTOM,
                    declaration.converter.expression,
                    sql_type,
                    host_type,
                )

    constraints: tuple[Constraint, ...]
    if declaration.custom_constraint is not None:
        nullable = NOT_NULL_MARKER not in declaration.custom_constraint.upper()
        constraints = ()
    else:
        nullable = declaration.nullable
        constraints = declaration.constraints
        if declaration.autoincrement and not any(
            isinstance(c, PrimaryKeyConstraint) for c in constraints
        ):
            constraints = (PrimaryKeyConstraint(autoincrement=True),) + constraints

    column = Column(
        name=declaration.name,
        sql_type=sql_type,
        nullable=nullable,
        constraints=constraints,
        custom_constraints=declaration.custom_constraint,
        converter=converter,
        json_key=declaration.json_key,
        span=declaration.span,
    )
    get_logger(__name__).debug(
        "resolved column",
        column=column.name,
        sql_type=column.sql_type.value,
        nullable=column.nullable,
    )
    return Resolved(column, tuple(diagnostics))


def _enum_converter(
    kind: ConverterKind,
    reference: EnumReference,
    host_types: HostTypes,
    diagnostics: list[Diagnostic],
) -> AppliedConverter | None:
    if reference.python_type is not None:
        host_type = host_types.describe(reference.python_type)
        is_enum = host_type.kind is HostTypeKind.ENUM
    else:
        host_type, is_enum = host_types.enum_type(reference.name)

    if host_type is None:
        diagnostics.append(
            Diagnostic.error(
                DiagnosticKind.UNKNOWN_ENUM,
                ERR_MSG_UNKNOWN_ENUM.format(name=reference.name),
                reference.span,
            )
        )
        return None
    if not is_enum:
        diagnostics.append(
            Diagnostic.error(
                DiagnosticKind.NOT_AN_ENUM,
                ERR_MSG_NOT_AN_ENUM.format(name=reference.name),
                reference.span,
            )
        )
        return None

    converter_name, sql_type = _ENUM_CONVERTERS[kind]
    return AppliedConverter(kind, f"{converter_name}({reference.name})", sql_type, host_type)
