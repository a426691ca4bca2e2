"""Matches result shapes against existing row types.

A query can name a Python type its rows should be read into. The matcher
decides how that type is constructed from the query's columns and checks,
recursively, that every column fits the field it ends up in.
"""

from __future__ import annotations

from dataclasses import dataclass

from rowshape._errors import (
    ERR_MSG_MUST_ACCEPT,
    ERR_MSG_NO_CONSTRUCTOR,
    ERR_MSG_NO_MATCHING_COLUMN,
    ERR_MSG_NO_MATCHING_FIELD,
    ERR_MSG_NOT_A_LIST,
    ERR_MSG_NULLABLE_TABLE,
    ERR_MSG_POSITIONAL_ARITY,
    ERR_MSG_SINGLE_VALUE_ARITY,
    ERR_MSG_UNKNOWN_ROW_TYPE,
    ArityMismatchError,
    MatchError,
    NoUsableConstructorError,
    NotAListError,
    NullabilityMismatchError,
    PositionalArityMismatchError,
    ScalarTypeMismatchError,
    UnknownRowTypeError,
    UnmatchedFieldError,
)
from rowshape._logging import get_logger
from rowshape.host import (
    HostType,
    HostTypeKind,
    HostTypes,
    Parameter,
    host_type_for,
    is_assignable,
)
from rowshape.results import (
    Binding,
    ExistingRowType,
    FieldTarget,
    MatchingTableBinding,
    NestedListBinding,
    NestedResultList,
    NestedResultTable,
    NestedTableBinding,
    ResultColumn,
    ResultSet,
    ScalarBinding,
    ScalarResultColumn,
)
from rowshape.schema import SchemaEntity

# ---- Descriptors ----


@dataclass(frozen=True)
class SingleValueWrapper:
    """The whole row is one value, e.g. ``int`` for ``SELECT COUNT(*)``."""

    host_type: HostType


@dataclass(frozen=True)
class PositionalFields:
    """Columns fill the parameters in order; arity must match exactly."""

    host_type: HostType
    parameters: tuple[Parameter, ...]


@dataclass(frozen=True)
class NamedFields:
    """Parameters take the column of the same name; extra columns are ignored."""

    host_type: HostType
    parameters: tuple[Parameter, ...]


@dataclass(frozen=True)
class TableRowType:
    """Rows are read as the row type of ``table`` itself."""

    table: SchemaEntity
    host_type: HostType


@dataclass(frozen=True)
class AlternativeCandidates:
    candidates: tuple[Descriptor, ...]


Descriptor = (
    SingleValueWrapper | PositionalFields | NamedFields | TableRowType | AlternativeCandidates
)

_VALUE_KINDS = (HostTypeKind.SCALAR, HostTypeKind.ENUM)


class ExistingRowTypeMatcher:
    """Binds result sets to host types described by a :class:`HostTypes` registry."""

    def __init__(self, host_types: HostTypes) -> None:
        self._host_types = host_types

    def describe(self, host_type: HostType) -> Descriptor:
        """Decide how ``host_type`` is constructed from a row.

        Raises:
            NoUsableConstructorError: If the type has no usable constructor.
            UnknownRowTypeError: If the type could not be resolved.
        """
        if host_type.kind is HostTypeKind.UNRESOLVED:
            raise UnknownRowTypeError(
                ERR_MSG_UNKNOWN_ROW_TYPE.format(name=host_type.name),
                f"{host_type.name} is not registered with the host types",
            )
        if host_type.kind in _VALUE_KINDS:
            return SingleValueWrapper(host_type)
        if host_type.kind is HostTypeKind.RECORD:
            return PositionalFields(host_type, host_type.parameters or ())

        parameters = None
        if host_type.kind is HostTypeKind.CLASS:
            parameters = self._host_types.constructor(host_type)
        if parameters is None:
            raise NoUsableConstructorError(
                ERR_MSG_NO_CONSTRUCTOR,
                f"{host_type.name} ({host_type.kind.value}) has no usable constructor",
            )
        if parameters and not any(p.keyword for p in parameters):
            return PositionalFields(host_type, parameters)
        return NamedFields(host_type, parameters)

    def target_for(
        self, host_type: HostType, matching_table: SchemaEntity | None = None
    ) -> Descriptor:
        """Build the descriptor for reading a result set into ``host_type``.

        When the result set is a full table and ``host_type`` names that
        table's row type, the table fast path is tried first.

        Raises:
            MatchError: If no way to construct ``host_type`` exists.
        """
        candidates: list[Descriptor] = []
        if matching_table is not None and matching_table.is_row_type(host_type.name):
            candidates.append(TableRowType(matching_table, host_type))
        try:
            candidates.append(self.describe(host_type))
        except MatchError:
            if not candidates:
                raise
        if len(candidates) == 1:
            return candidates[0]
        return AlternativeCandidates(tuple(candidates))

    def match(self, result_set: ResultSet, descriptor: Descriptor) -> ExistingRowType:
        """Bind ``result_set`` to ``descriptor``.

        Raises:
            MatchError: A subclass naming the first mismatch found.
        """
        if isinstance(descriptor, AlternativeCandidates):
            return self._match_alternatives(result_set, descriptor)
        if isinstance(descriptor, TableRowType):
            return self._match_table(result_set, descriptor)
        if isinstance(descriptor, SingleValueWrapper):
            return self._match_single_value(result_set, descriptor)
        if isinstance(descriptor, PositionalFields):
            return self._match_positional(result_set, descriptor)
        return self._match_named(result_set, descriptor)

    def _match_alternatives(
        self, result_set: ResultSet, descriptor: AlternativeCandidates
    ) -> ExistingRowType:
        error: MatchError = NoUsableConstructorError(
            ERR_MSG_NO_CONSTRUCTOR, "no candidates to match against"
        )
        for candidate in descriptor.candidates:
            try:
                return self.match(result_set, candidate)
            except MatchError as exc:
                get_logger(__name__).debug(
                    "candidate rejected", candidate=type(candidate).__name__, error=exc.internal()
                )
                error = exc
        raise error

    def _match_table(self, result_set: ResultSet, descriptor: TableRowType) -> ExistingRowType:
        table = descriptor.table
        if result_set.matching_table is None or result_set.matching_table.name != table.name:
            raise UnmatchedFieldError(
                f"{descriptor.host_type.name} holds rows of {table.name}, "
                f"but the query does not select exactly its columns",
                f"result set columns {result_set.names} are not the columns of {table.name}",
            )
        return ExistingRowType(descriptor.host_type, (MatchingTableBinding(table),))

    def _match_single_value(
        self, result_set: ResultSet, descriptor: SingleValueWrapper
    ) -> ExistingRowType:
        if len(result_set.columns) != 1:
            raise ArityMismatchError(
                ERR_MSG_SINGLE_VALUE_ARITY.format(
                    type=descriptor.host_type.display(), actual=len(result_set.columns)
                ),
                f"columns: {result_set.names}",
            )
        binding = self._bind(result_set.columns[0], descriptor.host_type, None)
        return ExistingRowType(descriptor.host_type, (binding,))

    def _match_positional(
        self, result_set: ResultSet, descriptor: PositionalFields
    ) -> ExistingRowType:
        parameters = descriptor.parameters
        if len(parameters) != len(result_set.columns):
            raise PositionalArityMismatchError(
                ERR_MSG_POSITIONAL_ARITY.format(
                    type=descriptor.host_type.display(),
                    expected=len(parameters),
                    actual=len(result_set.columns),
                ),
                f"columns: {result_set.names}",
            )
        bindings = [
            self._bind_parameter(column, parameter)
            for column, parameter in zip(result_set.columns, parameters)
        ]
        return ExistingRowType(descriptor.host_type, tuple(bindings))

    def _match_named(self, result_set: ResultSet, descriptor: NamedFields) -> ExistingRowType:
        message = (
            ERR_MSG_NO_MATCHING_FIELD
            if _is_named_tuple(descriptor.host_type)
            else ERR_MSG_NO_MATCHING_COLUMN
        )
        bindings: list[Binding] = []
        for parameter in descriptor.parameters:
            column = _column_named(result_set, parameter.name)
            if column is None:
                if parameter.has_default:
                    continue
                raise UnmatchedFieldError(
                    message.format(name=parameter.name),
                    f"{descriptor.host_type.name}.{parameter.name} not in {result_set.names}",
                )
            bindings.append(self._bind_parameter(column, parameter))
        return ExistingRowType(descriptor.host_type, tuple(bindings))

    # ---- Binding single columns ----

    def _bind_parameter(self, column: ResultColumn, parameter: Parameter) -> Binding:
        target = FieldTarget(parameter.name, parameter.index, parameter.keyword)
        try:
            return self._bind(column, parameter.type, target)
        except MatchError as exc:
            raise exc.for_parameter(parameter.label) from exc

    def _bind(
        self, column: ResultColumn, field_type: HostType, target: FieldTarget | None
    ) -> Binding:
        if isinstance(column, ScalarResultColumn):
            return self._bind_scalar(column, field_type, target)
        if isinstance(column, NestedResultTable):
            return self._bind_table(column, field_type, target)
        return self._bind_list(column, field_type, target)

    def _bind_scalar(
        self, column: ScalarResultColumn, field_type: HostType, target: FieldTarget | None
    ) -> ScalarBinding:
        if column.converter is not None:
            provided = column.converter.host_type
        else:
            provided = host_type_for(column.sql_type)
        provided = provided.optional(column.nullable)
        if not is_assignable(provided, field_type):
            raise ScalarTypeMismatchError(
                ERR_MSG_MUST_ACCEPT.format(type=provided.display()),
                f"{column.name} is {provided.display()}, field is {field_type.display()}",
            )
        return ScalarBinding(column, target)

    def _bind_table(
        self, column: NestedResultTable, field_type: HostType, target: FieldTarget | None
    ) -> Binding:
        if column.nullable and not field_type.nullable:
            raise NullabilityMismatchError(
                ERR_MSG_NULLABLE_TABLE.format(table=column.table.name),
                f"{column.name} is on the nullable side of an outer join",
            )
        if column.table.is_row_type(field_type.name):
            return MatchingTableBinding(column.table, column, target)

        nested = _table_result_set(column.table)
        descriptor = self.target_for(field_type.optional(False), column.table)
        return NestedTableBinding(column, self.match(nested, descriptor), target)

    def _bind_list(
        self, column: NestedResultList, field_type: HostType, target: FieldTarget | None
    ) -> NestedListBinding:
        if field_type.kind is not HostTypeKind.LIST or field_type.element is None:
            raise NotAListError(
                ERR_MSG_NOT_A_LIST.format(name=column.name),
                f"{column.name} is declared as {field_type.display()}",
            )
        nested = column.result_set
        descriptor = self.target_for(field_type.element, nested.matching_table)
        return NestedListBinding(column, self.match(nested, descriptor), target)


def _column_named(result_set: ResultSet, name: str | None) -> ResultColumn | None:
    if name is None:
        return None
    column = result_set.column(name)
    if column is not None:
        return column
    lowered = name.lower()
    for column in result_set.columns:
        if column.name.lower() == lowered:
            return column
    return None


def _table_result_set(table: SchemaEntity) -> ResultSet:
    columns = tuple(
        ScalarResultColumn(c.name, c.sql_type, c.nullable, c.converter, c, c.span)
        for c in table.columns
    )
    return ResultSet(columns, table, frozenset({table.name.lower()}))


def _is_named_tuple(host_type: HostType) -> bool:
    python_type = host_type.python_type
    return (
        isinstance(python_type, type)
        and issubclass(python_type, tuple)
        and hasattr(python_type, "_fields")
    )
