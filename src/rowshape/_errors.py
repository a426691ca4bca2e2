"""Exception hierarchy for schema and query analysis."""

from __future__ import annotations

from rowshape.diagnostics import DiagnosticKind


class RowShapeError(Exception):
    """Base exception for rowshape errors.

    Provides dual messaging: a sanitized user-facing message and
    internal details for logging.
    """

    def __init__(
        self,
        user_message: str,
        internal_details: str = "",
        wrapped: Exception | None = None,
    ) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.internal_details = internal_details or user_message
        self.wrapped = wrapped

    def internal(self) -> str:
        return self.internal_details


class SqlSyntaxError(RowShapeError):
    """Raised when SQL source cannot be parsed."""

    def __init__(
        self,
        user_message: str,
        internal_details: str = "",
        wrapped: Exception | None = None,
        *,
        position: int = 0,
    ) -> None:
        super().__init__(user_message, internal_details, wrapped)
        self.position = position


class SchemaError(RowShapeError):
    """Raised when a declaration cannot be turned into a schema element."""


class MatchError(RowShapeError):
    """Raised when a result shape cannot be bound to an existing row type."""

    kind = DiagnosticKind.SCALAR_TYPE_MISMATCH

    def for_parameter(self, name: str) -> MatchError:
        """Return a copy of this error scoped to the parameter ``name``."""
        return type(self)(
            f"For parameter {name}: {self.user_message}",
            f"parameter {name}: {self.internal_details}",
            self.wrapped,
        )


class ArityMismatchError(MatchError):
    """Raised when a single-value type is matched against several columns."""

    kind = DiagnosticKind.ARITY_MISMATCH


class PositionalArityMismatchError(MatchError):
    """Raised when positional fields and columns differ in number."""

    kind = DiagnosticKind.POSITIONAL_ARITY_MISMATCH


class UnmatchedFieldError(MatchError):
    """Raised when a required field has no column of the same name."""

    kind = DiagnosticKind.UNMATCHED_FIELD


class ScalarTypeMismatchError(MatchError):
    """Raised when a field does not accept the type of its column."""

    kind = DiagnosticKind.SCALAR_TYPE_MISMATCH


class NullabilityMismatchError(MatchError):
    """Raised when a nullable nested table is bound to a non-optional field."""

    kind = DiagnosticKind.NULLABILITY_MISMATCH


class NotAListError(MatchError):
    """Raised when a nested list query is bound to a non-list field."""

    kind = DiagnosticKind.NOT_A_LIST


class NoUsableConstructorError(MatchError):
    """Raised when a type cannot be constructed from columns."""

    kind = DiagnosticKind.NO_USABLE_CONSTRUCTOR


class UnknownRowTypeError(MatchError):
    """Raised when a query names a row type that cannot be found."""

    kind = DiagnosticKind.UNKNOWN_ROW_TYPE


# Sanitized user-facing error message constants
ERR_MSG_NO_CONSTRUCTOR = (
    "The class to use as an existing row type must have an unnamed constructor."
)
ERR_MSG_NOT_A_LIST = "{name} must be a List"
ERR_MSG_MUST_ACCEPT = "Parameter must accept {type}"
ERR_MSG_NO_MATCHING_COLUMN = "parameter {name} has no matching column"
ERR_MSG_NO_MATCHING_FIELD = "field {name} has no matching column"
ERR_MSG_POSITIONAL_ARITY = (
    "{type} has {expected} positional fields, but there are only {actual} columns."
)
ERR_MSG_SINGLE_VALUE_ARITY = (
    "{type} can only hold a single value, but the query has {actual} columns."
)
ERR_MSG_NULLABLE_TABLE = "Parameter must accept null, {table} may be absent from the join"
ERR_MSG_UNKNOWN_ENUM = "Could not find `{name}`"
ERR_MSG_NOT_AN_ENUM = "Not an enum: `{name}`"
ERR_MSG_DUPLICATE_CONVERTER = (
    "Multiple type converters applied to this column, ignoring this one."
)
ERR_MSG_UNKNOWN_CONVERTER = "Could not find converter `{name}`"
ERR_MSG_UNKNOWN_ROW_TYPE = (
    "Could not find existing row type `{name}`, are you missing an import?"
)
ERR_MSG_UNKNOWN_TABLE = "Unknown table `{name}`"
ERR_MSG_UNKNOWN_COLUMN = "Unknown column `{name}`"
ERR_MSG_DUPLICATE_RESULT_COLUMN = "Duplicate result column name `{name}`, ignoring this one."
ERR_MSG_DUPLICATE_COLUMN = "Duplicate column `{name}` in table `{table}`, ignoring this one."
ERR_MSG_MAX_DEPTH = "Nested queries exceed the maximum depth of {max_depth}"
ERR_MSG_INVALID_PRIMARY_KEY = (
    "primary_key must be a literal set of column names, e.g. {id, name}"
)
ERR_MSG_PRIMARY_KEY_NOT_A_COLUMN = "Primary key column `{name}` is not a column of `{table}`"
ERR_MSG_UNKNOWN_REFERENCE = "Foreign key references unknown column `{target}`"
ERR_MSG_CYCLIC_VIEW = "View `{name}` depends on itself through {cycle}"
ERR_MSG_SYNTAX = "Could not parse SQL: {detail}"
