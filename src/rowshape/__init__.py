"""rowshape - Resolve the row shapes of SQL queries and match them to Python types."""

from __future__ import annotations

__version__ = "0.1.0"

from rowshape._analysis import analyze, analyze_declarations
from rowshape._errors import (
    MatchError,
    RowShapeError,
    SchemaError,
    SqlSyntaxError,
)
from rowshape._logging import setup_logging
from rowshape._matcher import (
    AlternativeCandidates,
    ExistingRowTypeMatcher,
    NamedFields,
    PositionalFields,
    SingleValueWrapper,
    TableRowType,
)
from rowshape._parser import parse
from rowshape.declarations import Declarations
from rowshape.diagnostics import Diagnostic, DiagnosticKind, Severity, Span
from rowshape.host import HostType, HostTypeKind, HostTypes, TypeConverter
from rowshape.results import (
    ExistingRowType,
    FieldTarget,
    FileAnalysis,
    MatchingTableBinding,
    NestedListBinding,
    NestedResultList,
    NestedResultTable,
    NestedTableBinding,
    ResolvedQuery,
    ResultSet,
    ScalarBinding,
    ScalarResultColumn,
)
from rowshape.schema import Column, Schema, SqlType, Table, View

__all__ = [
    "analyze",
    "analyze_declarations",
    "parse",
    "setup_logging",
    "AlternativeCandidates",
    "Column",
    "Declarations",
    "Diagnostic",
    "DiagnosticKind",
    "ExistingRowType",
    "ExistingRowTypeMatcher",
    "FieldTarget",
    "FileAnalysis",
    "HostType",
    "HostTypeKind",
    "HostTypes",
    "MatchError",
    "MatchingTableBinding",
    "NamedFields",
    "NestedListBinding",
    "NestedResultList",
    "NestedResultTable",
    "NestedTableBinding",
    "PositionalFields",
    "ResolvedQuery",
    "ResultSet",
    "RowShapeError",
    "ScalarBinding",
    "ScalarResultColumn",
    "Schema",
    "SchemaError",
    "Severity",
    "SingleValueWrapper",
    "Span",
    "SqlSyntaxError",
    "SqlType",
    "Table",
    "TableRowType",
    "TypeConverter",
    "View",
]
