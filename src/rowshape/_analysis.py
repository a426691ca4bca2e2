"""File-level analysis driver.

Resolves every element of a file in dependency order: tables first, then
views (ordered by the views they read from), then queries. Problems are
collected as diagnostics; one broken element never stops the others from
being analyzed.
"""

from __future__ import annotations

import networkx as nx

from rowshape._constants import DEFAULT_MAX_NESTING_DEPTH, DEFAULT_SOURCE_NAME
from rowshape._constraints import resolve_column
from rowshape._errors import (
    ERR_MSG_CYCLIC_VIEW,
    ERR_MSG_SYNTAX,
    ERR_MSG_UNKNOWN_ROW_TYPE,
    MatchError,
    SqlSyntaxError,
)
from rowshape._logging import get_logger
from rowshape._matcher import ExistingRowTypeMatcher
from rowshape._parser import parse
from rowshape._shape import ShapeResolver, referenced_names
from rowshape._tables import assemble_table, assemble_view, validate_references
from rowshape._utils import query_result_name
from rowshape.declarations import Declarations, QueryDeclaration, ViewDeclaration
from rowshape.diagnostics import Diagnostic, DiagnosticKind, DiagnosticList, Span
from rowshape.host import HostType, HostTypeKind, HostTypes
from rowshape.results import ExistingRowType, FileAnalysis, ResolvedQuery, ResultSet
from rowshape.schema import Schema


def analyze(
    source: str,
    *,
    host_types: HostTypes | None = None,
    max_depth: int | None = None,
    source_name: str = DEFAULT_SOURCE_NAME,
) -> FileAnalysis:
    """Analyze a file of SQL declarations and named queries.

    Args:
        source: SQL source with ``CREATE TABLE``, ``CREATE VIEW`` and
            ``name [WITH RowType]: SELECT ...`` statements separated by ``;``.
        host_types: Python types queries and columns may refer to by name.
        max_depth: Maximum nesting depth of ``LIST(...)`` sub-queries.
        source_name: Name of the source used in logs.

    Returns:
        The analysis. A syntax error is reported as a single diagnostic
        and yields an otherwise empty analysis.
    """
    try:
        declarations = parse(source)
    except SqlSyntaxError as exc:
        get_logger(__name__).debug(
            "syntax error", source=source_name, position=exc.position, detail=exc.internal()
        )
        end = min(len(source), exc.position + 1)
        diagnostic = Diagnostic.error(
            DiagnosticKind.SYNTAX_ERROR,
            ERR_MSG_SYNTAX.format(detail=exc.internal().splitlines()[0]),
            Span.of(source, exc.position, end),
        )
        return FileAnalysis(source_name, diagnostics=(diagnostic,))
    return analyze_declarations(
        declarations, host_types=host_types, max_depth=max_depth, source_name=source_name
    )


def analyze_declarations(
    declarations: Declarations,
    *,
    host_types: HostTypes | None = None,
    max_depth: int | None = None,
    source_name: str = DEFAULT_SOURCE_NAME,
) -> FileAnalysis:
    """Analyze declarations that were already parsed or built in Python."""
    analyzer = FileAnalyzer(
        declarations,
        host_types or HostTypes(),
        DEFAULT_MAX_NESTING_DEPTH if max_depth is None else max_depth,
        source_name,
    )
    return analyzer.run()


class FileAnalyzer:
    """Analysis state of one file. Use once."""

    def __init__(
        self,
        declarations: Declarations,
        host_types: HostTypes,
        max_depth: int,
        source_name: str,
    ) -> None:
        self._declarations = declarations
        self._host_types = host_types
        self._max_depth = max_depth
        self._source_name = source_name
        self._schema = Schema()
        self._diagnostics = DiagnosticList()
        self._matcher = ExistingRowTypeMatcher(host_types)
        self._log = get_logger(__name__).bind(source=source_name)

    def run(self) -> FileAnalysis:
        self._log.debug(
            "analyzing file",
            tables=len(self._declarations.tables),
            views=len(self._declarations.views),
            queries=len(self._declarations.queries),
        )
        self._resolve_tables()
        for diagnostic in validate_references(self._schema):
            self._diagnostics.add(diagnostic)
        self._resolve_views()
        queries = self._resolve_queries()

        diagnostics = self._diagnostics.freeze()
        self._log.debug(
            "analysis finished",
            errors=sum(1 for d in diagnostics if d.is_error),
            warnings=sum(1 for d in diagnostics if not d.is_error),
        )
        return FileAnalysis(self._source_name, self._schema, queries, diagnostics)

    # ---- Schema ----

    def _resolve_tables(self) -> None:
        for declaration in self._declarations.tables:
            columns = [
                self._diagnostics.take(resolve_column(c, self._host_types))
                for c in declaration.columns
            ]
            table = self._diagnostics.take(assemble_table(declaration, columns))
            self._schema.add(table)
            self._log.debug(
                "resolved table", table=table.name, primary_key=list(table.primary_key)
            )

    def _resolve_views(self) -> None:
        views = {v.name.lower(): v for v in self._declarations.views}
        graph = nx.DiGraph()
        for key, view in views.items():
            graph.add_node(key)
            for reference in referenced_names(view.select):
                if reference in views:
                    graph.add_edge(reference, key)

        cyclic: set[str] = set()
        for cycle in nx.simple_cycles(graph):
            for key in cycle:
                if key in cyclic:
                    continue
                cyclic.add(key)
                view = views[key]
                self._diagnostics.add(
                    Diagnostic.error(
                        DiagnosticKind.CYCLIC_DEPENDENCY,
                        ERR_MSG_CYCLIC_VIEW.format(
                            name=view.name,
                            cycle=" -> ".join(views[k].name for k in cycle + [cycle[0]]),
                        ),
                        view.span,
                    )
                )

        ordered = graph.subgraph(k for k in graph.nodes if k not in cyclic)
        for key in nx.topological_sort(ordered):
            self._resolve_view(views[key])

    def _resolve_view(self, declaration: ViewDeclaration) -> None:
        resolver = ShapeResolver(
            self._schema,
            self._declarations.source,
            max_depth=self._max_depth,
            view_mode=True,
        )
        result_set = self._diagnostics.take(resolver.resolve(declaration.select))
        view = self._diagnostics.take(assemble_view(declaration, result_set))
        self._schema.add(view)
        self._log.debug("resolved view", view=view.name, columns=view.column_names)

    # ---- Queries ----

    def _resolve_queries(self) -> dict[str, ResolvedQuery]:
        queries: dict[str, ResolvedQuery] = {}
        for declaration in self._declarations.queries:
            resolver = ShapeResolver(
                self._schema, self._declarations.source, max_depth=self._max_depth
            )
            result_set = self._diagnostics.take(resolver.resolve(declaration.select))

            existing = None
            if declaration.row_type is not None:
                existing = self._match(declaration, result_set)

            queries[declaration.name] = ResolvedQuery(
                declaration.name,
                result_set,
                existing,
                _row_type_name(declaration, result_set),
                declaration.span,
            )
        return queries

    def _match(
        self, declaration: QueryDeclaration, result_set: ResultSet
    ) -> ExistingRowType | None:
        name = declaration.row_type
        span = declaration.row_type_span
        host_type = self._host_types.lookup(name)
        if host_type is None:
            table = result_set.matching_table
            if table is None or not table.is_row_type(name):
                self._diagnostics.add(
                    Diagnostic.error(
                        DiagnosticKind.UNKNOWN_ROW_TYPE,
                        ERR_MSG_UNKNOWN_ROW_TYPE.format(name=name),
                        span,
                    )
                )
                return None
            host_type = HostType(name, HostTypeKind.UNRESOLVED)

        try:
            descriptor = self._matcher.target_for(host_type, result_set.matching_table)
            existing = self._matcher.match(result_set, descriptor)
        except MatchError as exc:
            self._log.debug(
                "existing row type rejected", query=declaration.name, detail=exc.internal()
            )
            self._diagnostics.add(Diagnostic.error(exc.kind, exc.user_message, span))
            return None

        self._log.debug("matched existing row type", query=declaration.name, row_type=name)
        return existing


def _row_type_name(declaration: QueryDeclaration, result_set: ResultSet) -> str | None:
    if declaration.row_type is not None:
        return declaration.row_type
    if result_set.matching_table is not None:
        return result_set.matching_table.row_type_name
    if result_set.is_single_scalar:
        return None
    return query_result_name(declaration.name)
