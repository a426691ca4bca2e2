"""Result-shape resolution: what columns does a SELECT return?

Walks the projection of a SELECT statement and produces the ordered tree of
result columns (scalars, ``tbl.**`` nested tables and ``LIST(...)`` nested
queries) together with the types and nullability of each scalar.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from lark import Tree
from lark.visitors import Interpreter

from rowshape._constants import DEFAULT_MAX_NESTING_DEPTH
from rowshape._errors import (
    ERR_MSG_DUPLICATE_RESULT_COLUMN,
    ERR_MSG_MAX_DEPTH,
    ERR_MSG_UNKNOWN_COLUMN,
    ERR_MSG_UNKNOWN_TABLE,
)
from rowshape._logging import get_logger
from rowshape._parser import identifier
from rowshape._typeinfer import UNKNOWN, InferredType, TypeInferrer
from rowshape.diagnostics import (
    NO_SPAN,
    Diagnostic,
    DiagnosticKind,
    DiagnosticList,
    Resolved,
    Span,
)
from rowshape.results import (
    NestedResultList,
    NestedResultTable,
    ResultColumn,
    ResultSet,
    ScalarResultColumn,
)
from rowshape.schema import Column, Schema, SchemaEntity

_LITERALS = frozenset({
    "int_lit", "real_lit", "string_lit", "null_lit", "true_lit", "false_lit",
    "current_time",
})

_NULLABLE_RIGHT = frozenset({"left_join", "full_join"})
_NULLABLE_LEFT = frozenset({"right_join", "full_join"})


def referenced_names(select: Tree) -> set[str]:
    """Lower-cased names of all tables and views ``select`` reads from."""
    return {identifier(t.children[0]).lower() for t in select.find_data("table_source")}


@dataclass(frozen=True)
class _Source:
    """A table or view in a FROM clause, under the name it is referred to by."""

    alias: str
    entity: SchemaEntity
    nullable: bool = False


class Scope:
    """Tables visible to one SELECT; nested queries also see their parents'."""

    def __init__(self, parent: Scope | None = None) -> None:
        self.parent = parent
        self.sources: list[_Source] = []

    def add(self, source: _Source) -> None:
        self.sources.append(source)

    def make_nullable(self) -> None:
        """Mark every source added so far as the nullable side of an outer join."""
        self.sources = [replace(s, nullable=True) for s in self.sources]

    def find_source(self, alias: str) -> _Source | None:
        lowered = alias.lower()
        for source in self.sources:
            if source.alias.lower() == lowered:
                return source
        return self.parent.find_source(alias) if self.parent else None

    def find_column(self, name: str) -> tuple[_Source, Column] | None:
        for source in self.sources:
            column = source.entity.column(name)
            if column is not None:
                return source, column
        return self.parent.find_column(name) if self.parent else None


@dataclass
class _Frame:
    scope: Scope
    depth: int
    diagnostics: DiagnosticList = field(default_factory=DiagnosticList)
    references: set[str] = field(default_factory=set)


class ShapeResolver(Interpreter):
    """Resolves SELECT statements against a schema.

    In ``view_mode`` every column that is not a plain column reference is
    nullable, literals included, since the view's columns become a schema
    element others can rely on.
    """

    def __init__(
        self,
        schema: Schema,
        source: str,
        *,
        max_depth: int = DEFAULT_MAX_NESTING_DEPTH,
        view_mode: bool = False,
    ) -> None:
        self._schema = schema
        self._source = source
        self._max_depth = max_depth
        self._view_mode = view_mode
        self._frames: list[_Frame] = []
        self._inferrer = TypeInferrer(self._column_type, self._subquery_type)

    def resolve(
        self, select: Tree, outer: Scope | None = None, depth: int = 0
    ) -> Resolved[ResultSet]:
        """Resolve the result columns of ``select``.

        Args:
            select: A ``select_stmt`` tree.
            outer: Scope of the enclosing query, for correlated sub-queries.
            depth: Nesting depth of ``select``; the outermost query is 0.
        """
        frame = _Frame(Scope(outer), depth)
        self._frames.append(frame)
        try:
            clauses = {c.data: c for c in select.children if isinstance(c, Tree)}
            if "from_clause" in clauses:
                self._read_from(clauses["from_clause"])

            columns: list[ResultColumn] = []
            seen: set[str] = set()
            items = clauses["result_columns"].children
            for item in items:
                for column in self.visit(item):
                    key = column.name.lower()
                    if key in seen:
                        self._report(
                            DiagnosticKind.DUPLICATE_RESULT_COLUMN_NAME,
                            ERR_MSG_DUPLICATE_RESULT_COLUMN.format(name=column.name),
                            column.span,
                        )
                        continue
                    seen.add(key)
                    columns.append(column)

            if "where_clause" in clauses:
                self._inferrer.infer(clauses["where_clause"].children[0])

            result = ResultSet(
                tuple(columns),
                self._matching_table(items),
                frozenset(frame.references),
            )
            get_logger(__name__).debug(
                "resolved result shape", depth=depth, columns=result.names
            )
            return Resolved(result, frame.diagnostics.freeze())
        finally:
            self._frames.pop()

    # ---- FROM ----

    @property
    def _frame(self) -> _Frame:
        return self._frames[-1]

    def _read_from(self, from_clause: Tree) -> None:
        constraints: list[Tree] = []
        for child in from_clause.children:
            if child.data == "table_source":
                self._add_source(child, nullable=False)
                continue
            operator, source_tree, *constraint = child.children
            if operator.data in _NULLABLE_LEFT:
                self._frame.scope.make_nullable()
            self._add_source(source_tree, nullable=operator.data in _NULLABLE_RIGHT)
            constraints.extend(constraint)

        for constraint in constraints:
            expression = constraint.children[0]
            if expression.data != "name_list":
                self._inferrer.infer(expression)

    def _add_source(self, tree: Tree, nullable: bool) -> None:
        name = identifier(tree.children[0])
        alias = identifier(tree.children[1].children[0]) if len(tree.children) > 1 else name
        entity = self._schema.find(name)
        if entity is None:
            self._report(
                DiagnosticKind.UNKNOWN_TABLE,
                ERR_MSG_UNKNOWN_TABLE.format(name=name),
                self._span(tree),
            )
            return
        self._frame.references.add(entity.name.lower())
        self._frame.scope.add(_Source(alias, entity, nullable))

    def _matching_table(self, items: list[Tree]) -> SchemaEntity | None:
        sources = self._frame.scope.sources
        if len(items) != 1 or len(sources) != 1 or sources[0].nullable:
            return None
        item = items[0]
        if item.data == "star_column":
            return sources[0].entity
        if (
            item.data == "table_star_column"
            and identifier(item.children[0]).lower() == sources[0].alias.lower()
        ):
            return sources[0].entity
        return None

    # ---- Result columns ----

    def star_column(self, tree: Tree) -> list[ResultColumn]:
        columns: list[ResultColumn] = []
        for source in self._frame.scope.sources:
            columns.extend(self._expand(source, self._span(tree)))
        return columns

    def table_star_column(self, tree: Tree) -> list[ResultColumn]:
        source = self._source_or_report(tree.children[0], tree)
        return self._expand(source, self._span(tree)) if source else []

    def nested_star_column(self, tree: Tree) -> list[ResultColumn]:
        source = self._source_or_report(tree.children[0], tree)
        if source is None:
            return []
        return [NestedResultTable(source.alias, source.entity, source.nullable, self._span(tree))]

    def list_column(self, tree: Tree) -> list[ResultColumn]:
        select = tree.children[0]
        span = self._span(tree)
        name = _alias(tree) or span.text
        depth = self._frame.depth + 1
        if depth > self._max_depth:
            self._report(
                DiagnosticKind.MAX_DEPTH_EXCEEDED,
                ERR_MSG_MAX_DEPTH.format(max_depth=self._max_depth),
                span,
            )
            return []
        nested = self._nested(select, depth)
        return [NestedResultList(name, nested, span)]

    def expr_column(self, tree: Tree) -> list[ResultColumn]:
        expression = tree.children[0]
        inferred = self._inferrer.infer(expression)
        span = self._span(tree)

        name = _alias(tree)
        if name is None:
            if expression.data == "column_ref":
                name = inferred.source.name if inferred.source else identifier(
                    expression.children[-1]
                )
            else:
                name = self._span(expression).text

        if inferred.is_column:
            nullable = inferred.nullable
            converter = inferred.converter
        elif _is_literal(expression) and not self._view_mode:
            nullable = inferred.nullable
            converter = None
        else:
            nullable = True
            converter = None
        return [
            ScalarResultColumn(
                name, inferred.sql_type, nullable, converter, inferred.source, span
            )
        ]

    def _expand(self, source: _Source, span: Span) -> list[ResultColumn]:
        return [
            ScalarResultColumn(
                column.name,
                column.sql_type,
                column.nullable or source.nullable,
                column.converter,
                column,
                span,
            )
            for column in source.entity.columns
        ]

    def _source_or_report(self, name_token, tree: Tree) -> _Source | None:
        name = identifier(name_token)
        source = self._frame.scope.find_source(name)
        if source is None:
            self._report(
                DiagnosticKind.UNKNOWN_TABLE,
                ERR_MSG_UNKNOWN_TABLE.format(name=name),
                self._span(tree),
            )
        return source

    def _nested(self, select: Tree, depth: int) -> ResultSet:
        frame = self._frame
        resolved = self.resolve(select, frame.scope, depth)
        frame.diagnostics.take(resolved)
        frame.references.update(resolved.value.references)
        return resolved.value

    # ---- Type inference callbacks ----

    def _column_type(self, tree: Tree) -> InferredType:
        names = [identifier(c) for c in tree.children]
        scope = self._frame.scope
        if len(names) == 2:
            source = scope.find_source(names[0])
            if source is None:
                self._report(
                    DiagnosticKind.UNKNOWN_TABLE,
                    ERR_MSG_UNKNOWN_TABLE.format(name=names[0]),
                    self._span(tree),
                )
                return UNKNOWN
            column = source.entity.column(names[1])
        else:
            found = scope.find_column(names[0])
            source, column = found if found else (None, None)

        if column is None:
            self._report(
                DiagnosticKind.UNKNOWN_COLUMN,
                ERR_MSG_UNKNOWN_COLUMN.format(name=".".join(names)),
                self._span(tree),
            )
            return UNKNOWN
        return InferredType(
            column.sql_type, column.nullable or source.nullable, column.converter, column
        )

    def _subquery_type(self, select: Tree) -> InferredType:
        nested = self._nested(select, self._frame.depth + 1)
        if nested.is_single_scalar:
            return InferredType(nested.columns[0].sql_type, nullable=True)
        return UNKNOWN

    # ---- Helpers ----

    def _report(self, kind: DiagnosticKind, message: str, span: Span) -> None:
        get_logger(__name__).debug("shape diagnostic", kind=str(kind), message=message)
        self._frame.diagnostics.add(Diagnostic.error(kind, message, span))

    def _span(self, tree: Tree) -> Span:
        if tree.meta.empty:
            return NO_SPAN
        return Span.of(self._source, tree.meta.start_pos, tree.meta.end_pos)


def _alias(tree: Tree) -> str | None:
    last = tree.children[-1]
    if isinstance(last, Tree) and last.data == "alias":
        return identifier(last.children[0])
    return None


def _is_literal(tree: Tree) -> bool:
    if tree.data == "negate":
        return _is_literal(tree.children[-1])
    return tree.data in _LITERALS
