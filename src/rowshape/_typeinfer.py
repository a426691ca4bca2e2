"""Type inference for value expressions in SELECT statements."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from lark import Token, Tree
from lark.visitors import Interpreter

from rowshape.schema import AppliedConverter, Column, SqlType, sql_type_from_name


@dataclass(frozen=True)
class InferredType:
    """Type of an expression.

    ``source`` is set when the expression is a plain reference to a column,
    in which case the column's converter travels with it.
    """

    sql_type: SqlType
    nullable: bool = False
    converter: AppliedConverter | None = None
    source: Column | None = None

    @property
    def is_column(self) -> bool:
        return self.source is not None


UNKNOWN = InferredType(SqlType.ANY, nullable=True)

_TEXT_FUNCTIONS = frozenset({
    "lower", "upper", "trim", "ltrim", "rtrim", "substr", "substring",
    "replace", "printf", "format", "group_concat", "string_agg", "hex",
    "quote", "typeof", "char", "date", "time", "datetime", "strftime",
    "soundex", "concat", "concat_ws",
})
_INTEGER_FUNCTIONS = frozenset({
    "length", "instr", "unicode", "random", "changes", "total_changes",
    "last_insert_rowid", "sign", "octet_length", "unixepoch",
})
_REAL_FUNCTIONS = frozenset({
    "avg", "total", "round", "julianday", "sqrt", "pow", "power", "exp",
    "ln", "log", "log10", "log2", "sin", "cos", "tan", "pi", "ceil",
    "ceiling", "floor",
})
_BLOB_FUNCTIONS = frozenset({"randomblob", "zeroblob", "unhex"})
_SAME_AS_ARGUMENT = frozenset({"abs", "min", "max", "sum", "likely", "unlikely"})
_FIRST_NON_NULL = frozenset({"coalesce", "ifnull"})

_ARITHMETIC_OPERATORS = frozenset({"PLUS", "MINUS", "STAR", "SLASH", "PERCENT"})


class TypeInferrer(Interpreter):
    """Infers the SQL type of an expression tree.

    Column references and scalar sub-queries are resolved through the
    callbacks, which know the tables in scope.
    """

    def __init__(
        self,
        resolve_column: Callable[[Tree], InferredType],
        resolve_subquery: Callable[[Tree], InferredType],
    ) -> None:
        self._resolve_column = resolve_column
        self._resolve_subquery = resolve_subquery

    def infer(self, tree: Tree | Token) -> InferredType:
        if isinstance(tree, Token):
            return UNKNOWN
        return self.visit(tree)

    def __default__(self, tree: Tree) -> InferredType:
        return UNKNOWN

    # ---- Literals ----

    def int_lit(self, tree: Tree) -> InferredType:
        return InferredType(SqlType.INTEGER)

    def real_lit(self, tree: Tree) -> InferredType:
        return InferredType(SqlType.REAL)

    def string_lit(self, tree: Tree) -> InferredType:
        return InferredType(SqlType.TEXT)

    def null_lit(self, tree: Tree) -> InferredType:
        return UNKNOWN

    def true_lit(self, tree: Tree) -> InferredType:
        return InferredType(SqlType.BOOLEAN)

    false_lit = true_lit

    def current_time(self, tree: Tree) -> InferredType:
        return InferredType(SqlType.DATETIME)

    def variable(self, tree: Tree) -> InferredType:
        return UNKNOWN

    # ---- References ----

    def column_ref(self, tree: Tree) -> InferredType:
        return self._resolve_column(tree)

    def scalar_subquery(self, tree: Tree) -> InferredType:
        inferred = self._resolve_subquery(tree.children[0])
        return InferredType(inferred.sql_type, nullable=True)

    # ---- Operators ----

    def negate(self, tree: Tree) -> InferredType:
        operand = self.infer(tree.children[-1])
        return InferredType(operand.sql_type, operand.nullable)

    def binary_op(self, tree: Tree) -> InferredType:
        left_tree, operator, right_tree = tree.children
        left = self.infer(left_tree)
        right = self.infer(right_tree)
        nullable = left.nullable or right.nullable
        if operator.type == "COMP_OP":
            return InferredType(SqlType.BOOLEAN, nullable)
        if operator.type == "CONCAT":
            return InferredType(SqlType.TEXT, nullable)
        if operator.type in _ARITHMETIC_OPERATORS:
            return InferredType(_arithmetic_type(left.sql_type, right.sql_type), nullable)
        return InferredType(SqlType.ANY, True)

    def _boolean(self, tree: Tree) -> InferredType:
        operands = [self.infer(c) for c in tree.children if isinstance(c, Tree)]
        nullable = any(o.nullable for o in operands)
        return InferredType(SqlType.BOOLEAN, nullable)

    or_op = and_op = not_op = in_op = like_op = _boolean

    def is_op(self, tree: Tree) -> InferredType:
        return InferredType(SqlType.BOOLEAN)

    def exists(self, tree: Tree) -> InferredType:
        return InferredType(SqlType.BOOLEAN)

    # ---- Functions, casts and CASE ----

    def function_call(self, tree: Tree) -> InferredType:
        name = str(tree.children[0]).lower()
        args = [self.infer(c) for c in tree.children[1:] if isinstance(c, Tree)]

        if name == "count":
            return InferredType(SqlType.INTEGER)
        if name in _TEXT_FUNCTIONS:
            return InferredType(SqlType.TEXT, any(a.nullable for a in args))
        if name in _INTEGER_FUNCTIONS:
            return InferredType(SqlType.INTEGER, any(a.nullable for a in args))
        if name in _REAL_FUNCTIONS:
            return InferredType(SqlType.REAL, True)
        if name in _BLOB_FUNCTIONS:
            return InferredType(SqlType.BLOB)
        if name in _SAME_AS_ARGUMENT and args:
            sql_type = args[0].sql_type
            for arg in args[1:]:
                sql_type = _common_type(sql_type, arg.sql_type)
            if name == "sum" and not sql_type.is_integer:
                sql_type = SqlType.REAL
            # Aggregates over zero rows return NULL.
            return InferredType(sql_type, True)
        if name in _FIRST_NON_NULL and args:
            known = [a for a in args if a.sql_type is not SqlType.ANY]
            sql_type = known[0].sql_type if known else SqlType.ANY
            return InferredType(sql_type, all(a.nullable for a in args))
        if name == "nullif" and args:
            return InferredType(args[0].sql_type, True)
        if name == "iif" and len(args) == 3:
            return InferredType(
                _common_type(args[1].sql_type, args[2].sql_type),
                args[1].nullable or args[2].nullable,
            )
        return UNKNOWN

    def cast(self, tree: Tree) -> InferredType:
        operand = self.infer(tree.children[0])
        type_tree = tree.children[1]
        return InferredType(sql_type_from_name(str(type_tree.children[0])), operand.nullable)

    def case(self, tree: Tree) -> InferredType:
        results: list[InferredType] = []
        has_else = False
        for child in tree.children:
            if child.data == "when_clause":
                results.append(self.infer(child.children[1]))
            elif child.data == "case_else":
                results.append(self.infer(child.children[0]))
                has_else = True
        sql_type = SqlType.ANY
        for result in results:
            sql_type = _common_type(sql_type, result.sql_type)
        nullable = not has_else or any(r.nullable for r in results)
        return InferredType(sql_type, nullable)


def _arithmetic_type(left: SqlType, right: SqlType) -> SqlType:
    if left is SqlType.ANY or right is SqlType.ANY:
        return left if right is SqlType.ANY else right
    if left.is_integer and right.is_integer:
        return SqlType.BIGINT if SqlType.BIGINT in (left, right) else SqlType.INTEGER
    return SqlType.REAL


def _common_type(left: SqlType, right: SqlType) -> SqlType:
    """Type that can hold values of both ``left`` and ``right``."""
    if left is SqlType.ANY:
        return right
    if right is SqlType.ANY or left is right:
        return left
    if left.is_numeric and right.is_numeric:
        return _arithmetic_type(left, right)
    return SqlType.ANY
