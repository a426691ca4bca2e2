"""SQL parsing: lark grammar plus conversion of DDL trees into declarations.

Query and view bodies stay lark syntax trees; the shape resolver walks them
directly.
"""

from __future__ import annotations

from dataclasses import replace

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput
from lark.visitors import Interpreter

from rowshape._errors import SqlSyntaxError
from rowshape.declarations import (
    ColumnDeclaration,
    ConverterReference,
    Declarations,
    EnumReference,
    QueryDeclaration,
    TableDeclaration,
    ViewDeclaration,
)
from rowshape.diagnostics import NO_SPAN, Span
from rowshape.schema import (
    CheckConstraint,
    Constraint,
    DefaultConstraint,
    ForeignKeyConstraint,
    GeneratedConstraint,
    PrimaryKeyConstraint,
    ReferenceAction,
    UniqueConstraint,
)

_REFERENCE_ACTIONS = {
    "set_null": ReferenceAction.SET_NULL,
    "set_default": ReferenceAction.SET_DEFAULT,
    "cascade": ReferenceAction.CASCADE,
    "restrict": ReferenceAction.RESTRICT,
    "no_action": ReferenceAction.NO_ACTION,
}

_ENUM_TYPES = {"ENUM": "enum_index", "ENUMNAME": "enum_name"}

_lark: Lark | None = None


def _get_lark() -> Lark:
    global _lark
    if _lark is None:
        _lark = Lark.open(
            "grammar.lark",
            rel_to=__file__,
            parser="earley",
            lexer="basic",
            propagate_positions=True,
        )
    return _lark


def identifier(token: Token | str) -> str:
    """Return the name an identifier token refers to, without quotes."""
    text = str(token)
    if len(text) >= 2 and text[0] == text[-1] == '"':
        return text[1:-1].replace('""', '"')
    return text


def parse_tree(source: str) -> Tree:
    """Parse ``source`` into a lark tree.

    Raises:
        SqlSyntaxError: If the source is not valid for the grammar.
    """
    try:
        return _get_lark().parse(source)
    except UnexpectedInput as exc:
        position = max(getattr(exc, "pos_in_stream", 0) or 0, 0)
        raise SqlSyntaxError(
            "invalid SQL syntax",
            f"line {getattr(exc, 'line', '?')}, column {getattr(exc, 'column', '?')}: {exc}",
            wrapped=exc,
            position=position,
        ) from exc


def parse(source: str) -> Declarations:
    """Parse SQL source into declarations.

    Raises:
        SqlSyntaxError: If the source is not valid for the grammar.
    """
    tree = parse_tree(source)
    return DeclarationReader(source).visit(tree)


class DeclarationReader(Interpreter):
    """Turns a parsed file into :class:`Declarations`."""

    def __init__(self, source: str) -> None:
        self._source = source

    def span(self, node: Tree | Token) -> Span:
        if isinstance(node, Token):
            if node.start_pos is None or node.end_pos is None:
                return NO_SPAN
            return Span.of(self._source, node.start_pos, node.end_pos)
        if node.meta.empty:
            return NO_SPAN
        return Span.of(self._source, node.meta.start_pos, node.meta.end_pos)

    def text(self, node: Tree | Token) -> str:
        return self.span(node).text.strip()

    def start(self, tree: Tree) -> Declarations:
        elements = tuple(self.visit(child) for child in tree.children)
        return Declarations(elements, self._source)

    # ---- Tables ----

    def create_table(self, tree: Tree) -> TableDeclaration:
        name = ""
        columns: list[ColumnDeclaration] = []
        foreign_keys: list[tuple[str, ForeignKeyConstraint]] = []
        options: dict = {}
        unique_keys: list[tuple[str, ...]] = []
        checks: list[str] = []

        for child in tree.children:
            if isinstance(child, Token):
                name = identifier(child)
                continue
            kind = child.data
            if kind == "column_def":
                columns.append(self.visit(child))
            elif kind == "table_primary_key":
                options["primary_key"] = tuple(self._names(child.children[0]))
                options["primary_key_span"] = self.span(child)
            elif kind == "table_unique":
                unique_keys.append(tuple(self._names(child.children[0])))
            elif kind == "table_check":
                checks.append(self.text(child.children[0]))
            elif kind == "table_foreign_key":
                local_names = self._names(child.children[0])
                table, targets, on_update, on_delete = self._reference(child.children[1])
                for index, local in enumerate(local_names):
                    target = targets[index] if index < len(targets) else None
                    fk = ForeignKeyConstraint(table, target, on_update, on_delete)
                    foreign_keys.append((local, fk))
            elif kind == "without_rowid":
                options["without_rowid"] = True
            elif kind == "strict":
                options["strict"] = True
            elif kind == "existing_row_class":
                options["existing_row_class"] = identifier(child.children[0])
            elif kind == "row_type_name":
                options["row_type_name"] = identifier(child.children[0])

        for local, fk in foreign_keys:
            columns = [
                replace(c, constraints=c.constraints + (fk,))
                if c.name.lower() == local.lower()
                else c
                for c in columns
            ]

        return TableDeclaration(
            name=name,
            columns=tuple(columns),
            span=self.span(tree),
            unique_keys=tuple(unique_keys),
            checks=tuple(checks),
            **options,
        )

    def column_def(self, tree: Tree) -> ColumnDeclaration:
        name_token, type_tree, *options = tree.children
        fields: dict = {"type_name": self.text(type_tree)}

        type_head = str(type_tree.children[0]).upper()
        if type_head in _ENUM_TYPES and len(type_tree.children) == 2:
            fields[_ENUM_TYPES[type_head]] = EnumReference(
                identifier(type_tree.children[1]), self.span(type_tree)
            )

        nullable = True
        constraints: list[Constraint] = []
        for option in options:
            kind = option.data
            if kind == "not_null":
                nullable = False
            elif kind == "primary_key":
                nullable = False
                autoincrement = any(isinstance(c, Token) for c in option.children)
                constraints.append(PrimaryKeyConstraint(autoincrement))
                fields["autoincrement"] = autoincrement
            elif kind == "unique":
                constraints.append(UniqueConstraint())
            elif kind == "check":
                constraints.append(CheckConstraint(self.text(option.children[0])))
            elif kind == "default":
                constraints.append(DefaultConstraint(self.text(option.children[0])))
            elif kind == "generated":
                stored = any(
                    isinstance(c, Tree) and c.data == "stored" for c in option.children
                )
                constraints.append(GeneratedConstraint(self.text(option.children[0]), stored))
            elif kind == "references":
                constraints.append(self.visit(option))
            elif kind == "json_key":
                fields["json_key"] = identifier(option.children[0])
            elif kind == "mapped_by":
                code = str(option.children[0])[1:-1].strip()
                fields["converter"] = ConverterReference(code, self.span(option))

        return ColumnDeclaration(
            name=identifier(name_token),
            span=self.span(tree),
            nullable=nullable,
            constraints=tuple(constraints),
            **fields,
        )

    def references(self, tree: Tree) -> ForeignKeyConstraint:
        table, targets, on_update, on_delete = self._reference(tree)
        return ForeignKeyConstraint(table, targets[0] if targets else None, on_update, on_delete)

    def _reference(
        self, tree: Tree
    ) -> tuple[str, list[str], ReferenceAction | None, ReferenceAction | None]:
        table = identifier(tree.children[0])
        targets: list[str] = []
        on_update = on_delete = None
        for child in tree.children[1:]:
            if child.data == "name_list":
                targets = self._names(child)
            elif child.data == "on_update":
                on_update = _REFERENCE_ACTIONS[child.children[0].data]
            elif child.data == "on_delete":
                on_delete = _REFERENCE_ACTIONS[child.children[0].data]
        return table, targets, on_update, on_delete

    def _names(self, tree: Tree) -> list[str]:
        return [identifier(token) for token in tree.children]

    # ---- Views and queries ----

    def create_view(self, tree: Tree) -> ViewDeclaration:
        name = ""
        existing_row_class = None
        select = None
        for child in tree.children:
            if isinstance(child, Token):
                name = identifier(child)
            elif child.data == "existing_row_class":
                existing_row_class = identifier(child.children[0])
            elif child.data == "select_stmt":
                select = child
        return ViewDeclaration(name, select, self.span(tree), existing_row_class)

    def query(self, tree: Tree) -> QueryDeclaration:
        name = identifier(tree.children[0])
        row_type = None
        row_type_span = NO_SPAN
        select = tree.children[-1]
        if len(tree.children) == 3:
            row_class = tree.children[1]
            row_type = identifier(row_class.children[0])
            row_type_span = self.span(row_class)
        return QueryDeclaration(name, select, self.span(tree), row_type, row_type_span)
