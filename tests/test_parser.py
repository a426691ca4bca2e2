"""SQL parser tests."""

import pytest
from lark.exceptions import UnexpectedInput

from rowshape import SqlSyntaxError, parse
from rowshape.declarations import QueryDeclaration, TableDeclaration, ViewDeclaration
from rowshape.schema import (
    CheckConstraint,
    DefaultConstraint,
    ForeignKeyConstraint,
    GeneratedConstraint,
    PrimaryKeyConstraint,
    ReferenceAction,
    UniqueConstraint,
)


def single_table(source):
    declarations = parse(source)
    assert len(declarations.tables) == 1
    return declarations.tables[0]


class TestCreateTable:
    def test_columns_and_types(self):
        table = single_table("CREATE TABLE users (id INTEGER, name TEXT, score REAL);")
        assert isinstance(table, TableDeclaration)
        assert table.name == "users"
        assert [c.name for c in table.columns] == ["id", "name", "score"]
        assert [c.type_name for c in table.columns] == ["INTEGER", "TEXT", "REAL"]

    def test_columns_are_nullable_by_default(self):
        table = single_table("CREATE TABLE t (a TEXT, b TEXT NOT NULL, c TEXT NULL);")
        assert [c.nullable for c in table.columns] == [True, False, True]

    def test_primary_key_is_not_null(self):
        table = single_table("CREATE TABLE t (id INTEGER PRIMARY KEY);")
        column = table.columns[0]
        assert column.nullable is False
        assert column.constraints == (PrimaryKeyConstraint(),)
        assert column.autoincrement is False

    def test_autoincrement(self):
        table = single_table("CREATE TABLE t (id INTEGER PRIMARY KEY AUTOINCREMENT);")
        column = table.columns[0]
        assert column.constraints == (PrimaryKeyConstraint(autoincrement=True),)
        assert column.autoincrement is True

    def test_keywords_are_case_insensitive(self):
        table = single_table("create table t (x integer not null unique);")
        assert table.columns[0].nullable is False
        assert table.columns[0].constraints == (UniqueConstraint(),)

    def test_if_not_exists(self):
        table = single_table("CREATE TABLE IF NOT EXISTS t (x INTEGER);")
        assert table.name == "t"

    def test_quoted_identifiers(self):
        table = single_table('CREATE TABLE "my table" ("the ""id""" INTEGER);')
        assert table.name == "my table"
        assert table.columns[0].name == 'the "id"'

    def test_type_arguments(self):
        table = single_table("CREATE TABLE t (name VARCHAR(20), price DECIMAL(10, 2));")
        assert table.columns[0].type_name == "VARCHAR(20)"
        assert table.columns[1].type_name == "DECIMAL(10, 2)"

    def test_comments_are_ignored(self):
        source = """
        -- users of the app
        CREATE TABLE t (
            x INTEGER /* the x */ NOT NULL
        );
        """
        assert single_table(source).columns[0].nullable is False


class TestColumnConstraints:
    def test_default_check_and_generated(self):
        table = single_table(
            "CREATE TABLE t ("
            " a INTEGER NOT NULL DEFAULT 0,"
            " b TEXT DEFAULT 'x' CHECK (length(b) > 0),"
            " c INTEGER GENERATED ALWAYS AS (a + 1) STORED,"
            " d INTEGER AS (a * 2)"
            ");"
        )
        a, b, c, d = table.columns
        assert a.constraints == (DefaultConstraint("0"),)
        assert b.constraints == (DefaultConstraint("'x'"), CheckConstraint("length(b) > 0"))
        assert c.constraints == (GeneratedConstraint("a + 1", stored=True),)
        assert d.constraints == (GeneratedConstraint("a * 2", stored=False),)

    def test_negative_default(self):
        table = single_table("CREATE TABLE t (a INTEGER DEFAULT -1);")
        assert table.columns[0].constraints == (DefaultConstraint("-1"),)

    def test_references(self):
        table = single_table("CREATE TABLE a (bar INTEGER REFERENCES b (bar));")
        assert table.columns[0].constraints == (ForeignKeyConstraint("b", "bar"),)

    def test_references_primary_key_of_target(self):
        table = single_table("CREATE TABLE a (bar INTEGER REFERENCES b);")
        assert table.columns[0].constraints == (ForeignKeyConstraint("b", None),)

    def test_reference_actions(self):
        table = single_table(
            "CREATE TABLE a (bar INTEGER REFERENCES b (id)"
            " ON DELETE CASCADE ON UPDATE SET NULL);"
        )
        assert table.columns[0].constraints == (
            ForeignKeyConstraint(
                "b", "id", on_update=ReferenceAction.SET_NULL, on_delete=ReferenceAction.CASCADE
            ),
        )

    def test_named_constraints(self):
        table = single_table("CREATE TABLE t (x INTEGER CONSTRAINT pk PRIMARY KEY);")
        assert table.columns[0].constraints == (PrimaryKeyConstraint(),)

    def test_json_key(self):
        table = single_table("CREATE TABLE t (parent INT JSON KEY parentDoc NULL);")
        assert table.columns[0].json_key == "parentDoc"
        assert table.columns[0].nullable is True


class TestTableConstraints:
    def test_table_primary_key(self):
        table = single_table(
            "CREATE TABLE t (a INTEGER, b INTEGER, PRIMARY KEY (a, b));"
        )
        assert table.primary_key == ("a", "b")
        assert table.primary_key_span.text == "PRIMARY KEY (a, b)"

    def test_table_foreign_key_is_attached_to_column(self):
        table = single_table(
            "CREATE TABLE t (a INTEGER, b INTEGER,"
            " FOREIGN KEY (b) REFERENCES other (id) ON DELETE RESTRICT);"
        )
        assert table.columns[0].constraints == ()
        assert table.columns[1].constraints == (
            ForeignKeyConstraint("other", "id", on_delete=ReferenceAction.RESTRICT),
        )

    def test_unique_and_check(self):
        table = single_table(
            "CREATE TABLE t (a INTEGER, b INTEGER, UNIQUE (a, b), CHECK (a < b));"
        )
        assert table.unique_keys == (("a", "b"),)
        assert table.checks == ("a < b",)

    def test_table_options(self):
        table = single_table("CREATE TABLE t (a INTEGER) WITHOUT ROWID, STRICT;")
        assert table.without_rowid is True
        assert table.strict is True

    def test_row_class_and_row_type_name(self):
        table = single_table("CREATE TABLE t (a INTEGER) WITH MyRow AS Thing;")
        assert table.existing_row_class == "MyRow"
        assert table.row_type_name == "Thing"


class TestTypeMappings:
    def test_enum_references(self):
        table = single_table(
            "CREATE TABLE t (i ENUM(Fruits) NOT NULL, n ENUMNAME(Fruits));"
        )
        index, name = table.columns
        assert index.enum_index.name == "Fruits"
        assert index.enum_index.span.text == "ENUM(Fruits)"
        assert index.enum_name is None
        assert name.enum_name.name == "Fruits"
        assert name.enum_name.span.text == "ENUMNAME(Fruits)"

    def test_mapped_by(self):
        table = single_table("CREATE TABLE t (c TEXT MAPPED BY `MyConverter()`);")
        converter = table.columns[0].converter
        assert converter.expression == "MyConverter()"
        assert converter.name == "MyConverter"
        assert converter.span.text == "MAPPED BY `MyConverter()`"


class TestViewsAndQueries:
    def test_view(self):
        declarations = parse("CREATE VIEW v AS SELECT 1 AS x;")
        view = declarations.views[0]
        assert isinstance(view, ViewDeclaration)
        assert view.name == "v"
        assert view.select.data == "select_stmt"
        assert view.existing_row_class is None

    def test_view_with_row_class(self):
        view = parse("CREATE VIEW v WITH MyRow AS SELECT 1 AS x;").views[0]
        assert view.existing_row_class == "MyRow"

    def test_query(self):
        query = parse("foo: SELECT 1;").queries[0]
        assert isinstance(query, QueryDeclaration)
        assert query.name == "foo"
        assert query.row_type is None

    def test_query_with_row_type(self):
        query = parse("foo WITH MyRow: SELECT 1;").queries[0]
        assert query.row_type == "MyRow"
        assert query.row_type_span.text == "WITH MyRow"

    def test_elements_keep_source_order(self):
        declarations = parse(
            "CREATE TABLE t (a INTEGER);\n"
            "CREATE VIEW v AS SELECT a FROM t;\n"
            "q: SELECT * FROM v;\n"
        )
        assert [type(e).__name__ for e in declarations.elements] == [
            "TableDeclaration",
            "ViewDeclaration",
            "QueryDeclaration",
        ]

    def test_select_clauses(self):
        parse(
            "q: SELECT DISTINCT u.name, COUNT(*) AS c FROM users u"
            " LEFT OUTER JOIN posts p ON p.author = u.id"
            " WHERE u.id IN (1, 2) AND u.name LIKE 'a%' AND p.id IS NOT NULL"
            " GROUP BY u.name HAVING COUNT(*) > 1"
            " ORDER BY c DESC LIMIT 10 OFFSET 5;"
        )

    def test_empty_source(self):
        assert parse("").elements == ()


class TestSyntaxErrors:
    def test_invalid_statement(self):
        with pytest.raises(SqlSyntaxError):
            parse("CREATE TABLE (;")

    def test_error_keeps_position_and_cause(self):
        source = "CREATE TABLE t (a INTEGER) nonsense;"
        with pytest.raises(SqlSyntaxError) as excinfo:
            parse(source)
        assert excinfo.value.position == source.index("nonsense")
        assert isinstance(excinfo.value.wrapped, UnexpectedInput)
        assert "line 1" in excinfo.value.internal()

    def test_user_message_is_generic(self):
        with pytest.raises(SqlSyntaxError, match="invalid SQL syntax"):
            parse("SELECT")
