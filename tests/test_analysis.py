"""File-level analysis tests."""

import dataclasses

from rowshape import Declarations, HostTypes, analyze, analyze_declarations, parse
from rowshape.diagnostics import DiagnosticKind, Severity
from rowshape.schema import SqlType

USERS = "CREATE TABLE users (id INTEGER NOT NULL PRIMARY KEY, name TEXT);\n"


@dataclasses.dataclass
class Named:
    name: str | None


class TestViewOrder:
    def test_views_declared_out_of_order(self, analyze_clean):
        result = analyze_clean(
            """
            CREATE VIEW top AS SELECT b FROM mid;
            CREATE VIEW mid AS SELECT a AS b FROM t;
            CREATE TABLE t (a INTEGER NOT NULL);
            """
        )
        assert [v.name for v in result.schema.views] == ["mid", "top"]
        top = result.schema.find("top")
        assert top.column_names == ["b"]
        assert top.column("b").sql_type is SqlType.INTEGER
        assert top.references == frozenset({"mid"})

    def test_self_reference(self):
        result = analyze("CREATE VIEW v AS SELECT * FROM v;")
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.CYCLIC_DEPENDENCY]
        assert result.diagnostics[0].message == "View `v` depends on itself through v -> v"
        assert "v" not in result.schema

    def test_cycle_is_reported_once_per_view(self):
        result = analyze(
            """
            CREATE VIEW a AS SELECT * FROM b;
            CREATE VIEW b AS SELECT * FROM a;
            """
        )
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.CYCLIC_DEPENDENCY] * 2
        assert {d.message.split("`")[1] for d in result.diagnostics} == {"a", "b"}
        assert len(result.schema) == 0

    def test_views_reading_from_a_cycle_still_resolve(self):
        result = analyze(
            """
            CREATE TABLE t (x INTEGER);
            CREATE VIEW a AS SELECT * FROM a;
            CREATE VIEW c AS SELECT x FROM t, a;
            """
        )
        kinds = [d.kind for d in result.diagnostics]
        assert DiagnosticKind.CYCLIC_DEPENDENCY in kinds
        assert DiagnosticKind.UNKNOWN_TABLE in kinds
        assert result.schema.find("c").column_names == ["x"]


class TestQueries:
    def test_row_type_names(self, analyze_clean):
        result = analyze_clean(
            USERS
            + """
            everyone: SELECT * FROM users;
            names: SELECT name FROM users;
            pairs: SELECT name, id FROM users;
            """
        )
        assert result.queries["everyone"].row_type_name == "User"
        assert result.queries["names"].row_type_name is None
        assert result.queries["pairs"].row_type_name == "PairsResult"

    def test_queries_keep_source_order(self, analyze_clean):
        result = analyze_clean(USERS + "b: SELECT id FROM users;\na: SELECT name FROM users;")
        assert list(result.queries) == ["b", "a"]

    def test_query_on_view(self, analyze_clean):
        result = analyze_clean(
            USERS + "CREATE VIEW v AS SELECT name FROM users;\nq: SELECT * FROM v;"
        )
        query = result.queries["q"]
        assert query.result_set.matching_table is result.schema.find("v")
        assert query.row_type_name == "VData"

    def test_existing_row_type(self, analyze_clean):
        result = analyze_clean(
            USERS + "q WITH Named: SELECT name FROM users;",
            host_types=HostTypes({"Named": Named}),
        )
        query = result.queries["q"]
        assert query.row_type_name == "Named"
        assert query.existing_row_type.host_type.python_type is Named

    def test_broken_query_does_not_stop_its_siblings(self):
        result = analyze(
            USERS
            + """
            broken: SELECT nope FROM users;
            fine: SELECT name FROM users;
            """
        )
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.UNKNOWN_COLUMN]
        assert list(result.queries) == ["broken", "fine"]
        assert result.queries["fine"].result_set.names == ["name"]

    def test_rejected_row_type_is_reported_on_the_with_clause(self):
        result = analyze(
            USERS + "q WITH Named: SELECT id FROM users;",
            host_types=HostTypes({"Named": Named}),
        )
        diagnostic = result.diagnostics[0]
        assert diagnostic.kind is DiagnosticKind.UNMATCHED_FIELD
        assert diagnostic.span.text == "WITH Named"
        assert result.queries["q"].existing_row_type is None


class TestFileAnalysis:
    def test_source_name(self):
        assert analyze("", source_name="queries.sql").source_name == "queries.sql"
        assert analyze("").source_name == "<input>"

    def test_empty_file(self):
        result = analyze("")
        assert result.diagnostics == ()
        assert result.queries == {}
        assert not result.has_errors

    def test_errors_and_warnings(self, fruit_types):
        result = analyze(
            "CREATE TABLE t (a ENUM(Fruits) MAPPED BY `MyConverter()`, b ENUM(Missing));",
            host_types=fruit_types,
        )
        assert [d.kind for d in result.errors] == [DiagnosticKind.UNKNOWN_ENUM]
        assert [d.kind for d in result.warnings] == [DiagnosticKind.DUPLICATE_CONVERTER]
        assert result.warnings[0].severity is Severity.WARNING
        assert result.has_errors

    def test_analyze_declarations(self):
        declarations = parse(USERS) + parse("q: SELECT * FROM users;")
        result = analyze_declarations(declarations)
        assert result.diagnostics == ()
        assert result.queries["q"].row_type_name == "User"

    def test_empty_declarations(self):
        result = analyze_declarations(Declarations())
        assert len(result.schema) == 0
        assert result.queries == {}
