"""Tests for tables declared as Python classes."""

import enum

import pytest

from rowshape import Declarations, analyze_declarations, parse
from rowshape.declarations import ColumnDeclaration, TableDeclaration
from rowshape.declarative import Table, column
from rowshape.diagnostics import DiagnosticKind, Severity
from rowshape.schema import (
    ConverterKind,
    ForeignKeyConstraint,
    PrimaryKeyConstraint,
    SqlType,
    UniqueConstraint,
)


class Mood(enum.Enum):
    HAPPY = 1
    SAD = 2


class Users(Table):
    id = column("INTEGER", autoincrement=True)
    name = column("TEXT", json_key="userName", unique=True)
    mood = column("INTEGER", enum_index=Mood, nullable=True)


class TodoItems(Table):
    id = column("INTEGER", autoincrement=True)
    owner = column("INTEGER", references="users.id")
    title = column("TEXT", sql_name="item_title")


class Pairs(Table):
    a = column("INTEGER")
    b = column("INTEGER")
    primary_key = {b, a}


def analyze_tables(*tables, **kwargs):
    declarations = Declarations(tuple(t.declaration() for t in tables))
    return analyze_declarations(declarations, **kwargs)


class TestDeclaration:
    def test_table_name_is_snake_cased(self):
        assert Users.declaration().name == "users"
        assert TodoItems.declaration().name == "todo_items"

    def test_table_name_override(self):
        class Legacy(Table):
            __tablename__ = "tbl_legacy"
            id = column("INTEGER")

        assert Legacy.declaration().name == "tbl_legacy"

    def test_columns_keep_declaration_order(self):
        declaration = Users.declaration()
        assert [c.name for c in declaration.columns] == ["id", "name", "mood"]
        assert declaration.columns[0].span.text == "Users.id"

    def test_sql_name(self):
        assert [c.name for c in TodoItems.declaration().columns] == ["id", "owner", "item_title"]

    def test_row_type_options(self):
        class People(Table):
            __row_type_name__ = "Person"
            __row_class__ = "MyPerson"
            __without_rowid__ = True
            id = column("INTEGER")

        declaration = People.declaration()
        assert declaration.row_type_name == "Person"
        assert declaration.existing_row_class == "MyPerson"
        assert declaration.without_rowid


class TestResolution:
    def test_autoincrement_primary_key(self):
        result = analyze_tables(Users)
        assert result.diagnostics == ()
        users = result.schema.find("users")
        assert users.primary_key == ("id",)
        id_column = users.column("id")
        assert id_column.constraints == (PrimaryKeyConstraint(autoincrement=True),)
        assert not id_column.nullable
        assert users.is_rowid_alias(id_column)

    def test_json_key_and_unique(self):
        name = analyze_tables(Users).schema.find("users").column("name")
        assert name.json_name == "userName"
        assert name.constraints == (UniqueConstraint(),)

    def test_enum_class(self):
        mood = analyze_tables(Users).schema.find("users").column("mood")
        assert mood.sql_type is SqlType.INTEGER
        assert mood.nullable
        assert mood.converter.kind is ConverterKind.ENUM_INDEX
        assert mood.converter.expression == "EnumIndexConverter(Mood)"
        assert mood.converter.host_type.python_type is Mood

    def test_references(self):
        result = analyze_tables(Users, TodoItems)
        assert result.diagnostics == ()
        owner = result.schema.find("todo_items").column("owner")
        assert owner.constraints == (ForeignKeyConstraint("users", "id"),)

    def test_reference_to_primary_key(self):
        class Posts(Table):
            author = column("INTEGER", references="users")

        result = analyze_tables(Users, Posts)
        author = result.schema.find("posts").column("author")
        assert result.schema.resolve_reference(author.foreign_keys[0]).name == "id"

    def test_client_default_is_not_required_for_insert(self):
        class Events(Table):
            id = column("INTEGER", autoincrement=True)
            created = column("TEXT", client_default=lambda: "now")
            kind = column("TEXT")

        events = analyze_tables(Events).schema.find("events")
        created = events.column("created")
        assert created.default.is_client_side
        assert [c.name for c in events.columns if events.is_column_required_for_insert(c)] == [
            "kind"
        ]


class TestCustomConstraints:
    def test_nullability_comes_from_the_constraint(self):
        class Checked(Table):
            a = column("INTEGER", custom_constraint="not null check (a > 0)")
            b = column("INTEGER", custom_constraint="CHECK (b > 0)")

        checked = analyze_tables(Checked).schema.find("checked")
        assert not checked.column("a").nullable
        assert checked.column("b").nullable
        assert checked.column("a").custom_constraints == "not null check (a > 0)"

    def test_custom_constraint_replaces_other_constraints(self):
        class Linked(Table):
            owner = column("INTEGER", references="users.id", custom_constraint="NOT NULL")

        owner = analyze_tables(Users, Linked).schema.find("linked").column("owner")
        assert owner.constraints == ()
        assert owner.custom_constraints == "NOT NULL"
        assert not owner.nullable

    @pytest.mark.parametrize(
        ("constraint", "nullable"),
        [
            ("NOT NULL", False),
            ("not null", False),
            ("NOT NULL PRIMARY KEY", False),
            ("UNIQUE", True),
            ("DEFAULT 0", True),
        ],
    )
    def test_not_null_marker(self, constraint, nullable):
        class Marked(Table):
            a = column("INTEGER", custom_constraint=constraint)

        a = analyze_tables(Marked).schema.find("marked").column("a")
        assert a.nullable is nullable
        assert a.custom_constraints == constraint

    def test_constraint_overrides_nullable_option(self):
        class Marked(Table):
            a = column("INTEGER", nullable=True, custom_constraint="NOT NULL")
            b = column("INTEGER", nullable=False, custom_constraint="UNIQUE")

        marked = analyze_tables(Marked).schema.find("marked")
        assert not marked.column("a").nullable
        assert marked.column("b").nullable

    def test_hand_built_declarations(self):
        declaration = TableDeclaration(
            "marked",
            (
                ColumnDeclaration("a", "INTEGER", custom_constraint="NOT NULL"),
                ColumnDeclaration(
                    "b", "INTEGER", nullable=True, custom_constraint="CHECK (b > 0)"
                ),
            ),
        )
        marked = analyze_declarations(Declarations((declaration,))).schema.find("marked")
        assert not marked.column("a").nullable
        assert marked.column("b").nullable


class TestPrimaryKey:
    def test_literal_set_of_columns(self):
        result = analyze_tables(Pairs)
        assert result.diagnostics == ()
        assert result.schema.find("pairs").primary_key == ("a", "b")

    def test_identical_columns_are_distinct(self):
        assert Pairs.declaration().primary_key == {"a", "b"}

    def test_computed_primary_key(self):
        class Computed(Table):
            a = column("INTEGER")

            @property
            def primary_key(self):
                return {"a"}

        result = analyze_tables(Computed)
        assert [d.kind for d in result.diagnostics] == [
            DiagnosticKind.INVALID_PRIMARY_KEY_DECLARATION
        ]
        diagnostic = result.diagnostics[0]
        assert diagnostic.message == (
            "primary_key must be a literal set of column names, e.g. {id, name}"
        )
        assert diagnostic.span.text == "Computed.primary_key"
        assert result.schema.find("computed").primary_key == ()

    def test_unknown_column_name(self):
        class Broken(Table):
            a = column("INTEGER")
            primary_key = {"nope"}

        result = analyze_tables(Broken)
        assert [d.kind for d in result.diagnostics] == [
            DiagnosticKind.INVALID_PRIMARY_KEY_DECLARATION
        ]

    def test_inherited_primary_key(self):
        class Base(Table):
            a = column("INTEGER")
            primary_key = {"a"}

        class Child(Base):
            a = column("INTEGER")

        assert Child.declaration().primary_key == {"a"}


class TestEnumForms:
    def test_both_forms_unknown(self):
        class Fruity(Table):
            fruit = column("INTEGER", enum_index="Missing", enum_name="Missing")

        result = analyze_tables(Fruity)
        assert [d.kind for d in result.diagnostics] == [
            DiagnosticKind.UNKNOWN_ENUM,
            DiagnosticKind.UNKNOWN_ENUM,
            DiagnosticKind.DUPLICATE_CONVERTER,
        ]
        assert [d.span.text for d in result.diagnostics] == [
            "Fruity.fruit.enum_index",
            "Fruity.fruit.enum_name",
            "Fruity.fruit.enum_name",
        ]
        assert result.diagnostics[2].severity is Severity.WARNING

    def test_index_form_wins(self):
        class Fruity(Table):
            fruit = column("TEXT", enum_index=Mood, enum_name=Mood)

        result = analyze_tables(Fruity)
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.DUPLICATE_CONVERTER]
        fruit = result.schema.find("fruity").column("fruit")
        assert fruit.converter.kind is ConverterKind.ENUM_INDEX
        assert fruit.sql_type is SqlType.INTEGER


class TestMixedSources:
    def test_python_tables_with_sql_queries(self):
        declarations = Declarations((Users.declaration(),)) + parse(
            "everyone: SELECT * FROM users;\nnames: SELECT name FROM users;"
        )
        result = analyze_declarations(declarations)
        assert result.diagnostics == ()
        everyone = result.queries["everyone"]
        assert everyone.result_set.matching_table is result.schema.find("users")
        assert everyone.row_type_name == "User"
        assert result.queries["names"].row_type_name is None
