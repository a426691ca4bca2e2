"""Naming helper tests."""

import pytest

from rowshape._utils import camel_case, query_result_name, row_type_name_for


class TestCamelCase:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("users", "Users"),
            ("todo_items", "TodoItems"),
            ("todo-items", "TodoItems"),
            ("todoItems", "TodoItems"),
            ("__private", "Private"),
        ],
    )
    def test_conversion(self, name, expected):
        assert camel_case(name) == expected


class TestRowTypeNameFor:
    def test_plural_is_singularized(self):
        assert row_type_name_for("users") == "User"

    def test_snake_case_plural(self):
        assert row_type_name_for("todo_items") == "TodoItem"

    def test_singular_gets_suffix(self):
        assert row_type_name_for("tbl") == "TblData"

    def test_single_letter_s_is_kept(self):
        assert row_type_name_for("s") == "SData"


class TestQueryResultName:
    def test_result_suffix(self):
        assert query_result_name("find_users") == "FindUsersResult"

    def test_camel_case_name(self):
        assert query_result_name("everyone") == "EveryoneResult"
