"""Naming helpers for generated row types."""

from __future__ import annotations

import re

from rowshape._constants import ROW_TYPE_SUFFIX

_WORD_BOUNDARY_RE = re.compile(r"[^A-Za-z0-9]+")


def camel_case(name: str) -> str:
    """Convert ``snake_case`` or ``kebab-case`` to ``CamelCase``.

    Existing inner capitals are preserved, so ``todoItems`` becomes
    ``TodoItems``.
    """
    parts = [p for p in _WORD_BOUNDARY_RE.split(name) if p]
    return "".join(p[0].upper() + p[1:] for p in parts)


def row_type_name_for(table_name: str) -> str:
    """Default row type name of a table: singular CamelCase, or ``...Data``."""
    class_name = camel_case(table_name)
    if class_name.endswith("s") and len(class_name) > 1:
        return class_name[:-1]
    return class_name + ROW_TYPE_SUFFIX


def query_result_name(query_name: str) -> str:
    """Name of the row type generated for a query returning several columns."""
    return camel_case(query_name) + "Result"
