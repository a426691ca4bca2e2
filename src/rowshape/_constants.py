"""Defaults and limits for schema and query analysis."""

DEFAULT_MAX_NESTING_DEPTH = 8
"""Maximum nesting depth of LIST(...) sub-queries and nested row types."""

DEFAULT_SOURCE_NAME = "<input>"
"""Source name used in diagnostics when the caller does not provide one."""

NOT_NULL_MARKER = "NOT NULL"
"""Literal searched for in custom constraint strings to derive nullability."""

ROW_TYPE_SUFFIX = "Data"
"""Suffix appended to a table's class name when it cannot be singularized."""
