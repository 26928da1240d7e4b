"""
SQL Fragments

Helpers for building DDL statements from identifiers and typed values.
Anything that is passed through unescaped must be wrapped in RawSQL first.
"""
import re
from typing import Union

from migration_guard.core.migrations.exceptions import UnsafeSQLFragmentError

# Statement separators and comment openers are never valid inside a type or default.
_FORBIDDEN_TOKENS = re.compile(r";|--|/\*|\*/")


class RawSQL(str):
    """
    A SQL fragment that is inserted into statements verbatim.

    Used for backend-specific column types (``VARCHAR(255)``, ``JSONB``) and
    for default expressions (``now()``, ``gen_random_uuid()``). The fragment is
    not escaped, so construction rejects anything that could end the statement.
    """

    def __new__(cls, fragment: str):
        if not isinstance(fragment, str):
            raise TypeError(f"RawSQL expects a string, got {type(fragment).__name__}")
        fragment = fragment.strip()
        if not fragment:
            raise UnsafeSQLFragmentError("Raw SQL fragment must not be empty")
        if _FORBIDDEN_TOKENS.search(fragment):
            raise UnsafeSQLFragmentError(
                f"Raw SQL fragment contains a statement separator or comment: {fragment!r}"
            )
        return super().__new__(cls, fragment)

    def __repr__(self) -> str:
        return f"RawSQL({str.__repr__(self)})"


DefaultValue = Union[bool, int, float, str, RawSQL]


def quote_identifier(name: str) -> str:
    """Quote a table or column name for PostgreSQL."""
    if not name:
        raise ValueError("Identifier must not be empty")
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def render_default(value: DefaultValue) -> str:
    """
    Render a column default as SQL.

    Plain strings become escaped literals; only RawSQL is emitted as an expression.
    """
    if isinstance(value, RawSQL):
        return str(value)
    # bool first: bool is a subclass of int
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        if value != value or value in (float("inf"), float("-inf")):
            raise ValueError(f"Non-finite default value: {value!r}")
        return repr(value)
    if isinstance(value, str):
        return quote_literal(value)
    raise TypeError(f"Unsupported default value type: {type(value).__name__}")
