"""
store/errors.py — Classification of store errors

Separates "this deployment does not have that table / column / function"
from every other failure. Missing-schema errors are recovered by the caller
(the signal degrades to empty); anything else is an unexpected store error.

Business Rules:
- SQLSTATE 42P01 (undefined table), 42703 (undefined column) and
  42883 (undefined function) are missing-schema
- PostgREST-style PGRST202 (missing RPC) and PGRST205 (schema cache) too
- Drivers without SQLSTATE (SQLite) are classified by message text, and
  only when the message names a missing table, column, view or function

Called by: store/sql.py, services/store_calls.py
Depends on: sqlalchemy
"""

import re

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

MISSING_SCHEMA_CODES = frozenset({"42P01", "42703", "42883", "PGRST202", "PGRST205"})

# Message fallback for drivers without SQLSTATE (SQLite, PostgREST text).
# "does not exist" only counts when it names a schema object, so connection
# failures such as `role "x" does not exist` stay unexpected errors.
_MISSING_SCHEMA_MESSAGE = re.compile(
    r"no such (table|column|function)"
    r"|undefined_(table|column|function)"
    r"|\b(relation|table|view|column|function)\b[^\n]*\bdoes not exist"
    r"|could not find the (table|relation|function)"
    r"|schema cache",
    re.IGNORECASE,
)


def _source(error: BaseException) -> object:
    """Return the driver-level exception wrapped by SQLAlchemy, if any."""
    if isinstance(error, DBAPIError) and error.orig is not None:
        return error.orig
    return error


def error_code(error: BaseException) -> str | None:
    """SQLSTATE (or PostgREST) code for an error, None when unavailable."""
    source = _source(error)
    for attr in ("pgcode", "sqlstate"):
        code = getattr(source, attr, None)
        if isinstance(code, str) and code:
            return code
    # SQLAlchemy's own ``code`` attribute is a docs link id, not a SQLSTATE
    if not isinstance(source, SQLAlchemyError):
        code = getattr(source, "code", None)
        if isinstance(code, str) and code:
            return code
    return None


def error_message(error: BaseException) -> str:
    return str(_source(error)).strip()


def is_missing_schema_error(error: BaseException) -> bool:
    """True when ``error`` means an absent relation, column or function."""
    code = error_code(error)
    if code in MISSING_SCHEMA_CODES:
        return True
    if code:
        return False
    return _MISSING_SCHEMA_MESSAGE.search(error_message(error)) is not None


def serialize_error(error: BaseException) -> dict:
    """Compact, log-safe description of a store error."""
    message = error_message(error)
    return {
        "type": type(_source(error)).__name__,
        "code": error_code(error),
        "message": message[:300] if message else None,
    }
