"""
Helpers shared by the Supabase-backed stores.

Every store call goes through :func:`execute` so that Postgres contention
errors surface as :class:`TransientStorageError` and unique-index violations
as :class:`ConflictError`, independent of which table raised them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from postgrest.exceptions import APIError

from gigboard.errors import ConflictError, TransientStorageError
from gigboard.logging_config import get_logger

logger = get_logger("gigboard.storage.supabase")

# serialization_failure, deadlock_detected, lock_not_available
TRANSIENT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
UNIQUE_VIOLATION = "23505"


def execute(query, table: str, operation: str, conflict_message: str | None = None):
    """Run a PostgREST query, classifying backend errors."""
    try:
        return query.execute()
    except APIError as e:
        code = getattr(e, "code", None)
        if code in TRANSIENT_SQLSTATES:
            logger.warning(f"Transient conflict | table={table} | op={operation} | code={code}")
            raise TransientStorageError(table, operation, e) from e
        if code == UNIQUE_VIOLATION and conflict_message:
            raise ConflictError(conflict_message) from e
        raise


def serialize(fields: dict[str, Any]) -> dict[str, Any]:
    """Convert datetimes and decimals into JSON-friendly column values."""
    out = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            out[key] = value.isoformat()
        elif isinstance(value, Decimal):
            out[key] = float(value)
        elif isinstance(value, Enum):
            out[key] = value.value
        else:
            out[key] = value
    return out


def search_filter(search: str, columns: tuple[str, ...]) -> str:
    """Build a PostgREST ``or`` filter for a case-insensitive substring match."""
    # Commas and parentheses are filter syntax in PostgREST
    term = "".join(ch for ch in search if ch not in ",()").strip()
    return ",".join(f"{col}.ilike.%{term}%" for col in columns)
