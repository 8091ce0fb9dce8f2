"""Shared helpers for marketplace models and stores."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from gigboard.errors import ValidationError

# Prices and budgets share the same bounds.
MIN_AMOUNT = Decimal("1")
MAX_AMOUNT = Decimal("1000000")


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a record id."""
    return str(uuid.uuid4())


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO string (or pass through a datetime); None stays None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def to_amount(value: Any, label: str) -> Decimal:
    """Coerce a price/budget to Decimal and check the marketplace bounds."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{label} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{label} must be a number")
    if amount < MIN_AMOUNT:
        raise ValidationError(f"{label} must be at least ${MIN_AMOUNT}")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{label} cannot exceed ${MAX_AMOUNT:,}")
    return amount


def check_length(value: Any, label: str, min_len: int, max_len: int) -> str:
    """Strip a text field and enforce its length bounds."""
    if not isinstance(value, str):
        raise ValidationError(f"{label} must be a string")
    text = value.strip()
    if len(text) < min_len:
        raise ValidationError(f"{label} must be at least {min_len} characters long")
    if len(text) > max_len:
        raise ValidationError(f"{label} cannot exceed {max_len} characters")
    return text
