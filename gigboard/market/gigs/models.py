"""
Gig data models.

A gig is a job posting owned by a client. Its status moves from ``open`` to
``assigned`` once, when the owner hires a freelancer.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from gigboard.errors import ValidationError
from gigboard.market.common import (
    check_length,
    isoformat,
    parse_datetime,
    to_amount,
    utc_now,
)

TITLE_MIN, TITLE_MAX = 5, 100
TITLE_PATTERN = re.compile(r"^[A-Za-z0-9\s\-_.,!?()]+$")
DESCRIPTION_MIN, DESCRIPTION_MAX = 20, 2000

# Columns an owner may patch while the gig is open.
EDITABLE_FIELDS = frozenset({"title", "description", "budget", "deadline"})

# Columns written by the hiring transition and cleared when it is undone.
HIRE_FIELDS = ("hired_at", "hired_by", "hired_freelancer_id", "hired_bid_id")


class GigStatus(str, Enum):
    """Gig lifecycle status."""

    OPEN = "open"
    ASSIGNED = "assigned"


@dataclass
class Gig:
    """A job posting."""

    id: str
    owner_id: str
    title: str
    description: str
    budget: Decimal
    status: str = GigStatus.OPEN.value
    deadline: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    hired_at: Optional[datetime] = None
    hired_by: Optional[str] = None
    hired_freelancer_id: Optional[str] = None
    hired_bid_id: Optional[str] = None

    def __post_init__(self):
        self.title = check_length(self.title, "Title", TITLE_MIN, TITLE_MAX)
        if not TITLE_PATTERN.match(self.title):
            raise ValidationError("Title contains invalid characters")
        self.description = check_length(
            self.description, "Description", DESCRIPTION_MIN, DESCRIPTION_MAX
        )
        self.budget = to_amount(self.budget, "Budget")
        if isinstance(self.status, GigStatus):
            self.status = self.status.value
        if self.status not in {s.value for s in GigStatus}:
            raise ValidationError(f"Invalid status: {self.status}")
        if not self.owner_id:
            raise ValidationError("Owner ID is required")

    @property
    def is_open(self) -> bool:
        return self.status == GigStatus.OPEN.value

    @property
    def is_assigned(self) -> bool:
        return self.status == GigStatus.ASSIGNED.value

    def to_dict(self) -> dict[str, Any]:
        """Convert to a storage row / JSON-ready dict."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "description": self.description,
            "budget": float(self.budget),
            "status": self.status,
            "deadline": isoformat(self.deadline),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
            "hired_at": isoformat(self.hired_at),
            "hired_by": self.hired_by,
            "hired_freelancer_id": self.hired_freelancer_id,
            "hired_bid_id": self.hired_bid_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Gig":
        """Create a gig from a storage row."""
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            title=data["title"],
            description=data["description"],
            budget=Decimal(str(data["budget"])),
            status=data.get("status", GigStatus.OPEN.value),
            deadline=parse_datetime(data.get("deadline")),
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
            updated_at=parse_datetime(data.get("updated_at")) or utc_now(),
            hired_at=parse_datetime(data.get("hired_at")),
            hired_by=data.get("hired_by"),
            hired_freelancer_id=data.get("hired_freelancer_id"),
            hired_bid_id=data.get("hired_bid_id"),
        )
