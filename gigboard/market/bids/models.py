"""
Bid data models.

A bid is a freelancer's proposal (message + price) against an open gig. Only
the hiring transition moves a bid out of ``pending``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from gigboard.errors import ValidationError
from gigboard.market.common import check_length, isoformat, parse_datetime, to_amount, utc_now

MESSAGE_MIN, MESSAGE_MAX = 10, 1000
REASON_MAX = 200

DEFAULT_REJECTION_REASON = "Another freelancer was hired"


class BidStatus(str, Enum):
    """Bid lifecycle status."""

    PENDING = "pending"
    HIRED = "hired"
    REJECTED = "rejected"


@dataclass
class Bid:
    """A freelancer's proposal on a gig."""

    id: str
    gig_id: str
    freelancer_id: str
    message: str
    price: Decimal
    status: str = BidStatus.PENDING.value
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    hired_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejected_reason: Optional[str] = None

    def __post_init__(self):
        if not self.gig_id:
            raise ValidationError("Gig ID is required")
        if not self.freelancer_id:
            raise ValidationError("Freelancer ID is required")
        self.message = check_length(self.message, "Bid message", MESSAGE_MIN, MESSAGE_MAX)
        self.price = to_amount(self.price, "Bid price")
        if isinstance(self.status, BidStatus):
            self.status = self.status.value
        if self.status not in {s.value for s in BidStatus}:
            raise ValidationError(f"Invalid status: {self.status}")
        if self.rejected_reason is not None and len(self.rejected_reason) > REASON_MAX:
            raise ValidationError(f"Rejection reason cannot exceed {REASON_MAX} characters")

    @property
    def is_pending(self) -> bool:
        return self.status == BidStatus.PENDING.value

    @property
    def is_hired(self) -> bool:
        return self.status == BidStatus.HIRED.value

    def to_dict(self) -> dict[str, Any]:
        """Convert to a storage row / JSON-ready dict."""
        return {
            "id": self.id,
            "gig_id": self.gig_id,
            "freelancer_id": self.freelancer_id,
            "message": self.message,
            "price": float(self.price),
            "status": self.status,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
            "hired_at": isoformat(self.hired_at),
            "rejected_at": isoformat(self.rejected_at),
            "rejected_reason": self.rejected_reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Bid":
        """Create a bid from a storage row."""
        return cls(
            id=data["id"],
            gig_id=data["gig_id"],
            freelancer_id=data["freelancer_id"],
            message=data["message"],
            price=Decimal(str(data["price"])),
            status=data.get("status", BidStatus.PENDING.value),
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
            updated_at=parse_datetime(data.get("updated_at")) or utc_now(),
            hired_at=parse_datetime(data.get("hired_at")),
            rejected_at=parse_datetime(data.get("rejected_at")),
            rejected_reason=data.get("rejected_reason"),
        )
