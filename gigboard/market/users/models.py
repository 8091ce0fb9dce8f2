"""User data models."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from gigboard.errors import ValidationError
from gigboard.market.common import check_length, isoformat, parse_datetime, utc_now

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
NAME_MIN, NAME_MAX = 2, 50


class UserRole(str, Enum):
    """Principal role carried in the access token."""

    USER = "user"
    ADMIN = "admin"


@dataclass
class User:
    """A registered marketplace participant (client, freelancer, or both)."""

    id: str
    name: str
    email: str
    password_hash: str
    role: str = UserRole.USER.value
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        self.name = check_length(self.name, "Name", NAME_MIN, NAME_MAX)
        self.email = (self.email or "").strip().lower()
        if not EMAIL_PATTERN.match(self.email):
            raise ValidationError("Please provide a valid email")
        if isinstance(self.role, UserRole):
            self.role = self.role.value
        if self.role not in {r.value for r in UserRole}:
            raise ValidationError(f"Invalid role: {self.role}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "password_hash": self.password_hash,
            "role": self.role,
            "created_at": isoformat(self.created_at),
        }

    def to_public_dict(self) -> dict[str, Any]:
        """Profile fields safe to return to clients."""
        data = self.to_dict()
        data.pop("password_hash")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        return cls(
            id=data["id"],
            name=data["name"],
            email=data["email"],
            password_hash=data["password_hash"],
            role=data.get("role", UserRole.USER.value),
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
        )
