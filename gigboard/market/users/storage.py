"""User storage layer."""

import asyncio
import threading
from dataclasses import replace
from typing import Optional, Protocol

from gigboard.errors import ConflictError
from gigboard.market.supabase_support import execute
from gigboard.market.users.models import User

USERS_TABLE = "users"
DUPLICATE_EMAIL_MESSAGE = "User with this email already exists"


class UserStorage(Protocol):
    """Protocol for user persistence backends."""

    async def save(self, user: User) -> str:
        """Insert a user. Raises ConflictError if the email is taken."""
        ...

    async def get(self, user_id: str) -> Optional[User]:
        ...

    async def get_by_email(self, email: str) -> Optional[User]:
        ...


class InMemoryUserStorage:
    """In-memory user storage for testing and local development."""

    def __init__(self):
        self._users: dict[str, User] = {}
        self._by_email: dict[str, str] = {}
        self._lock = threading.Lock()

    async def save(self, user: User) -> str:
        await asyncio.sleep(0)
        with self._lock:
            if user.email in self._by_email:
                raise ConflictError(DUPLICATE_EMAIL_MESSAGE)
            self._users[user.id] = replace(user)
            self._by_email[user.email] = user.id
        return user.id

    async def get(self, user_id: str) -> Optional[User]:
        await asyncio.sleep(0)
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user else None

    async def get_by_email(self, email: str) -> Optional[User]:
        await asyncio.sleep(0)
        with self._lock:
            user_id = self._by_email.get(email.strip().lower())
            return replace(self._users[user_id]) if user_id else None


class SupabaseUserStorage:
    """User storage backed by a Supabase (PostgREST) table."""

    def __init__(self, client):
        self._db = client

    async def save(self, user: User) -> str:
        execute(
            self._db.table(USERS_TABLE).insert(user.to_dict()),
            USERS_TABLE,
            "insert",
            conflict_message=DUPLICATE_EMAIL_MESSAGE,
        )
        return user.id

    async def get(self, user_id: str) -> Optional[User]:
        result = execute(
            self._db.table(USERS_TABLE).select("*").eq("id", user_id), USERS_TABLE, "select"
        )
        return User.from_dict(result.data[0]) if result.data else None

    async def get_by_email(self, email: str) -> Optional[User]:
        result = execute(
            self._db.table(USERS_TABLE).select("*").eq("email", email.strip().lower()).limit(1),
            USERS_TABLE,
            "select",
        )
        return User.from_dict(result.data[0]) if result.data else None
