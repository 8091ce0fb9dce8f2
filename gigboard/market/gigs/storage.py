"""
Gig storage layer.

Provides persistence for gigs. Both backends implement
``compare_and_swap_status`` as a single conditional write, which is what the
hiring transition relies on for race safety.
"""

import asyncio
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, List, NoReturn, Optional, Protocol, Tuple

from gigboard.errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from gigboard.logging_config import get_logger
from gigboard.market.common import utc_now
from gigboard.market.gigs.models import EDITABLE_FIELDS, Gig, GigStatus
from gigboard.market.supabase_support import execute, search_filter, serialize

logger = get_logger("gigboard.storage.gigs")

GIGS_TABLE = "gigs"
GIG_SORT_FIELDS = ("created_at", "budget", "title")


class GigStorage(Protocol):
    """Protocol for gig persistence backends."""

    async def save(self, gig: Gig) -> str:
        """Insert a new gig. Returns the gig ID."""
        ...

    async def get(self, gig_id: str) -> Optional[Gig]:
        """Get a gig by ID."""
        ...

    async def update_if_open(self, gig_id: str, patch: dict[str, Any], caller_id: str) -> Gig:
        """Apply a content patch if the caller owns the gig and it is still open."""
        ...

    async def delete_if_open(self, gig_id: str, caller_id: str) -> Gig:
        """Delete a gig if the caller owns it and it is still open."""
        ...

    async def compare_and_swap_status(
        self,
        gig_id: str,
        expected_status: str,
        new_status: str,
        fields: Optional[dict[str, Any]] = None,
        match: Optional[dict[str, Any]] = None,
    ) -> Optional[Gig]:
        """Set status (plus ``fields``) only if status is still ``expected_status``.

        ``match`` adds further column-equality conditions. Returns the updated
        gig, or None when the condition did not hold.
        """
        ...

    async def list(
        self,
        status: Optional[str] = None,
        owner_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> Tuple[List[Gig], int]:
        """List gigs with optional filters. Returns (page, total)."""
        ...

    async def list_assigned_before(self, cutoff: datetime) -> List[Gig]:
        """Assigned gigs whose hire happened before ``cutoff``."""
        ...


def _check_patch(patch: dict[str, Any]) -> None:
    unknown = set(patch) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")


def _classify_missed_write(gig: Optional[Gig], gig_id: str, caller_id: str, action: str) -> NoReturn:
    """Turn a conditional write that matched nothing into the right error."""
    if gig is None:
        raise NotFoundError("Gig not found")
    if gig.owner_id != caller_id:
        raise ForbiddenError(f"You can only {action} your own gigs")
    raise InvalidStateError(f"Cannot {action} assigned gigs")


class InMemoryGigStorage:
    """In-memory gig storage for testing and local development.

    Each operation holds ``_lock`` only for its own read-modify-write, so it
    behaves like a single conditional statement against a real database.
    """

    def __init__(self):
        self._gigs: dict[str, Gig] = {}
        self._lock = threading.Lock()

    async def save(self, gig: Gig) -> str:
        await asyncio.sleep(0)
        with self._lock:
            if gig.id in self._gigs:
                raise ValidationError(f"Gig {gig.id} already exists")
            self._gigs[gig.id] = replace(gig)
        return gig.id

    async def get(self, gig_id: str) -> Optional[Gig]:
        await asyncio.sleep(0)
        with self._lock:
            gig = self._gigs.get(gig_id)
            return replace(gig) if gig else None

    async def update_if_open(self, gig_id: str, patch: dict[str, Any], caller_id: str) -> Gig:
        _check_patch(patch)
        await asyncio.sleep(0)
        with self._lock:
            gig = self._gigs.get(gig_id)
            if gig is None or gig.owner_id != caller_id or not gig.is_open:
                _classify_missed_write(gig, gig_id, caller_id, "update")
            # Rebuild through the constructor so the patched fields are validated
            updated = Gig.from_dict({**gig.to_dict(), **serialize(patch), "updated_at": utc_now().isoformat()})
            self._gigs[gig_id] = updated
            return replace(updated)

    async def delete_if_open(self, gig_id: str, caller_id: str) -> Gig:
        await asyncio.sleep(0)
        with self._lock:
            gig = self._gigs.get(gig_id)
            if gig is None or gig.owner_id != caller_id or not gig.is_open:
                _classify_missed_write(gig, gig_id, caller_id, "delete")
            del self._gigs[gig_id]
            return gig

    async def compare_and_swap_status(
        self,
        gig_id: str,
        expected_status: str,
        new_status: str,
        fields: Optional[dict[str, Any]] = None,
        match: Optional[dict[str, Any]] = None,
    ) -> Optional[Gig]:
        await asyncio.sleep(0)
        with self._lock:
            gig = self._gigs.get(gig_id)
            if gig is None or gig.status != GigStatus(expected_status).value:
                return None
            for column, value in (match or {}).items():
                if getattr(gig, column) != value:
                    return None
            updated = replace(
                gig,
                status=GigStatus(new_status).value,
                updated_at=utc_now(),
                **(fields or {}),
            )
            self._gigs[gig_id] = updated
            return replace(updated)

    async def list(
        self,
        status: Optional[str] = None,
        owner_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> Tuple[List[Gig], int]:
        if sort_by not in GIG_SORT_FIELDS:
            raise ValidationError(f"Cannot sort gigs by {sort_by}")
        await asyncio.sleep(0)
        with self._lock:
            gigs = [replace(g) for g in self._gigs.values()]

        if status is not None:
            gigs = [g for g in gigs if g.status == GigStatus(status).value]
        if owner_id is not None:
            gigs = [g for g in gigs if g.owner_id == owner_id]
        if search:
            term = search.lower()
            gigs = [g for g in gigs if term in g.title.lower() or term in g.description.lower()]

        gigs.sort(key=lambda g: getattr(g, sort_by), reverse=descending)
        return gigs[offset : offset + limit], len(gigs)

    async def list_assigned_before(self, cutoff: datetime) -> List[Gig]:
        await asyncio.sleep(0)
        with self._lock:
            return [
                replace(g)
                for g in self._gigs.values()
                if g.is_assigned and (g.hired_at is None or g.hired_at < cutoff)
            ]


class SupabaseGigStorage:
    """Gig storage backed by a Supabase (PostgREST) table."""

    def __init__(self, client):
        self._db = client

    async def save(self, gig: Gig) -> str:
        execute(self._db.table(GIGS_TABLE).insert(gig.to_dict()), GIGS_TABLE, "insert")
        return gig.id

    async def get(self, gig_id: str) -> Optional[Gig]:
        result = execute(
            self._db.table(GIGS_TABLE).select("*").eq("id", gig_id), GIGS_TABLE, "select"
        )
        return Gig.from_dict(result.data[0]) if result.data else None

    async def update_if_open(self, gig_id: str, patch: dict[str, Any], caller_id: str) -> Gig:
        _check_patch(patch)
        current = await self.get(gig_id)
        if current is None or current.owner_id != caller_id or not current.is_open:
            _classify_missed_write(current, gig_id, caller_id, "update")
        # Validate the merged record before writing
        Gig.from_dict({**current.to_dict(), **serialize(patch)})

        data = {**serialize(patch), "updated_at": utc_now().isoformat()}
        result = execute(
            self._db.table(GIGS_TABLE)
            .update(data)
            .eq("id", gig_id)
            .eq("owner_id", caller_id)
            .eq("status", GigStatus.OPEN.value),
            GIGS_TABLE,
            "update",
        )
        if result.data:
            return Gig.from_dict(result.data[0])
        # Status changed between the read and the conditional write
        _classify_missed_write(await self.get(gig_id), gig_id, caller_id, "update")

    async def delete_if_open(self, gig_id: str, caller_id: str) -> Gig:
        result = execute(
            self._db.table(GIGS_TABLE)
            .delete()
            .eq("id", gig_id)
            .eq("owner_id", caller_id)
            .eq("status", GigStatus.OPEN.value),
            GIGS_TABLE,
            "delete",
        )
        if result.data:
            return Gig.from_dict(result.data[0])
        _classify_missed_write(await self.get(gig_id), gig_id, caller_id, "delete")

    async def compare_and_swap_status(
        self,
        gig_id: str,
        expected_status: str,
        new_status: str,
        fields: Optional[dict[str, Any]] = None,
        match: Optional[dict[str, Any]] = None,
    ) -> Optional[Gig]:
        data = serialize(
            {**(fields or {}), "status": GigStatus(new_status).value, "updated_at": utc_now()}
        )
        query = (
            self._db.table(GIGS_TABLE)
            .update(data)
            .eq("id", gig_id)
            .eq("status", GigStatus(expected_status).value)
        )
        for column, value in serialize(match or {}).items():
            query = query.eq(column, value)

        result = execute(query, GIGS_TABLE, "compare_and_swap_status")
        if result.data:
            return Gig.from_dict(result.data[0])

        logger.info(
            f"Gig CAS missed | gig={gig_id} | expected={expected_status} | new={new_status}"
        )
        return None

    async def list(
        self,
        status: Optional[str] = None,
        owner_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> Tuple[List[Gig], int]:
        if sort_by not in GIG_SORT_FIELDS:
            raise ValidationError(f"Cannot sort gigs by {sort_by}")
        query = self._db.table(GIGS_TABLE).select("*", count="exact")
        if status is not None:
            query = query.eq("status", GigStatus(status).value)
        if owner_id is not None:
            query = query.eq("owner_id", owner_id)
        if search:
            query = query.or_(search_filter(search, ("title", "description")))

        query = query.order(sort_by, desc=descending).range(offset, offset + limit - 1)
        result = execute(query, GIGS_TABLE, "list")
        return [Gig.from_dict(row) for row in result.data or []], result.count or 0

    async def list_assigned_before(self, cutoff: datetime) -> List[Gig]:
        result = execute(
            self._db.table(GIGS_TABLE)
            .select("*")
            .eq("status", GigStatus.ASSIGNED.value)
            .lt("hired_at", cutoff.isoformat()),
            GIGS_TABLE,
            "list_assigned_before",
        )
        return [Gig.from_dict(row) for row in result.data or []]
