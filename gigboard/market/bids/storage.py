"""
Bid storage layer.

Provides persistence for bids. Uniqueness of (gig_id, freelancer_id) is
enforced by the store itself, not by a read-then-insert check, so two
concurrent submissions cannot both succeed.
"""

import asyncio
import threading
from dataclasses import replace
from typing import Any, List, NoReturn, Optional, Protocol, Tuple

from gigboard.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from gigboard.logging_config import get_logger
from gigboard.market.bids.models import Bid, BidStatus
from gigboard.market.common import utc_now
from gigboard.market.supabase_support import execute, serialize

logger = get_logger("gigboard.storage.bids")

BIDS_TABLE = "bids"
BID_SORT_FIELDS = ("created_at", "price")
DUPLICATE_BID_MESSAGE = "You have already submitted a bid for this gig"


class BidStorage(Protocol):
    """Protocol for bid persistence backends."""

    async def save(self, bid: Bid) -> str:
        """Insert a new bid. Raises ConflictError on a duplicate (gig, freelancer)."""
        ...

    async def get(self, bid_id: str) -> Optional[Bid]:
        """Get a bid by ID."""
        ...

    async def compare_and_swap_status(
        self,
        bid_id: str,
        expected_status: str,
        new_status: str,
        fields: Optional[dict[str, Any]] = None,
    ) -> Optional[Bid]:
        """Set status (plus ``fields``) only if status is still ``expected_status``."""
        ...

    async def bulk_transition(
        self,
        gig_id: str,
        exclude_id: Optional[str],
        expected_status: str,
        new_status: str,
        fields: Optional[dict[str, Any]] = None,
    ) -> List[Bid]:
        """Move every matching bid of a gig in one batch. Returns the moved bids."""
        ...

    async def list(
        self,
        gig_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> Tuple[List[Bid], int]:
        """List bids with optional filters. Returns (page, total)."""
        ...

    async def delete_if_pending(self, bid_id: str, freelancer_id: str) -> Bid:
        """Withdraw a pending bid owned by ``freelancer_id``."""
        ...

    async def delete_for_gig(self, gig_id: str) -> int:
        """Remove all bids of a deleted gig. Returns how many were removed."""
        ...


def _classify_missed_delete(bid: Optional[Bid], freelancer_id: str) -> NoReturn:
    if bid is None:
        raise NotFoundError("Bid not found")
    if bid.freelancer_id != freelancer_id:
        raise ForbiddenError("You can only withdraw your own bids")
    raise InvalidStateError(f"Cannot withdraw a bid that is already {bid.status}")


class InMemoryBidStorage:
    """In-memory bid storage for testing and local development."""

    def __init__(self):
        self._bids: dict[str, Bid] = {}
        self._by_pair: dict[tuple[str, str], str] = {}  # (gig_id, freelancer_id) -> bid_id
        self._lock = threading.Lock()

    async def save(self, bid: Bid) -> str:
        await asyncio.sleep(0)
        with self._lock:
            pair = (bid.gig_id, bid.freelancer_id)
            if pair in self._by_pair:
                raise ConflictError(DUPLICATE_BID_MESSAGE)
            self._bids[bid.id] = replace(bid)
            self._by_pair[pair] = bid.id
        return bid.id

    async def get(self, bid_id: str) -> Optional[Bid]:
        await asyncio.sleep(0)
        with self._lock:
            bid = self._bids.get(bid_id)
            return replace(bid) if bid else None

    async def compare_and_swap_status(
        self,
        bid_id: str,
        expected_status: str,
        new_status: str,
        fields: Optional[dict[str, Any]] = None,
    ) -> Optional[Bid]:
        await asyncio.sleep(0)
        with self._lock:
            bid = self._bids.get(bid_id)
            if bid is None or bid.status != BidStatus(expected_status).value:
                return None
            updated = replace(
                bid, status=BidStatus(new_status).value, updated_at=utc_now(), **(fields or {})
            )
            self._bids[bid_id] = updated
            return replace(updated)

    async def bulk_transition(
        self,
        gig_id: str,
        exclude_id: Optional[str],
        expected_status: str,
        new_status: str,
        fields: Optional[dict[str, Any]] = None,
    ) -> List[Bid]:
        expected = BidStatus(expected_status).value
        await asyncio.sleep(0)
        with self._lock:
            now = utc_now()
            moved = []
            for bid in list(self._bids.values()):
                if bid.gig_id != gig_id or bid.id == exclude_id or bid.status != expected:
                    continue
                updated = replace(
                    bid, status=BidStatus(new_status).value, updated_at=now, **(fields or {})
                )
                self._bids[bid.id] = updated
                moved.append(replace(updated))
            return moved

    async def list(
        self,
        gig_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> Tuple[List[Bid], int]:
        if sort_by not in BID_SORT_FIELDS:
            raise ValidationError(f"Cannot sort bids by {sort_by}")
        await asyncio.sleep(0)
        with self._lock:
            bids = [replace(b) for b in self._bids.values()]

        if gig_id is not None:
            bids = [b for b in bids if b.gig_id == gig_id]
        if freelancer_id is not None:
            bids = [b for b in bids if b.freelancer_id == freelancer_id]
        if status is not None:
            bids = [b for b in bids if b.status == BidStatus(status).value]

        bids.sort(key=lambda b: getattr(b, sort_by), reverse=descending)
        return bids[offset : offset + limit], len(bids)

    async def delete_if_pending(self, bid_id: str, freelancer_id: str) -> Bid:
        await asyncio.sleep(0)
        with self._lock:
            bid = self._bids.get(bid_id)
            if bid is None or bid.freelancer_id != freelancer_id or not bid.is_pending:
                _classify_missed_delete(bid, freelancer_id)
            del self._bids[bid_id]
            del self._by_pair[(bid.gig_id, bid.freelancer_id)]
            return bid

    async def delete_for_gig(self, gig_id: str) -> int:
        await asyncio.sleep(0)
        with self._lock:
            doomed = [b for b in self._bids.values() if b.gig_id == gig_id]
            for bid in doomed:
                del self._bids[bid.id]
                del self._by_pair[(bid.gig_id, bid.freelancer_id)]
            return len(doomed)


class SupabaseBidStorage:
    """Bid storage backed by a Supabase (PostgREST) table.

    Requires the unique index on ``bids(gig_id, freelancer_id)`` from the
    initial migration.
    """

    def __init__(self, client):
        self._db = client

    async def save(self, bid: Bid) -> str:
        execute(
            self._db.table(BIDS_TABLE).insert(bid.to_dict()),
            BIDS_TABLE,
            "insert",
            conflict_message=DUPLICATE_BID_MESSAGE,
        )
        return bid.id

    async def get(self, bid_id: str) -> Optional[Bid]:
        result = execute(
            self._db.table(BIDS_TABLE).select("*").eq("id", bid_id), BIDS_TABLE, "select"
        )
        return Bid.from_dict(result.data[0]) if result.data else None

    async def compare_and_swap_status(
        self,
        bid_id: str,
        expected_status: str,
        new_status: str,
        fields: Optional[dict[str, Any]] = None,
    ) -> Optional[Bid]:
        data = serialize(
            {**(fields or {}), "status": BidStatus(new_status).value, "updated_at": utc_now()}
        )
        result = execute(
            self._db.table(BIDS_TABLE)
            .update(data)
            .eq("id", bid_id)
            .eq("status", BidStatus(expected_status).value),
            BIDS_TABLE,
            "compare_and_swap_status",
            conflict_message="Another bid on this gig is already hired",
        )
        if result.data:
            return Bid.from_dict(result.data[0])

        logger.info(f"Bid CAS missed | bid={bid_id} | expected={expected_status} | new={new_status}")
        return None

    async def bulk_transition(
        self,
        gig_id: str,
        exclude_id: Optional[str],
        expected_status: str,
        new_status: str,
        fields: Optional[dict[str, Any]] = None,
    ) -> List[Bid]:
        data = serialize(
            {**(fields or {}), "status": BidStatus(new_status).value, "updated_at": utc_now()}
        )
        # One UPDATE statement, so the batch is atomic
        query = (
            self._db.table(BIDS_TABLE)
            .update(data)
            .eq("gig_id", gig_id)
            .eq("status", BidStatus(expected_status).value)
        )
        if exclude_id is not None:
            query = query.neq("id", exclude_id)

        result = execute(query, BIDS_TABLE, "bulk_transition")
        return [Bid.from_dict(row) for row in result.data or []]

    async def list(
        self,
        gig_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> Tuple[List[Bid], int]:
        if sort_by not in BID_SORT_FIELDS:
            raise ValidationError(f"Cannot sort bids by {sort_by}")
        query = self._db.table(BIDS_TABLE).select("*", count="exact")
        if gig_id is not None:
            query = query.eq("gig_id", gig_id)
        if freelancer_id is not None:
            query = query.eq("freelancer_id", freelancer_id)
        if status is not None:
            query = query.eq("status", BidStatus(status).value)

        query = query.order(sort_by, desc=descending).range(offset, offset + limit - 1)
        result = execute(query, BIDS_TABLE, "list")
        return [Bid.from_dict(row) for row in result.data or []], result.count or 0

    async def delete_if_pending(self, bid_id: str, freelancer_id: str) -> Bid:
        result = execute(
            self._db.table(BIDS_TABLE)
            .delete()
            .eq("id", bid_id)
            .eq("freelancer_id", freelancer_id)
            .eq("status", BidStatus.PENDING.value),
            BIDS_TABLE,
            "delete",
        )
        if result.data:
            return Bid.from_dict(result.data[0])
        _classify_missed_delete(await self.get(bid_id), freelancer_id)

    async def delete_for_gig(self, gig_id: str) -> int:
        result = execute(
            self._db.table(BIDS_TABLE).delete().eq("gig_id", gig_id), BIDS_TABLE, "delete_for_gig"
        )
        return len(result.data or [])
