"""Gig service: posting, browsing, editing and removing gigs."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from gigboard.errors import NotFoundError, ValidationError
from gigboard.logging_config import get_logger
from gigboard.market.bids.storage import BidStorage
from gigboard.market.common import new_id, parse_datetime, utc_now
from gigboard.market.gigs.models import Gig, GigStatus
from gigboard.market.gigs.storage import GigStorage

logger = get_logger("gigboard.gigs")


@dataclass
class GigPage:
    gigs: List[Gig]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


def _check_deadline(deadline: Optional[datetime]) -> Optional[datetime]:
    deadline = parse_datetime(deadline)
    if deadline is not None and deadline <= utc_now():
        raise ValidationError("Deadline must be in the future")
    return deadline


class GigService:
    def __init__(self, gigs: GigStorage, bids: BidStorage):
        self._gigs = gigs
        self._bids = bids

    async def create(
        self,
        owner_id: str,
        title: str,
        description: str,
        budget: Decimal,
        deadline: Optional[datetime] = None,
    ) -> Gig:
        gig = Gig(
            id=new_id(),
            owner_id=owner_id,
            title=title,
            description=description,
            budget=budget,
            deadline=_check_deadline(deadline),
        )
        await self._gigs.save(gig)
        logger.info(f"Gig created | gig={gig.id} | owner={owner_id} | budget={gig.budget}")
        return gig

    async def get(self, gig_id: str) -> Gig:
        gig = await self._gigs.get(gig_id)
        if gig is None:
            raise NotFoundError("Gig not found")
        return gig

    async def browse(
        self,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> GigPage:
        """Open gigs only, optionally filtered by a title/description search."""
        gigs, total = await self._gigs.list(
            status=GigStatus.OPEN.value,
            search=search or None,
            limit=limit,
            offset=(page - 1) * limit,
            sort_by=sort_by,
            descending=descending,
        )
        result = GigPage(gigs=gigs, total=total, page=page, limit=limit)
        logger.debug(f"Gigs listed | count={len(gigs)} | page={page}/{result.total_pages}")
        return result

    async def list_mine(
        self, owner_id: str, page: int = 1, limit: int = 10, status: Optional[str] = None
    ) -> GigPage:
        gigs, total = await self._gigs.list(
            status=status, owner_id=owner_id, limit=limit, offset=(page - 1) * limit
        )
        return GigPage(gigs=gigs, total=total, page=page, limit=limit)

    async def update(self, gig_id: str, caller_id: str, patch: dict[str, Any]) -> Gig:
        if "deadline" in patch:
            patch = {**patch, "deadline": _check_deadline(patch["deadline"])}
        gig = await self._gigs.update_if_open(gig_id, patch, caller_id)
        logger.info(f"Gig updated | gig={gig_id} | owner={caller_id} | fields={','.join(sorted(patch))}")
        return gig

    async def delete(self, gig_id: str, caller_id: str) -> Gig:
        gig = await self._gigs.delete_if_open(gig_id, caller_id)
        removed = await self._bids.delete_for_gig(gig_id)
        logger.info(f"Gig deleted | gig={gig_id} | owner={caller_id} | bids_removed={removed}")
        return gig
