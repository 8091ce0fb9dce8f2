"""
Bid service.

Request-level operations around the bid store: submitting a bid against an
open gig, viewing bids with the right authorization, and withdrawing.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from gigboard.errors import ForbiddenError, InvalidStateError, NotFoundError
from gigboard.logging_config import get_logger
from gigboard.market.bids.models import Bid
from gigboard.market.bids.storage import BidStorage
from gigboard.market.common import new_id
from gigboard.market.gigs.models import Gig
from gigboard.market.gigs.storage import GigStorage
from gigboard.market.notifications import NotificationDispatcher
from gigboard.market.users.storage import UserStorage

logger = get_logger("gigboard.bids")

ASSIGNED_GIG_MESSAGE = "Cannot bid on assigned gigs"
GIG_GONE_MESSAGE = "This gig no longer accepts bids"


@dataclass
class BidPage:
    bids: List[Bid]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


class BidService:
    """Bid operations that need both the gig and bid stores."""

    def __init__(
        self,
        gigs: GigStorage,
        bids: BidStorage,
        dispatcher: Optional[NotificationDispatcher] = None,
        users: Optional[UserStorage] = None,
    ):
        self._gigs = gigs
        self._bids = bids
        self._dispatcher = dispatcher
        self._users = users

    async def _require_gig(self, gig_id: str) -> Gig:
        gig = await self._gigs.get(gig_id)
        if gig is None:
            raise NotFoundError("Gig not found")
        return gig

    async def submit_bid(self, gig_id: str, freelancer_id: str, message: str, price: Decimal) -> Bid:
        """Place a bid on an open gig.

        Raises:
            NotFoundError: gig does not exist
            InvalidStateError: gig is not open, or caller owns the gig
            ConflictError: caller already bid on this gig
            ValidationError: malformed message or price
        """
        gig = await self._require_gig(gig_id)
        if gig.owner_id == freelancer_id:
            raise InvalidStateError("You cannot bid on your own gig")
        if not gig.is_open:
            raise InvalidStateError(ASSIGNED_GIG_MESSAGE)

        bid = Bid(id=new_id(), gig_id=gig_id, freelancer_id=freelancer_id, message=message, price=price)
        await self._bids.save(bid)

        # A hire or delete may have closed the gig after the check above.
        # Remove the bid so the (gig, freelancer) pair stays free if that hire rolls back.
        current = await self._gigs.get(gig_id)
        if current is None or not current.is_open:
            await self._discard_late_bid(bid)
            raise InvalidStateError(ASSIGNED_GIG_MESSAGE if current else GIG_GONE_MESSAGE)

        logger.info(f"Bid submitted | gig={gig_id} | bid={bid.id} | freelancer={freelancer_id} | price={price}")
        await self._announce_bid(gig, bid)
        return bid

    async def _discard_late_bid(self, bid: Bid) -> None:
        try:
            await self._bids.delete_if_pending(bid.id, bid.freelancer_id)
        except (InvalidStateError, NotFoundError):
            # Already rejected by the winning hire, or removed with the gig
            logger.info(f"Late bid already settled | gig={bid.gig_id} | bid={bid.id}")
            return
        logger.info(f"Late bid removed | gig={bid.gig_id} | bid={bid.id}")

    async def _announce_bid(self, gig: Gig, bid: Bid) -> None:
        if self._dispatcher is None:
            return
        try:
            name = "A freelancer"
            if self._users is not None:
                freelancer = await self._users.get(bid.freelancer_id)
                if freelancer is not None:
                    name = freelancer.name
            self._dispatcher.notify_bid_received(gig.owner_id, gig.title, name, bid.price)
        except Exception as exc:
            logger.warning(f"Bid notification dropped | bid={bid.id} | error={exc}")

    async def list_for_gig(
        self, gig_id: str, caller_id: str, page: int = 1, limit: int = 50, status: Optional[str] = None
    ) -> Tuple[Gig, BidPage]:
        """One page of a gig's bids, newest first. Only the gig owner may look."""
        gig = await self._require_gig(gig_id)
        if gig.owner_id != caller_id:
            raise ForbiddenError("You can only view bids for your own gigs")
        bids, total = await self._bids.list(gig_id=gig_id, status=status, limit=limit, offset=(page - 1) * limit)
        logger.info(f"Bids retrieved | gig={gig_id} | count={len(bids)} | total={total}")
        return gig, BidPage(bids=bids, total=total, page=page, limit=limit)

    async def list_mine(
        self, freelancer_id: str, page: int = 1, limit: int = 10, status: Optional[str] = None
    ) -> BidPage:
        bids, total = await self._bids.list(
            freelancer_id=freelancer_id, status=status, limit=limit, offset=(page - 1) * limit
        )
        return BidPage(bids=bids, total=total, page=page, limit=limit)

    async def get_details(self, bid_id: str, caller_id: str) -> Tuple[Bid, Optional[Gig]]:
        """A single bid, visible to its freelancer and to the gig owner."""
        bid = await self._bids.get(bid_id)
        if bid is None:
            raise NotFoundError("Bid not found")
        gig = await self._gigs.get(bid.gig_id)
        if bid.freelancer_id != caller_id and (gig is None or gig.owner_id != caller_id):
            raise ForbiddenError("You can only view your own bids or bids on your gigs")
        return bid, gig

    async def withdraw(self, bid_id: str, freelancer_id: str) -> Bid:
        bid = await self._bids.delete_if_pending(bid_id, freelancer_id)
        logger.info(f"Bid withdrawn | gig={bid.gig_id} | bid={bid_id} | freelancer={freelancer_id}")
        return bid
