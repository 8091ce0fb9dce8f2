"""
Hiring coordinator.

Runs the accept-one / reject-rest / close-gig transition for a single bid:

    START -> GIG_LOCKED -> BID_CLAIMED -> COMPETITORS_REJECTED -> DONE
    (ABORTED reachable from any stage)

Race safety comes entirely from the stores' compare-and-swap writes. The
gig claim (open -> assigned) is the linchpin: at most one concurrent attempt
per gig gets past it, and every later step assumes exclusive ownership of
closing that gig.

Only ``TransientStorageError`` is retried, and a retry resumes at the first
unfinished stage. A CAS that matches nothing is a lost race and surfaces
immediately as ``ConflictError``. If an attempt aborts after the gig was
claimed, the completed steps are undone in reverse order, each through CAS,
so a failed hire never leaves a gig assigned without a hired bid. When the
undo itself fails the state is logged as an alert and left to
:class:`~gigboard.market.hiring.reconcile.HiringReconciler`.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, List, Optional, TypeVar

from gigboard.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RetryExhaustedError,
    TransientStorageError,
)
from gigboard.logging_config import get_logger, log_hire_event
from gigboard.market.bids.models import DEFAULT_REJECTION_REASON, Bid, BidStatus
from gigboard.market.bids.storage import BidStorage
from gigboard.market.common import utc_now
from gigboard.market.gigs.models import HIRE_FIELDS, Gig, GigStatus
from gigboard.market.gigs.storage import GigStorage
from gigboard.market.notifications import NotificationDispatcher
from gigboard.market.users.storage import UserStorage

logger = get_logger("gigboard.hiring")

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_MS = (10, 50)

GIG_TAKEN_MESSAGE = "This gig is no longer available for hiring"
BID_TAKEN_MESSAGE = "This bid is no longer available"


class HireStage(str, Enum):
    START = "start"
    GIG_LOCKED = "gig_locked"
    BID_CLAIMED = "bid_claimed"
    COMPETITORS_REJECTED = "competitors_rejected"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class HireAttempt:
    """Progress of one ``hire`` call, kept across transient retries."""

    bid: Bid
    gig: Gig
    caller_id: str
    stage: HireStage = HireStage.START
    started_at: datetime = field(default_factory=utc_now)
    rejected: List[Bid] = field(default_factory=list)
    tries: int = 0


@dataclass
class HireResult:
    """Outcome of a successful hire."""

    bid: Bid
    gig: Gig
    rejected: List[Bid]


class HiringCoordinator:
    """Performs the hiring transition against a gig store and a bid store."""

    def __init__(
        self,
        gigs: GigStorage,
        bids: BidStorage,
        dispatcher: Optional[NotificationDispatcher] = None,
        users: Optional[UserStorage] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_ms: tuple[int, int] = DEFAULT_BACKOFF_MS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._gigs = gigs
        self._bids = bids
        self._dispatcher = dispatcher
        self._users = users
        self.max_attempts = max_attempts
        self.backoff_ms = backoff_ms

    async def hire(self, bid_id: str, caller_id: str) -> HireResult:
        """Hire the freelancer behind ``bid_id`` on behalf of ``caller_id``.

        Raises:
            NotFoundError: bid or gig does not exist
            ForbiddenError: caller does not own the gig
            ConflictError: the gig was already assigned or the bid is no
                longer pending (includes repeated calls for the same bid)
            RetryExhaustedError: transient storage contention outlasted
                the retry budget
        """
        bid = await self._bids.get(bid_id)
        if bid is None:
            raise NotFoundError("Bid not found")
        gig = await self._gigs.get(bid.gig_id)
        if gig is None:
            raise NotFoundError("Gig not found")
        if gig.owner_id != caller_id:
            raise ForbiddenError("You can only hire for your own gigs")
        if not bid.is_pending:
            raise ConflictError(BID_TAKEN_MESSAGE)

        attempt = HireAttempt(bid=bid, gig=gig, caller_id=caller_id)
        try:
            await self._retrying("hire", attempt, lambda: self._advance(attempt))
        except Exception as exc:
            if attempt.stage is not HireStage.START:
                await self._compensate(attempt, exc)
            attempt.stage = HireStage.ABORTED
            log_hire_event(
                "aborted", gig.id, bid.id, level=logging.INFO, reason=type(exc).__name__, detail=exc
            )
            raise

        attempt.stage = HireStage.DONE
        log_hire_event(
            "done",
            gig.id,
            bid.id,
            freelancer=attempt.bid.freelancer_id,
            price=attempt.bid.price,
            rejected=len(attempt.rejected),
            tries=attempt.tries,
        )
        result = HireResult(bid=attempt.bid, gig=attempt.gig, rejected=attempt.rejected)
        await self._announce(result)
        return result

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _advance(self, attempt: HireAttempt) -> None:
        if attempt.stage is HireStage.START:
            await self._claim_gig(attempt)
        if attempt.stage is HireStage.GIG_LOCKED:
            await self._claim_bid(attempt)
        if attempt.stage is HireStage.BID_CLAIMED:
            await self._reject_competitors(attempt)

    async def _claim_gig(self, attempt: HireAttempt) -> None:
        claimed = await self._gigs.compare_and_swap_status(
            attempt.gig.id,
            GigStatus.OPEN.value,
            GigStatus.ASSIGNED.value,
            {
                "hired_at": attempt.started_at,
                "hired_by": attempt.caller_id,
                "hired_freelancer_id": attempt.bid.freelancer_id,
                "hired_bid_id": attempt.bid.id,
            },
        )
        if claimed is None:
            raise ConflictError(GIG_TAKEN_MESSAGE)
        attempt.gig = claimed
        attempt.stage = HireStage.GIG_LOCKED
        log_hire_event("gig_locked", attempt.gig.id, attempt.bid.id, level=logging.DEBUG)

    async def _claim_bid(self, attempt: HireAttempt) -> None:
        claimed = await self._bids.compare_and_swap_status(
            attempt.bid.id,
            BidStatus.PENDING.value,
            BidStatus.HIRED.value,
            {"hired_at": attempt.started_at},
        )
        if claimed is None:
            raise ConflictError(BID_TAKEN_MESSAGE)
        attempt.bid = claimed
        attempt.stage = HireStage.BID_CLAIMED
        log_hire_event("bid_claimed", attempt.gig.id, attempt.bid.id, level=logging.DEBUG)

    async def _reject_competitors(self, attempt: HireAttempt) -> None:
        # Any bid still pending on an assigned gig is by definition not the winner
        attempt.rejected = await self._bids.bulk_transition(
            attempt.gig.id,
            attempt.bid.id,
            BidStatus.PENDING.value,
            BidStatus.REJECTED.value,
            {"rejected_at": utc_now(), "rejected_reason": DEFAULT_REJECTION_REASON},
        )
        attempt.stage = HireStage.COMPETITORS_REJECTED

    async def _retrying(
        self, operation: str, attempt: HireAttempt, step: Callable[[], Awaitable[T]]
    ) -> T:
        """Run ``step``, retrying only transient storage conflicts with jittered backoff."""
        for n in range(1, self.max_attempts + 1):
            attempt.tries = n
            try:
                return await step()
            except TransientStorageError as exc:
                log_hire_event(
                    "transient_conflict",
                    attempt.gig.id,
                    attempt.bid.id,
                    level=logging.WARNING,
                    op=operation,
                    stage=attempt.stage.value,
                    attempt=n,
                    table=exc.table,
                )
                if n == self.max_attempts:
                    raise RetryExhaustedError(attempts=n) from exc
                await asyncio.sleep(random.uniform(*self.backoff_ms) / 1000)
        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Compensation
    # ------------------------------------------------------------------

    async def _compensate(self, attempt: HireAttempt, cause: Exception) -> None:
        """Undo a partially-completed hire, newest step first."""
        gig_id, bid_id = attempt.gig.id, attempt.bid.id
        log_hire_event(
            "compensating", gig_id, bid_id, level=logging.WARNING, stage=attempt.stage.value, cause=cause
        )

        if attempt.stage in (HireStage.BID_CLAIMED, HireStage.COMPETITORS_REJECTED):
            restored = await self._undo(
                attempt,
                "release_bid",
                lambda: self._bids.compare_and_swap_status(
                    bid_id, BidStatus.HIRED.value, BidStatus.PENDING.value, {"hired_at": None}
                ),
            )
            if restored is None:
                # The gig must stay assigned while a hired bid may exist
                logger.error(
                    f"ALERT hire compensation incomplete | gig={gig_id} | bid={bid_id} | "
                    "bid could not be released, gig left assigned for reconciliation"
                )
                return

        reopened = await self._undo(
            attempt,
            "reopen_gig",
            lambda: self._gigs.compare_and_swap_status(
                gig_id,
                GigStatus.ASSIGNED.value,
                GigStatus.OPEN.value,
                {name: None for name in HIRE_FIELDS},
                match={"hired_bid_id": bid_id},
            ),
        )
        if reopened is None:
            logger.error(
                f"ALERT hire compensation incomplete | gig={gig_id} | bid={bid_id} | "
                "gig may be assigned without a hired bid"
            )
        else:
            log_hire_event("compensated", gig_id, bid_id, level=logging.WARNING)

    async def _undo(self, attempt: HireAttempt, operation: str, step: Callable[[], Awaitable[T]]) -> Optional[T]:
        try:
            return await self._retrying(operation, attempt, step)
        except Exception as exc:
            logger.error(
                f"Compensation step failed | op={operation} | gig={attempt.gig.id} | "
                f"bid={attempt.bid.id} | error={exc}"
            )
            return None

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def _announce(self, result: HireResult) -> None:
        """Hand hire/rejection notices to the dispatcher; never fails the hire."""
        if self._dispatcher is None:
            return
        try:
            client_name = "The client"
            if self._users is not None:
                client = await self._users.get(result.gig.owner_id)
                if client is not None:
                    client_name = client.name
            self._dispatcher.notify_hired(
                result.bid.freelancer_id, result.gig.title, client_name, result.bid.price
            )
            for rejected in result.rejected:
                self._dispatcher.notify_rejected(
                    rejected.freelancer_id, result.gig.title, rejected.rejected_reason
                )
        except Exception as exc:
            logger.warning(f"Hire notifications dropped | gig={result.gig.id} | error={exc}")
