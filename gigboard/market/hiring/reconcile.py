"""
Repair of half-finished hires.

A hire that crashed or was cancelled between its steps can leave:

- an orphaned assignment: gig ``assigned`` but no bid ``hired``
  (crash between claiming the gig and claiming the bid), or
- stragglers: gig ``assigned`` with a hired bid, but competitors still
  ``pending`` (crash before the bulk rejection).

Both are repaired through the same CAS primitives the coordinator uses.
Gigs assigned within the grace period are skipped because their hire may
still be in flight.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from gigboard.logging_config import get_logger
from gigboard.market.bids.models import DEFAULT_REJECTION_REASON, BidStatus
from gigboard.market.bids.storage import BidStorage
from gigboard.market.common import utc_now
from gigboard.market.gigs.models import HIRE_FIELDS, Gig, GigStatus
from gigboard.market.gigs.storage import GigStorage

logger = get_logger("gigboard.hiring.reconcile")

DEFAULT_GRACE_SECONDS = 300


@dataclass
class ReconcileAction:
    """A single repair taken or to be taken."""

    gig_id: str
    action: str  # reopened, would_reopen, rejected_stragglers, would_reject_stragglers, needs_review
    reason: str
    bid_ids: List[str] = field(default_factory=list)


@dataclass
class ReconcileReport:
    dry_run: bool
    grace_seconds: int
    actions: List[ReconcileAction]
    orphaned_gigs: int
    stranded_bids: int
    checked_at: datetime = field(default_factory=utc_now)


@dataclass
class _Finding:
    gig: Gig
    hired_ids: List[str]
    pending_ids: List[str]


class HiringReconciler:
    """Finds and repairs gigs whose hire did not complete."""

    def __init__(self, gigs: GigStorage, bids: BidStorage, grace_seconds: int = DEFAULT_GRACE_SECONDS):
        self._gigs = gigs
        self._bids = bids
        self.grace_seconds = grace_seconds

    async def _scan(self, grace_seconds: int) -> List[_Finding]:
        cutoff = utc_now() - timedelta(seconds=grace_seconds)
        findings = []
        for gig in await self._gigs.list_assigned_before(cutoff):
            hired, _ = await self._bids.list(gig_id=gig.id, status=BidStatus.HIRED.value)
            pending, _ = await self._bids.list(gig_id=gig.id, status=BidStatus.PENDING.value)
            if len(hired) == 1 and not pending:
                continue
            findings.append(
                _Finding(gig=gig, hired_ids=[b.id for b in hired], pending_ids=[b.id for b in pending])
            )
        return findings

    async def health(self, grace_seconds: Optional[int] = None) -> dict:
        """Counts of broken hires, without changing anything."""
        findings = await self._scan(self.grace_seconds if grace_seconds is None else grace_seconds)
        return {
            "status": "healthy" if not findings else "action_needed",
            "orphaned_gigs": sum(1 for f in findings if not f.hired_ids),
            "stranded_bids": sum(len(f.pending_ids) for f in findings if f.hired_ids),
            "checked_at": utc_now(),
        }

    async def reconcile(self, dry_run: bool = False, grace_seconds: Optional[int] = None) -> ReconcileReport:
        grace = self.grace_seconds if grace_seconds is None else grace_seconds
        findings = await self._scan(grace)
        actions: List[ReconcileAction] = []
        orphaned = stranded = 0

        for finding in findings:
            gig = finding.gig
            if len(finding.hired_ids) > 1:
                logger.error(
                    f"ALERT multiple hired bids | gig={gig.id} | bids={','.join(finding.hired_ids)}"
                )
                actions.append(
                    ReconcileAction(gig.id, "needs_review", "More than one hired bid", finding.hired_ids)
                )
                continue

            if not finding.hired_ids:
                orphaned += 1
                action = await self._reopen(gig, dry_run)
                if action:
                    actions.append(action)
                continue

            stranded += len(finding.pending_ids)
            action = await self._reject_stragglers(gig, finding.hired_ids[0], finding.pending_ids, dry_run)
            if action:
                actions.append(action)

        if not dry_run and actions:
            logger.info(
                f"Reconcile complete | orphaned={orphaned} | stranded={stranded} | actions={len(actions)}"
            )
        return ReconcileReport(
            dry_run=dry_run,
            grace_seconds=grace,
            actions=actions,
            orphaned_gigs=orphaned,
            stranded_bids=stranded,
        )

    async def _reopen(self, gig: Gig, dry_run: bool) -> Optional[ReconcileAction]:
        reason = "Gig assigned without a hired bid"
        if dry_run:
            return ReconcileAction(gig.id, "would_reopen", reason)

        reopened = await self._gigs.compare_and_swap_status(
            gig.id,
            GigStatus.ASSIGNED.value,
            GigStatus.OPEN.value,
            {name: None for name in HIRE_FIELDS},
            match={"hired_bid_id": gig.hired_bid_id},
        )
        if reopened is None:
            # Changed since the scan; the next run will look again
            return None
        logger.warning(f"Orphaned gig reopened | gig={gig.id} | stale_bid={gig.hired_bid_id}")
        return ReconcileAction(gig.id, "reopened", reason)

    async def _reject_stragglers(
        self, gig: Gig, hired_id: str, pending_ids: List[str], dry_run: bool
    ) -> Optional[ReconcileAction]:
        reason = "Pending bids on an assigned gig"
        if dry_run:
            return ReconcileAction(gig.id, "would_reject_stragglers", reason, pending_ids)

        rejected = await self._bids.bulk_transition(
            gig.id,
            hired_id,
            BidStatus.PENDING.value,
            BidStatus.REJECTED.value,
            {"rejected_at": utc_now(), "rejected_reason": DEFAULT_REJECTION_REASON},
        )
        if not rejected:
            return None
        logger.warning(f"Straggler bids rejected | gig={gig.id} | count={len(rejected)}")
        return ReconcileAction(gig.id, "rejected_stragglers", reason, [b.id for b in rejected])
