"""Tests for repair of interrupted hires."""

from datetime import timedelta

import pytest

from gigboard.market.bids import DEFAULT_REJECTION_REASON, Bid
from gigboard.market.common import new_id, utc_now
from gigboard.market.hiring import HiringReconciler

from conftest import BID_MESSAGE, make_gig

LONG_AGO = timedelta(hours=1)


async def add_bid(bid_storage, gig_id, freelancer_id, status="pending"):
    bid = Bid(id=new_id(), gig_id=gig_id, freelancer_id=freelancer_id, message=BID_MESSAGE, price=200, status=status)
    await bid_storage.save(bid)
    return bid


async def assigned_gig(gig_storage, hired_bid_id="bid_x", age=LONG_AGO):
    gig = make_gig(
        status="assigned",
        hired_at=utc_now() - age,
        hired_by="client_1",
        hired_freelancer_id="f1",
        hired_bid_id=hired_bid_id,
    )
    await gig_storage.save(gig)
    return gig


@pytest.fixture
def reconciler(gig_storage, bid_storage):
    return HiringReconciler(gig_storage, bid_storage, grace_seconds=300)


class TestReconcile:
    @pytest.mark.asyncio
    async def test_healthy_marketplace_needs_nothing(self, gig_storage, bid_storage, reconciler):
        gig = await assigned_gig(gig_storage)
        await add_bid(bid_storage, gig.id, "f1", status="hired")
        await add_bid(bid_storage, gig.id, "f2", status="rejected")
        await gig_storage.save(make_gig())

        health = await reconciler.health()
        assert health["status"] == "healthy"

        report = await reconciler.reconcile()
        assert report.actions == []

    @pytest.mark.asyncio
    async def test_orphaned_assignment_is_reopened(self, gig_storage, bid_storage, reconciler):
        gig = await assigned_gig(gig_storage)
        pending = await add_bid(bid_storage, gig.id, "f1")

        health = await reconciler.health()
        assert health["status"] == "action_needed"
        assert health["orphaned_gigs"] == 1

        report = await reconciler.reconcile()

        assert report.orphaned_gigs == 1
        assert [(a.gig_id, a.action) for a in report.actions] == [(gig.id, "reopened")]
        stored = await gig_storage.get(gig.id)
        assert stored.is_open
        assert stored.hired_bid_id is None and stored.hired_at is None
        # Pending bids on a reopened gig stay pending so the client can hire again
        assert (await bid_storage.get(pending.id)).is_pending

    @pytest.mark.asyncio
    async def test_stragglers_are_rejected(self, gig_storage, bid_storage, reconciler):
        gig = await assigned_gig(gig_storage)
        hired = await add_bid(bid_storage, gig.id, "f1", status="hired")
        stragglers = [await add_bid(bid_storage, gig.id, f"f{i}") for i in range(2, 5)]

        report = await reconciler.reconcile()

        assert report.stranded_bids == 3
        assert report.actions[0].action == "rejected_stragglers"
        assert sorted(report.actions[0].bid_ids) == sorted(b.id for b in stragglers)
        for bid in stragglers:
            stored = await bid_storage.get(bid.id)
            assert stored.status == "rejected"
            assert stored.rejected_reason == DEFAULT_REJECTION_REASON
        assert (await bid_storage.get(hired.id)).is_hired

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self, gig_storage, bid_storage, reconciler):
        orphan = await assigned_gig(gig_storage)
        gig = await assigned_gig(gig_storage)
        await add_bid(bid_storage, gig.id, "f1", status="hired")
        straggler = await add_bid(bid_storage, gig.id, "f2")

        report = await reconciler.reconcile(dry_run=True)

        assert report.dry_run
        assert sorted(a.action for a in report.actions) == ["would_reject_stragglers", "would_reopen"]
        assert (await gig_storage.get(orphan.id)).is_assigned
        assert (await bid_storage.get(straggler.id)).is_pending

    @pytest.mark.asyncio
    async def test_recent_assignments_are_left_alone(self, gig_storage, bid_storage, reconciler):
        gig = await assigned_gig(gig_storage, age=timedelta(seconds=5))

        report = await reconciler.reconcile()

        assert report.actions == []
        assert (await gig_storage.get(gig.id)).is_assigned

        report = await reconciler.reconcile(grace_seconds=0)
        assert report.actions[0].action == "reopened"

    @pytest.mark.asyncio
    async def test_multiple_hired_bids_are_only_reported(self, gig_storage, bid_storage, reconciler, caplog):
        gig = await assigned_gig(gig_storage)
        await add_bid(bid_storage, gig.id, "f1", status="hired")
        await add_bid(bid_storage, gig.id, "f2", status="hired")

        report = await reconciler.reconcile()

        assert report.actions[0].action == "needs_review"
        assert (await gig_storage.get(gig.id)).is_assigned
        assert "ALERT" in caplog.text

    @pytest.mark.asyncio
    async def test_reopen_skips_gig_rehired_since_scan(self, gig_storage, bid_storage, reconciler):
        gig = await assigned_gig(gig_storage, hired_bid_id="bid_old")
        # Simulate a concurrent change of the hire fields after the scan
        await gig_storage.compare_and_swap_status(gig.id, "assigned", "assigned", {"hired_bid_id": "bid_new"})

        action = await reconciler._reopen(gig, dry_run=False)

        assert action is None
        assert (await gig_storage.get(gig.id)).is_assigned
