"""Maintenance routes.

Endpoints for repairing hires that were interrupted part-way. These should
be called periodically (e.g., via cron) by an admin principal.
"""

from datetime import datetime

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from gigboard.api.auth import AdminUser
from gigboard.api.context import Context
from gigboard.api import rate_limit
from gigboard.logging_config import get_logger
from gigboard.market.hiring import ReconcileReport

logger = get_logger("gigboard.api.maintenance")
router = APIRouter(prefix="/maintenance", tags=["maintenance"])


# =============================================================================
# Request/Response Models
# =============================================================================


class ReconcileRequest(BaseModel):
    """Request to repair interrupted hires."""

    grace_seconds: int | None = Field(
        default=None,
        ge=0,
        le=86400,
        description="Skip gigs assigned more recently than this; defaults to ORPHAN_GRACE_SECONDS",
    )
    dry_run: bool = Field(
        default=False, description="If true, report what would be done without making changes"
    )


class ReconcileActionResponse(BaseModel):
    """A single repair taken or to be taken."""

    gig_id: str
    action: str
    reason: str
    bid_ids: list[str] = Field(default_factory=list)


class ReconcileResponse(BaseModel):
    dry_run: bool
    grace_seconds: int
    actions: list[ReconcileActionResponse]
    orphaned_gigs: int
    stranded_bids: int
    checked_at: datetime


class HealthResponse(BaseModel):
    """Health check for the hiring subsystem."""

    status: str
    orphaned_gigs: int
    stranded_bids: int
    checked_at: datetime


def to_reconcile_response(report: ReconcileReport) -> ReconcileResponse:
    return ReconcileResponse(
        dry_run=report.dry_run,
        grace_seconds=report.grace_seconds,
        actions=[
            ReconcileActionResponse(gig_id=a.gig_id, action=a.action, reason=a.reason, bid_ids=a.bid_ids)
            for a in report.actions
        ],
        orphaned_gigs=report.orphaned_gigs,
        stranded_bids=report.stranded_bids,
        checked_at=report.checked_at,
    )


# =============================================================================
# Routes
# =============================================================================


@router.get("/health", response_model=HealthResponse)
@rate_limit.limit("60/minute")
async def maintenance_health(
    request: Request,
    admin: AdminUser,
    ctx: Context,
    grace_seconds: int | None = Query(None, ge=0, le=86400),
):
    """
    Counts of gigs that reconciliation would touch.

    Useful for monitoring before running an actual repair.
    """
    logger.info(f"GET /maintenance/health | admin={admin.user_id}")
    return HealthResponse(**await ctx.reconciler.health(grace_seconds))


@router.post("/reconcile", response_model=ReconcileResponse)
@rate_limit.limit("10/minute")
async def reconcile_hires(request: Request, body: ReconcileRequest, admin: AdminUser, ctx: Context):
    """
    Repair interrupted hires.

    - Assigned gigs with no hired bid are reopened.
    - Pending bids left on an assigned gig are rejected.
    - Gigs with more than one hired bid are reported, never changed.
    """
    logger.info(f"POST /maintenance/reconcile | admin={admin.user_id} | dry_run={body.dry_run}")
    report = await ctx.reconciler.reconcile(dry_run=body.dry_run, grace_seconds=body.grace_seconds)
    return to_reconcile_response(report)
