"""Bid routes.

Freelancers bid on open gigs; the gig owner reviews the bids and hires one.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Query, Request
from fastapi import status as http_status
from pydantic import BaseModel, ConfigDict, Field

from gigboard.api.auth import CurrentUser
from gigboard.api.context import Context
from gigboard.api import rate_limit
from gigboard.api.routes.gigs import GigResponse, Pagination, to_gig_response
from gigboard.logging_config import get_logger
from gigboard.market.bids import Bid, BidPage

logger = get_logger("gigboard.api.bids")
router = APIRouter(prefix="/bids", tags=["bids"])


# =============================================================================
# Request/Response Models
# =============================================================================

BidStatusName = Literal["pending", "hired", "rejected"]


class BidCreate(BaseModel):
    """Request to bid on a gig. Accepts ``gigId`` or ``gig_id``."""

    model_config = ConfigDict(populate_by_name=True)

    gig_id: str = Field(..., min_length=1, alias="gigId")
    message: str = Field(..., min_length=10, max_length=1000)
    price: Decimal = Field(..., ge=1, le=1_000_000)


class BidResponse(BaseModel):
    id: str
    gig_id: str
    freelancer_id: str
    message: str
    price: float
    status: BidStatusName
    created_at: datetime
    updated_at: datetime
    hired_at: datetime | None = None
    rejected_at: datetime | None = None
    rejected_reason: str | None = None


class GigBidsResponse(BaseModel):
    """One page of bids on a gig, for its owner."""

    gig: GigResponse
    bids: list[BidResponse]
    total: int
    pagination: Pagination


class MyBidsResponse(BaseModel):
    bids: list[BidResponse]
    pagination: Pagination


class BidDetailResponse(BaseModel):
    bid: BidResponse
    gig: GigResponse | None = None


class HireResponse(BaseModel):
    """Result of a successful hire."""

    bid: BidResponse
    gig: GigResponse
    rejected_count: int
    message: str = "Freelancer hired successfully"


class BidWithdrawResponse(BaseModel):
    id: str
    message: str = "Bid withdrawn successfully"


def to_bid_response(bid: Bid) -> BidResponse:
    """Convert a domain bid to its response model."""
    return BidResponse(
        id=bid.id,
        gig_id=bid.gig_id,
        freelancer_id=bid.freelancer_id,
        message=bid.message,
        price=float(bid.price),
        status=bid.status,
        created_at=bid.created_at,
        updated_at=bid.updated_at,
        hired_at=bid.hired_at,
        rejected_at=bid.rejected_at,
        rejected_reason=bid.rejected_reason,
    )


def to_pagination(page: BidPage) -> Pagination:
    return Pagination(
        current_page=page.page,
        total_pages=page.total_pages,
        total=page.total,
        limit=page.limit,
        has_next_page=page.page < page.total_pages,
        has_prev_page=page.page > 1,
    )


def to_my_bids_response(page: BidPage) -> MyBidsResponse:
    return MyBidsResponse(bids=[to_bid_response(b) for b in page.bids], pagination=to_pagination(page))


# =============================================================================
# Endpoints
# =============================================================================
# Fixed paths are registered before "/{gig_id}" so they are not captured by it.


@router.post("", response_model=BidResponse, status_code=http_status.HTTP_201_CREATED)
@rate_limit.limit("20/minute")
async def submit_bid(request: Request, bid: BidCreate, auth: CurrentUser, ctx: Context):
    """Bid on an open gig. One bid per freelancer per gig; never on your own gig."""
    logger.info(f"POST /bids | freelancer={auth.user_id} | gig={bid.gig_id} | price={bid.price}")
    created = await ctx.bid_service.submit_bid(
        gig_id=bid.gig_id,
        freelancer_id=auth.user_id,
        message=bid.message,
        price=bid.price,
    )
    return to_bid_response(created)


@router.get("/my-bids", response_model=MyBidsResponse)
@rate_limit.limit("60/minute")
async def list_my_bids(
    request: Request,
    auth: CurrentUser,
    ctx: Context,
    status: BidStatusName | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
):
    """Bids placed by the caller, newest first."""
    logger.info(f"GET /bids/my-bids | freelancer={auth.user_id} | status={status}")
    result = await ctx.bid_service.list_mine(auth.user_id, page=page, limit=limit, status=status)
    return to_my_bids_response(result)


@router.get("/bid/{bid_id}", response_model=BidDetailResponse)
@rate_limit.limit("60/minute")
async def get_bid_details(request: Request, bid_id: str, auth: CurrentUser, ctx: Context):
    """A single bid, visible to the freelancer who placed it and to the gig owner."""
    logger.info(f"GET /bids/bid/{bid_id} | user={auth.user_id}")
    bid, gig = await ctx.bid_service.get_details(bid_id, auth.user_id)
    return BidDetailResponse(bid=to_bid_response(bid), gig=to_gig_response(gig) if gig else None)


@router.get("/{gig_id}", response_model=GigBidsResponse)
@rate_limit.limit("60/minute")
async def list_bids_for_gig(
    request: Request,
    gig_id: str,
    auth: CurrentUser,
    ctx: Context,
    status: BidStatusName | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
):
    """Bids on a gig, newest first. Only the gig owner may see them."""
    logger.info(f"GET /bids/{gig_id} | owner={auth.user_id} | page={page}")
    gig, result = await ctx.bid_service.list_for_gig(gig_id, auth.user_id, page=page, limit=limit, status=status)
    return GigBidsResponse(
        gig=to_gig_response(gig),
        bids=[to_bid_response(b) for b in result.bids],
        total=result.total,
        pagination=to_pagination(result),
    )


@router.patch("/{bid_id}/hire", response_model=HireResponse)
@rate_limit.limit("10/minute")
async def hire_freelancer(request: Request, bid_id: str, auth: CurrentUser, ctx: Context):
    """
    Hire the freelancer behind a bid.

    Atomically assigns the gig, marks this bid hired and rejects every other
    pending bid on the gig. Concurrent hires on the same gig: exactly one
    succeeds, the rest get 409.
    """
    logger.info(f"PATCH /bids/{bid_id}/hire | client={auth.user_id}")
    result = await ctx.coordinator.hire(bid_id, auth.user_id)
    logger.info(
        f"Freelancer hired | gig={result.gig.id} | bid={result.bid.id} | "
        f"freelancer={result.bid.freelancer_id} | rejected={len(result.rejected)}"
    )
    return HireResponse(
        bid=to_bid_response(result.bid),
        gig=to_gig_response(result.gig),
        rejected_count=len(result.rejected),
    )


@router.delete("/{bid_id}", response_model=BidWithdrawResponse)
@rate_limit.limit("20/minute")
async def withdraw_bid(request: Request, bid_id: str, auth: CurrentUser, ctx: Context):
    """Withdraw a pending bid. Hired and rejected bids stay on record."""
    logger.info(f"DELETE /bids/{bid_id} | freelancer={auth.user_id}")
    bid = await ctx.bid_service.withdraw(bid_id, auth.user_id)
    return BidWithdrawResponse(id=bid.id)
