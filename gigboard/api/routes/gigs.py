"""Gig routes.

Clients post gigs here; anyone signed in can browse the open ones.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Query, Request, status
from pydantic import BaseModel, Field

from gigboard.api.auth import CurrentUser
from gigboard.api.context import Context
from gigboard.api import rate_limit
from gigboard.logging_config import get_logger
from gigboard.market.gigs import Gig, GigPage

logger = get_logger("gigboard.api.gigs")
router = APIRouter(prefix="/gigs", tags=["gigs"])


# =============================================================================
# Request/Response Models
# =============================================================================

GigStatusName = Literal["open", "assigned"]
GigSortField = Literal["created_at", "budget", "title"]


class GigCreate(BaseModel):
    """Request to post a gig."""

    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=20, max_length=2000)
    budget: Decimal = Field(..., ge=1, le=1_000_000)
    deadline: datetime | None = None


class GigUpdate(BaseModel):
    """Partial update of an open gig. Omitted fields are left alone."""

    title: str | None = Field(None, min_length=5, max_length=100)
    description: str | None = Field(None, min_length=20, max_length=2000)
    budget: Decimal | None = Field(None, ge=1, le=1_000_000)
    deadline: datetime | None = None


class GigResponse(BaseModel):
    id: str
    owner_id: str
    title: str
    description: str
    budget: float
    status: GigStatusName
    deadline: datetime | None = None
    created_at: datetime
    updated_at: datetime
    hired_at: datetime | None = None
    hired_by: str | None = None
    hired_freelancer_id: str | None = None
    hired_bid_id: str | None = None


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total: int
    limit: int
    has_next_page: bool
    has_prev_page: bool


class GigListResponse(BaseModel):
    """Paginated list of gigs."""

    gigs: list[GigResponse]
    pagination: Pagination


class GigDeleteResponse(BaseModel):
    id: str
    message: str = "Gig deleted successfully"


def to_gig_response(gig: Gig) -> GigResponse:
    """Convert a domain gig to its response model."""
    return GigResponse(
        id=gig.id,
        owner_id=gig.owner_id,
        title=gig.title,
        description=gig.description,
        budget=float(gig.budget),
        status=gig.status,
        deadline=gig.deadline,
        created_at=gig.created_at,
        updated_at=gig.updated_at,
        hired_at=gig.hired_at,
        hired_by=gig.hired_by,
        hired_freelancer_id=gig.hired_freelancer_id,
        hired_bid_id=gig.hired_bid_id,
    )


def to_gig_list_response(page: GigPage) -> GigListResponse:
    return GigListResponse(
        gigs=[to_gig_response(g) for g in page.gigs],
        pagination=Pagination(
            current_page=page.page,
            total_pages=page.total_pages,
            total=page.total,
            limit=page.limit,
            has_next_page=page.has_next,
            has_prev_page=page.has_prev,
        ),
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=GigListResponse)
@rate_limit.limit("60/minute")
async def browse_gigs(
    request: Request,
    auth: CurrentUser,
    ctx: Context,
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    sort_by: GigSortField = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
):
    """List open gigs, optionally searching title and description."""
    logger.info(f"GET /gigs | user={auth.user_id} | search={search} | page={page}")
    result = await ctx.gig_service.browse(
        search=search.strip() if search else None,
        page=page,
        limit=limit,
        sort_by=sort_by,
        descending=sort_order == "desc",
    )
    return to_gig_list_response(result)


@router.post("", response_model=GigResponse, status_code=status.HTTP_201_CREATED)
@rate_limit.limit("20/minute")
async def create_gig(request: Request, gig: GigCreate, auth: CurrentUser, ctx: Context):
    """Post a new gig. The caller becomes its owner."""
    logger.info(f"POST /gigs | owner={auth.user_id} | title={gig.title[:50]}")
    created = await ctx.gig_service.create(
        owner_id=auth.user_id,
        title=gig.title,
        description=gig.description,
        budget=gig.budget,
        deadline=gig.deadline,
    )
    return to_gig_response(created)


@router.get("/my-gigs", response_model=GigListResponse)
@rate_limit.limit("60/minute")
async def list_my_gigs(
    request: Request,
    auth: CurrentUser,
    ctx: Context,
    status_filter: GigStatusName | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
):
    """Gigs posted by the caller, newest first."""
    logger.info(f"GET /gigs/my-gigs | owner={auth.user_id} | status={status_filter}")
    result = await ctx.gig_service.list_mine(auth.user_id, page=page, limit=limit, status=status_filter)
    return to_gig_list_response(result)


@router.get("/{gig_id}", response_model=GigResponse)
@rate_limit.limit("60/minute")
async def get_gig(request: Request, gig_id: str, auth: CurrentUser, ctx: Context):
    logger.info(f"GET /gigs/{gig_id} | user={auth.user_id}")
    return to_gig_response(await ctx.gig_service.get(gig_id))


@router.put("/{gig_id}", response_model=GigResponse)
@rate_limit.limit("20/minute")
async def update_gig(request: Request, gig_id: str, update: GigUpdate, auth: CurrentUser, ctx: Context):
    """Edit an open gig. Only the owner may edit, and only before a hire."""
    logger.info(f"PUT /gigs/{gig_id} | owner={auth.user_id}")
    patch = {
        k: v for k, v in update.model_dump(exclude_unset=True).items() if v is not None or k == "deadline"
    }
    updated = await ctx.gig_service.update(gig_id, auth.user_id, patch)
    return to_gig_response(updated)


@router.delete("/{gig_id}", response_model=GigDeleteResponse)
@rate_limit.limit("20/minute")
async def delete_gig(request: Request, gig_id: str, auth: CurrentUser, ctx: Context):
    """Remove an open gig together with its bids."""
    logger.info(f"DELETE /gigs/{gig_id} | owner={auth.user_id}")
    deleted = await ctx.gig_service.delete(gig_id, auth.user_id)
    return GigDeleteResponse(id=deleted.id)
