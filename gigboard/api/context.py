"""
Application context.

Everything a request handler needs (settings, stores, services, the hiring
coordinator and the live connection registry) is built once by
:func:`build_context` and attached to the FastAPI app. Handlers receive it
through the ``Context`` dependency, so tests can build their own.
"""

from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Request, WebSocket

from gigboard.api.connections import ConnectionManager
from gigboard.api.database import get_supabase_client
from gigboard.config import Settings, get_settings
from gigboard.logging_config import get_logger
from gigboard.market.bids import BidService, BidStorage, InMemoryBidStorage, SupabaseBidStorage
from gigboard.market.gigs import GigService, GigStorage, InMemoryGigStorage, SupabaseGigStorage
from gigboard.market.hiring import HiringCoordinator, HiringReconciler
from gigboard.market.notifications import NotificationDispatcher
from gigboard.market.users import InMemoryUserStorage, SupabaseUserStorage, UserStorage

logger = get_logger("gigboard.api")


@dataclass
class AppContext:
    settings: Settings
    gigs: GigStorage
    bids: BidStorage
    users: UserStorage
    connections: ConnectionManager
    dispatcher: NotificationDispatcher
    coordinator: HiringCoordinator
    reconciler: HiringReconciler
    gig_service: GigService
    bid_service: BidService


def build_context(
    settings: Optional[Settings] = None,
    gigs: Optional[GigStorage] = None,
    bids: Optional[BidStorage] = None,
    users: Optional[UserStorage] = None,
) -> AppContext:
    """Wire stores, services and the coordinator for one application.

    Stores not passed in are created for ``settings.storage_backend``.
    """
    settings = settings or get_settings()
    if gigs is None or bids is None or users is None:
        if settings.storage_backend == "supabase":
            client = get_supabase_client(settings)
            gigs = gigs or SupabaseGigStorage(client)
            bids = bids or SupabaseBidStorage(client)
            users = users or SupabaseUserStorage(client)
        else:
            gigs = gigs or InMemoryGigStorage()
            bids = bids or InMemoryBidStorage()
            users = users or InMemoryUserStorage()
    logger.info(f"Context built | backend={settings.storage_backend}")

    connections = ConnectionManager()
    dispatcher = NotificationDispatcher(connections)
    return AppContext(
        settings=settings,
        gigs=gigs,
        bids=bids,
        users=users,
        connections=connections,
        dispatcher=dispatcher,
        coordinator=HiringCoordinator(
            gigs,
            bids,
            dispatcher=dispatcher,
            users=users,
            max_attempts=settings.hire_max_attempts,
            backoff_ms=(settings.hire_backoff_min_ms, settings.hire_backoff_max_ms),
        ),
        reconciler=HiringReconciler(gigs, bids, grace_seconds=settings.orphan_grace_seconds),
        gig_service=GigService(gigs, bids),
        bid_service=BidService(gigs, bids, dispatcher=dispatcher, users=users),
    )


def get_app_context(request: Request) -> AppContext:
    """FastAPI dependency returning the context attached to the app."""
    return request.app.state.context


def get_ws_context(websocket: WebSocket) -> AppContext:
    return websocket.app.state.context


# Type alias for dependency injection
Context = Annotated[AppContext, Depends(get_app_context)]
