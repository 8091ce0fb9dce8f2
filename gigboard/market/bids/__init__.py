"""Bids subsystem.

Models:
- Bid: A freelancer's offer on a gig
- BidStatus: Bid lifecycle status

Storage:
- BidStorage: Protocol implemented by every backend
- InMemoryBidStorage, SupabaseBidStorage

Service:
- BidService: Submit, view and withdraw bids
"""

from gigboard.market.bids.models import DEFAULT_REJECTION_REASON, Bid, BidStatus
from gigboard.market.bids.service import BidPage, BidService
from gigboard.market.bids.storage import (
    BID_SORT_FIELDS,
    DUPLICATE_BID_MESSAGE,
    BidStorage,
    InMemoryBidStorage,
    SupabaseBidStorage,
)

__all__ = [
    # Models
    "Bid",
    "BidStatus",
    "DEFAULT_REJECTION_REASON",
    # Storage
    "BidStorage",
    "InMemoryBidStorage",
    "SupabaseBidStorage",
    "BID_SORT_FIELDS",
    "DUPLICATE_BID_MESSAGE",
    # Service
    "BidService",
    "BidPage",
]
