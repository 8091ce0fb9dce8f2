"""Gigs subsystem.

Models:
- Gig: A job posting owned by a client
- GigStatus: Gig lifecycle status

Storage:
- GigStorage: Protocol implemented by every backend
- InMemoryGigStorage, SupabaseGigStorage

Service:
- GigService: Create, browse, edit and remove gigs
"""

from gigboard.market.gigs.models import EDITABLE_FIELDS, HIRE_FIELDS, Gig, GigStatus
from gigboard.market.gigs.service import GigPage, GigService
from gigboard.market.gigs.storage import (
    GIG_SORT_FIELDS,
    GigStorage,
    InMemoryGigStorage,
    SupabaseGigStorage,
)

__all__ = [
    # Models
    "Gig",
    "GigStatus",
    "EDITABLE_FIELDS",
    "HIRE_FIELDS",
    # Storage
    "GigStorage",
    "InMemoryGigStorage",
    "SupabaseGigStorage",
    "GIG_SORT_FIELDS",
    # Service
    "GigService",
    "GigPage",
]
