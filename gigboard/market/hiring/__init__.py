"""Hiring transition and its repair.

- HiringCoordinator: accept one bid, reject the rest, close the gig
- HiringReconciler: repair gigs left behind by an interrupted hire
"""

from gigboard.market.hiring.coordinator import HireAttempt, HireResult, HireStage, HiringCoordinator
from gigboard.market.hiring.reconcile import HiringReconciler, ReconcileAction, ReconcileReport

__all__ = [
    "HiringCoordinator",
    "HireAttempt",
    "HireResult",
    "HireStage",
    "HiringReconciler",
    "ReconcileAction",
    "ReconcileReport",
]
