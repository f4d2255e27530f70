"""Dispatch core: identifier resolution, lifecycle, assignment and notifications."""

from porter.core.assignment import AssignmentCoordinator, AssignmentResult
from porter.core.fleet import FleetService
from porter.core.identifiers import EntityKind, IdentifierResolver, classify
from porter.core.lifecycle import JobResult, OrderLifecycleEngine
from porter.core.notifications import Broadcaster, Notifier
from porter.core.reconciliation import EntitySync, ReconciliationRecord

__all__ = [
    "AssignmentCoordinator",
    "AssignmentResult",
    "Broadcaster",
    "EntityKind",
    "EntitySync",
    "FleetService",
    "IdentifierResolver",
    "JobResult",
    "Notifier",
    "OrderLifecycleEngine",
    "ReconciliationRecord",
    "classify",
]
