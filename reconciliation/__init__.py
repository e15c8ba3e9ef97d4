"""Reconciliation - Legacy activities rebuilt as grouped case operations.

Usage:
    from reconciliation import ActivityReconciler, seed_case_inventory_snapshots

    reconciler = ActivityReconciler(source, store, confirmed_status=1)
    summary = reconciler.run()
    seed_case_inventory_snapshots(source, store, reconciler.resolver, summary)
    print(summary.format_summary())
"""

from reconciliation.models import SkipReason, SkipRecord, ReconciliationSummary
from reconciliation.status import LEGACY_STATUS_MAP, map_legacy_status
from reconciliation.ledger import InventoryLedgerWriter, PostOutcome
from reconciliation.engine import ActivityReconciler
from reconciliation.snapshots import seed_case_inventory_snapshots

__all__ = [
    # Results
    "SkipReason",
    "SkipRecord",
    "ReconciliationSummary",
    # Status
    "LEGACY_STATUS_MAP",
    "map_legacy_status",
    # Ledger
    "InventoryLedgerWriter",
    "PostOutcome",
    # Engine
    "ActivityReconciler",
    "seed_case_inventory_snapshots",
]
