"""Target Store - Tenant-scoped writes into the new cellar schema.

This package owns the SQLite target database the migration loads into:

Key Features:
- Schema bootstrap for tenants, reference rows, groups, operations and ledger
- Lookups by stored legacy identifier, scoped to one tenant
- Find-then-insert helpers for case operations and ledger entries
- Per-activity and full clearing for re-runs

Usage:
    from target_store import TargetStore, get_db_connection, init_target_store_db, ensure_tenant

    conn = get_db_connection(Path("migration.db"))
    init_target_store_db(conn)
    store = TargetStore(conn, ensure_tenant(conn, "Veritas002", "VERITAS-002"))
"""

from target_store.models import (
    OperationStatus,
    CaseOperationKind,
    OperationGroup,
    CaseOperation,
    InventoryLedgerEntry,
)
from target_store.db import (
    LEGACY_LOOKUPS,
    TargetStore,
    get_db_connection,
    init_target_store_db,
    ensure_tenant,
)

__all__ = [
    # Models
    "OperationStatus",
    "CaseOperationKind",
    "OperationGroup",
    "CaseOperation",
    "InventoryLedgerEntry",
    # Database
    "LEGACY_LOOKUPS",
    "TargetStore",
    "get_db_connection",
    "init_target_store_db",
    "ensure_tenant",
]
