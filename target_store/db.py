"""Target Store Database Operations.

This module handles all database operations against the new schema:
- Schema initialization
- Tenant bootstrap
- Legacy-id lookups for customers, cases, wines, bottle formats and vintages
- Inserts and reads of operation groups, case operations and inventory entries

All queries are scoped to one tenant through ``TargetStore``. The store is
used by a single sequential run, so find-then-insert is not guarded against
concurrent writers.
"""

import json
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from target_store.models import (
    CaseOperation,
    CaseOperationKind,
    InventoryLedgerEntry,
    OperationGroup,
    OperationStatus,
)


# Lookup kind -> (table, legacy id column)
LEGACY_LOOKUPS: Dict[str, Tuple[str, str]] = {
    "customer": ("users", "legacy_user_id"),
    "case": ("cases", "legacy_id"),
    "wine": ("wines", "legacy_id"),
    "bottle_format": ("wine_bottle_formats", "legacy_id"),
    "bottle_vintage": ("wine_bottle_vintages", "legacy_id"),
}


def get_db_connection(db_path: Path) -> sqlite3.Connection:
    """Get database connection with row factory and foreign keys on."""
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def _now() -> str:
    return datetime.utcnow().isoformat()


def _ts(value: Optional[datetime]) -> str:
    return value.isoformat() if value else _now()


def _new_id() -> str:
    return str(uuid.uuid4())


def init_target_store_db(conn: sqlite3.Connection) -> None:
    """Initialize the target schema tables.

    Creates:
    - tenants: Tenants rows are migrated into
    - users, cases, wines, wine_bottle_formats, wine_bottle_vintages:
      reference rows carrying the legacy id they were imported from
    - operations_groups: One per legacy activity, unique legacy_activity_id per tenant
    - cases_operations: Deposit/withdrawal legs of a group
    - wine_inventory_entries: Per-operation ledger lines and case snapshots

    Args:
        conn: Open target database connection
    """
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS tenants (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            document_number TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            tenant_id TEXT NOT NULL REFERENCES tenants(id),
            email TEXT,
            legacy_user_id TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS cases (
            id TEXT PRIMARY KEY,
            tenant_id TEXT NOT NULL REFERENCES tenants(id),
            customer_id TEXT NOT NULL REFERENCES users(id),
            name TEXT NOT NULL,
            legacy_id TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS wines (
            id TEXT PRIMARY KEY,
            tenant_id TEXT NOT NULL REFERENCES tenants(id),
            description TEXT,
            legacy_id TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    for table in ("wine_bottle_formats", "wine_bottle_vintages"):
        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                tenant_id TEXT NOT NULL REFERENCES tenants(id),
                name TEXT,
                legacy_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS operations_groups (
            id TEXT PRIMARY KEY,
            tenant_id TEXT NOT NULL REFERENCES tenants(id),
            customer_id TEXT NOT NULL REFERENCES users(id),
            status TEXT NOT NULL,
            legacy_activity_id TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(tenant_id, legacy_activity_id)
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS cases_operations (
            id TEXT PRIMARY KEY,
            tenant_id TEXT NOT NULL REFERENCES tenants(id),
            case_id TEXT NOT NULL REFERENCES cases(id),
            type TEXT NOT NULL,
            status TEXT NOT NULL,
            logs TEXT NOT NULL DEFAULT '[]',
            request_id TEXT,
            synced_inventory INTEGER NOT NULL DEFAULT 1,
            reverted_on_inventory INTEGER NOT NULL DEFAULT 0,
            group_id TEXT NOT NULL REFERENCES operations_groups(id),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS wine_inventory_entries (
            id TEXT PRIMARY KEY,
            tenant_id TEXT NOT NULL REFERENCES tenants(id),
            operation_id TEXT REFERENCES cases_operations(id),
            case_id TEXT REFERENCES cases(id),
            wine_id TEXT NOT NULL REFERENCES wines(id),
            bottle_format_id TEXT NOT NULL REFERENCES wine_bottle_formats(id),
            bottle_vintage_id TEXT NOT NULL REFERENCES wine_bottle_vintages(id),
            amount INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    for table, column in LEGACY_LOOKUPS.values():
        cursor.execute(f"""
            CREATE INDEX IF NOT EXISTS idx_{table}_legacy_id
            ON {table}(tenant_id, {column})
        """)
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_cases_operations_group_case
        ON cases_operations(tenant_id, group_id, case_id)
    """)
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_wine_inventory_entries_operation
        ON wine_inventory_entries(tenant_id, operation_id, wine_id, bottle_format_id, bottle_vintage_id)
    """)

    conn.commit()


def ensure_tenant(
    conn: sqlite3.Connection,
    name: str,
    document_number: Optional[str] = None,
) -> str:
    """Create the tenant if it does not exist yet.

    Args:
        conn: Target database connection
        name: Tenant name (unique)
        document_number: Stored only when the tenant is created

    Returns:
        Tenant id
    """
    cursor = conn.cursor()
    cursor.execute("SELECT id FROM tenants WHERE name = ?", (name,))
    row = cursor.fetchone()
    if row:
        return row["id"]

    tenant_id = _new_id()
    now = _now()
    cursor.execute(
        "INSERT INTO tenants (id, name, document_number, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
        (tenant_id, name, document_number, now, now),
    )
    conn.commit()
    return tenant_id


def _row_to_operation_group(row: sqlite3.Row) -> OperationGroup:
    return OperationGroup(
        id=row["id"],
        tenant_id=row["tenant_id"],
        customer_id=row["customer_id"],
        status=OperationStatus(row["status"]),
        legacy_activity_id=row["legacy_activity_id"],
        created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
        updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
    )


def _row_to_case_operation(row: sqlite3.Row) -> CaseOperation:
    return CaseOperation(
        id=row["id"],
        tenant_id=row["tenant_id"],
        case_id=row["case_id"],
        type=CaseOperationKind(row["type"]),
        status=OperationStatus(row["status"]),
        group_id=row["group_id"],
        logs=json.loads(row["logs"]) if row["logs"] else [],
        request_id=row["request_id"],
        synced_inventory=bool(row["synced_inventory"]),
        reverted_on_inventory=bool(row["reverted_on_inventory"]),
        created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
        updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
    )


def _row_to_inventory_entry(row: sqlite3.Row) -> InventoryLedgerEntry:
    return InventoryLedgerEntry(
        id=row["id"],
        tenant_id=row["tenant_id"],
        operation_id=row["operation_id"],
        case_id=row["case_id"],
        wine_id=row["wine_id"],
        bottle_format_id=row["bottle_format_id"],
        bottle_vintage_id=row["bottle_vintage_id"],
        amount=row["amount"],
        created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
        updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
    )


class TargetStore:
    """Tenant-scoped access to the target database.

    Example:
        conn = get_db_connection(Path("migration.db"))
        init_target_store_db(conn)
        store = TargetStore(conn, ensure_tenant(conn, "Veritas002"))
        case_id = store.find_by_legacy_id("case", 10)
    """

    def __init__(self, conn: sqlite3.Connection, tenant_id: str):
        self.conn = conn
        self.tenant_id = tenant_id

    def commit(self) -> None:
        self.conn.commit()

    # =========================================================================
    # Legacy-id lookups and reference rows
    # =========================================================================

    def find_by_legacy_id(self, kind: str, legacy_id: Any) -> Optional[str]:
        """Find the target id of a row imported from a legacy id.

        Args:
            kind: One of customer, case, wine, bottle_format, bottle_vintage
            legacy_id: Legacy identifier (compared as text)

        Returns:
            Target id, or None if no row carries that legacy id
        """
        table, column = LEGACY_LOOKUPS[kind]
        cursor = self.conn.cursor()
        cursor.execute(
            f"SELECT id FROM {table} WHERE {column} = ? AND tenant_id = ?",
            (str(legacy_id), self.tenant_id),
        )
        row = cursor.fetchone()
        return row["id"] if row else None

    def list_customers(self) -> List[Tuple[str, str]]:
        """All (legacy_user_id, customer_id) pairs of the tenant, in legacy id order."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, legacy_user_id FROM users
            WHERE tenant_id = ? AND legacy_user_id IS NOT NULL
            ORDER BY CAST(legacy_user_id AS INTEGER), legacy_user_id
            """,
            (self.tenant_id,),
        )
        return [(row["legacy_user_id"], row["id"]) for row in cursor.fetchall()]

    def add_customer(self, legacy_user_id: Any, email: Optional[str] = None) -> str:
        customer_id = _new_id()
        now = _now()
        self.conn.execute(
            "INSERT INTO users (id, tenant_id, email, legacy_user_id, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
            (customer_id, self.tenant_id, email, str(legacy_user_id), now, now),
        )
        return customer_id

    def add_case(self, legacy_id: Any, customer_id: str, name: Optional[str] = None) -> str:
        case_id = _new_id()
        now = _now()
        self.conn.execute(
            "INSERT INTO cases (id, tenant_id, customer_id, name, legacy_id, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (case_id, self.tenant_id, customer_id, name or f"#{legacy_id}", str(legacy_id), now, now),
        )
        return case_id

    def add_wine(self, legacy_id: Any, description: Optional[str] = None) -> str:
        wine_id = _new_id()
        now = _now()
        self.conn.execute(
            "INSERT INTO wines (id, tenant_id, description, legacy_id, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
            (wine_id, self.tenant_id, description, str(legacy_id), now, now),
        )
        return wine_id

    def _add_named_reference(self, table: str, legacy_id: Any, name: Optional[str]) -> str:
        row_id = _new_id()
        now = _now()
        self.conn.execute(
            f"INSERT INTO {table} (id, tenant_id, name, legacy_id, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
            (row_id, self.tenant_id, name, str(legacy_id), now, now),
        )
        return row_id

    def add_bottle_format(self, legacy_id: Any, name: Optional[str] = None) -> str:
        return self._add_named_reference("wine_bottle_formats", legacy_id, name)

    def add_bottle_vintage(self, legacy_id: Any, name: Optional[str] = None) -> str:
        return self._add_named_reference("wine_bottle_vintages", legacy_id, name)

    # =========================================================================
    # Operation groups
    # =========================================================================

    def insert_operation_group(
        self,
        customer_id: str,
        status: OperationStatus,
        legacy_activity_id: Any,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> str:
        """Insert an operation group for a legacy activity.

        Raises:
            sqlite3.IntegrityError: If the legacy activity already has a group
        """
        group_id = _new_id()
        self.conn.execute(
            """
            INSERT INTO operations_groups
            (id, tenant_id, customer_id, status, legacy_activity_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                group_id,
                self.tenant_id,
                customer_id,
                status.value,
                str(legacy_activity_id),
                _ts(created_at),
                _ts(updated_at),
            ),
        )
        return group_id

    def find_group_by_legacy_activity(self, legacy_activity_id: Any) -> Optional[str]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id FROM operations_groups WHERE tenant_id = ? AND legacy_activity_id = ?",
            (self.tenant_id, str(legacy_activity_id)),
        )
        row = cursor.fetchone()
        return row["id"] if row else None

    def list_operation_groups(self) -> List[OperationGroup]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM operations_groups WHERE tenant_id = ? ORDER BY created_at, id",
            (self.tenant_id,),
        )
        return [_row_to_operation_group(row) for row in cursor.fetchall()]

    # =========================================================================
    # Case operations
    # =========================================================================

    def find_case_operation(self, group_id: str, case_id: str) -> Optional[str]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id FROM cases_operations WHERE group_id = ? AND case_id = ? AND tenant_id = ?",
            (group_id, case_id, self.tenant_id),
        )
        row = cursor.fetchone()
        return row["id"] if row else None

    def insert_case_operation(
        self,
        group_id: str,
        case_id: str,
        kind: CaseOperationKind,
        status: OperationStatus,
        legacy_activity_id: Any,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> str:
        """Insert a case operation already synced to inventory."""
        operation_id = _new_id()
        self.conn.execute(
            """
            INSERT INTO cases_operations
            (id, tenant_id, case_id, type, status, logs, request_id,
             synced_inventory, reverted_on_inventory, group_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, NULL, 1, 0, ?, ?, ?)
            """,
            (
                operation_id,
                self.tenant_id,
                case_id,
                kind.value,
                status.value,
                json.dumps([{"legacy_activity_id": str(legacy_activity_id)}]),
                group_id,
                _ts(created_at),
                _ts(updated_at),
            ),
        )
        return operation_id

    def list_case_operations(self, group_id: str) -> List[CaseOperation]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM cases_operations WHERE group_id = ? AND tenant_id = ? ORDER BY rowid",
            (group_id, self.tenant_id),
        )
        return [_row_to_case_operation(row) for row in cursor.fetchall()]

    # =========================================================================
    # Inventory entries
    # =========================================================================

    def find_inventory_entry(
        self,
        operation_id: str,
        wine_id: str,
        bottle_format_id: str,
        bottle_vintage_id: str,
    ) -> Optional[Tuple[str, int]]:
        """Find the ledger entry for an operation and tuple.

        Returns:
            (entry_id, amount), or None if no entry exists
        """
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, amount FROM wine_inventory_entries
            WHERE tenant_id = ?
            AND operation_id = ?
            AND wine_id = ?
            AND bottle_format_id = ?
            AND bottle_vintage_id = ?
            """,
            (self.tenant_id, operation_id, wine_id, bottle_format_id, bottle_vintage_id),
        )
        row = cursor.fetchone()
        return (row["id"], row["amount"]) if row else None

    def insert_inventory_entry(
        self,
        wine_id: str,
        bottle_format_id: str,
        bottle_vintage_id: str,
        amount: int,
        operation_id: Optional[str] = None,
        case_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> str:
        entry_id = _new_id()
        self.conn.execute(
            """
            INSERT INTO wine_inventory_entries
            (id, tenant_id, operation_id, case_id, wine_id, bottle_format_id,
             bottle_vintage_id, amount, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry_id,
                self.tenant_id,
                operation_id,
                case_id,
                wine_id,
                bottle_format_id,
                bottle_vintage_id,
                amount,
                _ts(created_at),
                _ts(updated_at),
            ),
        )
        return entry_id

    def update_inventory_amount(self, entry_id: str, amount: int) -> None:
        self.conn.execute(
            "UPDATE wine_inventory_entries SET amount = ?, updated_at = ? WHERE id = ? AND tenant_id = ?",
            (amount, _now(), entry_id, self.tenant_id),
        )

    def list_inventory_entries(
        self,
        operation_id: Optional[str] = None,
        case_id: Optional[str] = None,
    ) -> List[InventoryLedgerEntry]:
        """Ledger entries of an operation, or snapshot entries of a case.

        With neither argument, returns every entry of the tenant.
        """
        query = "SELECT * FROM wine_inventory_entries WHERE tenant_id = ?"
        params: List[Any] = [self.tenant_id]
        if operation_id:
            query += " AND operation_id = ?"
            params.append(operation_id)
        if case_id:
            query += " AND case_id = ? AND operation_id IS NULL"
            params.append(case_id)
        query += " ORDER BY rowid"

        cursor = self.conn.cursor()
        cursor.execute(query, params)
        return [_row_to_inventory_entry(row) for row in cursor.fetchall()]

    def delete_case_snapshots(self) -> int:
        """Delete on-hand snapshot entries (operation_id IS NULL) of the tenant."""
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM wine_inventory_entries WHERE tenant_id = ? AND operation_id IS NULL",
            (self.tenant_id,),
        )
        return cursor.rowcount

    # =========================================================================
    # Clearing
    # =========================================================================

    def delete_activity(self, legacy_activity_id: Any) -> int:
        """Delete the group, operations and ledger entries of one legacy activity.

        Returns:
            Number of operation groups deleted (0 or 1)
        """
        group_id = self.find_group_by_legacy_activity(legacy_activity_id)
        if not group_id:
            return 0

        cursor = self.conn.cursor()
        cursor.execute(
            """
            DELETE FROM wine_inventory_entries
            WHERE operation_id IN (SELECT id FROM cases_operations WHERE group_id = ?)
            AND tenant_id = ?
            """,
            (group_id, self.tenant_id),
        )
        cursor.execute(
            "DELETE FROM cases_operations WHERE group_id = ? AND tenant_id = ?",
            (group_id, self.tenant_id),
        )
        cursor.execute(
            "DELETE FROM operations_groups WHERE id = ? AND tenant_id = ?",
            (group_id, self.tenant_id),
        )
        return 1

    def clear_operations(self) -> None:
        """Delete every migrated operation, ledger entry and group of the tenant."""
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM wine_inventory_entries WHERE tenant_id = ? AND operation_id IS NOT NULL",
            (self.tenant_id,),
        )
        cursor.execute("DELETE FROM cases_operations WHERE tenant_id = ?", (self.tenant_id,))
        cursor.execute("DELETE FROM operations_groups WHERE tenant_id = ?", (self.tenant_id,))
