"""Inventory ledger writer and target store tests."""

import sqlite3
from types import SimpleNamespace

import pytest

from reconciliation.ledger import InventoryLedgerWriter, PostOutcome
from target_store.db import TargetStore, ensure_tenant
from target_store.models import CaseOperationKind, OperationGroup, OperationStatus


@pytest.fixture
def operation_id(store, ids):
    group_id = store.insert_operation_group(ids["customer"], OperationStatus.PROCESSED, 501)
    return store.insert_case_operation(
        group_id, ids["case_10"], CaseOperationKind.DEPOSIT, OperationStatus.PROCESSED, 501
    )


class TestInventoryLedgerWriter:
    """Posting amounts by (operation, wine, format, vintage)."""

    def test_same_key_accumulates(self, store, ids, operation_id):
        writer = InventoryLedgerWriter(store)
        key = (operation_id, ids["wine_7"], ids["format_750"], ids["vintage_2015"])

        assert writer.post(*key, 3) == PostOutcome.INSERTED
        assert writer.post(*key, 4) == PostOutcome.ACCUMULATED

        entries = store.list_inventory_entries(operation_id=operation_id)
        assert len(entries) == 1
        assert entries[0].amount == 7

    def test_different_wine_gets_own_entry(self, store, ids, operation_id):
        writer = InventoryLedgerWriter(store)
        writer.post(operation_id, ids["wine_7"], ids["format_750"], ids["vintage_2015"], 3)
        writer.post(operation_id, ids["wine_8"], ids["format_750"], ids["vintage_2015"], 2)

        entries = store.list_inventory_entries(operation_id=operation_id)
        assert sorted(e.amount for e in entries) == [2, 3]

    def test_zero_amount_still_creates_entry(self, store, ids, operation_id):
        writer = InventoryLedgerWriter(store)
        assert writer.post(operation_id, ids["wine_7"], ids["format_750"], ids["vintage_2015"], 0) == PostOutcome.INSERTED
        assert store.list_inventory_entries(operation_id=operation_id)[0].amount == 0

    def test_negative_amount_rejected(self, store, ids, operation_id):
        writer = InventoryLedgerWriter(store)
        with pytest.raises(ValueError):
            writer.post(operation_id, ids["wine_7"], ids["format_750"], ids["vintage_2015"], -1)
        assert store.list_inventory_entries() == []


class TestTargetStore:
    """Tenant scoping, groups and clearing."""

    def test_ensure_tenant_is_idempotent(self, conn):
        first = ensure_tenant(conn, "Veritas002", "VERITAS-002")
        second = ensure_tenant(conn, "Veritas002", "OTHER")
        assert first == second
        row = conn.execute("SELECT document_number FROM tenants WHERE id = ?", (first,)).fetchone()
        assert row["document_number"] == "VERITAS-002"

    def test_lookups_are_tenant_scoped(self, conn, store, ids):
        other = TargetStore(conn, ensure_tenant(conn, "Other"))
        assert store.find_by_legacy_id("case", 10) == ids["case_10"]
        assert other.find_by_legacy_id("case", 10) is None
        assert store.find_by_legacy_id("case", "10") == ids["case_10"]

    def test_list_customers(self, store, ids):
        assert store.list_customers() == [
            ("1084096", ids["customer"]),
            ("2000001", ids["other_customer"]),
        ]

    def test_duplicate_group_for_activity_rejected(self, store, ids):
        store.insert_operation_group(ids["customer"], OperationStatus.PROCESSED, 501)
        with pytest.raises(sqlite3.IntegrityError):
            store.insert_operation_group(ids["customer"], OperationStatus.ON_HOLD, 501)

    def test_group_model_from_attributes(self, store, ids):
        store.insert_operation_group(ids["customer"], OperationStatus.ON_HOLD, 502)
        stored = store.list_operation_groups()[0]
        group = OperationGroup.model_validate(SimpleNamespace(**stored.model_dump()))
        assert group == stored
        assert group.status == OperationStatus.ON_HOLD

    def test_find_case_operation(self, store, ids, operation_id):
        group_id = store.find_group_by_legacy_activity(501)
        assert store.find_case_operation(group_id, ids["case_10"]) == operation_id
        assert store.find_case_operation(group_id, ids["case_30"]) is None

    def test_delete_activity(self, store, ids, operation_id):
        store.insert_inventory_entry(ids["wine_7"], ids["format_750"], ids["vintage_2015"], 2,
                                     operation_id=operation_id)
        store.insert_inventory_entry(ids["wine_7"], ids["format_750"], ids["vintage_2015"], 9,
                                     case_id=ids["case_10"])

        assert store.delete_activity(501) == 1
        assert store.delete_activity(501) == 0
        assert store.find_group_by_legacy_activity(501) is None
        assert [e.amount for e in store.list_inventory_entries()] == [9]

    def test_delete_case_snapshots_keeps_ledger(self, store, ids, operation_id):
        store.insert_inventory_entry(ids["wine_7"], ids["format_750"], ids["vintage_2015"], 2,
                                     operation_id=operation_id)
        store.insert_inventory_entry(ids["wine_7"], ids["format_750"], ids["vintage_2015"], 9,
                                     case_id=ids["case_10"])

        assert store.delete_case_snapshots() == 1
        assert [e.amount for e in store.list_inventory_entries()] == [2]
