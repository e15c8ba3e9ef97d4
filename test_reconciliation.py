"""
Reconciliation Tests

Validates the activity walk against a temporary target database:
1. Deposits and withdrawals keep one case operation per (group, case)
2. Transfers create a withdrawal/deposit pair per bottle line and conserve quantity
3. Unknown wines get one placeholder per run
4. Activity-level skips (status, kind, already migrated) and single-activity migration
5. Case inventory snapshots
"""

import pytest

from conftest import (
    CUSTOMER_ACCOUNT,
    OTHER_ACCOUNT,
    activity_row,
    case_detail_row,
    line_row,
    make_source,
)
from core.errors import ActivityNotFoundError, MissingDependencyError, UnmappedStatusError
from reconciliation import (
    ActivityReconciler,
    SkipReason,
    map_legacy_status,
    seed_case_inventory_snapshots,
)
from target_store.models import CaseOperationKind, OperationStatus


def operations_by_case(store, group_id):
    result = {}
    for op in store.list_case_operations(group_id):
        result.setdefault(op.case_id, []).append(op)
    return result


def ledger_total(store, operations):
    return sum(
        entry.amount
        for op in operations
        for entry in store.list_inventory_entries(operation_id=op.id)
    )


def skip_reasons(summary):
    return [record.reason for record in summary.skips]


class TestStatusMapping:
    """Legacy status codes map to target statuses."""

    @pytest.mark.parametrize("code,expected", [
        (1, OperationStatus.PROCESSED),
        (2, OperationStatus.ON_HOLD),
        (3, OperationStatus.CONFIRMED),
        (4, OperationStatus.ON_HOLD),
    ])
    def test_known_codes(self, code, expected):
        assert map_legacy_status(code) == expected

    @pytest.mark.parametrize("code", [0, 5, None])
    def test_unknown_codes_rejected(self, code):
        with pytest.raises(UnmappedStatusError):
            map_legacy_status(code)


class TestDepositWithdrawal:
    """Deposit and withdrawal activities."""

    def test_same_tuple_same_case_accumulates(self, store, ids):
        """Two lines on case 10 with the same tuple become one operation and one entry of 5."""
        source = make_source(
            activities=[activity_row(501, "D", status=1)],
            lines=[
                line_row(1, 501, case_id=10, wine=7, quantity=3),
                line_row(2, 501, case_id=10, wine=7, quantity=2),
            ],
        )
        summary = ActivityReconciler(source, store).run()

        groups = store.list_operation_groups()
        assert len(groups) == 1
        assert groups[0].status == OperationStatus.PROCESSED
        assert groups[0].legacy_activity_id == "501"
        assert groups[0].customer_id == ids["customer"]

        operations = store.list_case_operations(groups[0].id)
        assert len(operations) == 1
        assert operations[0].case_id == ids["case_10"]
        assert operations[0].type == CaseOperationKind.DEPOSIT
        assert operations[0].status == OperationStatus.PROCESSED
        assert operations[0].logs == [{"legacy_activity_id": "501"}]
        assert operations[0].synced_inventory is True
        assert operations[0].reverted_on_inventory is False

        entries = store.list_inventory_entries(operation_id=operations[0].id)
        assert len(entries) == 1
        assert entries[0].amount == 5
        assert entries[0].wine_id == ids["wine_7"]

        assert summary.groups_created == 1
        assert summary.case_operations_created == 1
        assert summary.ledger_entries_inserted == 1
        assert summary.ledger_entries_accumulated == 1
        assert summary.skips == []

    def test_one_operation_per_distinct_case(self, store, ids):
        source = make_source(
            activities=[activity_row(510, "W")],
            lines=[
                line_row(1, 510, case_id=10, quantity=1),
                line_row(2, 510, case_id=30, quantity=2),
                line_row(3, 510, case_id=10, wine=8, quantity=4),
                line_row(4, 510, case_id=30, quantity=1),
            ],
        )
        ActivityReconciler(source, store).run()

        group = store.list_operation_groups()[0]
        by_case = operations_by_case(store, group.id)
        assert set(by_case) == {ids["case_10"], ids["case_30"]}
        assert all(len(ops) == 1 for ops in by_case.values())
        assert all(ops[0].type == CaseOperationKind.WITHDRAWAL for ops in by_case.values())

        assert len(store.list_inventory_entries(operation_id=by_case[ids["case_10"]][0].id)) == 2
        assert ledger_total(store, by_case[ids["case_30"]]) == 3

    def test_supply_lines_are_ignored(self, store, ids):
        source = make_source(
            activities=[activity_row(520, "D")],
            lines=[
                line_row(1, 520, case_id=None, kind="Supply", quantity=12),
                line_row(2, 520, case_id=10, quantity=2),
                line_row(3, 520, case_id=30, kind="Supply", quantity=50),
            ],
        )
        ActivityReconciler(source, store).run()

        group = store.list_operation_groups()[0]
        operations = store.list_case_operations(group.id)
        assert [op.case_id for op in operations] == [ids["case_10"]]
        assert ledger_total(store, operations) == 2

    def test_unresolved_case_skips_line(self, store, ids):
        source = make_source(
            activities=[activity_row(530, "D")],
            lines=[
                line_row(1, 530, case_id=99, quantity=3),
                line_row(2, 530, case_id=10, quantity=2),
            ],
        )
        summary = ActivityReconciler(source, store).run()

        group = store.list_operation_groups()[0]
        operations = store.list_case_operations(group.id)
        assert len(operations) == 1
        assert ledger_total(store, operations) == 2
        assert skip_reasons(summary) == [SkipReason.UNRESOLVED_CASE]
        assert summary.skips[0].legacy_activity_detail_id == 1

    def test_missing_fields_backfilled_from_case_detail(self, store, ids):
        source = make_source(
            activities=[activity_row(540, "D")],
            lines=[
                line_row(1, 540, case_id=10, wine=None, bottle_format=None, vintage=None,
                         case_detail_id=900, quantity=2),
            ],
            case_details=[case_detail_row(900, case_id=20, wine=8)],
        )
        summary = ActivityReconciler(source, store).run()

        group = store.list_operation_groups()[0]
        operations = store.list_case_operations(group.id)
        entries = store.list_inventory_entries(operation_id=operations[0].id)
        assert len(entries) == 1
        assert entries[0].wine_id == ids["wine_8"]
        assert entries[0].bottle_format_id == ids["format_750"]
        assert entries[0].bottle_vintage_id == ids["vintage_2015"]
        assert summary.skips == []

    def test_missing_case_detail_skips_line(self, store, ids):
        source = make_source(
            activities=[activity_row(550, "D")],
            lines=[line_row(1, 550, case_id=10, wine=None, case_detail_id=404, quantity=2)],
        )
        summary = ActivityReconciler(source, store).run()

        assert store.list_inventory_entries() == []
        assert skip_reasons(summary) == [SkipReason.MISSING_CASE_DETAIL]
        assert summary.placeholder_wines_created == 0

    def test_unresolved_bottle_format_is_never_created(self, store, ids):
        source = make_source(
            activities=[activity_row(560, "D")],
            lines=[line_row(1, 560, case_id=10, bottle_format=375, quantity=2)],
        )
        summary = ActivityReconciler(source, store).run()

        assert store.list_inventory_entries() == []
        assert skip_reasons(summary) == [SkipReason.UNRESOLVED_BOTTLE_FORMAT]
        assert store.find_by_legacy_id("bottle_format", 375) is None

    def test_line_without_case_detail_reference_reports_missing_case_detail(self, store, ids):
        source = make_source(
            activities=[activity_row(565, "D")],
            lines=[line_row(1, 565, case_id=10, wine=None, case_detail_id=None, quantity=2)],
        )
        summary = ActivityReconciler(source, store).run()

        assert store.list_inventory_entries() == []
        assert skip_reasons(summary) == [SkipReason.MISSING_CASE_DETAIL]

    def test_unresolved_vintage_skips_line(self, store, ids):
        source = make_source(
            activities=[activity_row(570, "W")],
            lines=[line_row(1, 570, case_id=10, vintage=1999, quantity=2)],
        )
        summary = ActivityReconciler(source, store).run()

        assert store.list_inventory_entries() == []
        assert skip_reasons(summary) == [SkipReason.UNRESOLVED_BOTTLE_VINTAGE]


class TestTransfer:
    """Transfer activities."""

    def test_single_bottle_line_creates_two_legs(self, store, ids):
        source = make_source(
            activities=[activity_row(502, "T", status=3)],
            lines=[line_row(1, 502, case_id=30, wine=8, case_detail_id=900, quantity=4)],
            case_details=[case_detail_row(900, case_id=20, wine=8)],
        )
        reconciler = ActivityReconciler(source, store)
        group_id = reconciler.migrate_activity(502)

        group = store.list_operation_groups()[0]
        assert group.id == group_id
        assert group.status == OperationStatus.CONFIRMED

        operations = store.list_case_operations(group_id)
        assert [(op.case_id, op.type) for op in operations] == [
            (ids["case_20"], CaseOperationKind.WITHDRAWAL),
            (ids["case_30"], CaseOperationKind.DEPOSIT),
        ]
        assert all(op.status == OperationStatus.CONFIRMED for op in operations)

        for op in operations:
            entries = store.list_inventory_entries(operation_id=op.id)
            assert len(entries) == 1
            assert entries[0].amount == 4
            assert entries[0].wine_id == ids["wine_8"]

    def test_quantity_is_conserved_across_legs(self, store, ids):
        source = make_source(
            activities=[activity_row(503, "T")],
            lines=[
                line_row(1, 503, case_id=30, case_detail_id=900, quantity=4),
                line_row(2, 503, case_id=30, case_detail_id=900, quantity=6),
                line_row(3, 503, case_id=10, case_detail_id=901, quantity=1),
            ],
            case_details=[
                case_detail_row(900, case_id=20),
                case_detail_row(901, case_id=20, wine=7),
            ],
        )
        ActivityReconciler(source, store).run()

        group = store.list_operation_groups()[0]
        operations = store.list_case_operations(group.id)
        assert len(operations) == 6

        withdrawals = [op for op in operations if op.type == CaseOperationKind.WITHDRAWAL]
        deposits = [op for op in operations if op.type == CaseOperationKind.DEPOSIT]
        assert ledger_total(store, withdrawals) == 11
        assert ledger_total(store, deposits) == 11
        assert all(op.case_id == ids["case_20"] for op in withdrawals)

    def test_case_and_other_lines_are_skipped(self, store, ids):
        source = make_source(
            activities=[activity_row(504, "T")],
            lines=[
                line_row(1, 504, case_id=30, kind="Case", quantity=1),
                line_row(2, 504, case_id=None, kind="Locker", quantity=1),
                line_row(3, 504, case_id=30, case_detail_id=900, quantity=2),
            ],
            case_details=[case_detail_row(900, case_id=20)],
        )
        summary = ActivityReconciler(source, store).run()

        group = store.list_operation_groups()[0]
        assert len(store.list_case_operations(group.id)) == 2
        assert skip_reasons(summary) == [SkipReason.UNSUPPORTED_LINE_KIND]

    def test_unresolved_source_case_skips_line(self, store, ids):
        source = make_source(
            activities=[activity_row(505, "T")],
            lines=[line_row(1, 505, case_id=30, case_detail_id=900, quantity=2)],
            case_details=[case_detail_row(900, case_id=99)],
        )
        summary = ActivityReconciler(source, store).run()

        group = store.list_operation_groups()[0]
        assert store.list_case_operations(group.id) == []
        assert skip_reasons(summary) == [SkipReason.UNRESOLVED_SOURCE_CASE]

    def test_missing_case_detail_skips_line(self, store, ids):
        source = make_source(
            activities=[activity_row(506, "T")],
            lines=[line_row(1, 506, case_id=30, case_detail_id=None, quantity=2)],
        )
        summary = ActivityReconciler(source, store).run()

        assert store.list_inventory_entries() == []
        assert skip_reasons(summary) == [SkipReason.MISSING_CASE_DETAIL]

    def test_unresolved_destination_case_skips_line(self, store, ids):
        source = make_source(
            activities=[activity_row(507, "T")],
            lines=[line_row(1, 507, case_id=99, case_detail_id=900, quantity=2)],
            case_details=[case_detail_row(900, case_id=20)],
        )
        summary = ActivityReconciler(source, store).run()

        assert store.list_inventory_entries() == []
        assert skip_reasons(summary) == [SkipReason.UNRESOLVED_CASE]


class TestPlaceholderWines:
    """Unknown legacy wines."""

    def test_placeholder_created_once_and_reused(self, store, ids):
        source = make_source(
            activities=[activity_row(601, "D"), activity_row(602, "W")],
            lines=[
                line_row(1, 601, case_id=10, wine=555, quantity=2),
                line_row(2, 601, case_id=30, wine=555, quantity=1),
                line_row(3, 602, case_id=10, wine=555, quantity=1),
            ],
        )
        summary = ActivityReconciler(source, store).run()

        wine_ids = {entry.wine_id for entry in store.list_inventory_entries()}
        assert len(wine_ids) == 1
        placeholder_id = wine_ids.pop()
        assert store.find_by_legacy_id("wine", 555) == placeholder_id

        row = store.conn.execute("SELECT description FROM wines WHERE id = ?", (placeholder_id,)).fetchone()
        assert row["description"] == "Legacy Wine - Veritas - 555"

        count = store.conn.execute("SELECT COUNT(*) FROM wines WHERE legacy_id = '555'").fetchone()[0]
        assert count == 1
        assert summary.placeholder_wines_created == 1

    def test_no_placeholder_when_format_is_unresolved(self, store, ids):
        source = make_source(
            activities=[activity_row(603, "D")],
            lines=[line_row(1, 603, case_id=10, wine=4242, bottle_format=375, quantity=2)],
        )
        summary = ActivityReconciler(source, store).run()

        assert skip_reasons(summary) == [SkipReason.UNRESOLVED_BOTTLE_FORMAT]
        assert store.find_by_legacy_id("wine", 4242) is None
        assert summary.placeholder_wines_created == 0


class TestActivityLevel:
    """Skips and idempotency at the activity level."""

    def test_unmapped_status_creates_no_group(self, store, ids):
        source = make_source(
            activities=[activity_row(701, "D", status=9)],
            lines=[line_row(1, 701, case_id=10)],
        )
        reconciler = ActivityReconciler(source, store)

        assert reconciler.migrate_activity(701) is None
        assert store.list_operation_groups() == []
        assert skip_reasons(reconciler.summary) == [SkipReason.UNMAPPED_STATUS]

    def test_unknown_kind_creates_empty_group(self, store, ids):
        source = make_source(
            activities=[activity_row(702, "X")],
            lines=[line_row(1, 702, case_id=10)],
        )
        summary = ActivityReconciler(source, store).run()

        groups = store.list_operation_groups()
        assert len(groups) == 1
        assert store.list_case_operations(groups[0].id) == []
        assert skip_reasons(summary) == [SkipReason.UNKNOWN_TRANSACTION_KIND]

    def test_activity_without_lines(self, store, ids):
        source = make_source(activities=[activity_row(703, "D")])
        summary = ActivityReconciler(source, store).run()

        assert len(store.list_operation_groups()) == 1
        assert skip_reasons(summary) == [SkipReason.NO_LINE_ITEMS]

    def test_rerun_is_a_no_op(self, store, ids):
        source = make_source(
            activities=[activity_row(704, "T"), activity_row(705, "D")],
            lines=[
                line_row(1, 704, case_id=30, case_detail_id=900, quantity=4),
                line_row(2, 705, case_id=10, quantity=3),
            ],
            case_details=[case_detail_row(900, case_id=20)],
        )
        ActivityReconciler(source, store).run()
        second = ActivityReconciler(source, store).run()

        assert len(store.list_operation_groups()) == 2
        assert len(store.list_inventory_entries()) == 3
        assert second.groups_created == 0
        assert skip_reasons(second) == [SkipReason.ALREADY_MIGRATED, SkipReason.ALREADY_MIGRATED]

    def test_clear_existing_rebuilds(self, store, ids):
        source = make_source(
            activities=[activity_row(706, "D")],
            lines=[line_row(1, 706, case_id=10, quantity=3)],
        )
        ActivityReconciler(source, store).run()
        first_group = store.list_operation_groups()[0].id

        summary = ActivityReconciler(source, store).run(clear_existing=True)

        groups = store.list_operation_groups()
        assert len(groups) == 1
        assert groups[0].id != first_group
        assert summary.groups_created == 1
        assert [e.amount for e in store.list_inventory_entries()] == [3]

    def test_run_selects_confirmed_status_and_account(self, store, ids):
        source = make_source(
            activities=[
                activity_row(710, "D", status=1),
                activity_row(711, "D", status=2),
                activity_row(712, "D", status=1, account_id=OTHER_ACCOUNT),
            ],
            lines=[
                line_row(1, 710, case_id=10),
                line_row(2, 711, case_id=10),
                line_row(3, 712, case_id=40),
            ],
        )
        ActivityReconciler(source, store).run(account_id=CUSTOMER_ACCOUNT)

        assert [g.legacy_activity_id for g in store.list_operation_groups()] == ["710"]

    def test_confirmed_status_is_configurable(self, store, ids):
        source = make_source(
            activities=[activity_row(713, "D", status=1), activity_row(714, "D", status=3)],
            lines=[line_row(1, 713, case_id=10), line_row(2, 714, case_id=10)],
        )
        ActivityReconciler(source, store, confirmed_status=3).run()

        groups = store.list_operation_groups()
        assert [g.legacy_activity_id for g in groups] == ["714"]
        assert groups[0].status == OperationStatus.CONFIRMED


class TestMigrateSpecificActivity:
    """Single-activity migration with dependency validation."""

    def test_activity_not_found(self, store, ids):
        with pytest.raises(ActivityNotFoundError):
            ActivityReconciler(make_source(), store).migrate_activity(999)

    def test_missing_customer(self, store, ids):
        source = make_source(
            activities=[activity_row(801, "D", account_id=31337)],
            lines=[line_row(1, 801, case_id=10)],
        )
        with pytest.raises(MissingDependencyError) as exc_info:
            ActivityReconciler(source, store).migrate_activity(801)
        assert exc_info.value.kind == "customer"
        assert store.list_operation_groups() == []

    def test_missing_case(self, store, ids):
        source = make_source(
            activities=[activity_row(802, "D")],
            lines=[line_row(1, 802, case_id=10), line_row(2, 802, case_id=99)],
        )
        with pytest.raises(MissingDependencyError) as exc_info:
            ActivityReconciler(source, store).migrate_activity(802)
        assert exc_info.value.kind == "case"
        assert exc_info.value.legacy_id == "99"

    def test_status_is_not_filtered(self, store, ids):
        source = make_source(
            activities=[activity_row(803, "W", status=4)],
            lines=[line_row(1, 803, case_id=10, quantity=2)],
        )
        group_id = ActivityReconciler(source, store).migrate_activity(803)

        operations = store.list_case_operations(group_id)
        assert operations[0].status == OperationStatus.ON_HOLD
        assert operations[0].type == CaseOperationKind.WITHDRAWAL

    def test_already_migrated_without_clear(self, store, ids):
        source = make_source(
            activities=[activity_row(804, "D")],
            lines=[line_row(1, 804, case_id=10, quantity=2)],
        )
        ActivityReconciler(source, store).migrate_activity(804)
        reconciler = ActivityReconciler(source, store)

        assert reconciler.migrate_activity(804) is None
        assert skip_reasons(reconciler.summary) == [SkipReason.ALREADY_MIGRATED]
        assert len(store.list_inventory_entries()) == 1

    def test_clear_existing_replaces_prior_rows(self, store, ids):
        source = make_source(
            activities=[activity_row(805, "T")],
            lines=[line_row(1, 805, case_id=30, case_detail_id=900, quantity=4)],
            case_details=[case_detail_row(900, case_id=20)],
        )
        first = ActivityReconciler(source, store).migrate_activity(805)
        second = ActivityReconciler(source, store).migrate_activity(805, clear_existing=True)

        assert second is not None and second != first
        assert [g.id for g in store.list_operation_groups()] == [second]
        assert len(store.list_case_operations(first)) == 0
        assert sorted(e.amount for e in store.list_inventory_entries()) == [4, 4]


class TestCaseSnapshots:
    """On-hand inventory rebuilt from legacy case details."""

    def test_seed_and_reseed(self, store, ids):
        source = make_source(case_details=[
            case_detail_row(900, case_id=20, wine=8, quantity=6),
            case_detail_row(901, case_id=10, wine=7, quantity=0),
            case_detail_row(902, case_id=10, wine=555, quantity=3),
            case_detail_row(903, case_id=99, wine=7, quantity=2),
        ])
        reconciler = ActivityReconciler(source, store)

        assert seed_case_inventory_snapshots(source, store, reconciler.resolver) == (1, 3)
        assert seed_case_inventory_snapshots(source, store, reconciler.resolver, reconciler.summary) == (1, 3)

        snapshots = store.list_inventory_entries(case_id=ids["case_20"])
        assert len(snapshots) == 1
        assert snapshots[0].amount == 6
        assert snapshots[0].operation_id is None
        assert store.find_by_legacy_id("wine", 555) is None
        assert reconciler.summary.snapshot_entries_inserted == 1

    def test_snapshots_survive_operation_clear(self, store, ids):
        source = make_source(
            activities=[activity_row(901, "D")],
            lines=[line_row(1, 901, case_id=10, quantity=2)],
            case_details=[case_detail_row(900, case_id=20)],
        )
        reconciler = ActivityReconciler(source, store)
        reconciler.run()
        seed_case_inventory_snapshots(source, store, reconciler.resolver)

        ActivityReconciler(source, store).run(clear_existing=True)

        assert len(store.list_inventory_entries(case_id=ids["case_20"])) == 1
        assert len(store.list_inventory_entries()) == 2


class TestInvalidRows:
    """Rows dropped at load time show up in the summary."""

    def test_invalid_rows_itemized(self, store, ids):
        source = make_source(
            activities=[activity_row(950, "D")],
            lines=[line_row(1, 950, case_id=10, quantity=2), line_row(2, 950, quantity=-5)],
        )
        summary = ActivityReconciler(source, store).run()

        assert skip_reasons(summary) == [SkipReason.INVALID_LEGACY_ROW]
        assert summary.ledger_entries_inserted == 1

    def test_row_without_quantity_is_invalid(self, store, ids):
        no_quantity = line_row(2, 951, case_id=20)
        del no_quantity["Quantity"]
        source = make_source(
            activities=[activity_row(951, "D")],
            lines=[line_row(1, 951, case_id=10, quantity=2), no_quantity],
        )
        summary = ActivityReconciler(source, store).run()

        assert source.invalid_rows == 1
        assert skip_reasons(summary) == [SkipReason.INVALID_LEGACY_ROW]
        assert summary.ledger_entries_inserted == 1
        assert [op.case_id for op in store.list_case_operations(store.find_group_by_legacy_activity(951))] == [
            ids["case_10"]
        ]


class TestSummary:
    """Run summary as structured data."""

    def test_to_dict_counts(self, store, ids):
        source = make_source(
            activities=[activity_row(960, "D")],
            lines=[
                line_row(1, 960, case_id=10, quantity=2),
                line_row(2, 960, case_id=99, quantity=1),
            ],
        )
        summary = ActivityReconciler(source, store).run()
        data = summary.to_dict()

        assert data["groups_created"] == 1
        assert data["ledger_entries_inserted"] == 1
        assert data["skipped"] == {"unresolved_case": 1}
        assert data["skips"][0]["legacy_activity_id"] == 960
