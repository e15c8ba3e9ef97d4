"""Activity-to-operation reconciliation engine.

Walks legacy activities and rebuilds them as operation groups, case
operations and inventory ledger entries in the target store.

Exposes:
- ActivityReconciler.run(account_id=None, clear_existing=False) -> ReconciliationSummary
- ActivityReconciler.migrate_activity(legacy_activity_id, clear_existing=False)

Deposits and withdrawals reuse one case operation per (group, case).
Transfers create a fresh withdrawal/deposit pair for every bottle line, so
each line posts the same quantity to both legs.

Every activity is committed on its own. A store error propagates and leaves
the activities committed before it in place.
"""

from typing import List, Optional, Tuple

from core.errors import ActivityNotFoundError, MissingDependencyError, UnmappedStatusError
from core.observability.logging import get_logger, with_correlation
from identity_resolver.backfill import CaseDetailBackfill
from identity_resolver.models import IdentityKind
from identity_resolver.resolver import IdentityResolver
from legacy_source.loader import LegacyRecordSource
from legacy_source.models import (
    LegacyActivity,
    LegacyActivityLine,
    LineKind,
    TransactionKind,
)
from reconciliation.ledger import InventoryLedgerWriter, PostOutcome
from reconciliation.models import ReconciliationSummary, SkipReason
from reconciliation.status import map_legacy_status
from target_store.db import TargetStore
from target_store.models import CaseOperationKind, OperationStatus


logger = get_logger(__name__)

SIMPLE_KINDS = {
    TransactionKind.DEPOSIT: CaseOperationKind.DEPOSIT,
    TransactionKind.WITHDRAWAL: CaseOperationKind.WITHDRAWAL,
}

# Line property -> (identity kind, skip reason when it cannot be resolved)
TUPLE_PROPERTIES = {
    "wine_item_id": (IdentityKind.WINE, SkipReason.UNRESOLVED_WINE),
    "bottle_format_id": (IdentityKind.BOTTLE_FORMAT, SkipReason.UNRESOLVED_BOTTLE_FORMAT),
    "vintage_id": (IdentityKind.BOTTLE_VINTAGE, SkipReason.UNRESOLVED_BOTTLE_VINTAGE),
}


class ActivityReconciler:
    """Reconciles legacy activities into the target store for one tenant.

    Example:
        reconciler = ActivityReconciler(source, store)
        summary = reconciler.run()
        print(summary.format_summary())
    """

    def __init__(
        self,
        source: LegacyRecordSource,
        store: TargetStore,
        resolver: Optional[IdentityResolver] = None,
        summary: Optional[ReconciliationSummary] = None,
        confirmed_status: int = 1,
    ):
        """Initialize the reconciler.

        Args:
            source: Legacy activities, lines and case details
            store: Tenant-scoped target store
            resolver: Identity resolver shared with other steps of the run
            summary: Summary to accumulate into (a new one by default)
            confirmed_status: Legacy status code selected by ``run``
        """
        self.source = source
        self.store = store
        self.resolver = resolver or IdentityResolver(store)
        self.summary = summary or ReconciliationSummary()
        self.confirmed_status = confirmed_status
        self.backfill = CaseDetailBackfill(source, self.resolver)
        self.ledger = InventoryLedgerWriter(store)

        for message in source.invalid_row_messages:
            self.summary.skip(SkipReason.INVALID_LEGACY_ROW, message)

    # =========================================================================
    # Entry points
    # =========================================================================

    def run(self, account_id: Optional[int] = None, clear_existing: bool = False) -> ReconciliationSummary:
        """Reconcile the confirmed activities of every customer of the tenant.

        Args:
            account_id: Restrict the run to one legacy account
            clear_existing: Delete all migrated groups of the tenant first

        Returns:
            The run summary
        """
        if clear_existing:
            logger.info("Clearing existing operations, groups and ledger entries")
            self.store.clear_operations()
            self.store.commit()

        customers = self.store.list_customers()
        if account_id is not None:
            customers = [(legacy, cid) for legacy, cid in customers if str(legacy) == str(account_id)]

        if not customers:
            logger.warning("No customers found, skipping operation groups")
            return self.summary

        for legacy_account_id, customer_id in customers:
            with with_correlation(legacy_account_id=legacy_account_id):
                activities = self.source.list_activities(legacy_account_id, status=self.confirmed_status)
                if not activities:
                    logger.debug(f"No activities found for legacy account {legacy_account_id}")
                    continue

                for activity in activities:
                    self.reconcile_activity(customer_id, activity)

        self.summary.placeholder_wines_created = self.resolver.placeholders_created
        logger.info(
            f"Operation groups: {self.summary.groups_created} inserted, "
            f"{self.summary.total_skipped} skipped"
        )
        return self.summary

    def migrate_activity(self, legacy_activity_id: int, clear_existing: bool = False) -> Optional[str]:
        """Migrate a single legacy activity regardless of its status.

        Args:
            legacy_activity_id: Legacy ActivityID
            clear_existing: Delete a prior migration of this activity first

        Returns:
            The new group id, or None if the activity was skipped

        Raises:
            ActivityNotFoundError: If the activity is not in the legacy data
            MissingDependencyError: If its customer or a referenced case is not migrated
        """
        activity = self.source.get_activity(legacy_activity_id)
        if activity is None:
            raise ActivityNotFoundError(legacy_activity_id)

        with with_correlation(legacy_activity_id=activity.activity_id, legacy_account_id=activity.account_id):
            logger.info(
                f"Found activity {activity.activity_id}: {activity.transaction_kind.value} "
                f"for account {activity.account_id}"
            )
            customer_id = self.validate_dependencies(activity)

            if clear_existing and self.store.delete_activity(activity.activity_id):
                logger.info(f"Cleared existing migration of activity {activity.activity_id}")
                self.store.commit()

            group_id = self.reconcile_activity(customer_id, activity)

        self.summary.placeholder_wines_created = self.resolver.placeholders_created
        return group_id

    def validate_dependencies(self, activity: LegacyActivity) -> str:
        """Check that the customer and every referenced case are migrated.

        Returns:
            The resolved customer id

        Raises:
            MissingDependencyError: On the first unresolved dependency
        """
        customer_id = self.resolver.resolve(IdentityKind.CUSTOMER, activity.account_id)
        if customer_id is None:
            raise MissingDependencyError(
                f"Customer with legacy account {activity.account_id} not found. "
                f"Run the user import first.",
                kind=IdentityKind.CUSTOMER.value,
                legacy_id=str(activity.account_id),
            )

        legacy_case_ids = {
            line.case_id for line in self.source.list_inventory_lines(activity.activity_id)
            if line.case_id is not None
        }
        for legacy_case_id in sorted(legacy_case_ids):
            if self.resolver.resolve(IdentityKind.CASE, legacy_case_id) is None:
                raise MissingDependencyError(
                    f"Case with legacy id {legacy_case_id} not found. Run the case import first.",
                    kind=IdentityKind.CASE.value,
                    legacy_id=str(legacy_case_id),
                )
        return customer_id

    # =========================================================================
    # Activity level
    # =========================================================================

    def reconcile_activity(self, customer_id: str, activity: LegacyActivity) -> Optional[str]:
        """Build the group for one activity, dispatch on its kind, and commit.

        Returns:
            The new group id, or None if the activity was skipped whole
        """
        with with_correlation(legacy_activity_id=activity.activity_id, stage="reconcile"):
            self.summary.activities_seen += 1

            if self.store.find_group_by_legacy_activity(activity.activity_id):
                self._skip(
                    SkipReason.ALREADY_MIGRATED,
                    f"Activity {activity.activity_id} already migrated, skipping",
                    activity,
                )
                return None

            try:
                map_legacy_status(activity.legacy_status)
            except UnmappedStatusError as e:
                self._skip(SkipReason.UNMAPPED_STATUS, f"{e}, skipping activity", activity)
                return None

            group_id = self.build_group(customer_id, activity)

            if activity.transaction_kind in SIMPLE_KINDS:
                self.reconcile_simple(group_id, activity)
            elif activity.transaction_kind == TransactionKind.TRANSFER:
                self.reconcile_transfer(group_id, activity)
            else:
                self._skip(
                    SkipReason.UNKNOWN_TRANSACTION_KIND,
                    f"Unknown transaction type {activity.transaction_code!r} "
                    f"for activity {activity.activity_id}",
                    activity,
                )

            self.store.commit()
            return group_id

    def build_group(self, customer_id: str, activity: LegacyActivity) -> str:
        """Create the operation group of an activity.

        Raises:
            UnmappedStatusError: If the legacy status has no target status
        """
        status = map_legacy_status(activity.legacy_status)
        group_id = self.store.insert_operation_group(
            customer_id,
            status,
            activity.activity_id,
            created_at=activity.created_at,
            updated_at=activity.updated_at,
        )
        self.summary.groups_created += 1
        logger.debug(f"Created operation group {group_id} ({status.value})")
        return group_id

    # =========================================================================
    # Deposit / withdrawal
    # =========================================================================

    def reconcile_simple(self, group_id: str, activity: LegacyActivity) -> None:
        """Post every line to the single operation of its case in this group."""
        kind = SIMPLE_KINDS[activity.transaction_kind]
        status = map_legacy_status(activity.legacy_status)

        lines = self._inventory_lines(activity)
        for line in lines:
            with with_correlation(legacy_activity_detail_id=line.activity_detail_id):
                case_id = self.resolver.resolve(IdentityKind.CASE, line.case_id)
                if case_id is None:
                    self._skip(
                        SkipReason.UNRESOLVED_CASE,
                        f"No case found for legacy case {line.case_id}, skipping",
                        activity,
                        line,
                    )
                    continue

                operation_id = self.store.find_case_operation(group_id, case_id)
                if operation_id is None:
                    operation_id = self._create_operation(group_id, case_id, kind, status, activity)

                resolved = self._resolve_line_tuple(activity, line)
                if resolved is None:
                    continue

                self._post(operation_id, resolved, line.quantity)

    # =========================================================================
    # Transfer
    # =========================================================================

    def reconcile_transfer(self, group_id: str, activity: LegacyActivity) -> None:
        """Create a withdrawal and a deposit operation for every bottle line."""
        status = map_legacy_status(activity.legacy_status)

        for line in self._inventory_lines(activity):
            with with_correlation(legacy_activity_detail_id=line.activity_detail_id, stage="transfer"):
                if line.line_kind == LineKind.CASE.value:
                    logger.debug(f"Skipping case relocation line {line.activity_detail_id}")
                    continue

                if line.line_kind != LineKind.BOTTLE.value:
                    self._skip(
                        SkipReason.UNSUPPORTED_LINE_KIND,
                        f"Unsupported transfer line type {line.line_kind!r}, skipping",
                        activity,
                        line,
                    )
                    continue

                source_case_id = self.backfill.source_case_id(line.case_detail_id)
                if source_case_id is None:
                    reason = (
                        SkipReason.MISSING_CASE_DETAIL
                        if self._case_detail_missing(line)
                        else SkipReason.UNRESOLVED_SOURCE_CASE
                    )
                    self._skip(
                        reason,
                        f"No source case for case detail {line.case_detail_id}, skipping",
                        activity,
                        line,
                    )
                    continue

                destination_case_id = self.resolver.resolve(IdentityKind.CASE, line.case_id)
                if destination_case_id is None:
                    self._skip(
                        SkipReason.UNRESOLVED_CASE,
                        f"No destination case found for legacy case {line.case_id}, skipping",
                        activity,
                        line,
                    )
                    continue

                resolved = self._resolve_line_tuple(activity, line)
                if resolved is None:
                    continue

                withdrawal_id = self._create_operation(
                    group_id, source_case_id, CaseOperationKind.WITHDRAWAL, status, activity
                )
                self._post(withdrawal_id, resolved, line.quantity)

                deposit_id = self._create_operation(
                    group_id, destination_case_id, CaseOperationKind.DEPOSIT, status, activity
                )
                self._post(deposit_id, resolved, line.quantity)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _inventory_lines(self, activity: LegacyActivity) -> List[LegacyActivityLine]:
        lines = self.source.list_inventory_lines(activity.activity_id)
        if not lines:
            self._skip(
                SkipReason.NO_LINE_ITEMS,
                f"No activity details found for activity {activity.activity_id}, skipping",
                activity,
            )
        return lines

    def _case_detail_missing(self, line: LegacyActivityLine) -> bool:
        return line.case_detail_id is None or self.source.get_case_detail(line.case_detail_id) is None

    def _resolve_line_tuple(
        self,
        activity: LegacyActivity,
        line: LegacyActivityLine,
    ) -> Optional[Tuple[str, str, str]]:
        """Resolve (wine, bottle format, vintage) target ids for a line.

        Each value is read from the line, else from its case detail. Bottle
        formats and vintages must already exist. A wine without a target
        counterpart gets a placeholder, created only once the rest of the
        tuple has resolved.

        Returns:
            (wine_id, bottle_format_id, bottle_vintage_id), or None if skipped
        """
        legacy_values = {}
        for prop, (kind, reason) in TUPLE_PROPERTIES.items():
            legacy_value = getattr(line, prop)
            if legacy_value is None:
                legacy_value = self.backfill.backfill(line.case_detail_id, prop)

            if legacy_value is None:
                if self._case_detail_missing(line):
                    reason = SkipReason.MISSING_CASE_DETAIL
                self._skip(
                    reason,
                    f"No legacy {prop} on line {line.activity_detail_id} or its case detail, skipping",
                    activity,
                    line,
                )
                return None
            legacy_values[prop] = legacy_value

        resolved = {}
        for prop in ("bottle_format_id", "vintage_id"):
            kind, reason = TUPLE_PROPERTIES[prop]
            target_id = self.resolver.resolve(kind, legacy_values[prop])
            if target_id is None:
                self._skip(
                    reason,
                    f"No {kind.value} found for legacy id {legacy_values[prop]}, skipping",
                    activity,
                    line,
                )
                return None
            resolved[prop] = target_id

        wine_id = self.resolver.ensure_wine(legacy_values["wine_item_id"])
        return wine_id, resolved["bottle_format_id"], resolved["vintage_id"]

    def _create_operation(
        self,
        group_id: str,
        case_id: str,
        kind: CaseOperationKind,
        status: OperationStatus,
        activity: LegacyActivity,
    ) -> str:
        operation_id = self.store.insert_case_operation(
            group_id,
            case_id,
            kind,
            status,
            activity.activity_id,
            created_at=activity.created_at,
            updated_at=activity.updated_at,
        )
        self.summary.case_operations_created += 1
        logger.debug(f"Created {kind.value} operation {operation_id} on case {case_id}")
        return operation_id

    def _post(self, operation_id: str, resolved: Tuple[str, str, str], quantity: int) -> None:
        wine_id, bottle_format_id, bottle_vintage_id = resolved
        outcome = self.ledger.post(operation_id, wine_id, bottle_format_id, bottle_vintage_id, quantity)
        if outcome == PostOutcome.INSERTED:
            self.summary.ledger_entries_inserted += 1
        else:
            self.summary.ledger_entries_accumulated += 1

    def _skip(
        self,
        reason: SkipReason,
        message: str,
        activity: LegacyActivity,
        line: Optional[LegacyActivityLine] = None,
    ) -> None:
        detail_id = line.activity_detail_id if line else None
        self.summary.skip(reason, message, activity.activity_id, detail_id)
        logger.warning(message, extra_fields={"reason": reason.value})
