"""Inventory Ledger Writer.

Posts amounts keyed by (operation, wine, bottle format, vintage). A second
post for the same key adds to the existing entry. Runs are single-threaded,
so the select-then-write pair is not atomic.
"""

from enum import Enum

from core.observability.logging import get_logger
from target_store.db import TargetStore


logger = get_logger(__name__)


class PostOutcome(str, Enum):
    INSERTED = "inserted"
    ACCUMULATED = "accumulated"


class InventoryLedgerWriter:
    """Upserts inventory ledger entries for case operations."""

    def __init__(self, store: TargetStore):
        self.store = store

    def post(
        self,
        operation_id: str,
        wine_id: str,
        bottle_format_id: str,
        bottle_vintage_id: str,
        amount: int,
    ) -> PostOutcome:
        """Add ``amount`` to the entry for this operation and tuple.

        Args:
            operation_id: Case operation the amount moves under
            wine_id: Target wine id
            bottle_format_id: Target bottle format id
            bottle_vintage_id: Target bottle vintage id
            amount: Bottle count, never negative

        Returns:
            INSERTED for a new entry, ACCUMULATED when an entry was summed
        """
        if amount < 0:
            raise ValueError(f"Ledger amount must not be negative: {amount}")

        existing = self.store.find_inventory_entry(
            operation_id, wine_id, bottle_format_id, bottle_vintage_id
        )
        if existing:
            entry_id, existing_amount = existing
            self.store.update_inventory_amount(entry_id, existing_amount + amount)
            logger.debug(
                f"Accumulated {amount} onto ledger entry {entry_id} "
                f"({existing_amount} -> {existing_amount + amount})"
            )
            return PostOutcome.ACCUMULATED

        entry_id = self.store.insert_inventory_entry(
            wine_id, bottle_format_id, bottle_vintage_id, amount, operation_id=operation_id
        )
        logger.debug(f"Inserted ledger entry {entry_id} for operation {operation_id}: {amount}")
        return PostOutcome.INSERTED
