"""Legacy Record Models.

Typed views of the rows extracted from the legacy cellar database:
- LegacyActivity: One customer transaction (deposit, withdrawal, transfer)
- LegacyActivityLine: One wine/bottle/vintage movement inside an activity
- LegacyCaseDetail: One wine item stored in a legacy case

Field aliases are the legacy column names, so extracted JSON rows validate
directly with ``model_validate``.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TransactionKind(str, Enum):
    """Kind of a legacy activity, derived from its one-letter code."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: Optional[str]) -> "TransactionKind":
        """Map D/W/T to a kind. Anything else is UNKNOWN, never a default kind."""
        return _TRANSACTION_CODES.get((code or "").strip(), cls.UNKNOWN)


_TRANSACTION_CODES = {
    "D": TransactionKind.DEPOSIT,
    "W": TransactionKind.WITHDRAWAL,
    "T": TransactionKind.TRANSFER,
}


class LineKind(str, Enum):
    """Known legacy ActivityType values."""
    BOTTLE = "Bottle"
    CASE = "Case"
    SUPPLY = "Supply"


class LegacyBase(BaseModel):
    """Base model for legacy rows (accepts column names or field names)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LegacyActivity(LegacyBase):
    """A customer-initiated transaction from the legacy Activities table.

    Attributes:
        activity_id: Legacy ActivityID
        account_id: Legacy AccountID of the customer
        transaction_code: Raw TransactionType letter
        transaction_kind: Kind derived from transaction_code
        legacy_status: Legacy Status code (1-4 are known)
        created_at: DateCreated
        updated_at: DateUpdated
    """
    activity_id: int = Field(..., alias="ActivityID")
    account_id: Optional[int] = Field(default=None, alias="AccountID")
    transaction_code: Optional[str] = Field(default=None, alias="TransactionType")
    transaction_kind: TransactionKind = Field(default=TransactionKind.UNKNOWN)
    legacy_status: Optional[int] = Field(default=None, alias="Status")
    created_at: Optional[datetime] = Field(default=None, alias="DateCreated")
    updated_at: Optional[datetime] = Field(default=None, alias="DateUpdated")

    @model_validator(mode="after")
    def _derive_transaction_kind(self) -> "LegacyActivity":
        self.transaction_kind = TransactionKind.from_code(self.transaction_code)
        return self


class LegacyActivityLine(LegacyBase):
    """One line of the legacy ActivityDetails table.

    Wine, bottle format and vintage may be missing; they are then read from
    the case detail the line references. Quantity is a count of bottles and
    carries no direction.
    """
    activity_detail_id: Optional[int] = Field(default=None, alias="ActivityDetailID")
    activity_id: Optional[int] = Field(default=None, alias="ActivityID")
    line_kind: Optional[str] = Field(default=None, alias="ActivityType")
    case_id: Optional[int] = Field(default=None, alias="CaseID")
    case_detail_id: Optional[int] = Field(default=None, alias="CaseDetailID")
    wine_item_id: Optional[int] = Field(default=None, alias="WineItemID")
    bottle_format_id: Optional[int] = Field(default=None, alias="BottleSizeID")
    vintage_id: Optional[int] = Field(default=None, alias="VintageID")
    quantity: int = Field(..., ge=0, alias="Quantity")
    created_at: Optional[datetime] = Field(default=None, alias="DateCreated")
    updated_at: Optional[datetime] = Field(default=None, alias="DateUpdated")

    @model_validator(mode="after")
    def _require_case_for_inventory_lines(self) -> "LegacyActivityLine":
        if self.line_kind in (LineKind.BOTTLE.value, LineKind.CASE.value) and self.case_id is None:
            raise ValueError(f"{self.line_kind} line {self.activity_detail_id} has no CaseID")
        return self

    @property
    def is_supply(self) -> bool:
        return self.line_kind == LineKind.SUPPLY.value


class LegacyCaseDetail(LegacyBase):
    """A wine item held in a legacy case (CaseDetails table)."""
    case_detail_id: int = Field(..., alias="legacy_case_detail_id")
    case_id: Optional[int] = Field(default=None, alias="legacy_case_id")
    wine_item_id: Optional[int] = Field(default=None, alias="legacy_wine_item_id")
    bottle_format_id: Optional[int] = Field(default=None, alias="legacy_bottle_size_id")
    vintage_id: Optional[int] = Field(default=None, alias="legacy_vintage_id")
    wine_quantity: int = Field(default=0, alias="WineQuantity")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
