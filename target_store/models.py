"""Target Store Data Models.

Rows of the new multi-tenant schema written by the migration:
- OperationGroup: One group per migrated legacy activity
- CaseOperation: One case's deposit or withdrawal leg inside a group
- InventoryLedgerEntry: Amount of one wine/format/vintage moved by an operation,
  or held by a case when operation_id is None (on-hand snapshot)
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OperationStatus(str, Enum):
    """Lifecycle status shared by operation groups and case operations."""
    PROCESSED = "processed"
    ON_HOLD = "on_hold"
    CONFIRMED = "confirmed"


class CaseOperationKind(str, Enum):
    """Direction of a case operation. Transfers become one of each."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class OperationGroup(BaseModel):
    """Grouping of case operations produced by one legacy activity.

    Attributes:
        id: UUID of the group
        tenant_id: Owning tenant
        customer_id: Resolved customer (users.id)
        status: Status mapped from the legacy status code
        legacy_activity_id: Legacy ActivityID, unique per tenant
        created_at: Legacy DateCreated
        updated_at: Legacy DateUpdated
    """
    id: str
    tenant_id: str
    customer_id: str
    status: OperationStatus
    legacy_activity_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CaseOperation(BaseModel):
    """One case's participation in an operation group."""
    id: str
    tenant_id: str
    case_id: str
    type: CaseOperationKind
    status: OperationStatus
    group_id: str
    logs: List[Dict[str, Any]] = Field(default_factory=list)
    request_id: Optional[str] = None
    synced_inventory: bool = True
    reverted_on_inventory: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InventoryLedgerEntry(BaseModel):
    """Quantity of one (wine, bottle format, vintage) tuple.

    Unique per (operation_id, wine_id, bottle_format_id, bottle_vintage_id)
    when operation_id is set. Snapshot entries carry case_id instead.
    """
    id: str
    tenant_id: str
    operation_id: Optional[str] = None
    case_id: Optional[str] = None
    wine_id: str
    bottle_format_id: str
    bottle_vintage_id: str
    amount: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
