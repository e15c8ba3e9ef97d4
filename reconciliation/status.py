"""Legacy status code mapping."""

from typing import Optional

from core.errors import UnmappedStatusError
from target_store.models import OperationStatus


LEGACY_STATUS_MAP = {
    1: OperationStatus.PROCESSED,
    2: OperationStatus.ON_HOLD,
    3: OperationStatus.CONFIRMED,
    4: OperationStatus.ON_HOLD,
}


def map_legacy_status(code: Optional[int]) -> OperationStatus:
    """Map a legacy Status code to the target status.

    Raises:
        UnmappedStatusError: For any code other than 1-4
    """
    try:
        return LEGACY_STATUS_MAP[code]
    except KeyError:
        raise UnmappedStatusError(code) from None
