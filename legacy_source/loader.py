"""Legacy Record Source.

Loads the JSON files written by the legacy extraction step and answers the
queries the reconciliation needs:
- activities for one account with a given status
- non-Supply line items of one activity
- case detail by legacy id

Rows are validated into typed models when loaded. Rows that fail validation
are dropped with a warning and counted in ``invalid_rows``.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from core.errors import LegacyDataError
from core.observability.logging import get_logger
from legacy_source.models import (
    LegacyActivity,
    LegacyActivityLine,
    LegacyCaseDetail,
)


logger = get_logger(__name__)

ACTIVITIES_FILE = "cases-activities.json"
ACTIVITY_DETAILS_FILE = "cases-activityDetails.json"
CASE_DETAILS_FILE = "cases-caseDetails.json"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate_rows(
    rows: Iterable[Dict[str, Any]],
    model: Type[ModelT],
    source_name: str,
) -> Tuple[List[ModelT], List[str]]:
    valid: List[ModelT] = []
    invalid: List[str] = []
    for index, row in enumerate(rows):
        try:
            valid.append(model.model_validate(row))
        except ValidationError as e:
            message = f"Dropping invalid {source_name} row #{index}: {e.error_count()} validation error(s)"
            invalid.append(message)
            logger.warning(
                message,
                extra_fields={"reason": "invalid_legacy_row", "errors": e.errors(include_url=False)},
            )
    return valid, invalid


def load_json_file(file_path: Path) -> List[Dict[str, Any]]:
    """Load a list of rows from an extracted JSON file.

    Args:
        file_path: Path to the JSON file

    Returns:
        Parsed rows, or an empty list if the file does not exist

    Raises:
        LegacyDataError: If the file exists but is not a JSON array
    """
    if not file_path.exists():
        logger.warning(f"File not found: {file_path}")
        return []

    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise LegacyDataError(f"Failed to parse {file_path}: {e}") from e

    if not isinstance(data, list):
        raise LegacyDataError(f"Expected a JSON array in {file_path}")
    return data


class LegacyRecordSource:
    """Read-only access to extracted legacy activity data.

    Example:
        source = LegacyRecordSource.from_directory(Path("extracted-data"))
        for activity in source.list_activities(account_id=1084096, status=1):
            lines = source.list_inventory_lines(activity.activity_id)
    """

    def __init__(
        self,
        activities: Iterable[Dict[str, Any]] = (),
        activity_lines: Iterable[Dict[str, Any]] = (),
        case_details: Iterable[Dict[str, Any]] = (),
    ):
        """Validate raw rows and build lookup indexes.

        Args:
            activities: Rows of the Activities extract
            activity_lines: Rows of the ActivityDetails extract
            case_details: Rows of the CaseDetails extract
        """
        self.activities, bad_activities = _validate_rows(activities, LegacyActivity, "activity")
        self.activity_lines, bad_lines = _validate_rows(activity_lines, LegacyActivityLine, "activity detail")
        self.case_details, bad_details = _validate_rows(case_details, LegacyCaseDetail, "case detail")
        self.invalid_row_messages = bad_activities + bad_lines + bad_details
        self.invalid_rows = len(self.invalid_row_messages)

        self._activities_by_id: Dict[int, LegacyActivity] = {}
        for activity in self.activities:
            self._activities_by_id.setdefault(activity.activity_id, activity)

        self._lines_by_activity: Dict[int, List[LegacyActivityLine]] = {}
        for line in self.activity_lines:
            if line.activity_id is None:
                continue
            self._lines_by_activity.setdefault(line.activity_id, []).append(line)

        self._case_details_by_id: Dict[int, LegacyCaseDetail] = {}
        for detail in self.case_details:
            self._case_details_by_id.setdefault(detail.case_detail_id, detail)

    @classmethod
    def from_directory(cls, data_dir: Path) -> "LegacyRecordSource":
        """Load the extracted JSON files from a directory.

        Raises:
            LegacyDataError: If the directory does not exist
        """
        data_dir = Path(data_dir)
        if not data_dir.is_dir():
            raise LegacyDataError(f"Extracted data directory not found: {data_dir}")

        source = cls(
            activities=load_json_file(data_dir / ACTIVITIES_FILE),
            activity_lines=load_json_file(data_dir / ACTIVITY_DETAILS_FILE),
            case_details=load_json_file(data_dir / CASE_DETAILS_FILE),
        )
        logger.info(
            f"Loaded legacy data: activities: {len(source.activities)}, "
            f"activityDetails: {len(source.activity_lines)}, "
            f"caseDetails: {len(source.case_details)}, invalid rows: {source.invalid_rows}"
        )
        return source

    def list_activities(self, account_id: int, status: Optional[int] = None) -> List[LegacyActivity]:
        """Activities of one legacy account, optionally restricted to a status code."""
        return [
            activity for activity in self.activities
            if activity.account_id is not None
            and str(activity.account_id) == str(account_id)
            and (status is None or activity.legacy_status == status)
        ]

    def get_activity(self, activity_id: int) -> Optional[LegacyActivity]:
        return self._activities_by_id.get(int(activity_id))

    def list_inventory_lines(self, activity_id: int) -> List[LegacyActivityLine]:
        """Line items of an activity in extract order, Supply lines excluded."""
        return [
            line for line in self._lines_by_activity.get(int(activity_id), [])
            if not line.is_supply
        ]

    def get_case_detail(self, case_detail_id: Optional[int]) -> Optional[LegacyCaseDetail]:
        if case_detail_id is None:
            return None
        return self._case_details_by_id.get(int(case_detail_id))
