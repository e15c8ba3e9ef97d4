"""Migration exceptions.

Only conditions that abort a run (or a single-activity migration) are raised.
Per-line and per-activity skips are recorded on the run summary instead.
"""


class MigrationError(Exception):
    """Base exception for migration failures."""
    pass


class ConfigError(MigrationError):
    """Configuration file missing or unparsable."""
    pass


class LegacyDataError(MigrationError):
    """Extracted legacy data could not be loaded."""
    pass


class ActivityNotFoundError(MigrationError):
    """Requested legacy activity is not present in the extracted data."""
    def __init__(self, legacy_activity_id):
        super().__init__(f"Activity with ID {legacy_activity_id} not found in legacy data")
        self.legacy_activity_id = legacy_activity_id


class MissingDependencyError(MigrationError):
    """A customer or case the activity depends on was not imported yet."""
    def __init__(self, message: str, kind: str = "", legacy_id: str = ""):
        super().__init__(message)
        self.kind = kind
        self.legacy_id = legacy_id


class UnmappedStatusError(MigrationError):
    """Legacy status code has no target status."""
    def __init__(self, code):
        super().__init__(f"Legacy status {code!r} has no target status")
        self.code = code
