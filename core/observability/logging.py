"""
Structured Logging with Correlation IDs

Provides logging utilities that automatically include:
- tenant_id: Target tenant the run writes into
- legacy_account_id: Legacy customer whose activities are being migrated
- legacy_activity_id: Links logs to a specific legacy activity
- legacy_activity_detail_id: Links logs to one activity line item

Usage:
    from core.observability.logging import get_logger, with_correlation

    logger = get_logger(__name__)

    with with_correlation(legacy_account_id="1084096", legacy_activity_id="501"):
        logger.info("Reconciling activity")  # Automatically includes correlation IDs
"""

import json
import logging
import sys
from contextvars import ContextVar
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Dict, Any
from contextlib import contextmanager


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass
class CorrelationContext:
    """Context for correlating logs across one migration run."""
    tenant_id: Optional[str] = None
    legacy_account_id: Optional[str] = None
    legacy_activity_id: Optional[str] = None
    legacy_activity_detail_id: Optional[str] = None

    # Additional context
    stage: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs) -> "CorrelationContext":
        """Create a new context with merged values."""
        data = self.to_dict()
        data.update({k: str(v) for k, v in kwargs.items() if v is not None})
        return CorrelationContext(**data)


_correlation_context: ContextVar[CorrelationContext] = ContextVar(
    "correlation_context",
    default=CorrelationContext()
)


def get_correlation_context() -> CorrelationContext:
    """Get the current correlation context."""
    return _correlation_context.get()


@contextmanager
def with_correlation(**kwargs):
    """
    Context manager to set correlation IDs for logging.

    Usage:
        with with_correlation(legacy_activity_id=501, stage="transfer"):
            logger.info("Processing")  # Will include legacy_activity_id and stage
    """
    old_ctx = get_correlation_context()
    new_ctx = old_ctx.merge(**kwargs)
    token = _correlation_context.set(new_ctx)
    try:
        yield new_ctx
    finally:
        _correlation_context.reset(token)


# =============================================================================
# Formatters
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter that includes correlation context.

    Output format:
    {
        "timestamp": "2025-08-14T12:00:00.000Z",
        "level": "WARNING",
        "logger": "reconciliation.engine",
        "message": "No case found for legacy case 10, skipping",
        "legacy_activity_id": "501",
        "reason": "unresolved_case"
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        ctx = get_correlation_context()
        log_data.update(ctx.to_dict())

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter that includes key correlation IDs.

    Output format:
    2025-08-14 12:00:00 [INFO ] reconciliation.engine [acct:1084096/act:501]: Created operation group
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_correlation_context()

        correlation_parts = []
        if ctx.legacy_account_id:
            correlation_parts.append(f"acct:{ctx.legacy_account_id}")
        if ctx.legacy_activity_id:
            correlation_parts.append(f"act:{ctx.legacy_activity_id}")
        if ctx.legacy_activity_detail_id:
            correlation_parts.append(f"det:{ctx.legacy_activity_detail_id}")

        correlation = "/".join(correlation_parts) if correlation_parts else "-"

        timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")

        msg = f"{timestamp} [{record.levelname:5}] {record.name} [{correlation}]: {record.getMessage()}"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


# =============================================================================
# Logger with Correlation Support
# =============================================================================

class CorrelatedLogger:
    """
    Logger wrapper that automatically includes correlation context.

    Also supports adding extra fields to individual log calls.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, msg: str, *args, **kwargs):
        """Log with extra fields support."""
        extra_fields = kwargs.pop("extra_fields", {})
        exc_info = kwargs.pop("exc_info", None)
        if exc_info is True:
            exc_info = sys.exc_info()
            if exc_info[0] is None:
                exc_info = None

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "(unknown file)",
            0,
            msg,
            args,
            exc_info or None,
        )
        record.extra_fields = extra_fields

        self._logger.handle(record)

    def debug(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.DEBUG):
            self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.INFO):
            self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.WARNING):
            self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.ERROR):
            self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self.error(msg, *args, **kwargs)

    # Delegate other methods
    def setLevel(self, level):
        self._logger.setLevel(level)

    def isEnabledFor(self, level):
        return self._logger.isEnabledFor(level)


# =============================================================================
# Logger Factory
# =============================================================================

_loggers: Dict[str, CorrelatedLogger] = {}
_configured = False

MIGRATION_LOGGERS = [
    "core",
    "legacy_source",
    "target_store",
    "identity_resolver",
    "reconciliation",
    "scripts",
]


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    force: bool = False,
):
    """
    Configure logging for a migration run.

    Args:
        level: Logging level
        json_format: If True, use JSON format; otherwise human-readable
        force: Replace a handler installed by an earlier call
    """
    global _configured

    if _configured and not force:
        return

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_migration_handler", False):
            root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler._migration_handler = True

    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter())

    root.setLevel(level)
    root.addHandler(handler)

    for logger_name in MIGRATION_LOGGERS:
        logging.getLogger(logger_name).setLevel(level)

    _configured = True


def get_logger(name: str) -> CorrelatedLogger:
    """
    Get a correlated logger for the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        CorrelatedLogger instance
    """
    if name not in _loggers:
        if not _configured:
            configure_logging()

        base_logger = logging.getLogger(name)
        _loggers[name] = CorrelatedLogger(base_logger)

    return _loggers[name]
