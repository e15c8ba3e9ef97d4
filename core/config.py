"""Run configuration for the migration scripts.

Settings come from (lowest to highest precedence):
1. Model defaults
2. Environment variables (a .env file at the repo root is loaded first)
3. A JSON config file passed with --config=<path>
4. Explicit keyword overrides (CLI flags)

Environment variables:
- MIGRATION_TARGET_DB: Path to the target SQLite database
- MIGRATION_LEGACY_DATA_DIR: Directory holding the extracted legacy JSON files
- MIGRATION_TENANT_NAME / MIGRATION_TENANT_DOCUMENT: Tenant to migrate into
- MIGRATION_CONFIRMED_STATUS: Legacy status code of activities to migrate
- LOG_LEVEL / LOG_JSON: Logging verbosity and format
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from core.errors import ConfigError


REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_ENV_PATH = REPO_ROOT / ".env"

ENV_VARS = {
    "target_db_path": "MIGRATION_TARGET_DB",
    "legacy_data_dir": "MIGRATION_LEGACY_DATA_DIR",
    "tenant_name": "MIGRATION_TENANT_NAME",
    "tenant_document_number": "MIGRATION_TENANT_DOCUMENT",
    "confirmed_status": "MIGRATION_CONFIRMED_STATUS",
    "log_level": "LOG_LEVEL",
    "log_json": "LOG_JSON",
}


class MigrationSettings(BaseModel):
    """Settings shared by every migration script.

    Attributes:
        target_db_path: SQLite database the new schema lives in
        legacy_data_dir: Directory with cases-activities.json and friends
        tenant_name: Tenant created or reused for the migrated rows
        tenant_document_number: Document number stored on a newly created tenant
        confirmed_status: Legacy activity status selected by the full run
        log_level: Name of the logging level (DEBUG, INFO, ...)
        log_json: Emit one JSON object per log line instead of text
    """
    target_db_path: Path = Field(default=REPO_ROOT / "migration.db")
    legacy_data_dir: Path = Field(default=REPO_ROOT / "extracted-data")
    tenant_name: str = Field(default="Veritas002")
    tenant_document_number: str = Field(default="VERITAS-002")
    confirmed_status: int = Field(default=1, description="Legacy status code of migrated activities")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    @property
    def logging_level(self) -> int:
        """Numeric logging level, INFO when the name is unknown."""
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO


def _read_environment() -> Dict[str, Any]:
    values = {}
    for field_name, env_name in ENV_VARS.items():
        value = os.getenv(env_name)
        if value not in (None, ""):
            values[field_name] = value
    return values


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        raise ConfigError(f"Migration config file not found: {config_path}")

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to load or parse config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a JSON object")
    return data


def load_settings(
    config_path: Optional[Path] = None,
    env_file: Optional[Path] = DEFAULT_ENV_PATH,
    **overrides,
) -> MigrationSettings:
    """Build settings from environment, config file and overrides.

    Args:
        config_path: Optional JSON config file
        env_file: .env file to load into the environment if it exists
        **overrides: Explicit values, None entries are ignored

    Returns:
        Validated MigrationSettings

    Raises:
        ConfigError: If the config file is missing, unparsable or invalid
    """
    if env_file is not None and Path(env_file).exists():
        load_dotenv(env_file)

    values = _read_environment()
    if config_path is not None:
        values.update(_read_config_file(Path(config_path)))
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return MigrationSettings.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid migration settings: {e}") from e
