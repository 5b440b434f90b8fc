"""
Pipeline settings.

Sources, lowest precedence first: built-in defaults, an optional YAML file,
then environment variables (a ``.env`` file in the working directory is
loaded first when present).

Example YAML:
```yaml
header_csv_path: /exports/Inv_HH.csv
line_csv_path: /exports/Inv_HD.csv
years_back: 3
top_items_excluded_codes: ["170"]
database:
  host: db.internal
  name: sales_index
```
"""

import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sales_index.batch.errors import ConfigurationError

# Setting name -> environment variable
ENV_VARS: dict[str, str] = {
    "header_csv_path": "CSV_HH_PATH",
    "line_csv_path": "CSV_HD_PATH",
    "customers_csv_path": "CSV_CUSTOMERS_PATH",
    "contacts_csv_path": "CSV_CONTACTS_PATH",
    "years_back": "YEARS_BACK",
    "batch_size": "BATCH_LIMIT",
    "index_batch_size": "INDEX_BATCH_LIMIT",
    "max_in_flight_batches": "MAX_IN_FLIGHT_BATCHES",
    "max_commit_attempts": "MAX_COMMIT_ATTEMPTS",
    "backoff_base_seconds": "BACKOFF_BASE_SECONDS",
    "top_items_days_back": "TOP_ITEMS_DAYS_BACK",
    "top_items_count": "TOP_ITEMS_COUNT",
    "top_items_excluded_codes": "TOP_ITEMS_EXCLUDED_CODES",
    "top_items_excluded_prefixes": "TOP_ITEMS_EXCLUDED_PREFIXES",
}

DATABASE_ENV_VARS: dict[str, str] = {
    "host": "DB_HOST",
    "port": "DB_PORT",
    "name": "DB_NAME",
    "user": "DB_USER",
    "password": "DB_PASSWORD",
    "table": "DB_TABLE",
}

LIST_SETTINGS = {"top_items_excluded_codes", "top_items_excluded_prefixes"}


class DatabaseSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str = "localhost"
    port: int = Field(5432, ge=1, le=65535)
    name: str = "sales_index"
    user: str = "sales_index"
    password: str | None = Field(None, repr=False)
    table: str = "documents"
    min_pool_size: int = Field(1, ge=1)
    max_pool_size: int = Field(4, ge=1)

    def require_password(self) -> str:
        """
        Raises:
            ConfigurationError: If no password is configured
        """
        if not self.password:
            raise ConfigurationError(
                "Database password must be provided. Set DB_PASSWORD or database.password."
            )
        return self.password


class PipelineSettings(BaseModel):
    """Every tunable of the import jobs and the lookup service."""

    model_config = ConfigDict(extra="forbid")

    header_csv_path: str | None = None
    line_csv_path: str | None = None
    customers_csv_path: str | None = None
    contacts_csv_path: str | None = None

    years_back: int = Field(3, ge=0, le=50)
    batch_size: int = Field(450, ge=1, le=500)
    index_batch_size: int = Field(300, ge=1, le=500)
    max_in_flight_batches: int = Field(2, ge=1, le=16)
    max_commit_attempts: int = Field(6, ge=1, le=20)
    backoff_base_seconds: float = Field(0.25, ge=0)

    top_items_days_back: int = Field(60, ge=1)
    top_items_count: int = Field(5, ge=1, le=100)
    top_items_excluded_codes: list[str] = Field(default_factory=lambda: ["170"])
    top_items_excluded_prefixes: list[str] = Field(default_factory=list)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    def require(self, name: str) -> str:
        """
        Return a path setting that a command cannot run without.

        Raises:
            ConfigurationError: If the setting is empty
        """
        value = getattr(self, name)
        if not value:
            raise ConfigurationError(f"{name} is not set (env var {ENV_VARS.get(name, name.upper())})")
        return value


def _split_list(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _read_yaml(config_path: str | Path) -> dict[str, Any]:
    path = Path(config_path)
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
    return data


def load_settings(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> PipelineSettings:
    """
    Build settings from defaults, YAML, environment and explicit overrides.

    Args:
        config_path: Optional YAML file
        env: Environment mapping; defaults to os.environ after loading .env
        overrides: Values that win over every other source (CLI flags);
            None values are ignored

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If a source is unreadable or a value is invalid
    """
    values: dict[str, Any] = _read_yaml(config_path) if config_path else {}

    if env is None:
        load_dotenv(find_dotenv(usecwd=True), override=False)
        env = os.environ

    for name, var in ENV_VARS.items():
        raw = env.get(var)
        if raw is None or raw.strip() == "":
            continue
        values[name] = _split_list(raw) if name in LIST_SETTINGS else raw.strip()

    database = dict(values.get("database") or {})
    for name, var in DATABASE_ENV_VARS.items():
        raw = env.get(var)
        if raw is not None and raw.strip() != "":
            database[name] = raw.strip()
    values["database"] = database

    for name, value in (overrides or {}).items():
        if value is not None:
            values[name] = value

    try:
        return PipelineSettings.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e
