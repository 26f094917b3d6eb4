"""
Ledger Settings - Process-level configuration

Settings are built once at process start and passed by constructor into
every collaborator; nothing reads the environment after that.

Values come from LEDGER_* environment variables (LEDGER_DB_PATH,
LEDGER_JSON_LOGS, ...), falling back to the field defaults, and are
validated by pydantic-settings like any other input.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "LEDGER_"


class LedgerSettings(BaseSettings):
    """
    Configuration for the command pipeline and its collaborators

    Defaults suit local development: a SQLite file in the working
    directory and human-readable console logs.
    """

    db_path: Path = Field(
        default=Path(".ledger.db"),
        description="Path to the SQLite event store",
    )

    environment: Literal["development", "production", "test"] = Field(
        default="development",
        description="Deployment environment (controls log format defaults)",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    json_logs: bool = Field(
        default=False,
        description="Emit JSON logs instead of console output",
    )

    # Command validation
    identifier_pattern: str = Field(
        default=r"[A-Z]*\d+",
        description="Full-match pattern for franchise and branch identifiers",
    )

    max_name_length: int = Field(
        default=200,
        ge=1,
        description="Upper bound for franchise, branch and product names",
    )

    # Store and retry policy
    sqlite_lock_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts on 'database is locked' before the store gives up",
    )

    sqlite_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="SQLite busy timeout per connection",
    )

    conflict_retries: int = Field(
        default=3,
        ge=1,
        description="Whole-pipeline attempts used by submit_with_retry on version conflicts",
    )

    # Operational endpoints
    metrics_port: int = Field(default=9090, ge=1, le=65535)
    health_port: int = Field(default=8080, ge=1, le=65535)

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX)

    @model_validator(mode="after")
    def default_json_logs_in_production(self) -> "LedgerSettings":
        """Production logs are JSON unless json_logs was given explicitly"""
        if self.environment == "production" and "json_logs" not in self.model_fields_set:
            self.json_logs = True
        return self
