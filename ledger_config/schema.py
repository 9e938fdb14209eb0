"""
Typed settings for the inventory ledger (``ledger_config.schema``).

Every field has a default so an empty YAML document is a valid
configuration.  Instances are frozen; the loader is the only producer.
"""

from __future__ import annotations

from dataclasses import dataclass, fields

DEFAULT_DATABASE_URL = "sqlite:///ledger.db"
DEFAULT_TIMEZONE = "Asia/Beirut"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime settings for a ledger installation."""

    database_url: str = DEFAULT_DATABASE_URL
    timezone: str = DEFAULT_TIMEZONE
    allow_negative_stock: bool = False
    money_decimal_places: int = 2
    cost_decimal_places: int = 9
    low_stock_threshold: int = 10
    schema_version: int = 3
    echo_sql: bool = False
    log_level: str = "INFO"
    checksum: str = ""

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        for name in ("money_decimal_places", "cost_decimal_places", "low_stock_threshold"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        if isinstance(self.schema_version, bool) or not isinstance(self.schema_version, int) \
                or self.schema_version < 1:
            raise ValueError(f"schema_version must be a positive integer, got {self.schema_version!r}")
        for name in ("allow_negative_stock", "echo_sql"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"{name} must be a boolean")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Unknown log_level: {self.log_level!r}")

    @classmethod
    def field_names(cls) -> frozenset[str]:
        """Keys accepted in a settings document (checksum is computed, not read)."""
        return frozenset(f.name for f in fields(cls) if f.name != "checksum")
