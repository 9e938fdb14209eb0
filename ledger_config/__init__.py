"""
ledger_config -- single public entrypoint for ledger settings.

Responsibility:
    Provides the only way to obtain settings at runtime through
    ``get_active_config()``.  Returns a frozen ``LedgerSettings``.

Architecture position:
    Configuration.  Sits above ``ledger_kernel``.  The kernel never
    imports from ``ledger_config``; ``ledger_config.bridges`` translates
    settings into kernel inputs.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``LEDGER_CONFIG_TRACE`` log entry with the settings checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ledger_config.loader import load_settings
from ledger_config.schema import LedgerSettings

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(
    path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> LedgerSettings:
    """The only public settings entrypoint.

    Args:
        path: Settings file.  Defaults to ``ledger_config/defaults.yaml``.
        overrides: Values applied on top of the file (e.g. from CLI flags).

    Raises:
        FileNotFoundError: settings file missing.
        ValueError: unknown key or invalid value.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    settings = load_settings(source, overrides)

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "source": str(source),
            "checksum": settings.checksum,
            "schema_version": settings.schema_version,
            "allow_negative_stock": settings.allow_negative_stock,
        },
    )
    return settings


__all__ = ["DEFAULT_CONFIG_PATH", "LedgerSettings", "get_active_config"]
