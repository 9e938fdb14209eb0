"""
Structured JSON logging for the inventory ledger.

Kernel modules log through ``get_logger("services.inventory_ledger")`` and
similar, so all records land under the ``ledger_kernel`` hierarchy.  Records
are emitted as
one JSON object per line: the fixed envelope (``ts``, ``level``, ``logger``,
``message``), then whichever of ``correlation_id`` / ``invoice_id`` /
``product_id`` are bound in LogContext, then the call's ``extra`` dict.

Ledger exceptions are flattened into ``exc_*`` fields (``exc_code``,
``exc_product_id``, ``exc_available`` ...) so an insufficient-stock
rejection can be filtered on without parsing the traceback.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator

LEDGER_LOGGER = "ledger_kernel"

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = ("correlation_id", "invoice_id", "product_id")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"ledger_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


def _context_var(name: str) -> ContextVar[str | None]:
    try:
        return _context_vars[name]
    except KeyError:
        raise ValueError(
            f"Unknown log context field {name!r}; expected one of {_CONTEXT_FIELDS}"
        ) from None


class LogContext:
    """
    Operation-scoped log fields (correlation, invoice, product).

    Backed by ContextVars, so values bound in one thread or task never leak
    into another.
    """

    @staticmethod
    def set(
        *,
        correlation_id: str | None = None,
        invoice_id: str | None = None,
        product_id: str | None = None,
    ) -> None:
        """Set context fields.  None leaves a field unchanged."""
        for name, value in (
            ("correlation_id", correlation_id),
            ("invoice_id", invoice_id),
            ("product_id", product_id),
        ):
            if value is not None:
                _context_vars[name].set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        return {
            name: var.get()
            for name, var in _context_vars.items()
            if var.get() is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[type["LogContext"]]:
        """Bind fields for the duration of a block, restoring prior values on exit."""
        tokens = [
            (var, var.set(value))
            for var, value in ((_context_var(k), v) for k, v in fields.items())
            if value is not None
        ]
        try:
            yield LogContext
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else came from ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for key, value in vars(exc).items():
        if not key.startswith("_") and key not in ("args", "code"):
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger named ``ledger_kernel.<name>``."""
    return logging.getLogger(f"{LEDGER_LOGGER}.{name}")


_configured = False
_config_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``ledger_kernel`` logger.

    Only the first call has an effect; later calls return immediately so
    scripts and library code can both call it safely.  Records do not
    propagate to the root logger.
    """
    global _configured
    with _config_lock:
        if _configured:
            return
        _configured = True

    ledger_logger = logging.getLogger(LEDGER_LOGGER)
    ledger_logger.setLevel(level)
    ledger_logger.propagate = False

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    ledger_logger.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers and forget configuration.  Tests only."""
    global _configured
    with _config_lock:
        _configured = False
    ledger_logger = logging.getLogger(LEDGER_LOGGER)
    for handler in list(ledger_logger.handlers):
        ledger_logger.removeHandler(handler)
    ledger_logger.setLevel(logging.WARNING)
