"""
Config -> Kernel bridges.

Functions that turn LedgerSettings into kernel inputs.  These live in
ledger_config because the kernel must never import ledger_config.

Usage:
    from ledger_config import get_active_config
    from ledger_config.bridges import build_store, build_policy

    settings = get_active_config()
    store = build_store(settings).open()
    with store.session_scope() as session:
        ledger = InventoryLedger(session, build_clock(settings), build_policy(settings))
"""

from __future__ import annotations

import logging

from ledger_config.schema import LedgerSettings
from ledger_kernel.db.engine import LedgerStore
from ledger_kernel.domain.clock import Clock, ClockService
from ledger_kernel.domain.policy import LedgerPolicy
from ledger_kernel.logging_config import configure_logging


def build_policy(settings: LedgerSettings) -> LedgerPolicy:
    """Kernel policy from settings."""
    return LedgerPolicy(
        allow_negative_stock=settings.allow_negative_stock,
        money_decimal_places=settings.money_decimal_places,
        cost_decimal_places=settings.cost_decimal_places,
        low_stock_threshold=settings.low_stock_threshold,
    )


def build_clock(settings: LedgerSettings, clock: Clock | None = None) -> ClockService:
    """ClockService in the configured business time zone."""
    return ClockService(clock=clock, tz_name=settings.timezone)


def build_store(settings: LedgerSettings, clock: Clock | None = None) -> LedgerStore:
    """An unopened LedgerStore for the configured database."""
    return LedgerStore(
        settings.database_url,
        schema_version=settings.schema_version,
        clock_service=build_clock(settings, clock),
        echo=settings.echo_sql,
    )


def apply_logging(settings: LedgerSettings) -> None:
    """Install the structured handler at the configured level."""
    configure_logging(level=getattr(logging, settings.log_level.upper()))
