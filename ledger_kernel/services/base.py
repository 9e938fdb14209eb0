"""
BaseService -- abstract base for all ledger services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service.  Services receive a SQLAlchemy ``Session``
    and use ``session.flush()`` and ``session.begin_nested()``, never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    (normally ``LedgerStore.session_scope()``).  Unit atomicity inside that
    transaction comes from SAVEPOINTs, so a failed invoice leaves the outer
    transaction usable and unchanged.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base
from ledger_kernel.domain.clock import ClockService

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all ledger services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-model queries; those belong in
          ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock_service: ClockService | None = None):
        self.session = session
        self.clock_service = clock_service or ClockService()
