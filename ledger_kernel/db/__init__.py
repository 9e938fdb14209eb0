"""Database layer - base classes and column types.

Store lifecycle lives in ``ledger_kernel.db.engine`` and the schema pipeline
in ``ledger_kernel.db.migrations``.  Both import the models, so they are not
re-exported here.
"""

from ledger_kernel.db.base import Base, TimestampedBase
from ledger_kernel.db.types import DecimalString, round_cost, round_money

__all__ = [
    "Base",
    "DecimalString",
    "TimestampedBase",
    "round_cost",
    "round_money",
]
