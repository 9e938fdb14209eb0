"""
Module: ledger_kernel.db.migrations
Responsibility: Declares the versioned store layout (stores and their
    secondary indexes) and brings a store up to a requested version through
    an ordered, idempotent, additive migration pipeline.
Architecture position: Kernel > DB.  Imports models/ only to register their
    tables on Base.metadata before the first version creates them.  Driven
    by db/engine.py (LedgerStore.open) and scripts/ledger_admin.py.

Invariants enforced:
    - Versions are applied strictly in order.  Reaching N+1 from N-1 applies
      N first.  No version is ever skipped.
    - Idempotency: re-applying the current version is a no-op.
    - Additivity: each version's index set is a superset of the previous
      one's (checked when the pipeline is built), and every step preserves
      the row count of every store (checked inside the step's transaction).
    - A step that transforms data must declare its own migrate callable
      together with before/after validators.  Index changes never carry
      hidden data changes.

Failure modes:
    - SchemaUpgradeError when the target is unknown or below the current
      version, when a step fails, when row counts change, or when a declared
      index is missing after the upgrade.  The failing step's transaction is
      rolled back, so the store stays at the last fully applied version.

Layout notes:
    Each store lists its primary key first, followed by its secondary
    indexed fields.  The primary key is indexed by the table itself, so
    only the remaining fields get ``ix_<store>_<field>`` indexes.
"""

from dataclasses import dataclass
from typing import Callable, Mapping

from sqlalchemy import func, inspect, select, text
from sqlalchemy.engine import Connection, Engine

from ledger_kernel.db.base import Base
from ledger_kernel.domain.clock import ClockService
from ledger_kernel.exceptions import SchemaUpgradeError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import SchemaVersionRecord

logger = get_logger("db.migrations")

StoreLayout = Mapping[str, tuple[str, ...]]


@dataclass(frozen=True)
class SchemaVersion:
    """
    One declared store layout.

    Attributes:
        number: 1-based version number.
        description: Human-readable summary recorded in schema_versions.
        stores: store name -> (primary key, *indexed fields).
        rebuild: Drop and recreate every declared index when applied.
        migrate: Explicit data migration, run between the validators.
        validate_before / validate_after: Checks around ``migrate``.  Each
            raises to abort the step.
    """

    number: int
    description: str
    stores: StoreLayout
    rebuild: bool = False
    migrate: Callable[[Connection], None] | None = None
    validate_before: Callable[[Connection], None] | None = None
    validate_after: Callable[[Connection], None] | None = None

    def __post_init__(self) -> None:
        if self.migrate is not None and (
            self.validate_before is None or self.validate_after is None
        ):
            raise ValueError(
                f"Schema v{self.number} migrates data and must declare "
                "validate_before and validate_after"
            )

    def index_names(self) -> dict[str, set[str]]:
        """store -> names of the secondary indexes this version declares."""
        return {
            store: {index_name(store, f) for f in fields[1:]}
            for store, fields in self.stores.items()
        }


def index_name(store: str, field_name: str) -> str:
    return f"ix_{store}_{field_name}"


# Stores carried by every version alongside the versioned core stores
_SUPPLEMENTARY_STORES: dict[str, tuple[str, ...]] = {
    "categories": ("id", "name"),
    "product_prices": ("id", "product_id", "effective_date"),
    "invoice_payments": ("id", "invoice_id"),
}

_V1_STORES: dict[str, tuple[str, ...]] = {
    "products": ("id", "name", "barcode"),
    "customers": ("id", "name"),
    "suppliers": ("id", "name"),
    "invoices": ("id", "invoice_type", "customer_id", "supplier_id", "invoice_date"),
    "invoice_items": ("id", "invoice_id", "product_id"),
    "daily_stock": ("id", "product_id", "date"),
    "stock_movements": ("id", "product_id", "invoice_id", "invoice_date"),
    **_SUPPLEMENTARY_STORES,
}

_V2_STORES: dict[str, tuple[str, ...]] = {
    "products": ("id", "name", "barcode", "created_at"),
    "customers": ("id", "name", "created_at"),
    "suppliers": ("id", "name", "created_at"),
    "invoices": (
        "id",
        "invoice_type",
        "customer_id",
        "supplier_id",
        "invoice_date",
        "created_at",
    ),
    "invoice_items": ("id", "invoice_id", "product_id"),
    "daily_stock": ("id", "product_id", "date", "available_qty"),
    "stock_movements": ("id", "product_id", "invoice_id", "invoice_date"),
    **_SUPPLEMENTARY_STORES,
}

SCHEMA_VERSIONS: tuple[SchemaVersion, ...] = (
    SchemaVersion(1, "initial stores with minimal indexes", _V1_STORES),
    SchemaVersion(2, "index created_at and daily_stock.available_qty", _V2_STORES),
    SchemaVersion(3, "rebuild v2 indexes", _V2_STORES, rebuild=True),
)

LATEST_SCHEMA_VERSION = SCHEMA_VERSIONS[-1].number


def _check_pipeline(versions: tuple[SchemaVersion, ...]) -> None:
    for position, version in enumerate(versions, start=1):
        if version.number != position:
            raise ValueError(
                f"Schema versions must be numbered 1..N in order; "
                f"found v{version.number} at position {position}"
            )
    for previous, current in zip(versions, versions[1:]):
        prev_indexes = previous.index_names()
        curr_indexes = current.index_names()
        for store, names in prev_indexes.items():
            if not names <= curr_indexes.get(store, set()):
                raise ValueError(
                    f"Schema v{current.number} drops indexes on {store}; "
                    "versions must be additive"
                )


class SchemaManager:
    """
    Applies schema versions to a store.

    Contract:
        ``upgrade(target)`` leaves the store at exactly ``target`` or raises
        SchemaUpgradeError.  Each version is applied in its own transaction
        and recorded in ``schema_versions``.

    Non-goals:
        - No downgrades.
        - No column changes: every version shares the tables created at v1.
    """

    def __init__(
        self,
        engine: Engine,
        clock_service: ClockService | None = None,
        versions: tuple[SchemaVersion, ...] = SCHEMA_VERSIONS,
    ):
        _check_pipeline(versions)
        self._engine = engine
        self._clock_service = clock_service or ClockService()
        self._versions = versions

    @property
    def latest_version(self) -> int:
        return self._versions[-1].number

    def current_version(self) -> int:
        """Highest applied version, 0 for an empty store."""
        with self._engine.connect() as conn:
            return self._current_version(conn)

    def _current_version(self, conn: Connection) -> int:
        if not inspect(conn).has_table(SchemaVersionRecord.__tablename__):
            return 0
        result = conn.execute(select(func.max(SchemaVersionRecord.version))).scalar()
        return result or 0

    def upgrade(self, target: int | None = None) -> int:
        """
        Bring the store to ``target`` (default: latest declared version).

        Returns:
            The version the store is at afterwards.

        Raises:
            SchemaUpgradeError: see module docstring.
        """
        target = self.latest_version if target is None else target
        current = self.current_version()

        if target < 1 or target > self.latest_version:
            raise SchemaUpgradeError(
                current, target, f"unknown version (declared 1..{self.latest_version})"
            )
        if current > self.latest_version:
            raise SchemaUpgradeError(
                current, target, "store was written by a newer schema"
            )
        if current > target:
            raise SchemaUpgradeError(current, target, "downgrades are not supported")

        if current == target:
            logger.info(
                "schema_already_current",
                extra={"schema_version": current},
            )
        for number in range(current + 1, target + 1):
            self._apply(self._versions[number - 1], target)

        self.verify(target)
        return target

    def verify(self, version: int) -> None:
        """Raise SchemaUpgradeError if any index declared by ``version`` is missing."""
        declared = self._versions[version - 1].index_names()
        with self._engine.connect() as conn:
            present = self.existing_indexes(conn)
        for store, names in declared.items():
            missing = names - present.get(store, set())
            if missing:
                raise SchemaUpgradeError(
                    version,
                    version,
                    f"missing indexes on {store}: {sorted(missing)}",
                )

    @staticmethod
    def existing_indexes(conn: Connection) -> dict[str, set[str]]:
        """store -> names of the indexes currently present."""
        inspector = inspect(conn)
        return {
            table: {ix["name"] for ix in inspector.get_indexes(table)}
            for table in inspector.get_table_names()
        }

    def _apply(self, version: SchemaVersion, target: int) -> None:
        from_version = version.number - 1
        try:
            with self._engine.begin() as conn:
                counts_before = self._row_counts(conn)

                if version.number == 1:
                    Base.metadata.create_all(conn)

                if version.migrate is not None:
                    version.validate_before(conn)
                    version.migrate(conn)
                    version.validate_after(conn)

                for store, fields in version.stores.items():
                    for field_name in fields[1:]:
                        name = index_name(store, field_name)
                        if version.rebuild:
                            conn.execute(text(f'DROP INDEX IF EXISTS "{name}"'))
                        conn.execute(
                            text(
                                f'CREATE INDEX IF NOT EXISTS "{name}" '
                                f'ON "{store}" ("{field_name}")'
                            )
                        )

                conn.execute(
                    SchemaVersionRecord.__table__.insert().values(
                        id=f"schema-v{version.number}",
                        version=version.number,
                        description=version.description,
                        applied_at=self._clock_service.now(),
                    )
                )

                counts_after = self._row_counts(conn)
                for store, count in counts_before.items():
                    if counts_after.get(store) != count:
                        raise SchemaUpgradeError(
                            from_version,
                            target,
                            f"row count of {store} changed from {count} to "
                            f"{counts_after.get(store)} during v{version.number}",
                        )
        except SchemaUpgradeError:
            logger.error(
                "schema_upgrade_failed",
                extra={"schema_version": version.number, "target": target},
                exc_info=True,
            )
            raise
        except Exception as exc:
            logger.error(
                "schema_upgrade_failed",
                extra={"schema_version": version.number, "target": target},
                exc_info=True,
            )
            raise SchemaUpgradeError(from_version, target, str(exc)) from exc

        logger.info(
            "schema_version_applied",
            extra={
                "schema_version": version.number,
                "description": version.description,
                "rebuild": version.rebuild,
            },
        )

    @staticmethod
    def _row_counts(conn: Connection) -> dict[str, int]:
        existing = set(inspect(conn).get_table_names())
        counts: dict[str, int] = {}
        for table in Base.metadata.sorted_tables:
            if table.name in existing and table.name != SchemaVersionRecord.__tablename__:
                counts[table.name] = conn.execute(
                    select(func.count()).select_from(table)
                ).scalar_one()
        return counts
