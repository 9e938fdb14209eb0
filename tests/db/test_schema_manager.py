"""
Tests for SchemaManager -- versioned, additive index layouts.

Covers:
- Stepwise 1 -> 2 -> 3 upgrade ends with the same indexes as a direct upgrade
- Declared indexes exist after each version
- Data survives upgrades
- Re-running an upgrade is a no-op
- Downgrades, unknown versions and newer stores are refused
- Pipeline declaration checks (numbering, additivity, migrate validators)
- A failing step rolls back and is not recorded
"""

from decimal import Decimal

import pytest
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from ledger_kernel.db.engine import create_sqlite_engine
from ledger_kernel.db.migrations import (
    LATEST_SCHEMA_VERSION,
    SCHEMA_VERSIONS,
    SchemaManager,
    SchemaVersion,
)
from ledger_kernel.exceptions import SchemaUpgradeError
from ledger_kernel.models import Category, DailyStock, Product, SchemaVersionRecord


@pytest.fixture
def engine():
    eng = create_sqlite_engine("sqlite://")
    yield eng
    eng.dispose()


@pytest.fixture
def manager(engine, clock_service):
    return SchemaManager(engine, clock_service)


def _indexes(engine) -> dict[str, set[str]]:
    with engine.connect() as conn:
        return SchemaManager.existing_indexes(conn)


def _seed(engine) -> None:
    with Session(engine) as session:
        product = Product(name="Rice", barcode="123", created_at="2024-01-01T10:00:00.000")
        session.add(product)
        session.flush()
        session.add(
            DailyStock(
                product_id=product.id,
                date="2024-01-01",
                available_qty=7,
                avg_cost=Decimal("2.5"),
                created_at="2024-01-01T10:00:00.000",
                updated_at="2024-01-01T10:00:00.000",
            )
        )
        session.commit()


class TestUpgradePath:

    def test_empty_store_is_version_zero(self, manager):
        assert manager.current_version() == 0

    def test_upgrade_defaults_to_latest(self, manager):
        assert manager.upgrade() == LATEST_SCHEMA_VERSION
        assert manager.current_version() == LATEST_SCHEMA_VERSION

    @pytest.mark.parametrize("version", [1, 2, 3])
    def test_declared_indexes_present(self, engine, manager, version):
        manager.upgrade(version)
        present = _indexes(engine)
        for store, names in SCHEMA_VERSIONS[version - 1].index_names().items():
            assert names <= present[store]

    def test_v1_has_no_created_at_index(self, engine, manager):
        manager.upgrade(1)
        assert "ix_products_created_at" not in _indexes(engine)["products"]

    def test_primary_key_not_indexed_separately(self, engine, manager):
        manager.upgrade()
        assert "ix_products_id" not in _indexes(engine)["products"]

    def test_stepwise_equals_direct(self, engine, clock_service):
        stepwise = SchemaManager(engine, clock_service)
        for version in (1, 2, 3):
            stepwise.upgrade(version)

        direct_engine = create_sqlite_engine("sqlite://")
        try:
            SchemaManager(direct_engine, clock_service).upgrade(3)
            assert _indexes(engine) == _indexes(direct_engine)
        finally:
            direct_engine.dispose()

    def test_each_version_recorded(self, engine, manager):
        manager.upgrade()
        with Session(engine) as session:
            versions = session.execute(
                select(SchemaVersionRecord.version).order_by(SchemaVersionRecord.version)
            ).scalars().all()
        assert versions == [1, 2, 3]

    def test_data_survives_upgrade(self, engine, manager):
        manager.upgrade(1)
        _seed(engine)
        manager.upgrade()
        with Session(engine) as session:
            row = session.execute(select(DailyStock)).scalar_one()
            assert row.available_qty == 7
            assert row.avg_cost == Decimal("2.5")
            assert session.execute(select(Product.name)).scalar_one() == "Rice"

    def test_rerun_is_noop(self, engine, manager, captured_logs):
        manager.upgrade()
        before = _indexes(engine)
        assert manager.upgrade() == LATEST_SCHEMA_VERSION
        assert _indexes(engine) == before
        assert any(r["message"] == "schema_already_current" for r in captured_logs())

    def test_applied_versions_logged(self, manager, captured_logs):
        manager.upgrade()
        applied = [
            r["schema_version"] for r in captured_logs()
            if r["message"] == "schema_version_applied"
        ]
        assert applied == [1, 2, 3]


class TestRefusals:

    def test_downgrade_refused(self, manager):
        manager.upgrade(3)
        with pytest.raises(SchemaUpgradeError) as exc_info:
            manager.upgrade(2)
        assert exc_info.value.current_version == 3
        assert exc_info.value.target_version == 2

    @pytest.mark.parametrize("target", [0, LATEST_SCHEMA_VERSION + 1])
    def test_unknown_target_refused(self, manager, target):
        with pytest.raises(SchemaUpgradeError):
            manager.upgrade(target)
        assert manager.current_version() == 0

    def test_newer_store_refused(self, engine, manager):
        manager.upgrade()
        with engine.begin() as conn:
            conn.execute(
                SchemaVersionRecord.__table__.insert().values(
                    id="schema-v9",
                    version=9,
                    description="from the future",
                    applied_at="2030-01-01T00:00:00.000",
                )
            )
        with pytest.raises(SchemaUpgradeError, match="newer schema"):
            manager.upgrade()


class TestPipelineDeclaration:

    def test_numbering_must_be_contiguous(self, engine):
        with pytest.raises(ValueError):
            SchemaManager(engine, versions=(SCHEMA_VERSIONS[0], SCHEMA_VERSIONS[2]))

    def test_versions_must_be_additive(self, engine):
        shrinking = SchemaVersion(2, "drop barcode index", {"products": ("id", "name")})
        with pytest.raises(ValueError, match="additive"):
            SchemaManager(engine, versions=(SCHEMA_VERSIONS[0], shrinking))

    def test_migrate_requires_validators(self):
        with pytest.raises(ValueError):
            SchemaVersion(2, "migrate", {}, migrate=lambda conn: None)


class TestFailedStep:

    def _pipeline(self, migrate, validate_after=lambda conn: None):
        v1 = SCHEMA_VERSIONS[0]
        v2 = SchemaVersion(
            2,
            "test migration",
            v1.stores,
            migrate=migrate,
            validate_before=lambda conn: None,
            validate_after=validate_after,
        )
        return (v1, v2)

    def test_row_loss_aborts_and_rolls_back(self, engine, clock_service):
        def lose_rows(conn):
            conn.execute(delete(Category))

        manager = SchemaManager(engine, clock_service, versions=self._pipeline(lose_rows))
        manager.upgrade(1)
        with Session(engine) as session:
            session.add(Category(name="Dry goods", created_at="2024-01-01T10:00:00.000"))
            session.commit()

        with pytest.raises(SchemaUpgradeError, match="row count of categories"):
            manager.upgrade(2)

        assert manager.current_version() == 1
        with Session(engine) as session:
            assert session.execute(select(func.count()).select_from(Category)).scalar_one() == 1

    def test_validator_failure_wrapped(self, engine, clock_service):
        def reject(conn):
            raise RuntimeError("validation failed")

        manager = SchemaManager(
            engine,
            clock_service,
            versions=self._pipeline(lambda conn: None, validate_after=reject),
        )
        with pytest.raises(SchemaUpgradeError, match="validation failed") as exc_info:
            manager.upgrade()
        assert exc_info.value.current_version == 1
        assert manager.current_version() == 1
