"""Tests for the maintenance CLI (scripts/ledger_admin.py)."""

from decimal import Decimal
from io import StringIO

import pytest

from ledger_kernel.db.engine import LedgerStore
from ledger_kernel.services import CatalogService, InventoryLedger
from scripts.ledger_admin import main


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'shop.db'}"


@pytest.fixture
def seeded_product(db_url, clock_service):
    with LedgerStore(db_url, clock_service=clock_service) as store:
        with store.session_scope() as session:
            product = CatalogService(session, clock_service).create_product("Olive Oil")
            InventoryLedger(session, clock_service).apply_movement(
                product.id, None, "2024-01-01", 4, unit_cost=Decimal("7.50")
            )
    return product


def _run(*argv) -> tuple[int, str]:
    out = StringIO()
    code = main(list(argv), stream=out)
    return code, out.getvalue()


class TestLedgerAdmin:

    def test_migrate_fresh_store(self, db_url):
        code, output = _run("--database-url", db_url, "migrate")
        assert code == 0
        assert "0 -> 3" in output

    def test_migrate_stepwise(self, db_url):
        _run("--database-url", db_url, "migrate", "--to", "1")
        code, output = _run("--database-url", db_url, "migrate")
        assert code == 0
        assert "1 -> 3" in output

    def test_downgrade_reported(self, db_url, capsys):
        _run("--database-url", db_url, "migrate")
        code, _ = _run("--database-url", db_url, "migrate", "--to", "2")
        assert code == 2
        assert "SCHEMA_UPGRADE_FAILED" in capsys.readouterr().err

    def test_open_day_and_snapshot(self, db_url, seeded_product):
        code, output = _run("--database-url", db_url, "open-day", "--date", "2024-01-02")
        assert code == 0
        assert "1 snapshot(s)" in output

        code, output = _run(
            "--database-url", db_url, "snapshot", seeded_product.id, "--date", "2024-01-02"
        )
        assert code == 0
        assert "qty=4" in output
        assert "2024-01-02" in output

    def test_snapshot_missing(self, db_url, seeded_product):
        code, output = _run("--database-url", db_url, "snapshot", "nope", "--date", "2024-01-02")
        assert code == 1
        assert "No stock history" in output

    def test_low_stock_uses_configured_threshold(self, db_url, seeded_product):
        code, output = _run("--database-url", db_url, "low-stock", "--date", "2024-01-01")
        assert code == 0
        assert "below 10" in output
        assert seeded_product.id in output

    def test_avg_costs(self, db_url, seeded_product):
        code, output = _run("--database-url", db_url, "avg-costs", "--date", "2024-01-05")
        assert code == 0
        assert "Olive Oil" in output
        assert "avg_cost=7.5" in output
