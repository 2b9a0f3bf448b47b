"""
Tests for database startup: preflight, schema check, demo seeding.
"""
import pytest
from unittest.mock import patch

from sqlalchemy import inspect

from app.db.models import Supplier
from app.db.preflight import run_db_preflight
from app.db.seed import DEMO_SUPPLIERS, seed_demo_suppliers
from app.db.session import Base, engine, init_db


class TestPreflight:
    def test_preflight_succeeds_against_test_database(self):
        assert run_db_preflight(retries=1, delay=0) is True


class TestInitDb:
    def test_creates_missing_tables_in_debug(self):
        Base.metadata.drop_all(bind=engine)
        try:
            init_db()
            tables = inspect(engine).get_table_names()
            assert {"rfqs", "rfq_invitations", "rfq_quotes", "suppliers", "sequence_counters"} <= set(tables)
        finally:
            Base.metadata.drop_all(bind=engine)

    def test_seeds_only_when_enabled(self, tables):
        with patch("app.db.seed.seed_demo_suppliers") as mock_seed:
            with patch("app.db.session.settings.SEED_DEMO", True):
                init_db()
            mock_seed.assert_called_once()


class TestSeed:
    def test_seed_demo_suppliers_once(self, db_session):
        assert seed_demo_suppliers() == len(DEMO_SUPPLIERS)
        assert seed_demo_suppliers() == 0
        assert db_session.query(Supplier).count() == len(DEMO_SUPPLIERS)
        assert all(s.is_active for s in db_session.query(Supplier))
