"""
Engine pool selection and the session helpers of the database manager.
"""

import pytest
from sqlalchemy import text
from sqlalchemy.pool import QueuePool, StaticPool

from portal.db.database import DatabaseManager, is_memory_sqlite


@pytest.mark.parametrize("url", ["sqlite://", "sqlite:///:memory:", "sqlite+pysqlite://"])
def test_memory_urls(url):
    assert is_memory_sqlite(url) is True


@pytest.mark.parametrize("url", ["sqlite:///portal.db", "postgresql://u:p@localhost/portal"])
def test_other_urls(url):
    assert is_memory_sqlite(url) is False


class TestPoolSelection:
    def test_memory_database_shares_one_connection(self):
        manager = DatabaseManager("sqlite://")

        assert isinstance(manager.engine.pool, StaticPool)
        manager.engine.dispose()

    def test_file_database_uses_connection_pool(self, tmp_path):
        manager = DatabaseManager(f"sqlite:///{tmp_path / 'portal.db'}")

        assert isinstance(manager.engine.pool, QueuePool)
        assert not isinstance(manager.engine.pool, StaticPool)
        manager.engine.dispose()

    def test_file_database_sessions_get_their_own_connections(self, tmp_path):
        manager = DatabaseManager(f"sqlite:///{tmp_path / 'portal.db'}")
        first = manager.get_session()
        second = manager.get_session()
        try:
            first_connection = first.connection().connection.dbapi_connection
            second_connection = second.connection().connection.dbapi_connection

            assert first_connection is not second_connection
        finally:
            first.close()
            second.close()
            manager.engine.dispose()

    def test_file_database_tables_and_health(self, tmp_path):
        manager = DatabaseManager(f"sqlite:///{tmp_path / 'portal.db'}")
        manager.create_tables()

        with manager.get_session_context() as session:
            tables = {row[0] for row in session.execute(text("SELECT name FROM sqlite_master WHERE type='table'"))}

        assert "cash_transactions" in tables
        assert manager.check_connection() is True
        manager.engine.dispose()
