"""Unit tests for pool lifecycle and migrations."""

from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest

from vidtube import database


class _Transaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return False


@pytest.fixture
def migration_conn(mock_pool):
    """Mock pool whose connection supports transaction()."""
    pool, conn = mock_pool
    conn.transaction = MagicMock(return_value=_Transaction())
    with patch.object(database, "get_pool", AsyncMock(return_value=pool)):
        yield conn


@pytest.fixture
def migrations_dir(tmp_path):
    (tmp_path / "001_users.sql").write_text("CREATE TABLE IF NOT EXISTS users (id UUID);")
    (tmp_path / "002_videos.sql").write_text("CREATE TABLE IF NOT EXISTS videos (id UUID);")
    (tmp_path / "notes.txt").write_text("ignored")
    return tmp_path


class TestPendingMigrations:
    """Tests for pending_migrations."""

    def test_sorted_sql_files_only(self, migrations_dir):
        names = [f.name for f in database.pending_migrations(set(), migrations_dir)]
        assert names == ["001_users.sql", "002_videos.sql"]

    def test_skips_applied(self, migrations_dir):
        names = [f.name for f in database.pending_migrations({"001_users.sql"}, migrations_dir)]
        assert names == ["002_videos.sql"]

    def test_missing_directory(self, tmp_path):
        assert database.pending_migrations(set(), tmp_path / "nope") == []

    def test_bundled_migrations_exist(self):
        names = [f.name for f in database.pending_migrations(set())]
        assert names[0] == "001_users.sql"


class TestRunMigrations:
    """Tests for run_migrations."""

    async def test_applies_pending_and_records_them(self, migration_conn, migrations_dir):
        migration_conn.fetch.return_value = [{"filename": "001_users.sql"}]

        applied = await database.run_migrations(migrations_dir)

        assert applied == ["002_videos.sql"]
        statements = [c[0][0] for c in migration_conn.execute.call_args_list]
        assert "schema_migrations" in statements[0]
        assert statements[1].startswith("CREATE TABLE IF NOT EXISTS videos")
        assert migration_conn.execute.call_args_list[2][0][1] == "002_videos.sql"

    async def test_up_to_date(self, migration_conn, migrations_dir):
        migration_conn.fetch.return_value = [
            {"filename": "001_users.sql"},
            {"filename": "002_videos.sql"},
        ]
        assert await database.run_migrations(migrations_dir) == []
        assert migration_conn.execute.await_count == 1

    async def test_failure_propagates(self, migration_conn, migrations_dir):
        migration_conn.fetch.return_value = []
        migration_conn.execute.side_effect = [None, asyncpg.PostgresError("syntax error")]

        with pytest.raises(asyncpg.PostgresError):
            await database.run_migrations(migrations_dir)


class TestPoolLifecycle:
    """Tests for get_pool, init_database and health_check."""

    async def test_get_pool_before_init(self):
        with patch.object(database, "_pool", None):
            with pytest.raises(RuntimeError):
                await database.get_pool()

    async def test_init_uses_settings(self):
        fake_pool = MagicMock()
        fake_pool.close = AsyncMock()
        with (
            patch.object(database, "_pool", None),
            patch("vidtube.database.asyncpg.create_pool", AsyncMock(return_value=fake_pool)) as create,
        ):
            assert await database.init_database() is fake_pool
            assert await database.init_database() is fake_pool
            await database.close_database()

        create.assert_awaited_once()
        kwargs = create.call_args[1]
        assert kwargs["min_size"] == 2
        assert kwargs["max_size"] == 10
        fake_pool.close.assert_awaited_once()

    async def test_health_check(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchval.return_value = 1
        with patch.object(database, "get_pool", AsyncMock(return_value=pool)):
            assert await database.health_check() is True

    async def test_health_check_without_pool(self):
        with patch.object(database, "_pool", None):
            assert await database.health_check() is False
