"""
Tests for the database connection pool

Construction checks run without a database; the rest use testcontainers.
"""
import pytest

from sales_index.store.connection import DatabaseConnectionPool


def make_pool(postgres_container, **kwargs) -> DatabaseConnectionPool:
    return DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_sales_index",
        user="test_pipeline",
        password="test_password",
        **kwargs,
    )


@pytest.mark.unit
def test_password_is_required(clean_env):
    """Test the pool refuses to start without a password"""
    with pytest.raises(ValueError) as exc_info:
        DatabaseConnectionPool(host="localhost")

    assert "DB_PASSWORD" in str(exc_info.value)


@pytest.mark.unit
def test_settings_from_environment(clean_env):
    """Test connection settings fall back to DB_* variables"""
    clean_env.setenv("DB_HOST", "db.internal")
    clean_env.setenv("DB_PORT", "6543")
    clean_env.setenv("DB_PASSWORD", "secret")

    pool = DatabaseConnectionPool()

    assert pool.host == "db.internal"
    assert pool.port == 6543
    assert pool.database == "sales_index"
    assert "dbname=sales_index" in pool.conninfo


@pytest.mark.unit
def test_unopened_pool_raises(clean_env):
    pool = DatabaseConnectionPool(password="secret")
    with pytest.raises(RuntimeError):
        pool.execute_query("SELECT 1")


@pytest.mark.integration
def test_connection_pool_initialization(postgres_container):
    """Test that connection pool initializes correctly"""
    pool = make_pool(postgres_container, min_size=2, max_size=5)
    pool.open()

    assert pool._pool is not None
    assert pool._pool.min_size == 2
    assert pool._pool.max_size == 5

    pool.close()


@pytest.mark.integration
def test_rows_are_dicts(postgres_container):
    """Test pooled connections return rows as dictionaries"""
    pool = make_pool(postgres_container)
    pool.open()

    with pool.get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1 as test")
            assert cur.fetchone()["test"] == 1

    assert pool.execute_query("SELECT 42 as answer") == [{"answer": 42}]

    pool.close()


@pytest.mark.integration
def test_execute_command(postgres_container):
    """Test executing DDL and INSERT commands"""
    pool = make_pool(postgres_container)
    pool.open()

    pool.execute_command("DROP TABLE IF EXISTS pool_probe")
    pool.execute_command("CREATE TABLE pool_probe (id TEXT PRIMARY KEY)")
    rowcount = pool.execute_command("INSERT INTO pool_probe (id) VALUES (%s), (%s)", ("a", "b"))

    assert rowcount == 2
    assert pool.execute_query("SELECT count(*) AS n FROM pool_probe")[0]["n"] == 2

    pool.execute_command("DROP TABLE pool_probe")
    pool.close()


@pytest.mark.integration
def test_context_manager(postgres_container):
    """Test using pool as context manager"""
    with make_pool(postgres_container) as pool:
        result = pool.execute_query("SELECT 1 as test")
        assert result[0]["test"] == 1

    # Pool should be closed after context
    with pytest.raises(RuntimeError):
        pool.execute_query("SELECT 1")
