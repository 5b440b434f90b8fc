"""
Pytest configuration and fixtures for sales-index tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import csv
from datetime import date
from pathlib import Path
from typing import Callable, Generator

import pytest
from testcontainers.postgres import PostgresContainer

from sales_index.store import InMemoryDocumentStore
from sales_index.store.connection import DatabaseConnectionPool
from sales_index.store.postgres_store import PostgresDocumentStore
from sales_index.store.schema import drop_schema, ensure_schema

# Every date-dependent test runs against this "today"
FIXED_TODAY = date(2025, 6, 15)


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_pipeline",
        password="test_password",
        dbname="test_sales_index"
    ) as postgres:
        # Wait for container to be ready
        postgres.get_connection_url()
        yield postgres


@pytest.fixture(scope="session")
def db_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Connection pool pointed at the test container

    Yields:
        Open DatabaseConnectionPool
    """
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_sales_index",
        user="test_pipeline",
        password="test_password",
        max_size=4,
    )
    pool.open()
    yield pool
    pool.close()


@pytest.fixture(scope="function")
def pg_store(db_pool) -> Generator[PostgresDocumentStore, None, None]:
    """
    PostgreSQL document store over a freshly created table

    Yields:
        PostgresDocumentStore with no documents
    """
    drop_schema(db_pool, "documents")
    ensure_schema(db_pool, "documents")
    yield PostgresDocumentStore(db_pool, table="documents")


# =======================
# STORE FIXTURES
# =======================

@pytest.fixture(scope="function")
def memory_store() -> InMemoryDocumentStore:
    """Empty in-memory document store"""
    return InMemoryDocumentStore()


@pytest.fixture(scope="function")
def no_sleep() -> list[float]:
    """
    Collects requested backoff delays instead of sleeping

    Pass ``no_sleep.append`` wherever a sleep function is expected.
    """
    return []


# =======================
# FILE FIXTURES
# =======================

@pytest.fixture(scope="function")
def write_csv(tmp_path) -> Callable[..., Path]:
    """
    Write a CSV file into tmp_path

    Usage:
        path = write_csv("Inv_HH.csv", ["InvoiceNo", "InvoiceDate"], [["INV1", "06/01/2025"]])
    """
    def _write(name: str, header: list[str], rows: list[list[str]], bom: bool = False) -> Path:
        path = tmp_path / name
        with open(path, "w", encoding="utf-8-sig" if bom else "utf-8", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(header)
            writer.writerows(rows)
        return path

    return _write


@pytest.fixture(scope="function")
def clean_env(monkeypatch, tmp_path):
    """
    Remove every sales-index environment variable and run from tmp_path
    so no developer .env file is picked up

    Args:
        monkeypatch: pytest monkeypatch fixture
        tmp_path: pytest tmp_path fixture
    """
    from sales_index.config import DATABASE_ENV_VARS, ENV_VARS

    # setenv first so teardown also removes values a test loads from .env
    for var in list(ENV_VARS.values()) + list(DATABASE_ENV_VARS.values()):
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    monkeypatch.chdir(tmp_path)
    yield monkeypatch


# =======================
# INVOICE EXPORT FIXTURES
# =======================

HEADER_COLUMNS = [
    "InvoiceNo", "InvoiceDate", "CustomerNo", "SalespersonNo", "FreightAmt", "DiscountAmt", "Comment",
]
LINE_COLUMNS = [
    "InvoiceNo", "LineKey", "ItemCode", "ItemCodeDesc", "QuantityShipped", "UnitPrice", "ExtensionAmt",
]


@pytest.fixture(scope="function")
def today() -> date:
    """Fixed run date; the three-year window starts 2022-06-15"""
    return FIXED_TODAY


@pytest.fixture(scope="function")
def invoice_files(write_csv) -> tuple[Path, Path]:
    """
    Small header and line exports

    INV1 and INV3 are in the window, INV2 is too old, INV4 is dated in
    the future and INV5 has an unparseable date. INV3 has no salesperson.

    Returns:
        (header path, line path)
    """
    headers = write_csv("Inv_HH.csv", HEADER_COLUMNS, [
        ["INV1", "06/01/2025", "C1", "7", "5.00", "1.50", "rush"],
        ["INV2", "01/15/2020", "C2", "7", "0", "0", ""],
        ["INV3", "12/31/2023", "C3", "", "$2,000.00", "", ""],
        ["INV4", "07/01/2025", "C1", "7", "0", "0", ""],
        ["INV5", "2025-06-01", "C1", "7", "0", "0", ""],
        ["", "06/01/2025", "C1", "7", "0", "0", ""],
    ], bom=True)
    lines = write_csv("Inv_HD.csv", LINE_COLUMNS, [
        ["INV1", "1", "K233", "Widget 2in", "2", "5.25", "10.50"],
        ["INV1", "2", "k900", "Gasket", "1", "25", "$25,00"],
        ["INV2", "1", "K233", "Widget 2in", "1", "5.25", "5.25"],
        ["INV3", "", "K233", "Widget 2in", "4", "5", "20"],
        ["INV3", "", "", "", "1", "1", "1"],
        ["INV9", "1", "K233", "Widget 2in", "1", "1", "1"],
        ["", "1", "K233", "", "1", "1", "1"],
    ])
    return headers, lines
