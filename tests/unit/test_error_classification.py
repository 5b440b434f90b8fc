"""
Unit tests for mapping psycopg exceptions onto store error classes.
"""

import psycopg
import pytest
from psycopg import errors as pg_errors
from psycopg_pool import PoolTimeout

from sales_index.store.errors import ErrorClass, StoreError
from sales_index.store.postgres_store import classify_error, translate_errors


@pytest.mark.unit
class TestClassifyError:
    """Tests for classify_error"""

    @pytest.mark.parametrize("error", [
        PoolTimeout("couldn't get a connection after 30.00 sec"),
        pg_errors.SerializationFailure("could not serialize access"),
        pg_errors.DeadlockDetected("deadlock detected"),
        pg_errors.TooManyConnections("too many clients"),
        pg_errors.AdminShutdown("terminating connection"),
        psycopg.OperationalError("connection refused"),
    ])
    def test_transient(self, error):
        assert classify_error(error).error_class is ErrorClass.TRANSIENT

    @pytest.mark.parametrize("error", [
        pg_errors.InsufficientPrivilege("permission denied for table documents"),
        pg_errors.InvalidPassword("password authentication failed"),
        pg_errors.UndefinedTable("relation does not exist"),
        psycopg.IntegrityError("duplicate key"),
    ])
    def test_permanent(self, error):
        assert classify_error(error).error_class is ErrorClass.PERMANENT

    @pytest.mark.parametrize("error", [
        psycopg.DataError("invalid input syntax"),
        pg_errors.SyntaxError("syntax error at or near"),
    ])
    def test_invalid_argument(self, error):
        assert classify_error(error).error_class is ErrorClass.INVALID_ARGUMENT


@pytest.mark.unit
class TestTranslateErrors:
    """Tests for translate_errors"""

    def test_wraps_driver_errors(self):
        with pytest.raises(StoreError) as exc_info:
            with translate_errors("batch_write"):
                raise pg_errors.DeadlockDetected("deadlock detected")

        assert exc_info.value.retryable
        assert exc_info.value.operation == "batch_write"
        assert isinstance(exc_info.value.__cause__, pg_errors.DeadlockDetected)

    def test_other_exceptions_pass_through(self):
        with pytest.raises(KeyError):
            with translate_errors("get"):
                raise KeyError("not a driver error")
