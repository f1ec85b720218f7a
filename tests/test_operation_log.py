"""Tests for the observed client and the SQLite operation log."""

import logging
from unittest.mock import MagicMock

import pytest

from dbxray.database import MySQLAdapter, deserialize
from dbxray.errors import CatalogError, ExecutionError
from dbxray.logging import ObservedClient, OperationLogDatabase, OperationLogService


@pytest.fixture
def log_service(tmp_path):
    service = OperationLogService(db_path=str(tmp_path / "operations.db"), enabled=True)
    yield service
    service.close()


@pytest.fixture
def observed(fake_connection, log_service):
    return ObservedClient(MySQLAdapter(fake_connection), log_service)


class TestOperationLogDatabase:
    """Tests for OperationLogDatabase."""

    def test_insert_and_update(self, tmp_path):
        db = OperationLogDatabase(str(tmp_path / "ops.db"))
        db.insert_operation("op1", "mysql", "tables", target="shop")
        db.update_success("op1", duration_ms=12, table_count=3)

        entry = db.get_operation("op1")
        assert entry["status"] == "success"
        assert entry["table_count"] == 3
        assert entry["duration_ms"] == 12
        db.close()

    def test_error_entry(self, tmp_path):
        db = OperationLogDatabase(str(tmp_path / "ops.db"))
        db.insert_operation("op2", "postgres", "query", target="SELEC 1")
        db.update_error("op2", "syntax error", error_type="ExecutionError", error_code="EXECUTION_ERROR")

        entries = db.query_operations(status="error")
        assert [e["op_id"] for e in entries] == ["op2"]
        assert entries[0]["error_code"] == "EXECUTION_ERROR"
        db.close()

    def test_stats_and_cleanup(self, tmp_path):
        db = OperationLogDatabase(str(tmp_path / "ops.db"))
        db.insert_operation("a", "mysql", "schema")
        db.update_success("a", duration_ms=10)
        db.insert_operation("b", "mysql", "schema")
        db.update_error("b", "boom", duration_ms=30)

        stats = db.get_stats()
        assert stats["total"] == 2
        assert stats["by_operation"]["schema"]["succeeded"] == 1
        assert stats["by_operation"]["schema"]["failed"] == 1
        assert stats["by_operation"]["schema"]["avg_duration_ms"] == 20

        assert db.cleanup_old_operations(retention_days=1) == 0
        db.close()


class TestObservedClient:
    """Tests for the timing and logging wrapper."""

    def test_success_is_logged(self, observed, fake_connection, log_service, caplog):
        fake_connection.add_response(r"information_schema", columns=["table_name"], rows=[("a",), ("b",)])

        with caplog.at_level(logging.INFO, logger="dbxray.logging.observer"):
            names = observed.tables("shop")

        assert names == ["a", "b"]
        assert "Tables retrieval completed: db_type=mysql database_name=shop duration_ms=" in caplog.text
        entry = log_service.query_operations()[0]
        assert entry["operation"] == "tables"
        assert entry["status"] == "success"
        assert entry["table_count"] == 2
        assert entry["target"] == "shop"

    def test_failure_is_logged_and_reraised(self, observed, fake_connection, log_service, caplog):
        fake_connection.add_response(r"^DESCRIBE", error=RuntimeError("no such table"))

        with caplog.at_level(logging.ERROR, logger="dbxray.logging.observer"):
            with pytest.raises(CatalogError):
                observed.schema("ghost")

        assert "Schema retrieval failed: db_type=mysql table_name=ghost" in caplog.text
        entry = log_service.query_operations()[0]
        assert entry["status"] == "error"
        assert entry["error_code"] == "CATALOG_ERROR"
        assert entry["error_type"] == "CatalogError"

    def test_execute_passes_bytes_through(self, observed, fake_connection, caplog):
        fake_connection.add_response(r"SELECT", columns=["n"], rows=[(1,)])

        with caplog.at_level(logging.INFO, logger="dbxray.logging.observer"):
            payload = observed.execute("SELECT 1 AS n")

        assert deserialize(payload).rows == [[1]]
        assert "Query execution completed: db_type=mysql query='SELECT 1 AS n'" in caplog.text

    def test_query_summary(self, observed, fake_connection, log_service):
        fake_connection.add_response(r"SELECT", columns=["a", "b"], rows=[(1, 2), (3, 4), (5, 6)])

        observed.query("SELECT a, b FROM t")

        entry = log_service.query_operations(operation="query")[0]
        assert entry["row_count"] == 3
        assert entry["column_count"] == 2

    def test_execution_error_code_recorded(self, observed, fake_connection, log_service):
        fake_connection.add_response(r"SELEC ", error=RuntimeError("syntax"))

        with pytest.raises(ExecutionError):
            observed.execute("SELEC 1")

        assert log_service.query_operations(status="error")[0]["error_code"] == "EXECUTION_ERROR"

    def test_ddl_is_observed(self, observed, log_service, user_table):
        ddl = observed.generate_create_table_query(user_table)

        assert ddl.startswith("CREATE TABLE user")
        entry = log_service.query_operations()[0]
        assert entry["operation"] == "generate_create_table_query"
        assert entry["column_count"] == 3

    def test_attribute_passthrough(self, observed):
        assert observed.DB_TYPE.value == "mysql"
        assert observed.config is observed.adapter.config

    def test_close(self, observed, fake_connection):
        with observed:
            pass
        assert fake_connection.closed


class TestOperationLogService:
    """Tests for OperationLogService."""

    def test_disabled_service_still_yields(self, tmp_path):
        service = OperationLogService(db_path=str(tmp_path / "x.db"), enabled=False)
        with service.log_operation("mysql", "tables", target="shop") as ctx:
            ctx.table_count = 1
        assert service.query_operations() == []
        assert service.get_stats() == {"error": "Logging not enabled"}

    def test_write_failures_do_not_break_operations(self, log_service, caplog):
        log_service._db = MagicMock()
        log_service._db.insert_operation.side_effect = RuntimeError("disk full")
        log_service._db.update_success.side_effect = RuntimeError("disk full")

        with caplog.at_level(logging.WARNING, logger="dbxray.logging.service"):
            with log_service.log_operation("mysql", "schema", target="t") as ctx:
                ctx.column_count = 2

        assert "Failed to log operation start" in caplog.text
        assert "Failed to log operation result" in caplog.text

    def test_long_targets_truncated(self, tmp_path):
        service = OperationLogService(db_path=str(tmp_path / "t.db"), max_target_size=10)
        with service.log_operation("mysql", "query", target="SELECT " + "x" * 50):
            pass
        assert service.query_operations()[0]["target"] == "SELECT xxx..."
        service.close()

    def test_unusable_path_disables_logging(self, tmp_path, caplog):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with caplog.at_level(logging.WARNING, logger="dbxray.logging.service"):
            service = OperationLogService(db_path=str(blocker / "ops.db"))
        assert service.enabled is False
        assert "Failed to initialize operation logging" in caplog.text
