"""Tests for the BigQuery adapter."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import NotFound
from google.cloud.bigquery import SchemaField
from google.cloud.bigquery.table import Row

from dbxray.config import DatabaseConfig
from dbxray.database import BigQueryAdapter
from dbxray.errors import CatalogError, ConfigError, ExecutionError


class FakeRowIterator(list):
    """List of rows carrying the result schema, like RowIterator."""

    def __init__(self, schema, rows):
        super().__init__(rows)
        self.schema = schema


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def adapter(client):
    return BigQueryAdapter(client, DatabaseConfig(project_id="proj", database="crm"))


class TestBigQuerySchema:
    """Tests for reading table metadata."""

    def _table(self):
        return SimpleNamespace(
            table_id="customers",
            dataset_id="crm",
            description=None,
            labels={"team": "growth", "env": "prod"},
            table_constraints=SimpleNamespace(primary_key=SimpleNamespace(columns=["id"])),
            schema=[
                SchemaField("id", "INTEGER", mode="REQUIRED", description="Customer key"),
                SchemaField("email", "STRING", mode="NULLABLE", max_length=320),
                SchemaField("tags", "STRING", mode="REPEATED"),
            ],
        )

    def test_schema(self, client, adapter):
        client.get_table.return_value = self._table()

        table = adapter.schema("customers")

        client.get_table.assert_called_once_with("proj.crm.customers")
        assert table.name == "customers"
        assert table.dataset == "crm"
        assert table.description == ""
        assert table.metatags == ["env:prod", "team:growth"]
        id_col, email, tags = table.columns
        assert id_col.is_primary and id_col.is_unique and id_col.is_nullable is False
        assert id_col.description == "Customer key"
        assert email.is_nullable is True and email.character_maximum_length == 320
        assert email.description == ""
        assert tags.metatags == ["mode:REPEATED"]
        assert [c.ordinal_position for c in table.columns] == [1, 2, 3]

    def test_qualified_table_name(self, client, adapter):
        client.get_table.return_value = self._table()

        adapter.schema("other.customers")

        client.get_table.assert_called_once_with("proj.other.customers")

    def test_round_trip_to_ddl(self, client, adapter):
        client.get_table.return_value = self._table()

        ddl = adapter.generate_create_table_query(adapter.schema("customers"))

        assert ddl == (
            'CREATE TABLE crm.customers (id INT64 NOT NULL OPTIONS(description="Customer key"), '
            "email STRING, tags ARRAY<STRING>);"
        )

    def test_table_not_found(self, client, adapter):
        client.get_table.side_effect = NotFound("Not found: Table proj:crm.nope")

        with pytest.raises(CatalogError) as exc_info:
            adapter.schema("nope")
        assert "proj.crm.nope" in str(exc_info.value)


class TestBigQueryQuery:
    """Tests for query execution."""

    def test_rows_in_schema_order(self, client, adapter):
        schema = [SchemaField("id", "INTEGER"), SchemaField("name", "STRING")]
        rows = [Row((1, "ada"), {"id": 0, "name": 1}), Row((2, None), {"id": 0, "name": 1})]
        client.query.return_value.result.return_value = FakeRowIterator(schema, rows)

        result = adapter.query("SELECT id, name FROM crm.customers")

        assert result.columns == ["id", "name"]
        assert result.rows == [[1, "ada"], [2, None]]
        client.query.assert_called_once_with("SELECT id, name FROM crm.customers")

    def test_timeout_passed_to_result(self, client):
        adapter = BigQueryAdapter(client, DatabaseConfig(project_id="proj", query_timeout_seconds=15))
        client.query.return_value.result.return_value = FakeRowIterator([], [])

        adapter.query("SELECT 1")

        client.query.return_value.result.assert_called_once_with(timeout=15)

    def test_job_failure(self, client, adapter):
        client.query.return_value.result.side_effect = RuntimeError("Syntax error: Unexpected keyword")

        with pytest.raises(ExecutionError):
            adapter.query("SELEC 1")


class TestBigQueryTables:
    """Tests for listing tables in a dataset."""

    def test_views_excluded(self, client, adapter):
        client.list_tables.return_value = [
            SimpleNamespace(table_id="customers", table_type="TABLE"),
            SimpleNamespace(table_id="active", table_type="VIEW"),
            SimpleNamespace(table_id="orders", table_type="TABLE"),
        ]

        assert adapter.tables("crm") == ["customers", "orders"]
        client.list_tables.assert_called_once_with("proj.crm")

    def test_project_required(self):
        with pytest.raises(ConfigError):
            BigQueryAdapter.from_config(DatabaseConfig(database="crm"))
