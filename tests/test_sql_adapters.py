"""Tests for the DB-API adapters using a scripted connection."""

import base64
import json

import pytest

from dbxray.config import DatabaseConfig
from dbxray.database import (
    MSSQLAdapter,
    MySQLAdapter,
    PostgresAdapter,
    RedshiftAdapter,
    SnowflakeAdapter,
    deserialize,
)
from dbxray.database.postgres import rewrite_meta_command
from dbxray.database.redshift import parse_identity_default
from dbxray.errors import CatalogError, ConfigError, ConnectionError, ExecutionError, ScanError


class TestMySQLAdapter:
    """Tests for MySQL introspection and execution."""

    DESCRIBE_COLUMNS = ["Field", "Type", "Null", "Key", "Default", "Extra"]

    def test_schema_from_describe(self, fake_connection):
        fake_connection.add_response(r"^DESCRIBE `user`", columns=self.DESCRIBE_COLUMNS, rows=[
            ("id", "int", "NO", "PRI", None, "auto_increment"),
            ("email", "varchar(255)", "NO", "UNI", None, ""),
            ("age", "int", "YES", "", "0", ""),
        ])
        adapter = MySQLAdapter(fake_connection, DatabaseConfig(database="shop"))

        table = adapter.schema("user")

        assert table.name == "user"
        assert table.column_count == 3
        id_col, email, age = table.columns
        assert id_col.is_primary and id_col.auto_increment and id_col.is_nullable is False
        assert id_col.key == "PRI" and id_col.is_index
        assert email.is_unique and not email.is_primary
        assert age.is_nullable is True
        assert age.default_value == "0"
        assert id_col.default_value is None
        # Catalog defaults
        assert age.description == ""
        assert age.visibility is True
        assert age.metatags == ["age"]

    def test_described_defaults_round_trip_to_ddl(self, fake_connection):
        """DESCRIBE reports string defaults unquoted; DDL must quote them."""
        fake_connection.add_response(r"^DESCRIBE", columns=self.DESCRIBE_COLUMNS, rows=[
            ("note", "varchar(10)", "NO", "", "", ""),
            ("status", "varchar(8)", "YES", "", "new", ""),
            ("created", "timestamp", "YES", "", "CURRENT_TIMESTAMP", "DEFAULT_GENERATED"),
            ("qty", "int", "YES", "", "0", ""),
        ])
        adapter = MySQLAdapter(fake_connection)

        table = adapter.schema("t")

        assert [c.default_value for c in table.columns] == ["''", "'new'", "CURRENT_TIMESTAMP", "0"]
        assert adapter.generate_create_table_query(table) == (
            "CREATE TABLE t (note varchar(10) DEFAULT '' NOT NULL, "
            "status varchar(8) DEFAULT 'new', "
            "created timestamp DEFAULT CURRENT_TIMESTAMP, "
            "qty int DEFAULT 0)"
        )

    def test_schema_is_deterministic(self, fake_connection):
        fake_connection.add_response(r"^DESCRIBE", columns=self.DESCRIBE_COLUMNS, rows=[
            ("id", "int", "NO", "PRI", None, ""),
        ])
        adapter = MySQLAdapter(fake_connection)

        assert adapter.schema("t") == adapter.schema("t")

    def test_schema_of_missing_table(self, fake_connection):
        fake_connection.add_response(r"^DESCRIBE", error=RuntimeError("Table 'shop.nope' doesn't exist"))
        adapter = MySQLAdapter(fake_connection)

        with pytest.raises(CatalogError):
            adapter.schema("nope")

    def test_schema_with_no_rows(self, fake_connection):
        fake_connection.add_response(r"^DESCRIBE", columns=self.DESCRIBE_COLUMNS, rows=[])
        table = MySQLAdapter(fake_connection).schema("empty")
        assert table.columns == []
        assert table.column_count == 0

    def test_tables_preserve_catalog_order(self, fake_connection):
        fake_connection.add_response(r"information_schema\.tables", columns=["table_name"], rows=[
            ("zeta",), ("alpha",), ("alpha",),
        ])
        adapter = MySQLAdapter(fake_connection)

        assert adapter.tables("shop") == ["zeta", "alpha", "alpha"]
        sql, params, _ = fake_connection.executed[-1]
        assert "BASE TABLE" in sql
        assert params == ("shop",)

    def test_execute_decodes_utf8_bytes(self, fake_connection):
        fake_connection.add_response(r"SELECT", columns=["name", "raw"], rows=[
            (b"caf\xc3\xa9", b"\xff\x00"),
        ])
        adapter = MySQLAdapter(fake_connection)

        result = deserialize(adapter.execute("SELECT name, raw FROM t"))

        assert result.columns == ["name", "raw"]
        assert result.rows == [["café", b"\xff\x00"]]
        assert result.time >= 0

    def test_execute_error(self, fake_connection):
        fake_connection.add_response(r"SELEC", error=RuntimeError("syntax error"))
        adapter = MySQLAdapter(fake_connection)

        with pytest.raises(ExecutionError) as exc_info:
            adapter.execute("SELEC 1")
        assert exc_info.value.details["query"] == "SELEC 1"

    def test_scan_failure_propagates(self, fake_connection):
        fake_connection.add_response(r"SELECT", columns=["id"], rows=[(1,), (2,), (3,)], fail_at=2)
        adapter = MySQLAdapter(fake_connection)

        with pytest.raises(ScanError):
            adapter.execute("SELECT id FROM t")

    def test_missing_password_fails_before_connecting(self):
        config = DatabaseConfig(host="localhost", username="root", database="shop")
        with pytest.raises(ConfigError) as exc_info:
            MySQLAdapter.from_config(config)
        assert "password (DB_PASSWORD)" in exc_info.value.details["missing"]

    def test_password_from_environment(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "s3cret")
        config = DatabaseConfig(host="localhost", username="root", database="shop")
        MySQLAdapter.validate_config(config)
        assert config.password_value() == "s3cret"

    def test_driver_failure_becomes_connection_error(self, monkeypatch):
        def refuse(cls, config):
            raise OSError("connection refused")

        monkeypatch.setattr(MySQLAdapter, "connect", classmethod(refuse))
        config = DatabaseConfig(host="localhost", username="root", database="shop", password="x")

        with pytest.raises(ConnectionError) as exc_info:
            MySQLAdapter.from_config(config)
        assert "connection refused" in str(exc_info.value)

    def test_close_and_context_manager(self, fake_connection):
        with MySQLAdapter(fake_connection) as adapter:
            assert adapter.connection is fake_connection
        assert fake_connection.closed
        with pytest.raises(ConnectionError):
            adapter.connection


class TestPostgresMetaCommands:
    """Tests for psql meta-command rewriting."""

    @pytest.mark.parametrize("command,expected", [
        ("\\l", "SELECT datname FROM pg_database WHERE datistemplate = false;"),
        ("\\dt", "SELECT * FROM pg_catalog.pg_tables;"),
        ("\\d", "SELECT * FROM pg_catalog.pg_tables;"),
        ("\\du", "SELECT rolname FROM pg_roles;"),
        ("\\conninfo", "SELECT * FROM pg_stat_activity WHERE pid = pg_backend_pid();"),
        ("\\d users", 'SELECT * FROM "users";'),
        ("\\d public.users", 'SELECT * FROM "public"."users";'),
        ("\\dn sales", "SELECT * FROM pg_catalog.pg_namespace WHERE nspname = 'sales';"),
        ("\\dp o'brien", "SELECT * FROM pg_catalog.pg_statio_all_tables WHERE relname = 'o''brien';"),
    ])
    def test_rewrites(self, command, expected):
        assert rewrite_meta_command(command) == expected

    @pytest.mark.parametrize("command", ["\\q", "\\c other", "\\?", "SELECT 1", "\\dt extra args"])
    def test_left_unchanged(self, command):
        assert rewrite_meta_command(command) == command


class TestPostgresAdapter:
    """Tests for PostgreSQL introspection and execution."""

    SCHEMA_COLUMNS = [
        "column_name", "data_type", "is_nullable", "column_default", "character_maximum_length",
        "ordinal_position", "is_updatable", "is_identity", "identity_start", "identity_increment",
        "udt_name", "is_primary", "is_unique",
    ]

    def test_schema(self, fake_connection):
        fake_connection.add_response(r"information_schema\.columns", columns=self.SCHEMA_COLUMNS, rows=[
            ("id", "integer", "NO", "nextval('user_id_seq'::regclass)", None, 1, "YES", "NO", None, None,
             "int4", True, True),
            ("name", "character varying", "NO", None, 255, 2, "YES", "NO", None, None, "varchar", False, False),
            ("mood", "USER-DEFINED", "YES", "'ok'::mood", None, 3, "YES", "NO", None, None, "mood", False, False),
            ("n", "bigint", "NO", None, None, 4, "YES", "YES", "10", "2", "int8", False, True),
        ])
        adapter = PostgresAdapter(fake_connection, DatabaseConfig(schema_name="app"))

        table = adapter.schema("user")

        assert table.dataset == "app"
        assert [c.name for c in table.columns] == ["id", "name", "mood", "n"]
        id_col, name, mood, n = table.columns
        assert id_col.auto_increment and id_col.default_value is None and id_col.is_primary
        assert name.character_maximum_length == 255
        assert mood.type == "mood"
        assert mood.default_value == "'ok'::mood"
        assert n.auto_increment and n.identity_seed == 10 and n.identity_step == 2
        assert n.is_unique and not n.is_primary
        assert id_col.is_updatable is True
        assert fake_connection.executed[0][1] == ("app", "user")

    def test_tables_default_schema(self, fake_connection):
        fake_connection.add_response(r"information_schema\.tables", columns=["table_name"], rows=[
            ("users",), ("orders",),
        ])
        adapter = PostgresAdapter(fake_connection)

        assert adapter.tables("shop") == ["users", "orders"]
        assert fake_connection.executed[0][1] == ("public", "shop")

    def test_meta_command_executed_as_sql(self, fake_connection):
        fake_connection.add_response(r"pg_database", columns=["datname"], rows=[("postgres",), ("shop",)])
        adapter = PostgresAdapter(fake_connection)

        result = adapter.query("\\l")

        assert result.rows == [["postgres"], ["shop"]]
        assert fake_connection.statements == ["SELECT datname FROM pg_database WHERE datistemplate = false;"]

    def test_base64_left_alone_by_default(self, fake_connection):
        encoded = base64.b64encode(b"hello world").decode("ascii")
        fake_connection.add_response(r"SELECT", columns=["v"], rows=[(encoded,)])

        result = PostgresAdapter(fake_connection).query("SELECT v FROM t")

        assert result.rows == [[encoded]]

    def test_base64_decoding_opt_in(self, fake_connection):
        encoded = base64.b64encode(b"hello world").decode("ascii")
        fake_connection.add_response(r"SELECT", columns=["v"], rows=[(encoded,)])
        adapter = PostgresAdapter(fake_connection, DatabaseConfig(decode_base64_text=True))

        assert adapter.query("SELECT v FROM t").rows == [["hello world"]]


class TestSnowflakeAdapter:
    """Tests for Snowflake introspection and execution."""

    def test_schema_with_keys(self, fake_connection):
        fake_connection.add_response(r"information_schema\.columns", columns=[
            "COLUMN_NAME", "DATA_TYPE", "IS_NULLABLE", "COLUMN_DEFAULT", "CHARACTER_MAXIMUM_LENGTH",
            "ORDINAL_POSITION", "IS_IDENTITY", "IDENTITY_START", "IDENTITY_INCREMENT", "COMMENT",
        ], rows=[
            ("ID", "NUMBER", "NO", None, None, 1, "YES", "1", "1", "surrogate key"),
            ("EMAIL", "TEXT", "YES", None, 16777216, 2, "NO", None, None, None),
        ])
        key_columns = ["created_on", "database_name", "schema_name", "table_name", "column_name"]
        fake_connection.add_response(r"SHOW PRIMARY KEYS", columns=key_columns, rows=[
            (None, "DB", "PUBLIC", "USERS", "ID"),
        ])
        fake_connection.add_response(r"SHOW UNIQUE KEYS", columns=key_columns, rows=[
            (None, "DB", "PUBLIC", "USERS", "EMAIL"),
        ])
        adapter = SnowflakeAdapter(fake_connection, DatabaseConfig(database="DB"))

        table = adapter.schema("USERS")

        id_col, email = table.columns
        assert id_col.is_primary and id_col.auto_increment
        assert id_col.identity_seed == 1 and id_col.identity_step == 1
        assert id_col.description == "surrogate key"
        assert email.is_unique and not email.is_primary
        assert email.description == ""
        assert "SHOW PRIMARY KEYS IN TABLE DB.PUBLIC.USERS" in fake_connection.statements

    def test_missing_table_gives_empty_schema(self, fake_connection):
        fake_connection.add_response(r"information_schema\.columns", columns=["COLUMN_NAME"], rows=[])
        table = SnowflakeAdapter(fake_connection).schema("NOPE")
        assert table.columns == []
        assert len(fake_connection.executed) == 1

    def test_tables(self, fake_connection):
        fake_connection.add_response(r"information_schema\.tables", columns=["TABLE_NAME"], rows=[
            ("USERS",), ("ORDERS",),
        ])
        adapter = SnowflakeAdapter(fake_connection, DatabaseConfig(schema_name="RAW"))

        assert adapter.tables("ANALYTICS") == ["USERS", "ORDERS"]
        sql, params, _ = fake_connection.executed[0]
        assert "FROM ANALYTICS.information_schema.tables" in sql
        assert params == ("RAW",)

    def test_query_timeout_passed_to_cursor(self, fake_connection):
        fake_connection.add_response(r"SELECT", columns=["N"], rows=[(1,)])
        adapter = SnowflakeAdapter(fake_connection, DatabaseConfig(query_timeout_seconds=30))

        adapter.query("SELECT 1 AS N")

        assert fake_connection.executed[0][2] == {"timeout": 30}

    def test_required_fields(self):
        with pytest.raises(ConfigError) as exc_info:
            SnowflakeAdapter.from_config(DatabaseConfig(username="u", password="p"))
        assert exc_info.value.details["missing"] == ["account", "database"]


class TestRedshiftAdapter:
    """Tests for Redshift introspection."""

    def test_schema_carries_storage_metatags(self, fake_connection):
        fake_connection.add_response(r"^SET search_path")
        fake_connection.add_response(r"pg_table_def", columns=[
            "column", "type", "encoding", "distkey", "sortkey", "notnull",
        ], rows=[
            ("id", "integer", "az64", True, 1, True),
            ("name", "character varying(256)", "lzo", False, 0, False),
        ])
        fake_connection.add_response(r"information_schema\.columns", columns=[
            "column_name", "column_default", "ordinal_position", "character_maximum_length", "constraint_type",
        ], rows=[
            ("id", "\"identity\"(108406, 0, '1,1'::text)", 1, None, "PRIMARY KEY"),
            ("name", None, 2, 256, None),
        ])
        adapter = RedshiftAdapter(fake_connection)

        table = adapter.schema("users")

        id_col, name = table.columns
        assert id_col.metatags == ["encode:az64", "distkey:true", "sortkey:1", "notnull:true"]
        assert id_col.is_nullable is False
        assert id_col.is_primary
        assert id_col.auto_increment and (id_col.identity_seed, id_col.identity_step) == (1, 1)
        assert id_col.default_value is None
        assert name.is_nullable is True
        assert name.character_maximum_length == 256
        # No catalog defaults for Redshift
        assert name.description is None and name.visibility is None
        assert fake_connection.statements[0] == 'SET search_path TO "public"'

    def test_ddl_from_introspected_table(self, fake_connection):
        fake_connection.add_response(r"^SET search_path")
        fake_connection.add_response(r"pg_table_def", columns=[
            "column", "type", "encoding", "distkey", "sortkey", "notnull",
        ], rows=[("id", "integer", "az64", True, 1, True)])
        fake_connection.add_response(r"information_schema\.columns", columns=[
            "column_name", "column_default", "ordinal_position", "character_maximum_length", "constraint_type",
        ], rows=[("id", None, 1, None, None)])
        adapter = RedshiftAdapter(fake_connection, DatabaseConfig(database="dev"))

        ddl = adapter.generate_create_table_query(adapter.schema("users"))

        assert ddl == "CREATE TABLE dev.public.users (id INTEGER ENCODE AZ64 DISTKEY SORTKEY NOT NULL);"

    def test_tables_keep_only_tables(self, fake_connection):
        fake_connection.add_response(r"^SHOW TABLES", columns=[
            "database_name", "schema_name", "table_name", "table_type", "table_acl", "remarks",
        ], rows=[
            ("dev", "public", "users", "TABLE", None, None),
            ("dev", "public", "active_users", "VIEW", None, None),
            ("dev", "public", "events", "TABLE", None, None),
        ])

        assert RedshiftAdapter(fake_connection).tables("dev") == ["users", "events"]
        assert fake_connection.statements == ["SHOW TABLES FROM SCHEMA dev.public;"]

    def test_parse_identity_default(self):
        assert parse_identity_default("\"identity\"(1, 0, '5,10'::text)") == (5, 10)
        assert parse_identity_default("'x'::character varying") is None
        assert parse_identity_default(None) is None


class TestMSSQLAdapter:
    """Tests for SQL Server introspection."""

    SCHEMA_COLUMNS = [
        "COLUMN_NAME", "DATA_TYPE", "IS_NULLABLE", "COLUMN_DEFAULT", "ORDINAL_POSITION",
        "CHARACTER_MAXIMUM_LENGTH", "IS_IDENTITY", "IDENTITY_SEED", "IDENTITY_STEP",
        "IS_PRIMARY", "IS_UNIQUE",
    ]

    def test_ddl_keeps_catalog_lengths(self, fake_connection):
        """The catalog length is reattached to sized types, -1 meaning MAX."""
        fake_connection.add_response(r"INFORMATION_SCHEMA\.COLUMNS", columns=self.SCHEMA_COLUMNS, rows=[
            ("id", "int", "NO", None, 1, None, 1, 1, 1, 1, 0),
            ("code", "varchar", "NO", None, 2, 50, 0, None, None, 0, 0),
            ("notes", "nvarchar", "YES", None, 3, -1, 0, None, None, 0, 0),
            ("qty", "int", "YES", None, 4, None, 0, None, None, 0, 0),
        ])
        adapter = MSSQLAdapter(fake_connection)

        ddl = adapter.generate_create_table_query(adapter.schema("items"))

        assert ddl == (
            "CREATE TABLE [items] ([id] int IDENTITY(1,1), [code] varchar(50) NOT NULL, "
            "[notes] nvarchar(MAX), [qty] int, PRIMARY KEY ([id]))"
        )

    def test_schema(self, fake_connection):
        fake_connection.add_response(r"INFORMATION_SCHEMA\.COLUMNS", columns=self.SCHEMA_COLUMNS, rows=[
            ("id", "int", "NO", None, 1, None, 1, 1, 1, 1, 0),
            ("code", "nvarchar", "NO", "(N'x')", 2, 10, 0, 1, 1, 0, 1),
            ("qty", "int", "YES", "((0))", 3, None, 0, 1, 1, 0, 0),
        ])
        adapter = MSSQLAdapter(fake_connection, DatabaseConfig(database="shop"))

        table = adapter.schema("items")

        id_col, code, qty = table.columns
        assert id_col.is_primary and id_col.auto_increment
        assert (id_col.identity_seed, id_col.identity_step) == (1, 1)
        assert code.is_unique and code.default_value == "N'x'"
        assert qty.default_value == "0"
        assert code.identity_seed is None
        assert fake_connection.executed[0][1] == ("dbo", "items")

    def test_tables(self, fake_connection):
        fake_connection.add_response(r"INFORMATION_SCHEMA\.TABLES", columns=["TABLE_NAME"], rows=[("items",)])

        assert MSSQLAdapter(fake_connection).tables("shop") == ["items"]
        assert "FROM [shop].INFORMATION_SCHEMA.TABLES" in fake_connection.statements[0]


class TestEnvelope:
    """Every adapter's execute returns the same envelope layout."""

    @pytest.mark.parametrize("adapter_cls", [MySQLAdapter, PostgresAdapter, MSSQLAdapter, RedshiftAdapter])
    def test_envelope_keys(self, adapter_cls, fake_connection):
        fake_connection.add_response(r"SELECT", columns=["a"], rows=[(1,)])

        payload = json.loads(adapter_cls(fake_connection).execute("SELECT 1 AS a"))

        assert set(payload) == {"columns", "rows", "time", "error", "shape"}
        assert payload["rows"] == [[1]]
