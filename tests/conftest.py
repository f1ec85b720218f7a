"""Shared pytest fixtures for dbxray tests."""

import pytest

from dbxray.config import DatabaseConfig, settings
from dbxray.database.models import Column, Table
from dbxray.logging import reset_operation_log_service

from .fixtures import FakeConnection


@pytest.fixture(autouse=True)
def no_operation_log(monkeypatch):
    """Keep tests from writing to ~/.dbxray/operations.db."""
    monkeypatch.setattr(settings, "operation_logging_enabled", False)
    reset_operation_log_service()
    yield
    reset_operation_log_service()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove connection settings that would leak into DatabaseConfig()."""
    import os

    for key in list(os.environ):
        if key.upper().startswith("DBXRAY_") or key.upper() == "DB_PASSWORD":
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def fake_connection():
    """Create an empty scripted DB-API connection."""
    return FakeConnection()


@pytest.fixture
def empty_config():
    return DatabaseConfig()


@pytest.fixture
def user_table():
    """The three-column user table used across DDL tests."""
    return Table(
        name="user",
        columns=[
            Column(name="id", type="INT", is_nullable=False, is_primary=True, is_unique=True),
            Column(name="name", type="VARCHAR(255)", is_nullable=False),
            Column(name="age", type="INT", is_nullable=True),
        ],
    )


@pytest.fixture
def orders_table():
    """A table with defaults, identity and a unique column."""
    return Table(
        name="orders",
        columns=[
            Column(
                name="id", type="BIGINT", is_nullable=False, is_primary=True, is_unique=True,
                auto_increment=True,
            ),
            Column(name="reference", type="VARCHAR(32)", is_nullable=False, is_unique=True),
            Column(name="status", type="VARCHAR(16)", is_nullable=False, default_value="'new'"),
            Column(name="total", type="DECIMAL(10,2)", is_nullable=True),
        ],
    )
