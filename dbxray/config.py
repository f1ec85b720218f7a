"""Configuration management for dbxray."""

import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml
from pydantic import AliasChoices, Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings

from .errors import ConfigError


def _find_env_file() -> Optional[str]:
    """Find .env file in multiple locations.

    Search order:
    1. Current working directory
    2. ~/.dbxray/.env
    3. Package directory (where this file is located)
    """
    if os.path.exists(".env"):
        return ".env"

    user_env = Path.home() / ".dbxray" / ".env"
    if user_env.exists():
        return str(user_env)

    package_dir = Path(__file__).parent.parent
    package_env = package_dir / ".env"
    if package_env.exists():
        return str(package_env)

    return None


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    log_level: str = Field(
        default="WARNING",
        description="Level for the dbxray loggers"
    )

    # Operation logging
    observability_enabled: bool = Field(
        default=True,
        description="Wrap clients from the registry with the timing/logging decorator"
    )
    operation_logging_enabled: bool = Field(
        default=True,
        description="Record every observed operation in the SQLite operation log"
    )
    operation_logging_db_path: Optional[str] = Field(
        default=None,
        description="Path to operation log database (default: ~/.dbxray/operations.db)"
    )
    operation_logging_retention_days: int = Field(
        default=30,
        description="Number of days to retain operation log entries"
    )
    operation_logging_max_query_size: int = Field(
        default=10000,
        description="Maximum length of query text stored in the operation log"
    )

    class Config:
        env_prefix = "DBXRAY_"
        env_file = _find_env_file()
        env_file_encoding = "utf-8"
        extra = "ignore"


# Keys accepted in YAML files and mappings, and the field they fill
_FIELD_ALIASES = {
    "schema": "schema_name",
    "dbname": "database",
    "database_name": "database",
    "user": "username",
    "credentials_path": "json_key_path",
    "type": "db_type",
}


class DatabaseConfig(BaseSettings):
    """Connection parameters for one database.

    Every field can be given as a keyword, read from a ``DBXRAY_<FIELD>``
    environment variable, or loaded from YAML with :meth:`from_yaml`.
    The password is only ever read from ``DB_PASSWORD`` (or passed
    explicitly) and is resolved once, when the config is built.
    """

    db_type: Optional[str] = Field(default=None, description="Backend tag, e.g. mysql or bigquery")
    host: Optional[str] = Field(default=None, description="Database host")
    port: Optional[int] = Field(default=None, description="Database port")
    username: Optional[str] = Field(default=None, description="Login user")
    password: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("DB_PASSWORD"),
        description="Login password",
    )
    database: Optional[str] = Field(default=None, description="Database, catalog or dataset name")
    schema_name: Optional[str] = Field(default=None, description="Schema used for introspection")
    ssl: bool = Field(default=False, description="Require TLS where the driver supports it")

    # Snowflake
    account: Optional[str] = Field(default=None, description="Snowflake account identifier")
    warehouse: Optional[str] = Field(default=None, description="Snowflake warehouse")
    role: Optional[str] = Field(default=None, description="Snowflake role")

    # BigQuery
    project_id: Optional[str] = Field(default=None, description="Google Cloud project")
    json_key_path: Optional[str] = Field(default=None, description="Service account key file")
    region: Optional[str] = Field(default=None, description="BigQuery job location")

    # DuckDB
    path: Optional[str] = Field(default=None, description="DuckDB file path or :memory:")
    read_only: bool = Field(default=False, description="Open DuckDB files read-only")

    query_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Per-query timeout, applied where the driver supports one"
    )
    sample_size: int = Field(default=1, description="Documents sampled to infer a collection schema")
    decode_base64_text: bool = Field(
        default=False,
        description="Decode query result strings that look like base64 text (Postgres, Snowflake)"
    )

    class Config:
        env_prefix = "DBXRAY_"
        extra = "ignore"
        populate_by_name = True

    @classmethod
    def from_mapping(cls, data: Dict[str, Any], **overrides) -> "DatabaseConfig":
        """Build a config from a plain mapping, accepting common key aliases.

        Raises:
            ConfigError: If a value fails validation
        """
        values: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            values[_FIELD_ALIASES.get(key, key)] = value
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: Union[str, Path], **overrides) -> "DatabaseConfig":
        """Load a config from a YAML file.

        Raises:
            ConfigError: If the file cannot be read or is not a mapping
        """
        config_path = Path(path)
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read config file {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")
        return cls.from_mapping(data, **overrides)

    def password_value(self) -> Optional[str]:
        if self.password is None:
            return None
        return self.password.get_secret_value()

    def missing_fields(self, names: Iterable[str]) -> List[str]:
        """Return the names among ``names`` whose value is unset or empty."""
        missing = []
        for name in names:
            value = getattr(self, name)
            if value is None or value == "":
                missing.append(name)
        return missing

    def redacted(self) -> Dict[str, Any]:
        """Return the config as a dict with the password masked."""
        data = self.model_dump()
        data["password"] = "********" if self.password else None
        return data


# Global settings instance
settings = Settings()
