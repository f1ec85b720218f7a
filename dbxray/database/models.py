"""Canonical data models shared by every database adapter."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..errors import UnsupportedBackendError


class DbType(str, Enum):
    """Supported database backends."""

    MYSQL = "mysql"
    POSTGRES = "postgres"
    SNOWFLAKE = "snowflake"
    BIGQUERY = "bigquery"
    REDSHIFT = "redshift"
    MSSQL = "mssql"
    MONGODB = "mongodb"
    DUCKDB = "duckdb"

    @classmethod
    def parse(cls, value: Union[str, "DbType"]) -> "DbType":
        """Parse a backend tag case-insensitively.

        Raises:
            UnsupportedBackendError: If the tag names no known backend
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedBackendError(str(value)) from None


class RowShape(str, Enum):
    """How rows are laid out in a QueryResult."""

    POSITIONAL = "positional"
    NAMED = "named"


_TRUE_FLAGS = {"YES", "Y", "TRUE", "T", "1"}
_FALSE_FLAGS = {"NO", "N", "FALSE", "F", "0"}


@dataclass
class Column:
    """A column as reported by a database catalog.

    Optional attributes left as None mean the catalog did not report them,
    which is different from reporting a false or empty value.
    """
    name: str
    type: str
    is_nullable: Optional[bool] = None
    is_primary: bool = False
    is_unique: Optional[bool] = None
    default_value: Optional[str] = None
    auto_increment: bool = False
    character_maximum_length: Optional[int] = None
    ordinal_position: Optional[int] = None
    identity_seed: Optional[int] = None
    identity_step: Optional[int] = None
    key: Optional[str] = None
    extra: Optional[str] = None
    description: Optional[str] = None
    visibility: Optional[bool] = None
    is_index: bool = False
    is_updatable: Optional[bool] = None
    metatags: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.name:
            raise ValueError("Column name must not be empty")

    @staticmethod
    def from_catalog_flag(value: Any) -> Optional[bool]:
        """Read a catalog YES/NO style flag into a tri-state boolean."""
        if value is None:
            return None
        if isinstance(value, bool):
            return value
        text = str(value).strip().upper()
        if text in _TRUE_FLAGS:
            return True
        if text in _FALSE_FLAGS:
            return False
        return None

    def metatag(self, prefix: str) -> Optional[str]:
        """Return the value of the first ``prefix:value`` metatag, if any."""
        marker = f"{prefix}:"
        for tag in self.metatags:
            if tag.startswith(marker):
                return tag[len(marker):]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "is_nullable": self.is_nullable,
            "is_primary": self.is_primary,
            "is_unique": self.is_unique,
            "default_value": self.default_value,
            "auto_increment": self.auto_increment,
            "character_maximum_length": self.character_maximum_length,
            "ordinal_position": self.ordinal_position,
            "identity_seed": self.identity_seed,
            "identity_step": self.identity_step,
            "key": self.key,
            "extra": self.extra,
            "description": self.description,
            "visibility": self.visibility,
            "is_index": self.is_index,
            "is_updatable": self.is_updatable,
            "metatags": list(self.metatags),
        }


@dataclass
class Table:
    """A table (or collection) and its ordered columns."""
    name: str
    columns: List[Column] = field(default_factory=list)
    dataset: Optional[str] = None
    description: str = ""
    metatags: List[str] = field(default_factory=list)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def primary_key_columns(self) -> List[Column]:
        return [c for c in self.columns if c.is_primary]

    @property
    def qualified_name(self) -> str:
        if self.dataset:
            return f"{self.dataset}.{self.name}"
        return self.name

    def get_column(self, name: str) -> Optional[Column]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Table":
        """Build a table from the layout produced by :meth:`to_dict`."""
        known = set(Column.__dataclass_fields__)
        columns = [
            Column(**{k: v for k, v in col.items() if k in known})
            for col in data.get("columns") or []
        ]
        return cls(
            name=data["name"],
            columns=columns,
            dataset=data.get("dataset"),
            description=data.get("description") or "",
            metatags=list(data.get("metatags") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "dataset": self.dataset,
            "columns": [c.to_dict() for c in self.columns],
            "column_count": self.column_count,
            "description": self.description,
            "metatags": list(self.metatags),
        }


@dataclass
class QueryResult:
    """Rows returned by a query, in one of two shapes.

    Positional rows are lists aligned with ``columns``. Named rows are
    dicts keyed by the entries of ``columns``.
    """
    columns: List[str] = field(default_factory=list)
    rows: List[Any] = field(default_factory=list)
    time: int = 0
    error: str = ""
    shape: RowShape = RowShape.POSITIONAL

    def __post_init__(self):
        self.shape = RowShape(self.shape)
        width = len(self.columns)
        for index, row in enumerate(self.rows):
            if self.shape is RowShape.POSITIONAL:
                if len(row) != width:
                    raise ValueError(
                        f"Row {index} has {len(row)} values, expected {width}"
                    )
            elif set(row.keys()) != set(self.columns):
                raise ValueError(f"Row {index} keys do not match the result columns")

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_positional(self) -> "QueryResult":
        """Return this result with rows laid out positionally."""
        if self.shape is RowShape.POSITIONAL:
            return self
        rows = [[row.get(col) for col in self.columns] for row in self.rows]
        return QueryResult(
            columns=list(self.columns),
            rows=rows,
            time=self.time,
            error=self.error,
            shape=RowShape.POSITIONAL,
        )


@dataclass(frozen=True)
class CatalogDefaults:
    """Values an adapter fills in for attributes its catalog does not report."""
    description: Optional[str] = None
    visibility: Optional[bool] = None
    tag_with_name: bool = False

    def apply(self, column: Column) -> Column:
        if column.description is None and self.description is not None:
            column.description = self.description
        if column.visibility is None and self.visibility is not None:
            column.visibility = self.visibility
        if self.tag_with_name and column.name not in column.metatags:
            column.metatags.insert(0, column.name)
        return column


# Conventions used by the row stores: empty description, visible, name tagged.
ROW_STORE_DEFAULTS = CatalogDefaults(description="", visibility=True, tag_with_name=True)
NO_DEFAULTS = CatalogDefaults()
