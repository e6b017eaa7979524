"""
Pydantic models for the schema designer payload and publish responses
Attribute keys follow the browser's camelCase; Python code uses snake_case.
"""
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Tuple, Any, Dict


class ColumnType(str, Enum):
    """Column types offered by the designer"""
    INT = "INT"
    BIT = "BIT"
    VARCHAR = "VARCHAR"
    NVARCHAR = "NVARCHAR"
    TEXT = "TEXT"
    DECIMAL = "DECIMAL"
    FLOAT = "FLOAT"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    DATETIME = "DATETIME"
    TIMESTAMP = "TIMESTAMP"


class ForeignKeyRef(BaseModel):
    """Reference to a column of another table in the same database"""
    model_config = ConfigDict(frozen=True)

    table: str
    column: str


class Attribute(BaseModel):
    """One column definition"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    type: ColumnType
    length: Optional[int] = None
    is_required: bool = Field(default=False, alias="isRequired")
    is_primary_key: bool = Field(default=False, alias="isPrimaryKey")
    auto_increment: Optional[bool] = Field(default=False, alias="autoIncrement")
    default_value: Optional[str] = Field(default=None, alias="defaultValue")
    foreign_key: Optional[ForeignKeyRef] = Field(default=None, alias="foreignKey")


class Table(BaseModel):
    """A table and its ordered columns; an empty table is a placeholder"""
    model_config = ConfigDict(frozen=True)

    name: str
    attributes: Tuple[Attribute, ...] = ()


class Database(BaseModel):
    """A database and its ordered tables"""
    model_config = ConfigDict(frozen=True)

    name: str
    tables: Tuple[Table, ...] = ()


class PublishRequest(BaseModel):
    """Schema submission sent by the designer"""
    model_config = ConfigDict(frozen=True)

    databases: Tuple[Database, ...] = Field(..., description="Databases to create, in order")


class PublishResponse(BaseModel):
    """Successful publish"""
    message: str
    executed: List[str] = []


class PublishFailureResponse(BaseModel):
    """Failed publish; message is the triggering error's message"""
    message: str
    error: str
    statement: Optional[str] = None
    executed: List[str] = []
    errors: List[Dict[str, str]] = []


class StatementPreview(BaseModel):
    """One compiled statement"""
    kind: str
    target: str
    sql: str
    params: List[Any] = []


class DatabasePreview(BaseModel):
    """Compiled statements for one database, in execution order"""
    name: str
    statements: List[StatementPreview]


class PreviewResponse(BaseModel):
    """Compile-only result"""
    success: bool
    databases: List[DatabasePreview]
    total_statements: int
