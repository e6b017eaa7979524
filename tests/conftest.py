"""Shared fixtures for schema publisher tests."""

import copy
from typing import Any, List, Optional, Tuple

import pytest

from app.schemas.schema_models import Database

SHOP_PAYLOAD = {
    "databases": [
        {
            "name": "Shop",
            "tables": [
                {
                    "name": "Users",
                    "attributes": [
                        {"name": "id", "type": "INT", "isPrimaryKey": True, "autoIncrement": True, "isRequired": True},
                        {"name": "email", "type": "VARCHAR", "length": 100, "isRequired": True},
                    ],
                },
                {
                    "name": "Orders",
                    "attributes": [
                        {"name": "id", "type": "INT", "isPrimaryKey": True, "autoIncrement": True, "isRequired": True},
                        {
                            "name": "user_id",
                            "type": "INT",
                            "isRequired": True,
                            "foreignKey": {"table": "Users", "column": "id"},
                        },
                    ],
                },
            ],
        }
    ]
}

SHOP_STATEMENTS = [
    "IF NOT EXISTS (SELECT 1 FROM sys.databases WHERE name = ?) CREATE DATABASE [Shop]",
    "USE [Shop]",
    "IF NOT EXISTS (SELECT 1 FROM sys.tables WHERE name = ?) "
    "CREATE TABLE [Users] ([id] INT IDENTITY(1,1) PRIMARY KEY, [email] VARCHAR(100) NOT NULL)",
    "IF NOT EXISTS (SELECT 1 FROM sys.tables WHERE name = ?) "
    "CREATE TABLE [Orders] ([id] INT IDENTITY(1,1) PRIMARY KEY, [user_id] INT NOT NULL)",
    "IF NOT EXISTS (SELECT 1 FROM sys.foreign_keys WHERE name = ?) "
    "ALTER TABLE [Orders] ADD CONSTRAINT [FK_Orders_user_id_Users] "
    "FOREIGN KEY ([user_id]) REFERENCES [Users] ([id])",
]


class RecordingChannel:
    """In-memory execution channel that records every statement it is given."""

    def __init__(
        self,
        fail_on: Optional[int] = None,
        error: Optional[Exception] = None,
        connect_error: Optional[Exception] = None,
        close_error: Optional[Exception] = None,
    ):
        self.fail_on = fail_on
        self.error = error or RuntimeError("statement rejected")
        self.connect_error = connect_error
        self.close_error = close_error
        self.executed: List[Tuple[str, Tuple[Any, ...]]] = []
        self.connected = False
        self.closed = False

    @property
    def sql(self) -> List[str]:
        return [sql for sql, _ in self.executed]

    async def connect(self) -> "RecordingChannel":
        if self.connect_error:
            raise self.connect_error
        self.connected = True
        return self

    async def execute(self, sql: str, params=()) -> int:
        self.executed.append((sql, tuple(params)))
        if self.fail_on == len(self.executed):
            raise self.error
        return -1

    async def fetchval(self, sql: str, *params: Any) -> Any:
        return 1

    async def close(self) -> None:
        self.closed = True
        if self.close_error:
            raise self.close_error

    async def __aenter__(self) -> "RecordingChannel":
        return await self.connect()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


@pytest.fixture
def shop_payload() -> dict:
    return copy.deepcopy(SHOP_PAYLOAD)


@pytest.fixture
def shop_db(shop_payload) -> Database:
    return Database.model_validate(shop_payload["databases"][0])


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()
