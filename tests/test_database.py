"""Tests for the aioodbc-backed execution channel."""

import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.database import ExecutionChannel
from app.core.exceptions import ChannelError


def fake_driver(connection=None, side_effect=None):
    """Stand-in for the aioodbc module, installed through sys.modules."""
    module = MagicMock()
    module.connect = AsyncMock(return_value=connection, side_effect=side_effect)
    return module


def fake_connection(row=(1,)):
    cursor = MagicMock()
    cursor.execute = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=row)
    cursor.close = AsyncMock()
    cursor.rowcount = 0

    connection = MagicMock()
    connection.cursor = AsyncMock(return_value=cursor)
    connection.close = AsyncMock()
    return connection, cursor


class TestExecutionChannel:
    """Connection lifecycle and statement execution."""

    @pytest.mark.asyncio
    async def test_connect_uses_autocommit(self):
        connection, _ = fake_connection()
        driver = fake_driver(connection)

        with patch.dict(sys.modules, {"aioodbc": driver}):
            channel = ExecutionChannel(connection_string="DSN=test", connect_timeout=5)
            await channel.connect()

        driver.connect.assert_awaited_once_with(dsn="DSN=test", autocommit=True, timeout=5)
        assert channel.is_open

    @pytest.mark.asyncio
    async def test_connect_failure_raises_channel_error(self):
        driver = fake_driver(side_effect=RuntimeError("Login failed for user 'sa'"))

        with patch.dict(sys.modules, {"aioodbc": driver}):
            channel = ExecutionChannel(connection_string="DSN=test", connect_attempts=1)
            with pytest.raises(ChannelError) as exc_info:
                await channel.connect()

        assert exc_info.value.phase == "connect"
        assert "Login failed" in exc_info.value.message
        assert not channel.is_open

    @pytest.mark.asyncio
    async def test_connect_retries_when_configured(self):
        connection, _ = fake_connection()
        driver = fake_driver(side_effect=[RuntimeError("timeout"), connection])

        with patch.dict(sys.modules, {"aioodbc": driver}):
            channel = ExecutionChannel(connection_string="DSN=test", connect_attempts=2)
            await channel.connect()

        assert driver.connect.await_count == 2
        assert channel.connection is connection

    @pytest.mark.asyncio
    async def test_execute_binds_params(self):
        connection, cursor = fake_connection()
        channel = ExecutionChannel(connection_string="DSN=test")
        channel.connection = connection

        await channel.execute("IF NOT EXISTS (SELECT 1 FROM sys.tables WHERE name = ?) CREATE TABLE [T] ([a] INT)", ("T",))

        cursor.execute.assert_awaited_once_with(
            "IF NOT EXISTS (SELECT 1 FROM sys.tables WHERE name = ?) CREATE TABLE [T] ([a] INT)", "T"
        )
        cursor.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_execute_without_params_runs_directly(self):
        connection, cursor = fake_connection()
        channel = ExecutionChannel(connection_string="DSN=test")
        channel.connection = connection

        await channel.execute("USE [Shop]")

        cursor.execute.assert_awaited_once_with("USE [Shop]")

    @pytest.mark.asyncio
    async def test_execute_propagates_driver_errors_and_closes_cursor(self):
        connection, cursor = fake_connection()
        cursor.execute.side_effect = RuntimeError("Incorrect syntax near 'x'")
        channel = ExecutionChannel(connection_string="DSN=test")
        channel.connection = connection

        with pytest.raises(RuntimeError, match="Incorrect syntax"):
            await channel.execute("CREATE x")
        cursor.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_execute_requires_open_channel(self):
        channel = ExecutionChannel(connection_string="DSN=test")
        with pytest.raises(ChannelError):
            await channel.execute("SELECT 1")

    @pytest.mark.asyncio
    async def test_fetchval(self):
        connection, _ = fake_connection(row=(1,))
        channel = ExecutionChannel(connection_string="DSN=test")
        channel.connection = connection

        assert await channel.fetchval("SELECT 1") == 1

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        connection, _ = fake_connection()
        channel = ExecutionChannel(connection_string="DSN=test")
        channel.connection = connection

        await channel.close()
        await channel.close()

        connection.close.assert_awaited_once()
        assert not channel.is_open

    @pytest.mark.asyncio
    async def test_close_failure_raises_channel_error(self):
        connection, _ = fake_connection()
        connection.close.side_effect = RuntimeError("connection reset")
        channel = ExecutionChannel(connection_string="DSN=test")
        channel.connection = connection

        with pytest.raises(ChannelError) as exc_info:
            await channel.close()
        assert exc_info.value.phase == "close"

    @pytest.mark.asyncio
    async def test_context_manager_releases_connection(self):
        connection, _ = fake_connection()
        driver = fake_driver(connection)

        with patch.dict(sys.modules, {"aioodbc": driver}):
            async with ExecutionChannel(connection_string="DSN=test") as channel:
                assert channel.is_open

        connection.close.assert_awaited_once()
