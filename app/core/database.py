"""
Execution Channel for SQL Server using aioodbc
One autocommit connection per publish; statements run strictly in sequence
"""
from typing import Any, Callable, Optional, Sequence
from loguru import logger
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from .config import settings
from .exceptions import ChannelError


class ExecutionChannel:
    """Owns a single connection to the target server"""

    def __init__(
        self,
        connection_string: Optional[str] = None,
        connect_timeout: Optional[int] = None,
        connect_attempts: Optional[int] = None
    ):
        self.connection_string = connection_string or settings.get_odbc_connection_string()
        self.connect_timeout = connect_timeout if connect_timeout is not None else settings.DATABASE_CONNECT_TIMEOUT
        self.connect_attempts = max(1, connect_attempts or settings.DATABASE_CONNECT_ATTEMPTS)
        self.connection = None

    @property
    def is_open(self) -> bool:
        return self.connection is not None

    async def connect(self) -> "ExecutionChannel":
        """Open the connection; CREATE DATABASE needs autocommit"""
        if self.connection is not None:
            return self

        # Imported here so the ODBC driver manager is only needed when connecting
        import aioodbc

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.connect_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                reraise=True
            ):
                with attempt:
                    self.connection = await aioodbc.connect(
                        dsn=self.connection_string,
                        autocommit=True,
                        timeout=self.connect_timeout
                    )
        except Exception as e:
            logger.error(f"Failed to open execution channel: {e}")
            raise ChannelError(f"Could not connect to database server: {e}", phase="connect") from e

        logger.info(
            f"Execution channel opened to {settings.MSSQL_SERVER}:{settings.MSSQL_PORT}"
        )
        return self

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run one statement and return its row count; driver errors propagate"""
        if self.connection is None:
            raise ChannelError("Execution channel is not open", phase="connect")

        cursor = await self.connection.cursor()
        try:
            if params:
                await cursor.execute(sql, *params)
            else:
                # Without parameters the batch runs directly, so USE persists
                await cursor.execute(sql)
            return cursor.rowcount
        finally:
            await cursor.close()

    async def fetchval(self, sql: str, *params: Any) -> Any:
        """Fetch the first column of the first row"""
        if self.connection is None:
            raise ChannelError("Execution channel is not open", phase="connect")

        cursor = await self.connection.cursor()
        try:
            await cursor.execute(sql, *params)
            row = await cursor.fetchone()
            return row[0] if row else None
        finally:
            await cursor.close()

    async def close(self) -> None:
        """Release the connection; safe to call twice"""
        if self.connection is None:
            return

        connection, self.connection = self.connection, None
        try:
            await connection.close()
        except Exception as e:
            logger.error(f"Failed to close execution channel: {e}")
            raise ChannelError(f"Could not close database connection: {e}", phase="close") from e

        logger.info("Execution channel closed")

    async def __aenter__(self) -> "ExecutionChannel":
        return await self.connect()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


ChannelFactory = Callable[[], ExecutionChannel]


def create_channel() -> ExecutionChannel:
    """Default channel factory using application settings"""
    return ExecutionChannel()
