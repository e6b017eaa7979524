"""
Schema Publisher Service - Applies compiled DDL to the target server
Fail-fast: the first failing statement ends the submission, nothing is rolled back
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence
from loguru import logger

from app.core.database import ChannelFactory, ExecutionChannel, create_channel
from app.core.exceptions import ChannelError, ExecutionError, PublishError, SchemaValidationError
from app.schemas.schema_models import Database
from app.services.ddl_compiler import (
    CompiledDatabase,
    SchemaCompiler,
    Statement,
    StatementKind,
    schema_compiler,
)


class PublishState(str, Enum):
    IDLE = "idle"
    COMPILING = "compiling"
    CONNECTING = "connecting"
    CREATE_DATABASE = "create_database"
    USE_DATABASE = "use_database"
    CREATE_TABLES = "create_tables"
    CREATE_FOREIGN_KEYS = "create_foreign_keys"
    CLOSING = "closing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


STATEMENT_PHASES = {
    StatementKind.CREATE_DATABASE: PublishState.CREATE_DATABASE,
    StatementKind.USE_DATABASE: PublishState.USE_DATABASE,
    StatementKind.CREATE_TABLE: PublishState.CREATE_TABLES,
    StatementKind.ADD_FOREIGN_KEY: PublishState.CREATE_FOREIGN_KEYS,
}


@dataclass
class PublishResult:
    """Outcome of one submission"""
    success: bool
    message: str
    state: PublishState
    error_kind: Optional[str] = None
    failed_statement: Optional[str] = None
    executed: List[str] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)
    duration_seconds: float = 0.0


class SchemaPublisher:
    """
    Drives one submission at a time:
    compile everything, open one channel, then per database run
    CREATE DATABASE, USE, CREATE TABLE..., ADD CONSTRAINT..., and close.
    """

    def __init__(
        self,
        compiler: Optional[SchemaCompiler] = None,
        channel_factory: Optional[ChannelFactory] = None
    ):
        self.compiler = compiler or schema_compiler
        self.channel_factory = channel_factory or create_channel
        self.publish_lock = asyncio.Lock()
        self.state = PublishState.IDLE
        self.last_result: Optional[PublishResult] = None

    async def publish(
        self,
        databases: Sequence[Database],
        channel_factory: Optional[ChannelFactory] = None
    ) -> PublishResult:
        """
        Compile and apply a schema submission

        Args:
            databases: Snapshot of the designer's databases, in submission order
            channel_factory: Overrides the configured channel factory

        Returns:
            PublishResult; failures are reported, not raised
        """
        async with self.publish_lock:
            start_time = datetime.now(timezone.utc)
            result = await self._publish(databases, channel_factory or self.channel_factory)
            result.duration_seconds = round((datetime.now(timezone.utc) - start_time).total_seconds(), 3)
            self.last_result = result

            if result.success:
                logger.info(
                    f"Published {len(databases)} database(s), "
                    f"{len(result.executed)} statement(s) in {result.duration_seconds}s"
                )
            return result

    async def _publish(self, databases: Sequence[Database], channel_factory: ChannelFactory) -> PublishResult:
        executed: List[str] = []

        self.state = PublishState.COMPILING
        try:
            compiled = self.compiler.compile_submission(databases)
        except PublishError as e:
            return self._failed(e, executed)

        self.state = PublishState.CONNECTING
        channel = channel_factory()
        try:
            await channel.connect()
        except ChannelError as e:
            return self._failed(e, executed)
        except Exception as e:
            return self._failed(ChannelError(str(e), phase="connect"), executed)

        failure: Optional[PublishError] = None
        try:
            await self._run(channel, compiled, executed)
        except PublishError as e:
            failure = e
        finally:
            self.state = PublishState.CLOSING
            close_error = await self._release(channel)

        if close_error is not None:
            if failure is None:
                failure = close_error
            else:
                logger.warning(f"Channel close failed after earlier error: {close_error.message}")

        if failure is not None:
            return self._failed(failure, executed)

        self.state = PublishState.SUCCEEDED
        return PublishResult(
            success=True,
            message="Published successfully",
            state=self.state,
            executed=executed
        )

    async def _run(
        self,
        channel: ExecutionChannel,
        compiled: List[CompiledDatabase],
        executed: List[str]
    ) -> None:
        for db in compiled:
            logger.info(f"Processing database: {db.name}")
            for statement in db.statements():
                self.state = STATEMENT_PHASES[statement.kind]
                await self._execute(channel, statement)
                executed.append(statement.describe())
            logger.info(
                f"Database {db.name} published: {len(db.table_statements)} table(s), "
                f"{len(db.fk_statements)} foreign key(s)"
            )

    async def _execute(self, channel: ExecutionChannel, statement: Statement) -> None:
        logger.debug(f"{statement.describe()}: {statement.sql}")
        try:
            await channel.execute(statement.sql, statement.params)
        except ChannelError:
            raise
        except Exception as e:
            logger.error(f"Statement failed ({statement.describe()}): {e}")
            raise ExecutionError(str(e), statement=statement) from e

    async def _release(self, channel: ExecutionChannel) -> Optional[ChannelError]:
        try:
            await channel.close()
        except ChannelError as e:
            return e
        except Exception as e:
            return ChannelError(str(e), phase="close")
        return None

    def _failed(self, error: PublishError, executed: List[str]) -> PublishResult:
        self.state = PublishState.FAILED
        statement = getattr(error, "statement", None)
        issues = error.issues if isinstance(error, SchemaValidationError) else []

        if isinstance(error, ChannelError):
            logger.error(f"Publish failed ({error.code}, {error.phase}): {error.message}")
        else:
            logger.error(f"Publish failed ({error.code}): {error.message}")
        return PublishResult(
            success=False,
            message=error.message,
            state=self.state,
            error_kind=error.code,
            failed_statement=statement.describe() if statement is not None else None,
            executed=executed,
            errors=issues
        )


# Global publisher instance
schema_publisher = SchemaPublisher()
