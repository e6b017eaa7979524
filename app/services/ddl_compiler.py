"""
DDL Compiler Service - Turns a designer schema into ordered T-SQL statements
Pure transformation: no I/O, the same schema always yields the same statements
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
from loguru import logger

from app.core.exceptions import CompilationError, SchemaValidationError
from app.schemas.schema_models import Attribute, Database, Table
from app.services.schema_validator import (
    LENGTH_TYPES,
    MAX_IDENTIFIER_LENGTH,
    TEMPORAL_TYPES,
    SchemaValidator,
    is_now_function,
    schema_validator,
    type_name,
)

DEFAULT_VARCHAR_LENGTH = 255


class StatementKind(str, Enum):
    CREATE_DATABASE = "create_database"
    USE_DATABASE = "use_database"
    CREATE_TABLE = "create_table"
    ADD_FOREIGN_KEY = "add_foreign_key"


@dataclass(frozen=True)
class Statement:
    """
    One compiled statement. Catalog lookups are bound through params;
    identifiers in DDL positions are validated and quoted beforehand.
    """
    kind: StatementKind
    sql: str
    params: Tuple[Any, ...] = ()
    database: str = ""
    table: Optional[str] = None
    column: Optional[str] = None
    constraint: Optional[str] = None

    @property
    def target(self) -> str:
        return ".".join(part for part in (self.database, self.table, self.column) if part)

    def describe(self) -> str:
        """Short label for logs and failure reports"""
        if self.kind == StatementKind.CREATE_DATABASE:
            return f"CREATE DATABASE {self.database}"
        if self.kind == StatementKind.USE_DATABASE:
            return f"USE {self.database}"
        if self.kind == StatementKind.CREATE_TABLE:
            return f"CREATE TABLE {self.database}.{self.table}"
        return f"ADD CONSTRAINT {self.constraint} ON {self.database}.{self.table}"


@dataclass(frozen=True)
class CompiledDatabase:
    """Statements for one database, grouped by phase"""
    name: str
    create_statement: Statement
    use_statement: Statement
    table_statements: Tuple[Statement, ...] = ()
    fk_statements: Tuple[Statement, ...] = ()

    def statements(self) -> List[Statement]:
        """All statements in execution order"""
        return [
            self.create_statement,
            self.use_statement,
            *self.table_statements,
            *self.fk_statements,
        ]


def quote_identifier(name: str) -> str:
    """Wrap a name in SQL Server delimiters"""
    return "[" + name.replace("]", "]]") + "]"


def quote_literal(value: str) -> str:
    """Render a string literal for a DDL position that cannot take parameters"""
    return "'" + value.replace("'", "''") + "'"


class SchemaCompiler:
    """
    Compiles databases, tables and foreign keys into guarded statements.

    Ordering per database: CREATE DATABASE, USE, every CREATE TABLE in table
    order, then every ADD CONSTRAINT in table then column order, so a foreign
    key may reference a table declared later.
    """

    def __init__(self, validator: Optional[SchemaValidator] = None):
        self.validator = validator or schema_validator

    def render_type(self, attr: Attribute) -> str:
        kind = type_name(attr)
        if kind in LENGTH_TYPES:
            return f"{kind}({attr.length or DEFAULT_VARCHAR_LENGTH})"
        return kind

    def render_default(self, attr: Attribute) -> Optional[str]:
        value = attr.default_value
        if not value:
            return None
        if type_name(attr) in TEMPORAL_TYPES and is_now_function(value):
            return f"DEFAULT {value.strip().upper()}"
        return f"DEFAULT {quote_literal(value)}"

    def render_column(self, attr: Attribute, is_primary_key: bool) -> str:
        """Column definition fragment: name, type, key or nullability, default"""
        parts = [quote_identifier(attr.name), self.render_type(attr)]

        if is_primary_key:
            parts.append("IDENTITY(1,1) PRIMARY KEY" if attr.auto_increment else "PRIMARY KEY")
        elif attr.is_required:
            parts.append("NOT NULL")

        default = self.render_default(attr)
        if default:
            parts.append(default)

        return " ".join(parts)

    def primary_key_index(self, table: Table) -> Optional[int]:
        """
        Pick the single primary key column: first auto-increment key,
        otherwise first flagged key, otherwise none
        """
        flagged = [i for i, attr in enumerate(table.attributes) if attr.is_primary_key]
        if not flagged:
            return None

        return next((i for i in flagged if table.attributes[i].auto_increment), flagged[0])

    def compile_table(self, table: Table, database: str = "") -> Optional[Statement]:
        """Guarded CREATE TABLE, or None for a table without attributes"""
        self._ensure_valid(self.validator.validate_table(table, table.name or "#0"))
        return self._compile_table(table, database)

    def compile_foreign_keys(
        self,
        table: Table,
        database: str = "",
        scope: Optional[Dict[str, Table]] = None
    ) -> List[Statement]:
        """
        One guarded ADD CONSTRAINT per foreign-key column.
        When scope (tables of the database keyed by casefolded name) is given,
        references are checked against it.
        """
        self._ensure_valid(self.validator.validate_table(table, table.name or "#0"))
        return self._compile_foreign_keys(table, database, scope)

    def compile_database(self, db: Database) -> CompiledDatabase:
        """Compile one database; fails before emitting anything if the schema is unusable"""
        self._ensure_valid(self.validator.validate_database(db, db.name or "#0"))

        scope = {table.name.casefold(): table for table in db.tables}
        table_statements = []
        fk_statements = []

        for table in db.tables:
            statement = self._compile_table(table, db.name)
            if statement is None:
                logger.debug(f"Skipping table {db.name}.{table.name} (no attributes)")
                continue
            table_statements.append(statement)

        for table in db.tables:
            fk_statements.extend(self._compile_foreign_keys(table, db.name, scope))

        compiled = CompiledDatabase(
            name=db.name,
            create_statement=Statement(
                kind=StatementKind.CREATE_DATABASE,
                sql=(
                    "IF NOT EXISTS (SELECT 1 FROM sys.databases WHERE name = ?) "
                    f"CREATE DATABASE {quote_identifier(db.name)}"
                ),
                params=(db.name,),
                database=db.name,
            ),
            use_statement=Statement(
                kind=StatementKind.USE_DATABASE,
                sql=f"USE {quote_identifier(db.name)}",
                database=db.name,
            ),
            table_statements=tuple(table_statements),
            fk_statements=tuple(fk_statements),
        )

        logger.debug(
            f"Compiled database {db.name}: {len(table_statements)} table(s), "
            f"{len(fk_statements)} foreign key(s)"
        )
        return compiled

    def compile_submission(self, databases: Sequence[Database]) -> List[CompiledDatabase]:
        """Compile a whole submission, in submission order"""
        self.validator.ensure_valid(databases)
        return [self.compile_database(db) for db in databases]

    def constraint_name(self, table: Table, attr: Attribute) -> str:
        name = f"FK_{table.name}_{attr.name}_{attr.foreign_key.table}"
        if len(name) > MAX_IDENTIFIER_LENGTH:
            raise CompilationError(
                f"Foreign key name {name[:40]}... for {table.name}.{attr.name} "
                f"exceeds {MAX_IDENTIFIER_LENGTH} characters"
            )
        return name

    def _compile_table(self, table: Table, database: str) -> Optional[Statement]:
        if not table.attributes:
            return None

        pk_index = self.primary_key_index(table)
        dropped = [
            attr.name for index, attr in enumerate(table.attributes)
            if attr.is_primary_key and index != pk_index
        ]
        if dropped:
            logger.warning(
                f"Table {table.name} flags {len(dropped) + 1} primary keys; "
                f"using {table.attributes[pk_index].name}, ignoring {', '.join(dropped)}"
            )

        columns = ", ".join(
            self.render_column(attr, index == pk_index)
            for index, attr in enumerate(table.attributes)
        )

        return Statement(
            kind=StatementKind.CREATE_TABLE,
            sql=(
                "IF NOT EXISTS (SELECT 1 FROM sys.tables WHERE name = ?) "
                f"CREATE TABLE {quote_identifier(table.name)} ({columns})"
            ),
            params=(table.name,),
            database=database,
            table=table.name,
        )

    def _compile_foreign_keys(
        self,
        table: Table,
        database: str,
        scope: Optional[Dict[str, Table]]
    ) -> List[Statement]:
        statements = []

        for attr in table.attributes:
            ref = attr.foreign_key
            if ref is None:
                continue

            if scope is not None:
                self._check_reference(table, attr, scope)

            name = self.constraint_name(table, attr)
            statements.append(Statement(
                kind=StatementKind.ADD_FOREIGN_KEY,
                sql=(
                    "IF NOT EXISTS (SELECT 1 FROM sys.foreign_keys WHERE name = ?) "
                    f"ALTER TABLE {quote_identifier(table.name)} "
                    f"ADD CONSTRAINT {quote_identifier(name)} "
                    f"FOREIGN KEY ({quote_identifier(attr.name)}) "
                    f"REFERENCES {quote_identifier(ref.table)} ({quote_identifier(ref.column)})"
                ),
                params=(name,),
                database=database,
                table=table.name,
                column=attr.name,
                constraint=name,
            ))

        return statements

    def _check_reference(self, table: Table, attr: Attribute, scope: Dict[str, Table]) -> None:
        ref = attr.foreign_key
        target = scope.get(ref.table.casefold())
        if target is None:
            raise CompilationError(
                f"Foreign key {table.name}.{attr.name} references unknown table {ref.table}"
            )
        if not target.attributes:
            raise CompilationError(
                f"Foreign key {table.name}.{attr.name} references table {ref.table}, "
                "which has no attributes"
            )
        if not any(column.name.casefold() == ref.column.casefold() for column in target.attributes):
            raise CompilationError(
                f"Foreign key {table.name}.{attr.name} references unknown column "
                f"{ref.table}.{ref.column}"
            )

        # Only the chosen primary key is unique on the server
        pk_index = self.primary_key_index(target)
        if pk_index is None or target.attributes[pk_index].name.casefold() != ref.column.casefold():
            raise CompilationError(
                f"Foreign key {table.name}.{attr.name} references {ref.table}.{ref.column}, "
                f"which is not the primary key of {ref.table}"
            )

    @staticmethod
    def _ensure_valid(issues: List[Dict[str, str]]) -> None:
        if issues:
            raise SchemaValidationError(issues)


# Global compiler instance
schema_compiler = SchemaCompiler()
