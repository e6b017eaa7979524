"""
Schema Validator Service - Field-level rules for designer submissions
Rejects names and values that would produce malformed or unsafe DDL
"""
import re
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence
from loguru import logger

from app.core.exceptions import SchemaValidationError
from app.schemas.schema_models import Attribute, ColumnType, Database, Table

MAX_IDENTIFIER_LENGTH = 128
MAX_VARCHAR_LENGTH = 4000
MAX_DEFAULT_LENGTH = 4000

COLUMN_TYPES = {column_type.value for column_type in ColumnType}
LENGTH_TYPES = {ColumnType.VARCHAR.value, ColumnType.NVARCHAR.value}
INTEGER_TYPES = {ColumnType.INT.value}
TEMPORAL_TYPES = {ColumnType.DATE.value, ColumnType.DATETIME.value, ColumnType.TIMESTAMP.value}
BOOLEAN_TYPES = {ColumnType.BIT.value, ColumnType.BOOLEAN.value}

# Server functions accepted as temporal defaults, emitted unquoted
NOW_FUNCTIONS = {"GETDATE()", "GETUTCDATE()", "SYSDATETIME()", "CURRENT_TIMESTAMP"}
BOOLEAN_LITERALS = {"0", "1", "true", "false"}


def type_name(attr: Attribute) -> str:
    """Column type as a plain string, whether or not the model was validated"""
    value = attr.type
    return value.value if isinstance(value, ColumnType) else str(value)


def is_now_function(value: str) -> bool:
    return value.strip().upper() in NOW_FUNCTIONS


class SchemaValidator:
    """
    Checks a schema submission against the designer's rules:
    - identifier shape and length
    - name uniqueness per scope, ignoring case like the server's default collation
    - type/length/auto-increment combinations
    - default values per column type
    - foreign key references are complete
    """

    def __init__(self):
        # Databases and tables may start with a digit, columns may not
        self.identifier_patterns = {
            "database": re.compile(r"^[A-Za-z0-9_]+$"),
            "table": re.compile(r"^[A-Za-z0-9_]+$"),
            "column": re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$"),
        }
        self.integer_pattern = re.compile(r"^[+-]?\d+$")
        self.decimal_pattern = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")
        self.float_pattern = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
        self.control_chars = re.compile(r"[\x00-\x1f\x7f]")

    def validate_submission(self, databases: Sequence[Database]) -> List[Dict[str, str]]:
        """
        Validate every database of a submission

        Returns:
            list of issues, each {"path": ..., "message": ...}; empty when valid
        """
        issues: List[Dict[str, str]] = []
        seen = set()

        for index, db in enumerate(databases):
            path = self._label(db.name, index)
            if db.name.casefold() in seen:
                issues.append(self._issue(path, "Database name must be unique"))
            seen.add(db.name.casefold())
            issues.extend(self.validate_database(db, path))

        return issues

    def validate_database(self, db: Database, path: str) -> List[Dict[str, str]]:
        issues = []
        message = self.check_identifier(db.name, "database")
        if message:
            issues.append(self._issue(f"{path}.name", message))

        seen = set()
        for index, table in enumerate(db.tables):
            table_path = f"{path}.{self._label(table.name, index)}"
            if table.name.casefold() in seen:
                issues.append(self._issue(table_path, "Table name must be unique within the database"))
            seen.add(table.name.casefold())
            issues.extend(self.validate_table(table, table_path))

        return issues

    def validate_table(self, table: Table, path: str) -> List[Dict[str, str]]:
        issues = []
        message = self.check_identifier(table.name, "table")
        if message:
            issues.append(self._issue(f"{path}.name", message))

        seen = set()
        for index, attr in enumerate(table.attributes):
            attr_path = f"{path}.{self._label(attr.name, index)}"
            if attr.name.casefold() in seen:
                issues.append(self._issue(attr_path, "Attribute name must be unique within the table"))
            seen.add(attr.name.casefold())
            issues.extend(self.validate_attribute(attr, attr_path, table.name))

        return issues

    def validate_attribute(self, attr: Attribute, path: str, table_name: str) -> List[Dict[str, str]]:
        """Validate a single column definition"""
        issues = []

        message = self.check_identifier(attr.name, "column")
        if message:
            issues.append(self._issue(f"{path}.name", message))

        kind = type_name(attr)
        if kind not in COLUMN_TYPES:
            issues.append(self._issue(f"{path}.type", f"Invalid data type: {kind}"))
            return issues

        if kind in LENGTH_TYPES:
            if attr.length is None:
                issues.append(self._issue(f"{path}.length", "Length is required for VARCHAR/NVARCHAR"))
            elif isinstance(attr.length, bool) or not isinstance(attr.length, int) \
                    or not 1 <= attr.length <= MAX_VARCHAR_LENGTH:
                issues.append(self._issue(
                    f"{path}.length",
                    f"Length must be an integer between 1 and {MAX_VARCHAR_LENGTH}"
                ))

        if attr.auto_increment and kind not in INTEGER_TYPES:
            issues.append(self._issue(f"{path}.autoIncrement", "Auto-increment is only available for INT type"))

        # SQL Server refuses a DEFAULT on an IDENTITY column
        if attr.auto_increment and attr.default_value:
            issues.append(self._issue(
                f"{path}.defaultValue",
                "Auto-increment columns cannot have a default value"
            ))
        elif attr.default_value:
            message = self.check_default_value(kind, attr.default_value)
            if message:
                issues.append(self._issue(f"{path}.defaultValue", message))

        if attr.foreign_key is not None:
            ref = attr.foreign_key
            if not ref.table:
                issues.append(self._issue(f"{path}.foreignKey.table", "Reference table is required for foreign key"))
            else:
                message = self.check_identifier(ref.table, "table")
                if message:
                    issues.append(self._issue(f"{path}.foreignKey.table", message))
                elif ref.table.casefold() == table_name.casefold():
                    issues.append(self._issue(
                        f"{path}.foreignKey.table",
                        "A foreign key must reference another table"
                    ))
            if not ref.column:
                issues.append(self._issue(f"{path}.foreignKey.column", "Reference column is required for foreign key"))
            else:
                message = self.check_identifier(ref.column, "column")
                if message:
                    issues.append(self._issue(f"{path}.foreignKey.column", message))

        return issues

    def check_identifier(self, name: str, kind: str) -> Optional[str]:
        """Return a reason when name is not an acceptable identifier of this kind"""
        if not name:
            return f"{kind.capitalize()} name is required"
        if len(name) > MAX_IDENTIFIER_LENGTH:
            return f"{kind.capitalize()} name exceeds {MAX_IDENTIFIER_LENGTH} characters"
        if not self.identifier_patterns[kind].fullmatch(name):
            if kind == "column":
                return "Must start with letter or underscore, only alphanumeric characters allowed"
            return "Only alphanumeric characters and underscores allowed"
        return None

    def check_default_value(self, kind: str, value: str) -> Optional[str]:
        """Return a reason when value is not a usable default for the column type"""
        if len(value) > MAX_DEFAULT_LENGTH:
            return f"Default value exceeds {MAX_DEFAULT_LENGTH} characters"
        if self.control_chars.search(value):
            return "Default value must not contain control characters"

        if kind in INTEGER_TYPES:
            if not self.integer_pattern.fullmatch(value):
                return f"Default value must be a whole number for {kind}"
        elif kind == ColumnType.DECIMAL.value:
            if not self.decimal_pattern.fullmatch(value):
                return f"Default value must be a number for {kind}"
        elif kind == ColumnType.FLOAT.value:
            if not self.float_pattern.fullmatch(value):
                return f"Default value must be a number for {kind}"
        elif kind in TEMPORAL_TYPES:
            if not is_now_function(value) and not self._is_iso_date(value):
                return f"Default value must be a valid date or GETDATE() for {kind}"
        elif kind in BOOLEAN_TYPES:
            if value.lower() not in BOOLEAN_LITERALS:
                return f"Default value must be 0, 1, true, or false for {kind}"

        return None

    def ensure_valid(self, databases: Sequence[Database]) -> None:
        """Raise SchemaValidationError listing every issue in the submission"""
        issues = self.validate_submission(databases)
        if issues:
            logger.warning(f"Schema submission rejected with {len(issues)} issue(s)")
            raise SchemaValidationError(issues)

    @staticmethod
    def _is_iso_date(value: str) -> bool:
        for parse in (date.fromisoformat, datetime.fromisoformat):
            try:
                parse(value)
                return True
            except ValueError:
                continue
        return False

    @staticmethod
    def _label(name: str, index: int) -> str:
        return name if name else f"#{index}"

    @staticmethod
    def _issue(path: str, message: str) -> Dict[str, str]:
        return {"path": path, "message": message}


# Global schema validator instance
schema_validator = SchemaValidator()
