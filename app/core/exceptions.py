"""
Publishing error taxonomy
Validation and compilation errors are raised before the server is touched;
execution and channel errors come from the server side.
"""
from typing import Any, Dict, List


class PublishError(Exception):
    """Base exception for schema publishing failures"""

    code = "publish"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SchemaValidationError(PublishError):
    """The submitted schema model breaks a field-level rule"""

    code = "validation"

    def __init__(self, issues: List[Dict[str, str]]):
        self.issues = list(issues)
        if len(self.issues) == 1:
            message = f"{self.issues[0]['path']}: {self.issues[0]['message']}"
        else:
            message = f"Schema has {len(self.issues)} validation errors"
        super().__init__(message)


class CompilationError(PublishError):
    """The schema is valid field by field but cannot be turned into DDL"""

    code = "compilation"


class ExecutionError(PublishError):
    """The server rejected a statement"""

    code = "execution"

    def __init__(self, message: str, statement: Any = None):
        super().__init__(message)
        self.statement = statement


class ChannelError(PublishError):
    """The execution channel could not be opened or released"""

    code = "channel"

    def __init__(self, message: str, phase: str = "connect"):
        super().__init__(message)
        self.phase = phase
