"""
Driver Errors for the SQL to DQL Bridge

All exceptions raised by the bridge derive from DriverError so callers can
separate bridge failures from store failures, which are never wrapped.

- UnsupportedOperationError: permanently unsupported statement or clause
- MalformedStatementError: supported statement kind that failed to parse
- ArityMismatchError: placeholder count differs from parameter count
- UnsupportedConstraintError / SchemaValidationError: schema-level problems
"""

from typing import Optional


class DriverError(Exception):
    """Base class for errors raised by the bridge"""


class UnsupportedOperationError(DriverError):
    """
    Statement type or clause the document store will never support.

    Never retried; surfaced verbatim to the caller.
    """

    def __init__(self, operation: str, suggestion: Optional[str] = None):
        self.operation = operation
        self.suggestion = suggestion
        message = f"Unsupported SQL operation: {operation}"
        if suggestion:
            message = f"{message}. {suggestion}"
        super().__init__(message)


class MalformedStatementError(DriverError, ValueError):
    """Statement matched a supported kind but failed structural parsing"""

    def __init__(self, clause: str, details: Optional[str] = None):
        self.clause = clause
        self.details = details
        message = f"Unable to parse {clause} statement"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)


class ArityMismatchError(DriverError, ValueError):
    """Number of ? placeholders does not match the number of parameters"""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Parameter count mismatch: statement has {expected} placeholder(s) "
            f"but {actual} parameter(s) were supplied"
        )


class UnsupportedConstraintError(DriverError):
    """Schema constraint the document store cannot enforce"""

    def __init__(self, constraint_type: str, details: Optional[str] = None):
        self.constraint_type = constraint_type
        self.details = details
        message = f"Unsupported constraint: {constraint_type}"
        if details:
            message = f"{message}. {details}"
        super().__init__(message)


class SchemaValidationError(DriverError):
    """Schema uses features incompatible with the document store"""
