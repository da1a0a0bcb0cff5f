"""
dqlbridge: SQL to DQL bridge

Runs SQLAlchemy Core statements against a document store by translating the
compiled SQL into the store's document query language (DQL) and mapping result
documents back into SQL-shaped rows.
"""

__version__ = "0.1.0"

from .config import DriverConfig
from .errors import (
    ArityMismatchError,
    DriverError,
    MalformedStatementError,
    SchemaValidationError,
    UnsupportedConstraintError,
    UnsupportedOperationError,
)
from .result_mapper import ResultMapper, map_dql_result_to_sql
from .sql_translator import DQLTranslator, TranslationResult, sql_to_dql

# Session, compiler and schema validation pull in SQLAlchemy; import them from
# their modules: from dqlbridge.session import DQLSession

__all__ = [
    "__version__",
    "DriverConfig",
    "ArityMismatchError",
    "DriverError",
    "MalformedStatementError",
    "SchemaValidationError",
    "UnsupportedConstraintError",
    "UnsupportedOperationError",
    "ResultMapper",
    "map_dql_result_to_sql",
    "DQLTranslator",
    "TranslationResult",
    "sql_to_dql",
]
