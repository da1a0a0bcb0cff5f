"""
Schema validation for document store compatibility

Rejects SQLAlchemy table definitions that rely on constraints the store does
not enforce: uniqueness outside the primary key, foreign keys, CHECK
constraints and composite indexes.
"""

from typing import Any, Iterable, List

import structlog
from sqlalchemy import CheckConstraint, MetaData, Table, UniqueConstraint

from .errors import (
    SchemaValidationError,
    UnsupportedConstraintError,
    UnsupportedOperationError,
)

logger = structlog.get_logger()

PRIMARY_KEY_NAMES = {'id', '_id'}


def validate_schema(schema: Any) -> None:
    """
    Validate a schema for unsupported features.

    Args:
        schema: MetaData, a Table, a declarative class, or a mapping/iterable
            of those (None is accepted and ignored)

    Raises:
        UnsupportedConstraintError: UNIQUE or FOREIGN KEY constraints
        UnsupportedOperationError: Composite or unique indexes
        SchemaValidationError: CHECK constraints
    """
    if schema is None:
        return

    tables = list(_iter_tables(schema))

    unique_columns: List[str] = []
    foreign_key_columns: List[str] = []
    check_constraints: List[str] = []

    for table in tables:
        for column in table.columns:
            if column.unique and column.name not in PRIMARY_KEY_NAMES:
                unique_columns.append(f"{table.name}.{column.name}")
            if column.foreign_keys:
                foreign_key_columns.append(f"{table.name}.{column.name}")

        for constraint in table.constraints:
            if isinstance(constraint, UniqueConstraint):
                names = [column.name for column in constraint.columns]
                if set(names) - PRIMARY_KEY_NAMES:
                    qualified = f"{table.name}.({', '.join(names)})" if len(names) > 1 else f"{table.name}.{names[0]}"
                    if qualified not in unique_columns:
                        unique_columns.append(qualified)
            elif isinstance(constraint, CheckConstraint):
                check_constraints.append(f"CHECK constraint on {table.name}: {constraint.sqltext}")

        for index in table.indexes:
            if len(index.expressions) > 1:
                raise UnsupportedOperationError(
                    "Composite INDEX",
                    f"Index {index.name} on {table.name} spans {len(index.expressions)} columns; "
                    f"create one single-field index per column instead"
                )
            indexed = {getattr(expression, 'name', None) for expression in index.expressions}
            if index.unique and not indexed <= PRIMARY_KEY_NAMES:
                raise UnsupportedOperationError(
                    "UNIQUE INDEX",
                    f"Index {index.name} on {table.name} is unique; uniqueness is only enforced on the _id field"
                )

    if unique_columns:
        raise UnsupportedConstraintError(
            "UNIQUE constraints",
            f"Only the id/_id field is unique. Found UNIQUE constraints on: {', '.join(unique_columns)}. "
            f"These constraints would not be enforced by the store."
        )

    if foreign_key_columns:
        raise UnsupportedConstraintError(
            "FOREIGN KEY constraints",
            f"The store has no referential integrity. Found references on: {', '.join(foreign_key_columns)}. "
            f"Relationships must be handled at the application level."
        )

    if check_constraints:
        raise SchemaValidationError(
            "The document store does not support the following SQL features found in your schema:\n\n"
            + "\n".join(check_constraints)
        )

    logger.debug("Schema validated", table_count=len(tables))


def _iter_tables(schema: Any) -> Iterable[Table]:
    if isinstance(schema, MetaData):
        yield from schema.tables.values()
    elif isinstance(schema, Table):
        yield schema
    elif isinstance(getattr(schema, '__table__', None), Table):
        yield schema.__table__
    elif isinstance(schema, dict):
        for value in schema.values():
            yield from _iter_tables(value)
    elif isinstance(schema, (list, tuple, set)):
        for value in schema:
            yield from _iter_tables(value)
    # Anything else (relationships, helpers) carries no table definition
