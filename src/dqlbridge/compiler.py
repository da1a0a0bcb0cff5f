"""
SQLAlchemy statement compilation

Compiles SQLAlchemy Core statements into SQL text with ? placeholders and an
ordered parameter list, the input the DQL translator expects. SELECT
statements also report their output field names, which the result mapper uses
to resolve aggregate keys.

The SQLite dialect is used because its statement shapes (qmark parameters,
LIMIT/OFFSET, double-quoted identifiers) match what the translator accepts.
Documents store real booleans, so the dialect renders true/false instead of
SQLite's 1/0.
"""

import datetime
import decimal
import enum
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple, Union

from sqlalchemy.dialects import sqlite
from sqlalchemy.sql import ClauseElement
from sqlalchemy.sql.expression import ColumnClause, Label
from sqlalchemy.sql.selectable import Select

from .sql_translator.models import Value

_DIALECT = sqlite.dialect(paramstyle="qmark", supports_native_boolean=True)


@dataclass(frozen=True)
class CompiledStatement:
    """SQL text, ordered parameters and (for SELECT) output field names"""
    sql: str
    parameters: Tuple[Value, ...] = ()
    fields: Optional[Tuple[str, ...]] = None


def compile_statement(statement: Union[str, ClauseElement],
                      parameters: Optional[Sequence[Any]] = None) -> CompiledStatement:
    """
    Compile a statement for translation.

    Args:
        statement: Raw SQL text or a SQLAlchemy Core statement
        parameters: Positional parameters for raw SQL text (ignored for
            SQLAlchemy statements, which carry their own)

    Returns:
        CompiledStatement

    Raises:
        TypeError: If a bound value cannot be expressed as a DQL argument
    """
    if isinstance(statement, str):
        return CompiledStatement(
            sql=statement,
            parameters=tuple(serialize_value(value) for value in (parameters or ())),
        )

    fields = None
    if isinstance(statement, Select):
        statement = label_computed_columns(statement)
        fields = tuple(statement.selected_columns.keys())

    compiled = statement.compile(
        dialect=_DIALECT,
        compile_kwargs={"render_postcompile": True},
    )

    positiontup = getattr(compiled, "positiontup", None) or ()
    values = ()
    if positiontup:
        bound = compiled.params
        values = tuple(serialize_value(bound[name]) for name in positiontup)

    return CompiledStatement(sql=str(compiled), parameters=values, fields=fields)


def label_computed_columns(statement: Select) -> Select:
    """
    Label computed columns with their result key.

    Unlabeled expressions such as func.count() otherwise compile with an
    anonymous alias (count_1) that differs from the key the row is read by.
    """
    columns = []
    relabeled = False
    for key, column in statement.selected_columns.items():
        if isinstance(column, (ColumnClause, Label)):
            columns.append(column)
        else:
            columns.append(column.label(key))
            relabeled = True

    if not relabeled:
        return statement
    return statement.with_only_columns(*columns)


def serialize_value(value: Any) -> Value:
    """
    Convert a bound Python value into a DQL argument value.

    Dates and times become ISO-8601 strings, decimals become floats, UUIDs
    become strings and enums contribute their value.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, decimal.Decimal):
        return float(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, enum.Enum):
        return serialize_value(value.value)
    raise TypeError(f"Unsupported parameter type for DQL argument: {type(value).__name__}")
