"""
INSERT document builder

Folds INSERT INTO <table> (<columns>) VALUES (<values>)[, (<values>) ...] into
DQL's document form:

    INSERT INTO users (id, name) VALUES (?, ?)
    → INSERT INTO users DOCUMENTS (:doc)         args = {'doc': {'_id': ..., 'name': ...}}

    INSERT INTO users (id, name) VALUES (?, ?), (?, ?)
    → INSERT INTO users DOCUMENTS (:doc1), (:doc2)
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Sequence

import structlog

from ..errors import MalformedStatementError, UnsupportedOperationError
from .identifier_normalizer import IdentifierNormalizer
from .models import ArgumentMap, Value
from .placeholder_rewriter import PlaceholderRewriter
from .tokenizer import Token, TokenCursor, TokenType

logger = structlog.get_logger()


@dataclass
class InsertStatement:
    """Parsed INSERT: target table, column names and one value list per row"""
    table: str
    columns: List[str]
    rows: List[List[Value]]

    def documents(self) -> List[Dict[str, Any]]:
        return [dict(zip(self.columns, row)) for row in self.rows]


class InsertDocumentBuilder:
    """Parses INSERT statements and builds DQL DOCUMENTS payloads"""

    def __init__(self, normalizer: IdentifierNormalizer):
        self.normalizer = normalizer
        self.placeholders = PlaceholderRewriter()

    def build(self, tokens: Sequence[Token], parameters: Sequence[Value]):
        """
        Translate an INSERT statement.

        Returns:
            Tuple of (dql_query, args) where args holds doc or doc1..docN

        Raises:
            MalformedStatementError: Column or VALUES list cannot be matched
            UnsupportedOperationError: INSERT ... SELECT, ON CONFLICT, RETURNING
            ArityMismatchError: Placeholder count differs from parameter count
        """
        self.placeholders.check_arity(tokens, parameters)
        statement = self.parse(tokens, parameters)
        documents = statement.documents()
        logger.debug("Built INSERT documents",
                     table=statement.table,
                     columns=statement.columns,
                     document_count=len(documents))

        if len(documents) == 1:
            return f"INSERT INTO {statement.table} DOCUMENTS (:doc)", {'doc': documents[0]}

        args: ArgumentMap = {}
        for number, document in enumerate(documents, start=1):
            args[f"doc{number}"] = document
        placeholders = ", ".join(f"(:{name})" for name in args)
        return f"INSERT INTO {statement.table} DOCUMENTS {placeholders}", args

    def parse(self, tokens: Sequence[Token], parameters: Sequence[Value]) -> InsertStatement:
        cursor = TokenCursor(tokens)
        values = iter(parameters)

        if not (cursor.accept_keyword('INSERT') and cursor.accept_keyword('INTO')):
            raise MalformedStatementError('INSERT', "expected INSERT INTO")

        table = cursor.identifier_chain()
        if table is None:
            raise MalformedStatementError('INSERT', "missing table name")

        if cursor.accept_keyword('SELECT'):
            raise UnsupportedOperationError(
                "INSERT ... SELECT", "Select the rows first and insert them as documents"
            )
        if not cursor.accept_punctuation('('):
            raise MalformedStatementError('INSERT', "missing column list")

        columns = self._parse_columns(cursor)

        if cursor.peek() is not None and cursor.peek().is_keyword('SELECT'):
            raise UnsupportedOperationError(
                "INSERT ... SELECT", "Select the rows first and insert them as documents"
            )
        if not cursor.accept_keyword('VALUES'):
            raise MalformedStatementError('INSERT', "missing VALUES list")

        rows = [self._parse_row(cursor, values, len(columns), 1)]
        while cursor.accept_punctuation(','):
            rows.append(self._parse_row(cursor, values, len(columns), len(rows) + 1))

        self._check_trailing(cursor)

        return InsertStatement(
            table=".".join(table),
            columns=[self.normalizer.normalize_name(column) for column in columns],
            rows=rows,
        )

    def _parse_columns(self, cursor: TokenCursor) -> List[str]:
        columns: List[str] = []
        while True:
            parts = cursor.identifier_chain()
            if parts is None:
                raise MalformedStatementError('INSERT', "invalid column list")

            # Qualified column names keep only the column part
            column = parts[-1]
            if column in columns:
                raise MalformedStatementError('INSERT', f"duplicate column {column!r}")
            columns.append(column)

            if cursor.accept_punctuation(')'):
                return columns
            if not cursor.accept_punctuation(','):
                raise MalformedStatementError('INSERT', "unterminated column list")

    def _parse_row(self, cursor: TokenCursor, values: Iterator[Value],
                   column_count: int, row_number: int) -> List[Value]:
        if not cursor.accept_punctuation('('):
            raise MalformedStatementError('INSERT', f"row {row_number} is missing parentheses")

        row: List[Value] = []
        while True:
            row.append(self._parse_value(cursor, values))
            if cursor.accept_punctuation(')'):
                break
            if not cursor.accept_punctuation(','):
                raise MalformedStatementError('INSERT', f"row {row_number} is not terminated")

        if len(row) != column_count:
            raise MalformedStatementError(
                'INSERT', f"row {row_number} has {len(row)} value(s) for {column_count} column(s)"
            )
        return row

    @staticmethod
    def _parse_value(cursor: TokenCursor, values: Iterator[Value]) -> Value:
        token = cursor.advance()
        if token is None:
            raise MalformedStatementError('INSERT', "unexpected end of VALUES list")

        if token.type is TokenType.PLACEHOLDER:
            return next(values)
        if token.is_keyword('NULL'):
            return None
        if token.is_keyword('TRUE', 'FALSE'):
            return token.value.upper() == 'TRUE'
        if token.type is TokenType.STRING:
            return token.text[1:-1].replace("''", "'")

        sign = 1
        if token.type is TokenType.OPERATOR and token.text in ('-', '+'):
            sign = -1 if token.text == '-' else 1
            token = cursor.advance()
            if token is None or token.type is not TokenType.NUMBER:
                raise MalformedStatementError('INSERT', "unsupported value expression")
        if token.type is TokenType.NUMBER:
            number = token.text
            if any(char in number for char in '.eE'):
                return sign * float(number)
            return sign * int(number)

        raise MalformedStatementError('INSERT', f"unsupported value expression {token.text!r}")

    @staticmethod
    def _check_trailing(cursor: TokenCursor):
        if cursor.at_end():
            return

        token = cursor.peek()
        if token.is_keyword('ON'):
            raise UnsupportedOperationError(
                "ON CONFLICT", "Inserting an existing _id fails; use UPDATE for existing documents"
            )
        if token.is_keyword('RETURNING'):
            raise UnsupportedOperationError(
                "RETURNING", "Query the inserted documents by _id after the insert"
            )
        raise MalformedStatementError('INSERT', f"unexpected {token.text!r} after VALUES list")
