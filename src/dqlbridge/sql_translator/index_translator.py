"""
Index DDL translation

The document store supports single-field, non-unique, non-partial indexes and
offers no way to drop an index once created.

Accepted:
    CREATE INDEX [IF NOT EXISTS] <name> ON <table> (<field or dotted.path>)

Rejected:
    CREATE UNIQUE INDEX ...           → UnsupportedOperationError (UNIQUE INDEX)
    ... ON t (a, b)                   → UnsupportedOperationError (Composite INDEX)
    ... ON t (a) WHERE ...            → UnsupportedOperationError (Partial INDEX)
    ... ON t (LOWER(a))               → MalformedStatementError (CREATE INDEX)
    DROP INDEX ...                    → UnsupportedOperationError (DROP INDEX)
"""

from typing import List, Sequence

from ..errors import MalformedStatementError, UnsupportedOperationError
from .identifier_normalizer import IdentifierNormalizer
from .tokenizer import Token, TokenCursor


class IndexTranslator:
    """Validates and rewrites CREATE INDEX / DROP INDEX statements"""

    def __init__(self, normalizer: IdentifierNormalizer):
        self.normalizer = normalizer

    def translate_create(self, tokens: Sequence[Token]) -> str:
        cursor = TokenCursor(tokens)
        cursor.accept_keyword('CREATE')

        if cursor.accept_keyword('UNIQUE'):
            raise UnsupportedOperationError(
                "UNIQUE INDEX", "Uniqueness is only enforced on the _id field"
            )
        if not cursor.accept_keyword('INDEX'):
            raise MalformedStatementError('CREATE INDEX', "expected INDEX")

        if_not_exists = False
        if cursor.accept_keyword('IF'):
            if not (cursor.accept_keyword('NOT') and cursor.accept_keyword('EXISTS')):
                raise MalformedStatementError('CREATE INDEX', "expected IF NOT EXISTS")
            if_not_exists = True

        name = cursor.identifier_chain()
        if name is None or not cursor.accept_keyword('ON'):
            raise MalformedStatementError('CREATE INDEX', "expected <name> ON <table>")

        table = cursor.identifier_chain()
        if table is None or not cursor.accept_punctuation('('):
            raise MalformedStatementError('CREATE INDEX', "expected <table> (<column>)")

        columns = self._split_columns(cursor)

        if len(columns) > 1:
            raise UnsupportedOperationError(
                "Composite INDEX", "Create one single-field index per column instead"
            )
        if cursor.accept_keyword('WHERE'):
            raise UnsupportedOperationError(
                "Partial INDEX", "Index the whole field and filter in the query instead"
            )
        if not cursor.at_end():
            raise MalformedStatementError('CREATE INDEX', "unexpected tokens after column list")

        column = self._field_path(columns[0])

        prefix = "CREATE INDEX IF NOT EXISTS" if if_not_exists else "CREATE INDEX"
        return f"{prefix} {'.'.join(name)} ON {'.'.join(table)} ({column})"

    def reject_drop(self):
        """DROP INDEX is never offered by the store"""
        raise UnsupportedOperationError(
            "DROP INDEX", "Indexes cannot be removed once created"
        )

    @staticmethod
    def _split_columns(cursor: TokenCursor) -> List[List[Token]]:
        """Collect top-level comma-separated column expressions up to the closing paren"""
        columns: List[List[Token]] = [[]]
        depth = 0
        while True:
            token = cursor.advance()
            if token is None:
                raise MalformedStatementError('CREATE INDEX', "unterminated column list")
            if token.is_punctuation('('):
                depth += 1
            elif token.is_punctuation(')'):
                if depth == 0:
                    return columns
                depth -= 1
            elif token.is_punctuation(',') and depth == 0:
                columns.append([])
                continue
            columns[-1].append(token)

    def _field_path(self, expression: List[Token]) -> str:
        """Render a bare or dotted field reference; anything else is malformed"""
        cursor = TokenCursor(expression)
        parts = cursor.identifier_chain()
        if parts is None or cursor.peek() is not None:
            raise MalformedStatementError(
                'CREATE INDEX', "index column must be a field name or dotted field path"
            )

        if len(parts) == 1:
            return self.normalizer.normalize_name(parts[0])
        return ".".join(parts)
