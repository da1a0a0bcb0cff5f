"""
Statement classifier

Assigns exactly one StatementKind from the leading keywords of a statement,
before any deeper parsing, so that unsupported statements fail with a specific
message instead of a generic parse error.
"""

import re
from typing import Dict, Optional

from .models import Classification, StatementKind

# Suggestions attached to UnsupportedOperationError for common DDL
UNSUPPORTED_SUGGESTIONS: Dict[str, str] = {
    'CREATE TABLE': "Collections are created implicitly when the first document is inserted",
    'ALTER TABLE': "Documents are schemaless; write the new field on insert or update instead",
    'DROP TABLE': "Use DELETE FROM <table> to evict the documents of a collection",
    'TRUNCATE': "Use DELETE FROM <table> to evict the documents of a collection",
    'WITH': "Common table expressions are not supported; run the inner query separately",
}

# Keywords whose following word is part of the operation name
_COMPOUND_KEYWORDS = {'CREATE', 'DROP', 'ALTER', 'INSERT', 'DELETE'}


class StatementClassifier:
    """Classifies statements by their leading keyword sequence"""

    def __init__(self):
        # Leading whitespace and comments are skipped before the keywords
        self._leading_trivia = re.compile(r'^(?:\s+|--[^\n]*(?:\n|$)|/\*.*?\*/)*', re.DOTALL)
        self._leading_words = re.compile(r'([^\W\d]\w*)(?:\s+([^\W\d]\w*))?(?:\s+([^\W\d]\w*))?')

    def classify(self, sql: str) -> Classification:
        """
        Classify a statement.

        Returns:
            Classification with kind UNSUPPORTED and a reason when the leading
            keywords are not a supported statement type
        """
        body = sql[self._leading_trivia.match(sql).end():]
        match = self._leading_words.match(body)

        if match is None:
            keyword = body.split()[0].upper() if body.strip() else "EMPTY STATEMENT"
            return self._unsupported(keyword)

        first, second, third = (word.upper() if word else None for word in match.groups())

        kind = self._match_kind(first, second, third)
        if kind is StatementKind.CREATE_INDEX and second == 'UNIQUE':
            return Classification(kind, 'CREATE UNIQUE INDEX')
        if kind is not None:
            return Classification(kind, kind.value if kind is not StatementKind.INSERT else 'INSERT INTO')

        keyword = first
        if first in _COMPOUND_KEYWORDS and second:
            keyword = f"{first} {second}"
        return self._unsupported(keyword)

    @staticmethod
    def _match_kind(first: str, second: Optional[str], third: Optional[str]) -> Optional[StatementKind]:
        if first == 'SELECT':
            return StatementKind.SELECT
        if first == 'INSERT' and second == 'INTO':
            return StatementKind.INSERT
        if first == 'UPDATE':
            return StatementKind.UPDATE
        if first == 'DELETE' and second == 'FROM':
            return StatementKind.DELETE
        if first == 'CREATE' and (second == 'INDEX' or (second == 'UNIQUE' and third == 'INDEX')):
            return StatementKind.CREATE_INDEX
        if first == 'DROP' and second == 'INDEX':
            return StatementKind.DROP_INDEX
        return None

    @staticmethod
    def _unsupported(keyword: str) -> Classification:
        return Classification(
            StatementKind.UNSUPPORTED,
            keyword,
            reason=f"Unsupported SQL operation: {keyword}",
        )
