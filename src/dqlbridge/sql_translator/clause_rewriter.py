"""
Clause rewriting for SELECT, UPDATE and DELETE

The statement is split into top-level clauses (SELECT, FROM, WHERE, GROUP BY,
HAVING, ORDER BY, LIMIT, OFFSET, UPDATE, SET, DELETE) and every clause is passed
through the IdentifierNormalizer with its role: FROM and UPDATE name tables,
SET holds assignment targets. Everything else (operators, parentheses, keyword
case, whitespace) passes through untouched.

Shapes the store cannot execute (joins, set operations, subqueries, multiple
statements, RETURNING) are rejected before any rewriting.
"""

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from ..errors import MalformedStatementError, UnsupportedOperationError
from .identifier_normalizer import IdentifierNormalizer
from .models import StatementKind
from .tokenizer import Token

# Words that start a new top-level clause
CLAUSE_KEYWORDS = {
    'SELECT', 'FROM', 'WHERE', 'GROUP', 'HAVING', 'ORDER', 'LIMIT', 'OFFSET',
    'UPDATE', 'SET', 'DELETE',
}

TABLE_CLAUSES = {'FROM', 'UPDATE'}

SET_OPERATIONS = {'UNION', 'INTERSECT', 'EXCEPT'}


@dataclass
class Clause:
    """Tokens of one top-level clause, introducing keyword included"""
    keyword: str
    tokens: List[Token] = field(default_factory=list)


class ClauseRewriter:
    """Splits statements into clauses and normalizes identifiers per clause"""

    def __init__(self, normalizer: IdentifierNormalizer):
        self.normalizer = normalizer

    def rewrite(self, kind: StatementKind, tokens: Sequence[Token]) -> Tuple[List[Token], int]:
        """
        Normalize identifiers of a SELECT, UPDATE or DELETE statement.

        Returns:
            Tuple of (rewritten_tokens, identifier_rewrite_count)

        Raises:
            UnsupportedOperationError: Joins, set operations, subqueries,
                multiple statements or RETURNING
            MalformedStatementError: Unbalanced parentheses
        """
        self.check_structure(kind, tokens)

        rewritten: List[Token] = []
        rewrite_count = 0
        for clause in self.split(self._strip_terminator(tokens)):
            normalized, count = self.normalizer.normalize(
                clause.tokens,
                table_clause=clause.keyword in TABLE_CLAUSES,
                assignment_clause=clause.keyword == 'SET',
            )
            rewritten.extend(normalized)
            rewrite_count += count

        return rewritten, rewrite_count

    def split(self, tokens: Sequence[Token]) -> List[Clause]:
        clauses = [Clause(keyword='')]
        depth = 0
        for index, token in enumerate(tokens):
            if token.is_punctuation('('):
                depth += 1
            elif token.is_punctuation(')'):
                depth -= 1
            elif depth == 0 and token.is_keyword(*CLAUSE_KEYWORDS):
                keyword = token.value.upper()
                if keyword in ('GROUP', 'ORDER'):
                    keyword = f"{keyword} BY"
                if clauses[-1].tokens and any(not t.is_trivia for t in clauses[-1].tokens):
                    clauses.append(Clause(keyword=keyword))
                else:
                    clauses[-1].keyword = keyword
            clauses[-1].tokens.append(token)
        return clauses

    def check_structure(self, kind: StatementKind, tokens: Sequence[Token]):
        depth = 0
        terminated = False
        for token in tokens:
            if token.is_trivia:
                continue

            if terminated and not token.is_punctuation(';'):
                raise UnsupportedOperationError(
                    "Multiple statements", "Execute one statement at a time"
                )

            if token.is_punctuation('('):
                depth += 1
            elif token.is_punctuation(')'):
                depth -= 1
                if depth < 0:
                    raise MalformedStatementError(kind.value, "unbalanced parentheses")
            elif token.is_punctuation(';'):
                terminated = True
            elif token.is_keyword('JOIN'):
                raise UnsupportedOperationError(
                    "JOIN", "Query each collection separately and combine the results in application code"
                )
            elif token.is_keyword(*SET_OPERATIONS):
                raise UnsupportedOperationError(
                    token.value.upper(), "Run the queries separately and combine the results"
                )
            elif token.is_keyword('SELECT') and depth > 0:
                raise UnsupportedOperationError(
                    "Subquery", "Run the inner query first and pass its results as parameters"
                )
            elif token.is_keyword('RETURNING') and depth == 0:
                raise UnsupportedOperationError(
                    "RETURNING", "Query the affected documents after the statement"
                )

        if depth != 0:
            raise MalformedStatementError(kind.value, "unbalanced parentheses")

    @staticmethod
    def _strip_terminator(tokens: Sequence[Token]) -> List[Token]:
        """Drop trailing ; terminators and the whitespace around them"""
        stripped = list(tokens)
        while stripped and (stripped[-1].is_trivia or stripped[-1].is_punctuation(';')):
            if not any(t.is_punctuation(';') for t in stripped):
                break
            stripped.pop()
        return stripped
