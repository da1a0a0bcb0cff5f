"""
Identifier Normalizer for DQL Translation

Normalizes SQL identifiers for the document store:
- Quoted identifiers ("x", [x], `x`) → quotes stripped, text preserved
- Column references named id → _id (the document primary key)

A column reference is an identifier chain (name or qualifier.name) that is not
followed by "(" (function call), is not an alias introduced by AS, and is not a
table reference or a SET assignment target. MID(name) therefore keeps its name.
"""

from typing import List, Tuple

from .tokenizer import Token, TokenType


class IdentifierNormalizer:
    """
    Normalizes identifier tokens of one clause at a time.
    """

    def __init__(self, id_column: str = "id", id_field: str = "_id"):
        """Initialize the identifier normalizer with the primary key mapping"""
        self.id_column = id_column
        self.id_field = id_field

        # SQL keywords that are never column references when unquoted
        self._sql_keywords = {
            'SELECT', 'FROM', 'WHERE', 'INSERT', 'UPDATE', 'DELETE', 'CREATE', 'DROP',
            'TABLE', 'INDEX', 'INTO', 'VALUES', 'SET', 'JOIN', 'ON', 'AND', 'OR', 'NOT',
            'NULL', 'AS', 'ORDER', 'BY', 'GROUP', 'HAVING', 'LIMIT', 'OFFSET', 'ASC',
            'DESC', 'DISTINCT', 'ALL', 'IN', 'BETWEEN', 'LIKE', 'IS', 'TRUE', 'FALSE',
            'CASE', 'WHEN', 'THEN', 'ELSE', 'END', 'IF', 'EXISTS', 'COLLATE', 'ESCAPE',
            'NULLS', 'FIRST', 'LAST', 'CAST', 'UNIQUE', 'DOCUMENTS',
        }

    def normalize(self, tokens: List[Token], table_clause: bool = False,
                  assignment_clause: bool = False) -> Tuple[List[Token], int]:
        """
        Normalize identifiers in the tokens of one clause.

        Args:
            tokens: Clause tokens, including whitespace
            table_clause: Identifiers name tables (FROM, UPDATE targets)
            assignment_clause: Clause is a SET list; assignment targets keep their name

        Returns:
            Tuple of (normalized_tokens, rewrite_count)

        Rules:
            - Quoted identifiers → unquoted (counted)
            - Column reference id / t.id / "id" → _id / t._id (counted)
        """
        rewrite_count = 0
        normalized = list(tokens)
        depth = 0
        previous = None  # previous significant token
        i = 0

        while i < len(normalized):
            token = normalized[i]

            if token.is_punctuation('('):
                depth += 1
            elif token.is_punctuation(')'):
                depth -= 1

            if not token.is_identifier or self._is_keyword(token):
                if not token.is_trivia:
                    previous = token
                i += 1
                continue

            end = self._chain_end(normalized, i)
            following = self._next_significant(normalized, end + 1)

            rewrite_count += sum(
                1 for t in normalized[i:end + 1] if t.type is TokenType.QUOTED_IDENTIFIER
            )

            is_column = not (
                table_clause
                or (following is not None and following.is_punctuation('('))
                or (previous is not None and previous.is_keyword('AS'))
                or (assignment_clause and depth == 0 and self._is_assignment_target(previous, following))
            )

            last = normalized[end]
            if is_column and last.is_identifier and last.value == self.id_column:
                normalized[end] = last.replace(TokenType.WORD, self.id_field)
                if last.type is TokenType.WORD:
                    rewrite_count += 1

            previous = normalized[end]
            i = end + 1

        return normalized, rewrite_count

    def normalize_name(self, name: str) -> str:
        """Map a bare column name to its document field name"""
        return self.id_field if name == self.id_column else name

    def denormalize_name(self, name: str) -> str:
        """Map a document field name back to its column name"""
        return self.id_column if name == self.id_field else name

    def _is_keyword(self, token: Token) -> bool:
        return token.type is TokenType.WORD and token.value.upper() in self._sql_keywords

    @staticmethod
    def _chain_end(tokens: List[Token], start: int) -> int:
        """Index of the last token of the identifier chain starting at start"""
        end = start
        while (
            end + 2 < len(tokens)
            and tokens[end + 1].is_punctuation('.')
            and (tokens[end + 2].is_identifier
                 or (tokens[end + 2].type is TokenType.OPERATOR and tokens[end + 2].text == '*'))
        ):
            end += 2
        return end

    @staticmethod
    def _next_significant(tokens: List[Token], start: int):
        for token in tokens[start:]:
            if not token.is_trivia:
                return token
        return None

    @staticmethod
    def _is_assignment_target(previous, following) -> bool:
        if following is None or not (following.type is TokenType.OPERATOR and following.text == '='):
            return False
        return previous is None or previous.is_keyword('SET') or previous.is_punctuation(',')
