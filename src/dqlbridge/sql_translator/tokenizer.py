"""
SQL Tokenizer for DQL Translation

Splits statement text into typed tokens so the rewriters can reason about
identifiers, placeholders and literals instead of raw substrings. Rendering the
token list back gives the original text exactly, except that quoted identifiers
render without their quotes.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from ..errors import MalformedStatementError


class TokenType(Enum):
    WHITESPACE = "whitespace"
    COMMENT = "comment"
    QUOTED_IDENTIFIER = "quoted_identifier"
    WORD = "word"
    STRING = "string"
    NUMBER = "number"
    PLACEHOLDER = "placeholder"
    NAMED_PARAMETER = "named_parameter"
    PUNCTUATION = "punctuation"
    OPERATOR = "operator"


@dataclass(frozen=True)
class Token:
    """A single lexical token; value holds the unquoted identifier text"""
    type: TokenType
    text: str
    value: str
    position: int = 0

    @property
    def is_trivia(self) -> bool:
        return self.type in (TokenType.WHITESPACE, TokenType.COMMENT)

    @property
    def is_identifier(self) -> bool:
        return self.type in (TokenType.WORD, TokenType.QUOTED_IDENTIFIER)

    def is_keyword(self, *keywords: str) -> bool:
        """True for an unquoted word matching one of keywords (case-insensitive)"""
        return self.type is TokenType.WORD and self.value.upper() in keywords

    def is_punctuation(self, char: str) -> bool:
        return self.type is TokenType.PUNCTUATION and self.text == char

    def render(self) -> str:
        if self.type is TokenType.QUOTED_IDENTIFIER:
            return self.value
        return self.text

    def replace(self, type: Optional[TokenType] = None, text: Optional[str] = None) -> "Token":
        """Copy of this token with new text; value follows text"""
        new_text = self.text if text is None else text
        return Token(type or self.type, new_text, new_text, self.position)


class SQLTokenizer:
    """Regex-driven tokenizer for the statement shapes emitted by the query-builder"""

    def __init__(self):
        # Order matters: comments before operators, numbers before punctuation
        self._token_pattern = re.compile(
            r'(?P<whitespace>\s+)'
            r'|(?P<comment>--[^\n]*|/\*.*?\*/)'
            r'|(?P<dquote>"(?:[^"]|"")*")'
            r'|(?P<bracket>\[[^\]]*\])'
            r'|(?P<backtick>`(?:[^`]|``)*`)'
            r"|(?P<string>'(?:[^']|'')*')"
            r'|(?P<number>(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)'
            r'|(?P<placeholder>\?)'
            r'|(?P<named>:[^\W\d]\w*)'
            r'|(?P<word>[^\W\d][\w$]*)'
            r'|(?P<punctuation>[(),.;])'
            r'|(?P<operator><>|!=|<=|>=|\|\||::|[=<>+\-*/%&|~^])'
            r'|(?P<mismatch>.)',
            re.DOTALL,
        )

    def tokenize(self, sql: str, clause: str = "SQL") -> List[Token]:
        """
        Tokenize SQL text.

        Args:
            sql: Statement text
            clause: Statement kind used in error messages

        Raises:
            MalformedStatementError: On characters no token rule accepts
        """
        tokens = []
        for match in self._token_pattern.finditer(sql):
            group = match.lastgroup
            text = match.group()
            position = match.start()

            if group == 'mismatch':
                raise MalformedStatementError(
                    clause, f"unexpected character {text!r} at position {position}"
                )

            if group == 'dquote':
                tokens.append(Token(TokenType.QUOTED_IDENTIFIER, text, text[1:-1].replace('""', '"'), position))
            elif group == 'backtick':
                tokens.append(Token(TokenType.QUOTED_IDENTIFIER, text, text[1:-1].replace('``', '`'), position))
            elif group == 'bracket':
                tokens.append(Token(TokenType.QUOTED_IDENTIFIER, text, text[1:-1], position))
            else:
                tokens.append(Token(_GROUP_TYPES[group], text, text, position))

        return tokens

    @staticmethod
    def render(tokens: Iterable[Token]) -> str:
        return "".join(token.render() for token in tokens)

    @staticmethod
    def significant(tokens: Iterable[Token]) -> List[Token]:
        """Tokens with whitespace and comments removed"""
        return [token for token in tokens if not token.is_trivia]


_GROUP_TYPES = {
    'whitespace': TokenType.WHITESPACE,
    'comment': TokenType.COMMENT,
    'string': TokenType.STRING,
    'number': TokenType.NUMBER,
    'placeholder': TokenType.PLACEHOLDER,
    'named': TokenType.NAMED_PARAMETER,
    'word': TokenType.WORD,
    'punctuation': TokenType.PUNCTUATION,
    'operator': TokenType.OPERATOR,
}


class TokenCursor:
    """Forward-only cursor over the significant tokens of a statement"""

    def __init__(self, tokens: Iterable[Token]):
        self.tokens = SQLTokenizer.significant(tokens)
        self.index = 0

    def peek(self, offset: int = 0) -> Optional[Token]:
        position = self.index + offset
        return self.tokens[position] if position < len(self.tokens) else None

    def advance(self) -> Optional[Token]:
        token = self.peek()
        if token is not None:
            self.index += 1
        return token

    def at_end(self) -> bool:
        """True when only statement terminators remain"""
        return all(token.is_punctuation(';') for token in self.tokens[self.index:])

    def accept_keyword(self, *keywords: str) -> bool:
        token = self.peek()
        if token is not None and token.is_keyword(*keywords):
            self.index += 1
            return True
        return False

    def accept_punctuation(self, char: str) -> bool:
        token = self.peek()
        if token is not None and token.is_punctuation(char):
            self.index += 1
            return True
        return False

    def identifier_chain(self) -> Optional[List[str]]:
        """Consume name or qualifier.name and return its unquoted parts"""
        token = self.peek()
        if token is None or not token.is_identifier:
            return None

        parts = [token.value]
        self.index += 1
        while self.peek() is not None and self.peek().is_punctuation('.'):
            following = self.peek(1)
            if following is None or not following.is_identifier:
                break
            parts.append(following.value)
            self.index += 2
        return parts
