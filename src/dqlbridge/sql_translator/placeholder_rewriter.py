"""
Positional to named placeholder rewriting

Each ? marker, left to right, becomes :arg1, :arg2, ... and the argument map
binds argN to the N-th parameter.
"""

from typing import List, Optional, Sequence, Tuple

from ..errors import ArityMismatchError
from .models import ArgumentMap, Value
from .tokenizer import Token, TokenType


class PlaceholderRewriter:
    """Converts the ordinal ? protocol into named DQL arguments"""

    def __init__(self, prefix: str = "arg"):
        self.prefix = prefix

    @staticmethod
    def count(tokens: Sequence[Token]) -> int:
        return sum(1 for token in tokens if token.type is TokenType.PLACEHOLDER)

    def check_arity(self, tokens: Sequence[Token], parameters: Sequence[Value]) -> int:
        """
        Verify placeholders and parameters correspond one to one.

        Raises:
            ArityMismatchError: If the counts differ
        """
        placeholder_count = self.count(tokens)
        if placeholder_count != len(parameters):
            raise ArityMismatchError(placeholder_count, len(parameters))
        return placeholder_count

    def rewrite(self, tokens: Sequence[Token],
                parameters: Sequence[Value]) -> Tuple[List[Token], Optional[ArgumentMap]]:
        """
        Replace ? tokens with named placeholders.

        Returns:
            Tuple of (rewritten_tokens, args); args is None without placeholders
        """
        self.check_arity(tokens, parameters)

        args: ArgumentMap = {}
        rewritten = []
        position = 0
        for token in tokens:
            if token.type is TokenType.PLACEHOLDER:
                name = f"{self.prefix}{position + 1}"
                args[name] = parameters[position]
                position += 1
                rewritten.append(token.replace(TokenType.NAMED_PARAMETER, f":{name}"))
            else:
                rewritten.append(token)

        return rewritten, (args or None)
