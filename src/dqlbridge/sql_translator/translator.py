"""
SQL to DQL Translator

Orchestrates classification, tokenizing and the statement-specific rewriters:

    SELECT / UPDATE / DELETE → clause rewriting + :argN placeholders
    INSERT                   → DOCUMENTS (:doc) payload
    CREATE INDEX             → validated single-field index
    DROP INDEX / other DDL   → UnsupportedOperationError

The translator holds no per-call state, so one instance can serve concurrent
callers. Metrics travel with each TranslationResult.
"""

import time
from typing import Optional, Sequence

import structlog

from ..config import DriverConfig
from ..errors import MalformedStatementError, UnsupportedOperationError
from .classifier import UNSUPPORTED_SUGGESTIONS, StatementClassifier
from .clause_rewriter import ClauseRewriter
from .identifier_normalizer import IdentifierNormalizer
from .index_translator import IndexTranslator
from .insert_builder import InsertDocumentBuilder
from .models import (
    RawStatement,
    StatementKind,
    TranslationMetrics,
    TranslationResult,
    Value,
)
from .placeholder_rewriter import PlaceholderRewriter
from .tokenizer import SQLTokenizer

logger = structlog.get_logger()


class DQLTranslator:
    """
    SQL to DQL statement translator.

    Example:
        >>> translator = DQLTranslator()
        >>> result = translator.translate('SELECT * FROM users WHERE id = ?', ['u1'])
        >>> result.query
        'SELECT * FROM users WHERE _id = :arg1'
        >>> result.args
        {'arg1': 'u1'}
    """

    def __init__(self, config: Optional[DriverConfig] = None):
        self.config = config or DriverConfig()
        self.tokenizer = SQLTokenizer()
        self.classifier = StatementClassifier()
        self.normalizer = IdentifierNormalizer(id_field=self.config.id_field)
        self.placeholders = PlaceholderRewriter()
        self.clause_rewriter = ClauseRewriter(self.normalizer)
        self.insert_builder = InsertDocumentBuilder(self.normalizer)
        self.index_translator = IndexTranslator(self.normalizer)

    def translate(self, sql: str, parameters: Optional[Sequence[Value]] = None) -> TranslationResult:
        """
        Translate SQL text and positional parameters into DQL.

        Args:
            sql: SQL text with ? placeholders
            parameters: Values for the placeholders, in order

        Returns:
            TranslationResult with the DQL query and named arguments

        Raises:
            UnsupportedOperationError: Statement or clause the store cannot run
            MalformedStatementError: Supported statement that failed to parse
            ArityMismatchError: Placeholder and parameter counts differ
        """
        start_time = time.perf_counter()
        statement = RawStatement.of(sql, parameters)

        try:
            result, identifier_rewrites = self._translate(statement)
        except UnsupportedOperationError as e:
            logger.warning("Rejected unsupported SQL operation",
                           operation=e.operation,
                           sql=statement.text[:200])
            raise
        except MalformedStatementError as e:
            logger.debug("Failed to parse SQL statement",
                         clause=e.clause,
                         error=str(e),
                         sql=statement.text[:200])
            raise

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        result.metrics = TranslationMetrics(
            translation_time_ms=elapsed_ms,
            placeholder_count=len(statement.parameters),
            identifier_rewrites=identifier_rewrites,
            sla_compliant=elapsed_ms <= self.config.translation_sla_ms,
        )

        if not result.metrics.sla_compliant:
            logger.warning("SQL translation exceeded SLA",
                           sla_ms=self.config.translation_sla_ms,
                           **result.metrics.to_dict())

        logger.debug("Translated SQL to DQL",
                     kind=result.kind.name,
                     query=result.query,
                     **result.metrics.to_dict())

        return result

    def _translate(self, statement: RawStatement):
        classification = self.classifier.classify(statement.text)
        kind = classification.kind

        if kind is StatementKind.UNSUPPORTED:
            raise UnsupportedOperationError(
                classification.keyword,
                UNSUPPORTED_SUGGESTIONS.get(classification.keyword),
            )
        if kind is StatementKind.DROP_INDEX:
            self.index_translator.reject_drop()

        tokens = self.tokenizer.tokenize(statement.text, clause=kind.value)

        if kind is StatementKind.INSERT:
            query, args = self.insert_builder.build(tokens, statement.parameters)
            return TranslationResult(query=query, args=args, kind=kind), 0

        if kind is StatementKind.CREATE_INDEX:
            self.placeholders.check_arity(tokens, statement.parameters)
            query = self.index_translator.translate_create(tokens)
            return TranslationResult(query=query, args=None, kind=kind), 0

        tokens, identifier_rewrites = self.clause_rewriter.rewrite(kind, tokens)
        tokens, args = self.placeholders.rewrite(tokens, statement.parameters)
        query = self.tokenizer.render(tokens).strip()
        return TranslationResult(query=query, args=args, kind=kind), identifier_rewrites


# Global translator instance
_translator: Optional[DQLTranslator] = None


def get_translator() -> DQLTranslator:
    """Get the global translator instance"""
    global _translator
    if _translator is None:
        _translator = DQLTranslator()
    return _translator


def sql_to_dql(sql: str, parameters: Optional[Sequence[Value]] = None) -> TranslationResult:
    """Translate SQL using the global translator"""
    return get_translator().translate(sql, parameters)
