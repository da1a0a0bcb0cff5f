"""
SQL to DQL Translation Module

Translates the SQL emitted by the query-builder into the document store's
query language: identifier quoting is stripped, the id column maps to _id,
positional ? parameters become named :argN arguments and INSERT column/value
lists are folded into DOCUMENTS payloads.

Statements the store cannot run are rejected with UnsupportedOperationError
instead of being mistranslated.
"""

from .translator import DQLTranslator, get_translator, sql_to_dql
from .models import (
    ArgumentMap,
    Classification,
    RawStatement,
    StatementKind,
    TranslationMetrics,
    TranslationResult,
    Value,
)
from .classifier import StatementClassifier
from .identifier_normalizer import IdentifierNormalizer

__all__ = [
    "DQLTranslator",
    "get_translator",
    "sql_to_dql",
    "ArgumentMap",
    "Classification",
    "RawStatement",
    "StatementKind",
    "TranslationMetrics",
    "TranslationResult",
    "Value",
    "StatementClassifier",
    "IdentifierNormalizer",
]
