"""
Data models for SQL to DQL translation
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

# Parameter values accepted from the query-builder
Value = Union[None, bool, int, float, str]

# Named arguments passed to the store: argN -> Value, doc/docK -> document
ArgumentMap = Dict[str, Any]


class StatementKind(Enum):
    """Statement shapes recognised from the leading keywords"""
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CREATE_INDEX = "CREATE INDEX"
    DROP_INDEX = "DROP INDEX"
    UNSUPPORTED = "UNSUPPORTED"


@dataclass(frozen=True)
class RawStatement:
    """SQL text and ordered parameters as produced by the query-builder"""
    text: str
    parameters: Tuple[Value, ...] = ()

    @classmethod
    def of(cls, text: str, parameters=None) -> "RawStatement":
        return cls(text=text, parameters=tuple(parameters or ()))


@dataclass(frozen=True)
class Classification:
    """Result of statement classification"""
    kind: StatementKind
    keyword: str
    reason: Optional[str] = None

    @property
    def is_supported(self) -> bool:
        return self.kind is not StatementKind.UNSUPPORTED


@dataclass
class TranslationMetrics:
    """Performance metrics for one translation"""
    translation_time_ms: float
    placeholder_count: int
    identifier_rewrites: int
    sla_compliant: bool
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for logging"""
        return {
            'translation_time_ms': round(self.translation_time_ms, 3),
            'placeholder_count': self.placeholder_count,
            'identifier_rewrites': self.identifier_rewrites,
            'sla_compliant': self.sla_compliant,
        }


@dataclass
class TranslationResult:
    """
    Translated DQL query and its named arguments.

    args is None when the statement has no placeholders and is not an INSERT.
    """
    query: str
    args: Optional[ArgumentMap] = None
    kind: StatementKind = StatementKind.SELECT
    metrics: Optional[TranslationMetrics] = None
