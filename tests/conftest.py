"""
Pytest configuration for dqlbridge tests

Unit and contract tests exercise the translator and mapper directly. Session
tests run against RecordingStore, an in-memory stand-in for the document store
that records every query and replays queued results.
"""

from typing import Any, Dict, List, Optional, Tuple

import pytest
from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table

from dqlbridge.sql_translator import DQLTranslator
from dqlbridge.store import QueryResult


class RecordingObserverHandle:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class RecordingStore:
    """Document store double: records queries, returns queued results in order"""

    def __init__(self):
        self.calls: List[Tuple[str, Optional[Dict[str, Any]]]] = []
        self.results: List[QueryResult] = []
        self.transactions: List[bool] = []
        self.observers: List[Tuple[str, Any, Optional[Dict[str, Any]], RecordingObserverHandle]] = []
        self.error: Optional[Exception] = None

    def queue(self, *documents: Dict[str, Any]) -> "RecordingStore":
        self.results.append(QueryResult.from_documents(documents))
        return self

    async def execute(self, query: str, args: Optional[Dict[str, Any]] = None) -> QueryResult:
        self.calls.append((query, args))
        if self.error is not None:
            raise self.error
        if self.results:
            return self.results.pop(0)
        return QueryResult()

    async def transaction(self, callback, *, is_read_only: bool = False):
        self.transactions.append(is_read_only)
        return await callback(self)

    def register_observer(self, query: str, callback, args: Optional[Dict[str, Any]] = None):
        handle = RecordingObserverHandle()
        self.observers.append((query, callback, args, handle))
        return handle

    @property
    def last_query(self) -> str:
        return self.calls[-1][0]

    @property
    def last_args(self) -> Optional[Dict[str, Any]]:
        return self.calls[-1][1]


@pytest.fixture
def translator() -> DQLTranslator:
    return DQLTranslator()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def metadata() -> MetaData:
    return MetaData()


@pytest.fixture
def users_table(metadata) -> Table:
    return Table(
        "users",
        metadata,
        Column("id", String, primary_key=True),
        Column("name", String),
        Column("age", Integer),
        Column("category", String),
        Column("active", Boolean),
    )


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests (no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "contract: Translation contract tests"
    )
    config.addinivalue_line(
        "markers", "integration: Session tests against the recording store"
    )
