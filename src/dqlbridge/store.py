"""
Document store boundary

The bridge talks to the store only through this small asynchronous protocol.
Store implementations (or SDK adapters) provide execute(); transaction() and
register_observer() are needed only for DQLSession.transaction and
DQLSession.observe. Store errors propagate to the caller unchanged.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, runtime_checkable


@dataclass
class QueryResultItem:
    """One result document"""
    value: Dict[str, Any]


@dataclass
class QueryResult:
    """Items returned by the store for one query"""
    items: List[QueryResultItem] = field(default_factory=list)

    @classmethod
    def from_documents(cls, documents) -> "QueryResult":
        return cls(items=[QueryResultItem(value=dict(document)) for document in documents])


class ObserverHandle(Protocol):
    def cancel(self) -> None:
        ...


@runtime_checkable
class DocumentStore(Protocol):
    """Store surface used by the bridge"""

    async def execute(self, query: str, args: Optional[Dict[str, Any]] = None) -> Any:
        ...


@runtime_checkable
class TransactionalStore(DocumentStore, Protocol):
    async def transaction(self, callback: Callable[[Any], Awaitable[Any]], *,
                          is_read_only: bool = False) -> Any:
        ...


@runtime_checkable
class ObservableStore(DocumentStore, Protocol):
    def register_observer(self, query: str, callback: Callable[[Any], None],
                          args: Optional[Dict[str, Any]] = None) -> ObserverHandle:
        ...
