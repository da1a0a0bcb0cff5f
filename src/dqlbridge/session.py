"""
DQL Session

Async glue between the query-builder and the document store. Each execution
compiles the statement, translates it to DQL, sends it to the store and maps
the returned documents back into rows.

    session = DQLSession(store)
    rows = await session.all(select(users).where(users.c.active == True))
"""

import asyncio
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

import structlog
from sqlalchemy.sql import ClauseElement

from .compiler import CompiledStatement, compile_statement
from .config import DriverConfig
from .errors import DriverError
from .result_mapper import ResultMapper
from .schema_validator import validate_schema
from .sql_translator import DQLTranslator, TranslationResult
from .store import DocumentStore, ObservableStore, ObserverHandle, TransactionalStore

logger = structlog.get_logger()

Statement = Union[str, ClauseElement]

_LIMIT_PATTERN = re.compile(r'\bLIMIT\b', re.IGNORECASE)

ACCESS_MODES = ('read write', 'read only')


class PreparedQuery:
    """
    A compiled and translated statement bound to a store.

    Mirrors the run / all / get / values execution methods of the query-builder.
    """

    def __init__(self, store: DocumentStore, compiled: CompiledStatement, translation: TranslationResult,
                 mapper: ResultMapper, fields: Optional[Sequence[str]] = None,
                 config: Optional[DriverConfig] = None):
        self.store = store
        self.compiled = compiled
        self.translation = translation
        self.mapper = mapper
        self.fields = list(fields) if fields is not None else None
        self.config = config or DriverConfig()

    @property
    def query(self) -> str:
        return self.translation.query

    @property
    def args(self) -> Optional[Dict[str, Any]]:
        return self.translation.args

    async def run(self):
        """Execute and return the store's raw result"""
        return await self._execute(self.query)

    async def all(self) -> List[Dict[str, Any]]:
        result = await self._execute(self.query)
        return self.mapper.map_results(result.items, self.fields)

    async def get(self) -> Optional[Dict[str, Any]]:
        """First row or None; LIMIT 1 is added when the query has no LIMIT"""
        query = self.query
        if not _LIMIT_PATTERN.search(query):
            query = f"{query} LIMIT 1"

        result = await self._execute(query)
        if not result.items:
            return None
        return self.mapper.map_results(result.items[:1], self.fields)[0]

    async def values(self) -> List[List[Any]]:
        """Rows as value lists, ordered by the selected fields"""
        result = await self._execute(self.query)
        if self.fields is None:
            return [list(row.values()) for row in self.mapper.map_results(result.items)]
        return [
            self.mapper.map_result_values(getattr(item, 'value', item), self.fields)
            for item in result.items
        ]

    async def _execute(self, query: str):
        if self.config.log_queries:
            logger.info("Executing DQL query",
                        sql=self.compiled.sql,
                        params=list(self.compiled.parameters),
                        query=query,
                        args=self.args)
        else:
            logger.debug("Executing DQL query", query=query)

        return await self.store.execute(query, self.args)


@dataclass
class ObserveMetadata:
    has_changes: bool
    timestamp: float


class QueryObserver:
    """
    Live query registration; call cancel() to stop observing.

    Store SDKs may fire observers from their own thread. Debounced results are
    handed to the event loop captured at registration with
    call_soon_threadsafe, and the debounce timer runs on that loop.
    """

    def __init__(self, callback: Callable[[List[Dict[str, Any]], ObserveMetadata], Any],
                 mapper: ResultMapper, fields: Optional[Sequence[str]] = None,
                 emit_initial_value: bool = True, debounce: float = 0.0,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        if debounce > 0 and loop is None:
            raise ValueError("A debounced observer needs an event loop")

        self.callback = callback
        self.mapper = mapper
        self.fields = list(fields) if fields is not None else None
        self.emit_initial_value = emit_initial_value
        self.debounce = debounce
        self._loop = loop
        self._active = True
        self._first_result = True
        self._handle: Optional[ObserverHandle] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def is_active(self) -> bool:
        return self._active

    def on_result(self, result) -> None:
        """Store observer callback; safe to call from any thread"""
        if not self._active:
            return

        if self._first_result:
            self._first_result = False
            if not self.emit_initial_value:
                return

        rows = self.mapper.map_results(result.items, self.fields)

        if self.debounce > 0:
            self._loop.call_soon_threadsafe(self._restart_timer, rows)
        else:
            self._emit(rows)

    def _restart_timer(self, rows: List[Dict[str, Any]]) -> None:
        # Runs on the observer's event loop
        if not self._active:
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._loop.call_later(self.debounce, self._emit, rows)

    def cancel(self) -> None:
        self._active = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _emit(self, rows: List[Dict[str, Any]]) -> None:
        self._timer = None
        if self._active:
            self.callback(rows, ObserveMetadata(has_changes=True, timestamp=time.time()))


class DQLSession:
    """
    Session executing SQL (raw text or SQLAlchemy Core statements) against a
    document store.
    """

    def __init__(self, store: DocumentStore,
                 config: Union[DriverConfig, Dict[str, Any], None] = None,
                 schema: Any = None, in_transaction: bool = False):
        """
        Args:
            store: Document store (see dqlbridge.store.DocumentStore)
            config: DriverConfig or plain configuration dictionary
            schema: SQLAlchemy MetaData, Table, declarative class, or a list
                of them; validated for constraints the store cannot enforce

        Raises:
            UnsupportedConstraintError: Schema declares UNIQUE or FOREIGN KEY constraints
            UnsupportedOperationError: Schema declares composite or unique indexes
            SchemaValidationError: Schema declares CHECK constraints
        """
        validate_schema(schema)

        self.store = store
        self.config = config if isinstance(config, DriverConfig) else DriverConfig.from_dict(config)
        self.translator = DQLTranslator(self.config)
        self.mapper = ResultMapper(id_field=self.config.id_field)
        self.in_transaction = in_transaction

    def prepare(self, statement: Statement, params: Optional[Sequence[Any]] = None,
                fields: Optional[Sequence[str]] = None) -> PreparedQuery:
        """
        Compile and translate a statement.

        Args:
            statement: Raw SQL text or SQLAlchemy Core statement
            params: Positional parameters for raw SQL text
            fields: Output field names; defaults to the SELECT's columns
        """
        compiled = compile_statement(statement, params)
        translation = self.translator.translate(compiled.sql, compiled.parameters)
        return PreparedQuery(
            self.store,
            compiled,
            translation,
            self.mapper,
            fields=fields if fields is not None else compiled.fields,
            config=self.config,
        )

    async def run(self, statement: Statement, params: Optional[Sequence[Any]] = None):
        return await self.prepare(statement, params).run()

    async def all(self, statement: Statement, params: Optional[Sequence[Any]] = None,
                  fields: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        return await self.prepare(statement, params, fields).all()

    async def get(self, statement: Statement, params: Optional[Sequence[Any]] = None,
                  fields: Optional[Sequence[str]] = None) -> Optional[Dict[str, Any]]:
        return await self.prepare(statement, params, fields).get()

    async def values(self, statement: Statement, params: Optional[Sequence[Any]] = None,
                     fields: Optional[Sequence[str]] = None) -> List[List[Any]]:
        return await self.prepare(statement, params, fields).values()

    async def execute(self, query: str, args: Optional[Dict[str, Any]] = None):
        """Run a DQL query directly, without translation"""
        logger.debug("Executing raw DQL query", query=query)
        return await self.store.execute(query, args)

    async def create_index(self, table_name: str, column_name: str,
                           index_name: Optional[str] = None):
        """
        Create a single-field index.

        Args:
            table_name: Collection to index
            column_name: Field to index; id maps to _id
            index_name: Defaults to <table>_<column>_idx
        """
        name = index_name or f"{table_name}_{column_name}_idx"
        sql = f"CREATE INDEX IF NOT EXISTS {name} ON {table_name} ({column_name})"
        translation = self.translator.translate(sql)

        logger.info("Creating index", index=name, table=table_name, column=column_name)
        return await self.store.execute(translation.query, translation.args)

    async def transaction(self, transaction_fn: Callable[["DQLSession"], Awaitable[Any]],
                          access_mode: str = 'read write'):
        """
        Run transaction_fn inside a store transaction.

        The function receives a session bound to the transaction. Exceptions
        propagate and the store rolls the transaction back.

        Raises:
            DriverError: When called on a session that is already in a
                transaction, or when the store has no transactions
            ValueError: Unknown access mode
        """
        if self.in_transaction:
            raise DriverError("Nested transactions are not supported")
        if not isinstance(self.store, TransactionalStore):
            raise DriverError("Store does not support transactions")
        if access_mode not in ACCESS_MODES:
            raise ValueError(f"Unknown access mode: {access_mode!r}")

        async def run_in_transaction(store_transaction):
            tx_session = DQLSession(store_transaction, self.config, in_transaction=True)
            return await transaction_fn(tx_session)

        return await self.store.transaction(
            run_in_transaction,
            is_read_only=access_mode == 'read only',
        )

    def observe(self, statement: Statement,
                callback: Callable[[List[Dict[str, Any]], ObserveMetadata], Any],
                params: Optional[Sequence[Any]] = None,
                emit_initial_value: bool = True,
                debounce: float = 0.0) -> QueryObserver:
        """
        Observe a query; callback receives mapped rows on every change.

        Args:
            statement: Raw SQL text or SQLAlchemy Core statement
            callback: Called with (rows, ObserveMetadata)
            params: Positional parameters for raw SQL text
            emit_initial_value: Deliver the store's first result
            debounce: Seconds to wait for further changes before calling back;
                requires a running event loop, which delivers the callbacks

        Raises:
            DriverError: Store does not support observers
        """
        if not isinstance(self.store, ObservableStore):
            raise DriverError("Store does not support observers")

        prepared = self.prepare(statement, params)
        observer = QueryObserver(
            callback,
            self.mapper,
            fields=prepared.fields,
            emit_initial_value=emit_initial_value,
            debounce=debounce,
            loop=asyncio.get_running_loop() if debounce > 0 else None,
        )
        observer._handle = self.store.register_observer(
            prepared.query, observer.on_result, prepared.args
        )

        logger.debug("Registered query observer", query=prepared.query)
        return observer
