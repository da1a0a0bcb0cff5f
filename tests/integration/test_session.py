"""
Integration Tests: DQLSession against the recording store

Exercises the full path: SQLAlchemy statement → compile → translate → store →
result mapping.
"""

import asyncio
import threading

import pytest
from sqlalchemy import CheckConstraint, Column, Integer, String, Table, delete, func, insert, select, update
from structlog.testing import capture_logs

from dqlbridge.errors import (
    DriverError,
    SchemaValidationError,
    UnsupportedConstraintError,
    UnsupportedOperationError,
)
from dqlbridge.result_mapper import ResultMapper
from dqlbridge.session import DQLSession, ObserveMetadata, QueryObserver
from dqlbridge.store import QueryResult


def squash(sql):
    return " ".join(sql.split())


@pytest.fixture
def session(store):
    return DQLSession(store)


@pytest.mark.integration
class TestQueries:
    """run / all / get / values"""

    @pytest.mark.asyncio
    async def test_all_maps_rows(self, session, store, users_table):
        store.queue({'_id': 'u1', 'name': 'Alice'}, {'_id': 'u2', 'name': 'Bob'})

        rows = await session.all(
            select(users_table.c.id, users_table.c.name).where(users_table.c.age > 30)
        )

        assert rows == [{'id': 'u1', 'name': 'Alice'}, {'id': 'u2', 'name': 'Bob'}]
        assert squash(store.last_query) == (
            "SELECT users._id, users.name FROM users WHERE users.age > :arg1"
        )
        assert store.last_args == {'arg1': 30}

    @pytest.mark.asyncio
    async def test_all_with_raw_sql(self, session, store):
        store.queue({'_id': 'u1'})

        rows = await session.all("SELECT * FROM users WHERE id = ?", ['u1'])

        assert rows == [{'id': 'u1'}]
        assert store.last_query == "SELECT * FROM users WHERE _id = :arg1"

    @pytest.mark.asyncio
    async def test_get_appends_limit(self, session, store):
        store.queue({'_id': 'u1', 'name': 'Alice'})

        row = await session.get("SELECT * FROM users WHERE id = ?", ['u1'])

        assert row == {'id': 'u1', 'name': 'Alice'}
        assert store.last_query == "SELECT * FROM users WHERE _id = :arg1 LIMIT 1"

    @pytest.mark.asyncio
    async def test_get_keeps_existing_limit(self, session, store):
        await session.get("SELECT * FROM users LIMIT ?", [5])

        assert store.last_query == "SELECT * FROM users LIMIT :arg1"

    @pytest.mark.asyncio
    async def test_get_without_rows(self, session, store):
        assert await session.get("SELECT * FROM users") is None

    @pytest.mark.asyncio
    async def test_values(self, session, store, users_table):
        store.queue({'name': 'A', 'age': 3}, {'name': 'B'})

        values = await session.values(select(users_table.c.name, users_table.c.age))

        assert values == [['A', 3], ['B', None]]

    @pytest.mark.asyncio
    async def test_values_without_fields(self, session, store):
        store.queue({'_id': 'a', 'name': 'A'})

        assert await session.values("SELECT * FROM users") == [['a', 'A']]

    @pytest.mark.asyncio
    async def test_aggregate_mapping(self, session, store, users_table):
        store.queue({'category': 'A', '($2)': 3}, {'category': 'B', '($2)': 1})

        rows = await session.all(
            select(users_table.c.category, func.count(users_table.c.id).label("total"))
            .group_by(users_table.c.category)
        )

        assert rows == [{'category': 'A', 'total': 3}, {'category': 'B', 'total': 1}]
        assert "count(users._id)" in store.last_query

    @pytest.mark.asyncio
    async def test_unlabeled_aggregate_values(self, session, store, users_table):
        """The store answers under the alias the query declared"""
        store.queue({'category': 'A', 'count': 3})

        values = await session.values(
            select(users_table.c.category, func.count()).group_by(users_table.c.category)
        )

        assert values == [['A', 3]]
        assert "count_1" not in store.last_query

    @pytest.mark.asyncio
    async def test_unlabeled_aggregate_positional_key(self, session, store, users_table):
        store.queue({'category': 'A', '($2)': 3})

        rows = await session.all(
            select(users_table.c.category, func.count()).group_by(users_table.c.category)
        )

        assert rows == [{'category': 'A', 'count': 3}]

    @pytest.mark.asyncio
    async def test_run_returns_store_result(self, session, store):
        store.queue({'_id': 'a'})

        result = await session.run("SELECT * FROM users")

        assert isinstance(result, QueryResult)
        assert result.items[0].value == {'_id': 'a'}

    @pytest.mark.asyncio
    async def test_prepare_exposes_translation(self, session):
        prepared = session.prepare("SELECT * FROM users WHERE id = ?", ['u1'])

        assert prepared.query == "SELECT * FROM users WHERE _id = :arg1"
        assert prepared.args == {'arg1': 'u1'}


@pytest.mark.integration
class TestMutations:

    @pytest.mark.asyncio
    async def test_insert(self, session, store, users_table):
        await session.run(insert(users_table).values(id='u1', name='Alice', age=30))

        assert store.last_query == "INSERT INTO users DOCUMENTS (:doc)"
        assert store.last_args == {'doc': {'_id': 'u1', 'name': 'Alice', 'age': 30}}

    @pytest.mark.asyncio
    async def test_multi_row_insert(self, session, store, users_table):
        await session.run(insert(users_table).values([
            {'id': 'a', 'name': 'A'},
            {'id': 'b', 'name': 'B'},
        ]))

        assert store.last_query == "INSERT INTO users DOCUMENTS (:doc1), (:doc2)"
        assert store.last_args == {
            'doc1': {'_id': 'a', 'name': 'A'},
            'doc2': {'_id': 'b', 'name': 'B'},
        }

    @pytest.mark.asyncio
    async def test_update(self, session, store, users_table):
        await session.run(
            update(users_table).where(users_table.c.id == 'u1').values(name='Bob')
        )

        assert squash(store.last_query) == "UPDATE users SET name=:arg1 WHERE users._id = :arg2"
        assert store.last_args == {'arg1': 'Bob', 'arg2': 'u1'}

    @pytest.mark.asyncio
    async def test_delete(self, session, store, users_table):
        await session.run(delete(users_table).where(users_table.c.id == 'u1'))

        assert squash(store.last_query) == "DELETE FROM users WHERE users._id = :arg1"
        assert store.last_args == {'arg1': 'u1'}

    @pytest.mark.asyncio
    async def test_create_index(self, session, store):
        await session.create_index('users', 'id')

        assert store.last_query == "CREATE INDEX IF NOT EXISTS users_id_idx ON users (_id)"
        assert store.last_args is None

    @pytest.mark.asyncio
    async def test_create_named_index(self, session, store):
        await session.create_index('users', 'profile.age', index_name='by_age')

        assert store.last_query == "CREATE INDEX IF NOT EXISTS by_age ON users (profile.age)"

    @pytest.mark.asyncio
    async def test_raw_dql_passthrough(self, session, store):
        await session.execute("SELECT * FROM users WHERE _id = :id", {'id': 'x'})

        assert store.calls == [("SELECT * FROM users WHERE _id = :id", {'id': 'x'})]


@pytest.mark.integration
class TestErrors:

    @pytest.mark.asyncio
    async def test_unsupported_never_reaches_store(self, session, store):
        with pytest.raises(UnsupportedOperationError):
            await session.run("DROP TABLE users")

        assert store.calls == []

    @pytest.mark.asyncio
    async def test_store_error_propagates_unchanged(self, session, store):
        error = RuntimeError("store unavailable")
        store.error = error

        with pytest.raises(RuntimeError) as exc_info:
            await session.all("SELECT * FROM users")

        assert exc_info.value is error

    def test_unknown_config_option(self, store):
        with pytest.raises(ValueError, match="Unknown driver config option"):
            DQLSession(store, {'logQueries': True})

    @pytest.mark.asyncio
    async def test_log_queries(self, store):
        session = DQLSession(store, {'log_queries': True})

        with capture_logs() as logs:
            await session.all("SELECT * FROM users WHERE id = ?", ['u1'])

        executed = [log for log in logs if log['event'] == "Executing DQL query"]
        assert executed[0]['log_level'] == 'info'
        assert executed[0]['query'] == "SELECT * FROM users WHERE _id = :arg1"
        assert executed[0]['params'] == ['u1']


@pytest.mark.integration
class TestSchemaValidation:
    """Schemas passed to the session are checked before any query runs"""

    def test_valid_schema_accepted(self, store, metadata, users_table):
        session = DQLSession(store, schema=metadata)
        assert session.store is store

    def test_table_accepted(self, store, users_table):
        DQLSession(store, schema=users_table)

    def test_unique_column_rejected(self, store, metadata):
        Table(
            "accounts", metadata,
            Column("id", String, primary_key=True),
            Column("email", String, unique=True),
        )

        with pytest.raises(UnsupportedConstraintError, match="accounts.email"):
            DQLSession(store, schema=metadata)

    def test_check_constraint_rejected(self, store, metadata):
        Table(
            "accounts", metadata,
            Column("id", String, primary_key=True),
            Column("age", Integer),
            CheckConstraint("age >= 0"),
        )

        with pytest.raises(SchemaValidationError):
            DQLSession(store, schema=metadata)


class QueryOnlyStore:
    """Store exposing execute() only"""

    def __init__(self):
        self.calls = []

    async def execute(self, query, args=None):
        self.calls.append((query, args))
        return QueryResult()


@pytest.mark.integration
class TestStoreCapabilities:

    @pytest.mark.asyncio
    async def test_queries_run(self):
        store = QueryOnlyStore()

        assert await DQLSession(store).all("SELECT * FROM users") == []
        assert store.calls == [("SELECT * FROM users", None)]

    @pytest.mark.asyncio
    async def test_transaction_unsupported(self):
        async def work(tx):
            return None

        with pytest.raises(DriverError, match="Store does not support transactions"):
            await DQLSession(QueryOnlyStore()).transaction(work)

    def test_observe_unsupported(self):
        with pytest.raises(DriverError, match="Store does not support observers"):
            DQLSession(QueryOnlyStore()).observe("SELECT * FROM users", lambda rows, metadata: None)


@pytest.mark.integration
class TestTransactions:

    @pytest.mark.asyncio
    async def test_transaction(self, session, store):
        async def work(tx):
            assert tx.in_transaction
            await tx.run("DELETE FROM users WHERE id = ?", ['u1'])
            return "done"

        assert await session.transaction(work) == "done"
        assert store.transactions == [False]
        assert store.last_query == "DELETE FROM users WHERE _id = :arg1"

    @pytest.mark.asyncio
    async def test_read_only_transaction(self, session, store):
        async def work(tx):
            return await tx.all("SELECT * FROM users")

        await session.transaction(work, access_mode='read only')
        assert store.transactions == [True]

    @pytest.mark.asyncio
    async def test_nested_transaction_rejected(self, session, store):
        async def inner(tx):
            return None

        async def outer(tx):
            await tx.transaction(inner)

        with pytest.raises(DriverError, match="Nested transactions are not supported"):
            await session.transaction(outer)

    @pytest.mark.asyncio
    async def test_unknown_access_mode(self, session):
        async def work(tx):
            return None

        with pytest.raises(ValueError, match="Unknown access mode"):
            await session.transaction(work, access_mode='serializable')

    @pytest.mark.asyncio
    async def test_exception_propagates(self, session):
        async def work(tx):
            raise KeyError("rollback")

        with pytest.raises(KeyError):
            await session.transaction(work)


@pytest.mark.integration
class TestObserve:

    def register(self, session, **kwargs):
        received = []

        def callback(rows, metadata):
            received.append((rows, metadata))

        observer = session.observe("SELECT * FROM users WHERE age > ?", callback, params=[30], **kwargs)
        return observer, received

    def test_registers_translated_query(self, session, store):
        self.register(session)

        query, _, args, _ = store.observers[0]
        assert query == "SELECT * FROM users WHERE age > :arg1"
        assert args == {'arg1': 30}

    def test_callback_receives_mapped_rows(self, session, store):
        observer, received = self.register(session)

        store.observers[0][1](QueryResult.from_documents([{'_id': 'a', 'age': 40}]))

        rows, metadata = received[0]
        assert rows == [{'id': 'a', 'age': 40}]
        assert isinstance(metadata, ObserveMetadata)
        assert metadata.has_changes

    def test_skip_initial_value(self, session, store):
        observer, received = self.register(session, emit_initial_value=False)
        on_result = store.observers[0][1]

        on_result(QueryResult.from_documents([{'_id': 'a'}]))
        on_result(QueryResult.from_documents([{'_id': 'b'}]))

        assert [rows for rows, _ in received] == [[{'id': 'b'}]]

    def test_cancel(self, session, store):
        observer, received = self.register(session)
        handle = store.observers[0][3]

        observer.cancel()
        store.observers[0][1](QueryResult.from_documents([{'_id': 'a'}]))

        assert handle.cancelled
        assert not observer.is_active
        assert received == []

    @pytest.mark.asyncio
    async def test_debounce(self, session, store):
        observer, received = self.register(session, debounce=0.01)
        on_result = store.observers[0][1]

        on_result(QueryResult.from_documents([{'_id': 'a'}]))
        on_result(QueryResult.from_documents([{'_id': 'b'}]))
        await asyncio.sleep(0.1)

        assert [rows for rows, _ in received] == [[{'id': 'b'}]]

    @pytest.mark.asyncio
    async def test_debounce_from_store_thread(self, session, store):
        """Store SDKs may deliver results on their own thread"""
        observer, received = self.register(session, debounce=0.01)
        on_result = store.observers[0][1]

        def deliver():
            on_result(QueryResult.from_documents([{'_id': 'a'}]))
            on_result(QueryResult.from_documents([{'_id': 'b'}]))

        thread = threading.Thread(target=deliver)
        thread.start()
        thread.join()
        await asyncio.sleep(0.1)

        assert [rows for rows, _ in received] == [[{'id': 'b'}]]

    def test_debounce_outside_event_loop(self, session, store):
        with pytest.raises(RuntimeError):
            self.register(session, debounce=0.01)

        assert store.observers == []

    def test_debounced_observer_needs_loop(self):
        with pytest.raises(ValueError, match="needs an event loop"):
            QueryObserver(lambda rows, metadata: None, ResultMapper(), debounce=0.01)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
