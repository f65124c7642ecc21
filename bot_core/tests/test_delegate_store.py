import asyncio
import copy

import pytest

from bot_core.domain.exceptions import SessionStoreError
from bot_core.domain.session import Session, SessionKey
from bot_core.infrastructure.storage.delegate_store import DelegateSessionStore


class MemoryClient:
    def __init__(self):
        self.tables = {}
        self.calls = []

    def _rows(self, table):
        return self.tables.setdefault(table, [])

    def where_one(self, table, query):
        self.calls.append(("where_one", table))
        for row in self._rows(table):
            if all(row.get(k) == v for k, v in query.items()):
                return copy.deepcopy(row)
        return None

    def insert(self, table, record):
        self.calls.append(("insert", table))
        self._rows(table).append(copy.deepcopy(record))

    def update(self, table, query, record):
        self.calls.append(("update", table))
        for row in self._rows(table):
            if all(row.get(k) == v for k, v in query.items()):
                row.update(copy.deepcopy(record))


class AsyncMemoryClient(MemoryClient):
    async def where_one(self, table, query):
        return super().where_one(table, query)

    async def insert(self, table, record):
        super().insert(table, record)

    async def update(self, table, query, record):
        super().update(table, query, record)

    async def remove(self, table, query):
        self.tables[table] = [
            row for row in self._rows(table) if not all(row.get(k) == v for k, v in query.items())
        ]


class BrokenClient:
    def where_one(self, table, query):
        raise ConnectionError("db down")

    def insert(self, table, record):
        raise ConnectionError("db down")

    def update(self, table, query, record):
        raise ConnectionError("db down")


def test_sync_client_roundtrip():
    client = MemoryClient()
    store = DelegateSessionStore(client, table="UsersData")
    session = Session(platform="vk", user_id="42", data={"counter": 1})

    asyncio.run(store.save(session.key, session))
    session.data["counter"] = 2
    asyncio.run(store.update(session.key, session))

    loaded = asyncio.run(store.where_one(session.key))
    assert loaded.data == {"counter": 2}
    assert [c[0] for c in client.calls] == ["insert", "update", "where_one"]
    assert all(c[1] == "UsersData" for c in client.calls)


def test_async_client_roundtrip_and_delete():
    client = AsyncMemoryClient()
    store = DelegateSessionStore(client)
    session = Session(platform="telegram", user_id="7", data={"name": "Аня"})

    asyncio.run(store.save(session.key, session))
    assert asyncio.run(store.where_one(session.key)).data == {"name": "Аня"}

    asyncio.run(store.delete(session.key))
    assert asyncio.run(store.where_one(session.key)) is None


def test_missing_row_returns_none():
    store = DelegateSessionStore(MemoryClient())
    assert asyncio.run(store.where_one(SessionKey("vk", "nobody"))) is None


def test_client_errors_are_wrapped():
    store = DelegateSessionStore(BrokenClient())
    session = Session(platform="vk", user_id="1")
    with pytest.raises(SessionStoreError) as exc:
        asyncio.run(store.where_one(session.key))
    assert exc.value.code == "STORE_READ_ERROR"
    with pytest.raises(SessionStoreError) as exc:
        asyncio.run(store.save(session.key, session))
    assert exc.value.code == "STORE_WRITE_ERROR"


def test_delete_without_remove_support():
    store = DelegateSessionStore(MemoryClient())
    with pytest.raises(SessionStoreError) as exc:
        asyncio.run(store.delete(SessionKey("vk", "1")))
    assert exc.value.code == "STORE_DELETE_ERROR"
