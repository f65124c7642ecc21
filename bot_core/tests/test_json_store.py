import asyncio
import json
import os
import tempfile
from pathlib import Path

import pytest

from bot_core.domain.exceptions import SessionStoreError
from bot_core.domain.session import Session, SessionKey
from bot_core.infrastructure.storage.json_store import JsonSessionStore, _write_lock


def _session(user_id="u1", **data):
    return Session(platform="alisa", user_id=user_id, data=dict(data), last_seq=3, last_action="greeting")


def test_save_then_load_roundtrip():
    with tempfile.TemporaryDirectory() as d:
        store = JsonSessionStore(root=Path(d), table="Users")
        session = _session(counter=1, name="Иван")
        asyncio.run(store.save(session.key, session))

        loaded = asyncio.run(store.where_one(session.key))
        assert loaded == session
        assert store.path == Path(d).resolve() / "Users.json"


def test_missing_row_returns_none():
    with tempfile.TemporaryDirectory() as d:
        store = JsonSessionStore(root=Path(d))
        assert asyncio.run(store.where_one(SessionKey("alisa", "nobody"))) is None


def test_document_layout():
    with tempfile.TemporaryDirectory() as d:
        store = JsonSessionStore(root=Path(d))
        session = _session(counter=2)
        asyncio.run(store.save(session.key, session))

        document = json.loads(store.path.read_text(encoding="utf-8"))
        row = document["alisa:u1"]
        assert row["platform"] == "alisa"
        assert row["userId"] == "u1"
        assert row["data"] == {"counter": 2}
        assert row["lastSeq"] == 3
        assert row["updatedAt"].endswith("Z")


def test_update_is_idempotent():
    with tempfile.TemporaryDirectory() as d:
        store = JsonSessionStore(root=Path(d))
        session = _session(counter=5)
        asyncio.run(store.update(session.key, session))
        asyncio.run(store.update(session.key, session))

        document = json.loads(store.path.read_text(encoding="utf-8"))
        assert list(document) == ["alisa:u1"]
        assert asyncio.run(store.where_one(session.key)) == session


def test_update_keeps_unknown_fields():
    with tempfile.TemporaryDirectory() as d:
        store = JsonSessionStore(root=Path(d))
        session = _session(counter=1)
        record = session.to_record()
        record["meta"] = {"source": "import"}
        store.path.write_text(json.dumps({"alisa:u1": record}), encoding="utf-8")

        session.data["counter"] = 2
        asyncio.run(store.update(session.key, session))

        row = json.loads(store.path.read_text(encoding="utf-8"))["alisa:u1"]
        assert row["meta"] == {"source": "import"}
        assert row["data"] == {"counter": 2}


def test_delete_removes_row():
    with tempfile.TemporaryDirectory() as d:
        store = JsonSessionStore(root=Path(d))
        first, second = _session("u1"), _session("u2")
        asyncio.run(store.save(first.key, first))
        asyncio.run(store.save(second.key, second))
        asyncio.run(store.delete(first.key))

        assert asyncio.run(store.where_one(first.key)) is None
        assert asyncio.run(store.where_one(second.key)) == second


def test_concurrent_saves_do_not_lose_rows():
    with tempfile.TemporaryDirectory() as d:
        store = JsonSessionStore(root=Path(d))
        sessions = [_session(f"user-{i}", n=i) for i in range(20)]

        async def save_all():
            await asyncio.gather(*(store.save(s.key, s) for s in sessions))

        asyncio.run(save_all())
        document = json.loads(store.path.read_text(encoding="utf-8"))
        assert len(document) == 20
        assert document["alisa:user-7"]["data"] == {"n": 7}


def test_write_locks_are_per_file():
    async def check():
        a = _write_lock(Path("/tmp/a.json"))
        assert _write_lock(Path("/tmp/a.json")) is a
        assert _write_lock(Path("/tmp/b.json")) is not a

    asyncio.run(check())


def test_corrupted_document_raises_store_error():
    with tempfile.TemporaryDirectory() as d:
        store = JsonSessionStore(root=Path(d))
        store.path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SessionStoreError) as exc:
            asyncio.run(store.where_one(SessionKey("alisa", "u1")))
        assert exc.value.code == "STORE_READ_ERROR"


def test_writes_through_another_instance_are_visible():
    with tempfile.TemporaryDirectory() as d:
        a = JsonSessionStore(root=Path(d))
        b = JsonSessionStore(root=Path(d))
        first, second, third = _session("x1"), _session("x2"), _session("x3")

        asyncio.run(a.save(first.key, first))
        assert asyncio.run(a.where_one(first.key)) == first
        cached_mtime = a.path.stat().st_mtime_ns

        asyncio.run(b.save(second.key, second))
        # 同一时间片内的写入：mtime 与 a 缓存时一致
        os.utime(a.path, ns=(cached_mtime, cached_mtime))

        assert asyncio.run(a.where_one(second.key)) == second
        asyncio.run(a.save(third.key, third))
        document = json.loads(a.path.read_text(encoding="utf-8"))
        assert set(document) == {"alisa:x1", "alisa:x2", "alisa:x3"}
