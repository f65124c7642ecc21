"""单文件 JSON 文档存储。

整张用户表是一个 JSON 文档：{"<platform>:<user_id>": record}。
每次写入都会重新读取整个文档、修改一行、再整体写回，因此同一文件的写操作
通过按路径划分的 asyncio.Lock 串行化，不同文件之间互不阻塞。
读取不加锁：写入使用临时文件 + os.replace，读到的总是完整文档。
"""

import asyncio
import json
import os
import weakref
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from bot_core.config.settings import settings
from bot_core.domain.exceptions import SessionStoreError
from bot_core.domain.session import Session, SessionKey, SessionStore


# asyncio.Lock 绑定到首次使用它的事件循环，所以按循环分别维护
_WRITE_LOCKS: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)


def _write_lock(path: Path) -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    locks = _WRITE_LOCKS.setdefault(loop, {})
    lock = locks.get(str(path))
    if lock is None:
        lock = locks[str(path)] = asyncio.Lock()
    return lock


class JsonSessionStore(SessionStore):
    def __init__(self, root: str | Path | None = None, table: Optional[str] = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._path = self._root / f"{table or settings.users_table}.json"
        # ((inode, size, mtime_ns), 原始文本)，文件未变化时跳过磁盘读取；
        # os.replace 写入后 inode 必然变化
        self._cache: Optional[Tuple[Tuple[int, int, int], str]] = None

    @property
    def path(self) -> Path:
        return self._path

    async def where_one(self, key: SessionKey) -> Optional[Session]:
        document = await asyncio.to_thread(self._read_document)
        record = document.get(key.composite)
        if not isinstance(record, dict):
            return None
        try:
            return Session.from_record(record)
        except (KeyError, TypeError, ValueError) as e:
            raise SessionStoreError(code="STORE_READ_ERROR", message=str(e), key=key.composite)

    async def save(self, key: SessionKey, session: Session) -> None:
        async with _write_lock(self._path):
            await asyncio.to_thread(self._write_row, key, session.to_record(), False)

    async def update(self, key: SessionKey, session: Session) -> None:
        async with _write_lock(self._path):
            await asyncio.to_thread(self._write_row, key, session.to_record(), True)

    async def delete(self, key: SessionKey) -> None:
        async with _write_lock(self._path):
            await asyncio.to_thread(self._remove_row, key)

    def _write_row(self, key: SessionKey, record: Dict[str, Any], merge: bool) -> None:
        document = self._read_document(use_cache=False)
        existing = document.get(key.composite)
        if merge and isinstance(existing, dict):
            record = {**existing, **record}
        document[key.composite] = record
        self._write_document(document)

    def _remove_row(self, key: SessionKey) -> None:
        document = self._read_document(use_cache=False)
        if document.pop(key.composite, None) is not None:
            self._write_document(document)

    def _read_document(self, use_cache: bool = True) -> Dict[str, Any]:
        try:
            stat = self._path.stat()
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise SessionStoreError(code="STORE_READ_ERROR", message=str(e), path=str(self._path))
        try:
            signature = (stat.st_ino, stat.st_size, stat.st_mtime_ns)
            if use_cache and self._cache and self._cache[0] == signature:
                text = self._cache[1]
            else:
                text = self._path.read_text(encoding="utf-8")
                self._cache = (signature, text)
            document = json.loads(text) if text.strip() else {}
        except (OSError, ValueError) as e:
            raise SessionStoreError(code="STORE_READ_ERROR", message=str(e), path=str(self._path))
        if not isinstance(document, dict):
            raise SessionStoreError(
                code="STORE_READ_ERROR",
                message="users document is not a JSON object",
                path=str(self._path),
            )
        return document

    def _write_document(self, document: Dict[str, Any]) -> None:
        tmp_path = self._root / f"{self._path.stem}.{uuid4().hex}.json.tmp"
        try:
            tmp_path.write_text(json.dumps(document, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except (OSError, TypeError, ValueError) as e:
            tmp_path.unlink(missing_ok=True)
            raise SessionStoreError(code="STORE_WRITE_ERROR", message=str(e), path=str(self._path))
        self._cache = None
