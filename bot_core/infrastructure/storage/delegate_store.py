import inspect
from typing import Any, Dict, Optional

from bot_core.config.settings import settings
from bot_core.domain.exceptions import SessionStoreError
from bot_core.domain.session import DatabaseClient, Session, SessionKey, SessionStore


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class DelegateSessionStore(SessionStore):
    """把会话读写转发给外部数据库客户端。

    客户端只需实现 where_one / insert / update 三个方法（同步或异步均可），
    可选实现 remove 以支持删除。客户端抛出的异常统一包装为 SessionStoreError。
    """

    def __init__(self, client: DatabaseClient, table: Optional[str] = None):
        self._client = client
        self._table = table or settings.users_table

    @staticmethod
    def _query(key: SessionKey) -> Dict[str, Any]:
        return {"platform": key.platform, "userId": key.user_id}

    async def where_one(self, key: SessionKey) -> Optional[Session]:
        try:
            record = await _resolve(self._client.where_one(self._table, self._query(key)))
            if not record:
                return None
            return Session.from_record(record)
        except SessionStoreError:
            raise
        except Exception as e:
            raise SessionStoreError(code="STORE_READ_ERROR", message=str(e), key=key.composite)

    async def save(self, key: SessionKey, session: Session) -> None:
        try:
            await _resolve(self._client.insert(self._table, session.to_record()))
        except Exception as e:
            raise SessionStoreError(code="STORE_WRITE_ERROR", message=str(e), key=key.composite)

    async def update(self, key: SessionKey, session: Session) -> None:
        try:
            await _resolve(self._client.update(self._table, self._query(key), session.to_record()))
        except Exception as e:
            raise SessionStoreError(code="STORE_WRITE_ERROR", message=str(e), key=key.composite)

    async def delete(self, key: SessionKey) -> None:
        remove = getattr(self._client, "remove", None)
        if remove is None:
            raise SessionStoreError(
                code="STORE_DELETE_ERROR",
                message=f"{type(self._client).__name__} does not support remove()",
                key=key.composite,
            )
        try:
            await _resolve(remove(self._table, self._query(key)))
        except Exception as e:
            raise SessionStoreError(code="STORE_DELETE_ERROR", message=str(e), key=key.composite)
