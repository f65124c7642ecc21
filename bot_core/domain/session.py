from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, NamedTuple, Optional, Protocol, Union


class SessionKey(NamedTuple):
    platform: str
    user_id: str

    @property
    def composite(self) -> str:
        return f"{self.platform}:{self.user_id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_iso(value: Optional[str]) -> datetime:
    if not value:
        return _utcnow()
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class Session:
    platform: str
    user_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    last_seq: int = -1
    last_action: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def key(self) -> SessionKey:
        return SessionKey(self.platform, self.user_id)

    def to_record(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "userId": self.user_id,
            "data": self.data,
            "lastSeq": self.last_seq,
            "lastAction": self.last_action,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Session":
        data = record.get("data")
        return cls(
            platform=record["platform"],
            user_id=str(record["userId"]),
            data=data if isinstance(data, dict) else {},
            last_seq=int(record.get("lastSeq", -1)),
            last_action=record.get("lastAction"),
            created_at=_parse_iso(record.get("createdAt")),
            updated_at=_parse_iso(record.get("updatedAt")),
        )


class SessionStore(Protocol):
    """会话存储协议。两种实现：JsonSessionStore（单文件文档）与 DelegateSessionStore。"""

    async def where_one(self, key: SessionKey) -> Optional[Session]:
        ...

    async def save(self, key: SessionKey, session: Session) -> None:
        ...

    async def update(self, key: SessionKey, session: Session) -> None:
        ...

    async def delete(self, key: SessionKey) -> None:
        ...


MaybeAwaitable = Union[Awaitable[Any], Any]


class DatabaseClient(Protocol):
    """外部数据库客户端协议，方法可以是同步或异步的。

    query 形如 {"platform": ..., "userId": ...}，record 为 Session.to_record() 的结果。
    """

    def where_one(self, table: str, query: Dict[str, Any]) -> MaybeAwaitable:
        ...

    def insert(self, table: str, record: Dict[str, Any]) -> MaybeAwaitable:
        ...

    def update(self, table: str, query: Dict[str, Any], record: Dict[str, Any]) -> MaybeAwaitable:
        ...
