"""
Key-value store abstraction with SQL, Redis and in-memory implementations.

Every record the service keeps (profiles, chats, messages, stories and the
list-of-id indexes that point at them) lives under a string key as a JSON
value. There are no transactions: each call is an independent write and the
last writer wins.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions
from sqlalchemy import JSON, Column, String, create_engine, delete, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)


class KvClient(Protocol):
    """Interface for key-value access."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def mget(self, keys: list[str]) -> list[Optional[Any]]:
        ...

    def mset(self, items: Dict[str, Any]) -> None:
        ...

    def mdelete(self, keys: Iterable[str]) -> None:
        ...

    def get_by_prefix(self, prefix: str) -> list[tuple[str, Any]]:
        ...


def _copy(value: Any) -> Any:
    # Values must survive a JSON round trip, same as the hosted stores.
    return json.loads(json.dumps(value, default=str))


class InMemoryKvClient:
    """Simple in-memory store for development and tests."""

    def __init__(self):
        self.data: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        if key not in self.data:
            return None
        return _copy(self.data[key])

    def set(self, key: str, value: Any) -> None:
        self.data[key] = _copy(value)

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def mget(self, keys: list[str]) -> list[Optional[Any]]:
        return [self.get(key) for key in keys]

    def mset(self, items: Dict[str, Any]) -> None:
        for key, value in items.items():
            self.set(key, value)

    def mdelete(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.delete(key)

    def get_by_prefix(self, prefix: str) -> list[tuple[str, Any]]:
        return [
            (key, _copy(self.data[key]))
            for key in sorted(self.data)
            if key.startswith(prefix)
        ]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.data.clear()


class SqlKvClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlKvClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def get(self, key: str) -> Optional[Any]:
        with self.Session() as session:
            row = session.get(KvRow, key)
            return row.value if row else None

    def set(self, key: str, value: Any) -> None:
        self.mset({key: value})

    def delete(self, key: str) -> None:
        self.mdelete([key])

    def mget(self, keys: list[str]) -> list[Optional[Any]]:
        if not keys:
            return []
        with self.Session() as session:
            rows = session.execute(
                select(KvRow).where(KvRow.key.in_(set(keys)))
            ).scalars()
            found = {row.key: row.value for row in rows}
        return [found.get(key) for key in keys]

    def mset(self, items: Dict[str, Any]) -> None:
        with self.Session() as session:
            for key, value in items.items():
                existing = session.get(KvRow, key)
                if existing:
                    existing.value = _copy(value)
                else:
                    session.add(KvRow(key=key, value=_copy(value)))
            session.commit()

    def mdelete(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if not keys:
            return
        with self.Session() as session:
            session.execute(delete(KvRow).where(KvRow.key.in_(keys)))
            session.commit()

    def get_by_prefix(self, prefix: str) -> list[tuple[str, Any]]:
        with self.Session() as session:
            rows = session.execute(
                select(KvRow)
                .where(KvRow.key.startswith(prefix, autoescape=True))
                .order_by(KvRow.key.asc())
            ).scalars()
            return [(row.key, row.value) for row in rows]


class RedisKvClient:
    """Redis-backed store keeping JSON-encoded values under a namespace."""

    def __init__(self, url: str, key_prefix: str = "storychat:"):
        self.url = url
        self.key_prefix = key_prefix
        self.client = redis.Redis.from_url(self.url)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _call(self, method: str, *args, **kwargs):
        try:
            return getattr(self.client, method)(*args, **kwargs)
        except redis_exceptions.ConnectionError:
            # Connection resets can happen on managed Redis; reconnect once.
            logger.warning("Redis connection lost during %s, reconnecting", method)
            self.client = redis.Redis.from_url(self.url)
            return getattr(self.client, method)(*args, **kwargs)

    @staticmethod
    def _decode(raw: Optional[bytes]) -> Optional[Any]:
        if raw is None:
            return None
        return json.loads(raw)

    def get(self, key: str) -> Optional[Any]:
        return self._decode(self._call("get", self._key(key)))

    def set(self, key: str, value: Any) -> None:
        self._call("set", self._key(key), json.dumps(value, default=str))

    def delete(self, key: str) -> None:
        self._call("delete", self._key(key))

    def mget(self, keys: list[str]) -> list[Optional[Any]]:
        if not keys:
            return []
        raw = self._call("mget", [self._key(key) for key in keys])
        return [self._decode(item) for item in raw]

    def mset(self, items: Dict[str, Any]) -> None:
        if not items:
            return
        self._call(
            "mset",
            {
                self._key(key): json.dumps(value, default=str)
                for key, value in items.items()
            },
        )

    def mdelete(self, keys: Iterable[str]) -> None:
        full_keys = [self._key(key) for key in keys]
        if full_keys:
            self._call("delete", *full_keys)

    def get_by_prefix(self, prefix: str) -> list[tuple[str, Any]]:
        pattern = f"{self.key_prefix}{prefix}*"
        full_keys = sorted(
            key.decode("utf-8") if isinstance(key, bytes) else key
            for key in self._call("scan_iter", match=pattern)
        )
        if not full_keys:
            return []
        raw = self._call("mget", full_keys)
        strip = len(self.key_prefix)
        return [
            (key[strip:], self._decode(value))
            for key, value in zip(full_keys, raw)
            if value is not None
        ]


Base = declarative_base()


class KvRow(Base):
    __tablename__ = "kv_store"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=False)
