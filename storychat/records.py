"""
Shared helpers for record ids, timestamps and key names.
"""

from __future__ import annotations

import random
import string
import time
from datetime import datetime, timezone
from typing import Optional

_ID_ALPHABET = string.ascii_lowercase + string.digits

USERS_LIST_KEY = "users:list"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Format as UTC ISO-8601 with millisecond precision and a Z suffix."""
    return (
        value.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def now_iso() -> str:
    return to_iso(utcnow())


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def epoch_ms() -> int:
    return int(time.time() * 1000)


def new_record_id() -> str:
    """Millisecond timestamp plus a random suffix; collisions are unlikely, not impossible."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{epoch_ms()}_{suffix}"


def chat_id_for(user_a: str, user_b: str) -> str:
    return "_".join(sorted([user_a, user_b]))


def upload_name(user_id: str, filename: Optional[str]) -> str:
    """Object name for an upload: <userId>-<ms>.<ext>."""
    ext = (filename or "").rsplit(".", 1)[-1] or "bin"
    return f"{user_id}-{epoch_ms()}.{ext}"


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


def chat_key(chat_id: str) -> str:
    return f"chat:{chat_id}"


def user_chats_key(user_id: str) -> str:
    return f"chats:{user_id}"


def message_key(chat_id: str, message_id: str) -> str:
    return f"message:{chat_id}:{message_id}"


def chat_messages_key(chat_id: str) -> str:
    return f"messages:{chat_id}"


def story_key(user_id: str, story_id: str) -> str:
    return f"story:{user_id}:{story_id}"


def user_stories_key(user_id: str) -> str:
    return f"stories:{user_id}"


def append_unique(kv, key: str, value: str) -> list[str]:
    """Append `value` to the list stored at `key` unless it is already present."""
    items = kv.get(key) or []
    if value not in items:
        items = [*items, value]
        kv.set(key, items)
    return items
