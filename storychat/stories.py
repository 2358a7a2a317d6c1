"""
Ephemeral stories. Expiry is applied when stories are read; records are only
removed by the purge maintenance script.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from storychat.errors import InvalidRequest, NotFound
from storychat.kv import KvClient
from storychat.records import (
    USERS_LIST_KEY,
    new_record_id,
    parse_iso,
    story_key,
    to_iso,
    upload_name,
    user_key,
    user_stories_key,
    utcnow,
)
from storychat.storage import StorageClient, UploadedFile

logger = logging.getLogger(__name__)

STORY_TYPES = ("text", "image")


def is_active(story: dict, now: datetime) -> bool:
    expires_at = parse_iso(story.get("expires_at"))
    return expires_at is not None and expires_at > now


def create_story(
    kv: KvClient,
    storage: StorageClient,
    bucket: str,
    caller_id: str,
    *,
    text: Optional[str] = None,
    story_type: Optional[str] = None,
    upload: Optional[UploadedFile] = None,
    ttl_hours: int = 24,
) -> dict:
    has_file = upload is not None and bool(upload.data)
    if not has_file and not (text or "").strip():
        raise InvalidRequest("A story needs text or a file")
    story_type = story_type or ("image" if has_file else "text")
    if story_type not in STORY_TYPES:
        raise InvalidRequest(f"Story type must be one of: {', '.join(STORY_TYPES)}")

    ttl_seconds = ttl_hours * 3600
    media_url = ""
    if has_file:
        path = upload_name(caller_id, upload.filename)
        storage.upload_bytes(bucket, path, upload.data, upload.content_type)
        media_url = storage.presign_get(bucket, path, expires_in=ttl_seconds)

    now = utcnow()
    story_id = new_record_id()
    story = {
        "id": story_id,
        "userId": caller_id,
        "media_url": media_url,
        "type": story_type,
        "text": text or "",
        "timestamp": to_iso(now),
        "views": [],
        "expires_at": to_iso(now + timedelta(seconds=ttl_seconds)),
    }
    kv.set(story_key(caller_id, story_id), story)
    story_ids = kv.get(user_stories_key(caller_id)) or []
    kv.set(user_stories_key(caller_id), [*story_ids, story_id])
    return story


def list_active_stories(kv: KvClient, now: Optional[datetime] = None) -> list[dict]:
    """Unexpired stories grouped by owner, oldest first within each group."""
    now = now or utcnow()
    groups = []
    for user_id in kv.get(USERS_LIST_KEY) or []:
        story_ids = kv.get(user_stories_key(user_id)) or []
        stories = [
            story
            for story in kv.mget([story_key(user_id, sid) for sid in story_ids])
            if story and is_active(story, now)
        ]
        if not stories:
            continue
        stories.sort(key=lambda s: parse_iso(s.get("timestamp")) or now)
        groups.append({"user": kv.get(user_key(user_id)), "stories": stories})
    return groups


def view_story(kv: KvClient, caller_id: str, owner_id: str, story_id: str) -> dict:
    story = kv.get(story_key(owner_id, story_id))
    if not story:
        raise NotFound("Story not found")
    views = story.get("views") or []
    if caller_id not in views:
        story = {**story, "views": [*views, caller_id]}
        kv.set(story_key(owner_id, story_id), story)
    return story


def purge_expired_stories(kv: KvClient, now: Optional[datetime] = None) -> int:
    """Delete expired story records and drop them from each owner's index."""
    now = now or utcnow()
    purged = 0
    for user_id in kv.get(USERS_LIST_KEY) or []:
        index_key = user_stories_key(user_id)
        story_ids = kv.get(index_key) or []
        if not story_ids:
            continue
        records = kv.mget([story_key(user_id, sid) for sid in story_ids])
        keep, expired = [], []
        for story_id, story in zip(story_ids, records):
            if story and is_active(story, now):
                keep.append(story_id)
            else:
                expired.append(story_id)
        if not expired:
            continue
        kv.mdelete([story_key(user_id, sid) for sid in expired])
        kv.set(index_key, keep)
        purged += len(expired)
        logger.info("Purged %d stories for user %s", len(expired), user_id)
    return purged
