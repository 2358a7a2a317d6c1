"""
User profiles and the user directory.
"""

from __future__ import annotations

import logging
from typing import Optional

from storychat.auth import AuthClient, AuthUser
from storychat.errors import InvalidRequest, NotFound
from storychat.kv import KvClient
from storychat.records import (
    USERS_LIST_KEY,
    append_unique,
    now_iso,
    upload_name,
    user_key,
)
from storychat.storage import StorageClient, UploadedFile

logger = logging.getLogger(__name__)

STATUSES = ("online", "offline")
THEMES = ("light", "dark")
UPDATABLE_FIELDS = ("name", "bio", "avatar_url", "theme", "status")


def new_profile(user_id: str, email: str, name: str) -> dict:
    now = now_iso()
    return {
        "id": user_id,
        "email": email,
        "name": name,
        "bio": "",
        "avatar_url": "",
        "status": "online",
        "theme": "light",
        "last_seen": now,
        "created_at": now,
    }


def signup(
    kv: KvClient, auth: AuthClient, email: str, password: str, name: str
) -> AuthUser:
    if not email or not password or not name:
        raise InvalidRequest("Email, password, and name are required")
    user = auth.create_user(email=email, password=password, name=name)
    kv.set(user_key(user.id), new_profile(user.id, email, name))
    append_unique(kv, USERS_LIST_KEY, user.id)
    logger.info("Registered user %s", user.id)
    return user


def get_profile(kv: KvClient, user_id: str) -> dict:
    profile = kv.get(user_key(user_id))
    if not profile:
        raise NotFound("Profile not found")
    return profile


def update_profile(kv: KvClient, user_id: str, updates: dict) -> dict:
    """Shallow-merge the given fields onto the stored profile; id and email are fixed."""
    current = get_profile(kv, user_id)
    changes = {
        k: v
        for k, v in updates.items()
        if k in UPDATABLE_FIELDS and v is not None
    }
    if "theme" in changes and changes["theme"] not in THEMES:
        raise InvalidRequest(f"Theme must be one of: {', '.join(THEMES)}")
    if "status" in changes and changes["status"] not in STATUSES:
        raise InvalidRequest(f"Status must be one of: {', '.join(STATUSES)}")
    updated = {
        **current,
        **changes,
        "id": user_id,
        "email": current.get("email"),
    }
    kv.set(user_key(user_id), updated)
    return updated


def upload_avatar(
    kv: KvClient,
    storage: StorageClient,
    bucket: str,
    user_id: str,
    upload: Optional[UploadedFile],
) -> str:
    if upload is None or not upload.data:
        raise InvalidRequest("No file provided")
    current = get_profile(kv, user_id)
    path = upload_name(user_id, upload.filename)
    storage.upload_bytes(bucket, path, upload.data, upload.content_type)
    url = storage.public_url(bucket, path)
    kv.set(user_key(user_id), {**current, "avatar_url": url})
    return url


def list_users(kv: KvClient, caller_id: str) -> list[dict]:
    """Every registered profile except the caller's. Index entries without a record are skipped."""
    user_ids = [uid for uid in kv.get(USERS_LIST_KEY) or [] if uid != caller_id]
    profiles = kv.mget([user_key(uid) for uid in user_ids])
    return [profile for profile in profiles if profile]


def get_user(kv: KvClient, user_id: str) -> dict:
    profile = kv.get(user_key(user_id))
    if not profile:
        raise NotFound("User not found")
    return profile


def update_status(kv: KvClient, user_id: str, status: str) -> dict:
    if status not in STATUSES:
        raise InvalidRequest(f"Status must be one of: {', '.join(STATUSES)}")
    current = get_profile(kv, user_id)
    updated = {**current, "status": status, "last_seen": now_iso()}
    kv.set(user_key(user_id), updated)
    return updated
