"""
1:1 chats and their messages.

A chat is keyed by the sorted pair of participant ids. Each user keeps a
list of chat ids under `chats:<user>` and each chat keeps an append-only
list of message ids under `messages:<chat>`.
"""

from __future__ import annotations

import logging
from typing import Optional

from storychat.errors import Forbidden, InvalidRequest, NotFound
from storychat.kv import KvClient
from storychat.records import (
    EPOCH,
    append_unique,
    chat_id_for,
    chat_key,
    chat_messages_key,
    message_key,
    new_record_id,
    now_iso,
    parse_iso,
    user_chats_key,
    user_key,
)

logger = logging.getLogger(__name__)


def _require_participant(chat: Optional[dict], caller_id: str) -> None:
    if chat and caller_id not in chat.get("participants", []):
        raise Forbidden("You are not a participant in this chat")


def get_or_create_chat(kv: KvClient, caller_id: str, other_user_id: str) -> dict:
    if not other_user_id:
        raise InvalidRequest("otherUserId is required")
    if other_user_id == caller_id:
        raise InvalidRequest("Cannot start a chat with yourself")
    if not kv.get(user_key(other_user_id)):
        raise NotFound("User not found")

    chat_id = chat_id_for(caller_id, other_user_id)
    chat = kv.get(chat_key(chat_id))
    if not chat:
        chat = {
            "id": chat_id,
            "participants": [caller_id, other_user_id],
            "created_at": now_iso(),
            "last_message": None,
        }
        kv.set(chat_key(chat_id), chat)
        logger.info("Created chat %s", chat_id)

    append_unique(kv, user_chats_key(caller_id), chat_id)
    append_unique(kv, user_chats_key(other_user_id), chat_id)
    return chat


def _activity_time(chat: dict):
    last = chat.get("last_message") or {}
    return parse_iso(last.get("timestamp") or chat.get("created_at"))


def list_chats(kv: KvClient, caller_id: str) -> list[dict]:
    """The caller's chats, each joined with the other participant's profile, newest activity first."""
    chat_ids = kv.get(user_chats_key(caller_id)) or []
    chats = []
    for chat in kv.mget([chat_key(cid) for cid in chat_ids]):
        if not chat:
            continue
        other_id = next(
            (p for p in chat.get("participants", []) if p != caller_id), None
        )
        other_user = kv.get(user_key(other_id)) if other_id else None
        chats.append({**chat, "otherUser": other_user})

    chats.sort(
        key=lambda c: _activity_time(c) or EPOCH,
        reverse=True,
    )
    return chats


def send_message(kv: KvClient, caller_id: str, chat_id: str, text: str) -> dict:
    if not text or not text.strip():
        raise InvalidRequest("Message text is required")
    chat = kv.get(chat_key(chat_id))
    if not chat:
        raise NotFound("Chat not found")
    _require_participant(chat, caller_id)

    message_id = new_record_id()
    message = {
        "id": message_id,
        "chatId": chat_id,
        "senderId": caller_id,
        "text": text,
        "timestamp": now_iso(),
        "seen": False,
        "reactions": {},
    }
    kv.set(message_key(chat_id, message_id), message)
    kv.set(
        chat_key(chat_id),
        {
            **chat,
            "last_message": {
                "text": text,
                "timestamp": message["timestamp"],
                "senderId": caller_id,
            },
        },
    )
    message_ids = kv.get(chat_messages_key(chat_id)) or []
    kv.set(chat_messages_key(chat_id), [*message_ids, message_id])
    return message


def list_messages(kv: KvClient, caller_id: str, chat_id: str) -> list[dict]:
    """Messages in send order, minus those the caller deleted for themselves."""
    _require_participant(kv.get(chat_key(chat_id)), caller_id)
    message_ids = kv.get(chat_messages_key(chat_id)) or []
    messages = kv.mget([message_key(chat_id, mid) for mid in message_ids])
    return [
        message
        for message in messages
        if message and caller_id not in (message.get("deletedFor") or [])
    ]


def _get_message(kv: KvClient, caller_id: str, chat_id: str, message_id: str) -> dict:
    _require_participant(kv.get(chat_key(chat_id)), caller_id)
    message = kv.get(message_key(chat_id, message_id))
    if not message:
        raise NotFound("Message not found")
    return message


def mark_seen(kv: KvClient, caller_id: str, chat_id: str, message_id: str) -> None:
    _require_participant(kv.get(chat_key(chat_id)), caller_id)
    message = kv.get(message_key(chat_id, message_id))
    if message and not message.get("seen"):
        kv.set(message_key(chat_id, message_id), {**message, "seen": True})


def delete_message(
    kv: KvClient,
    caller_id: str,
    chat_id: str,
    message_id: str,
    delete_for_everyone: bool,
    tombstone_text: str,
) -> dict:
    message = _get_message(kv, caller_id, chat_id, message_id)

    if delete_for_everyone:
        if message.get("senderId") != caller_id:
            raise Forbidden("Can only delete your own messages for everyone")
        updated = {**message, "deleted": True, "text": tombstone_text}
    else:
        deleted_for = list(message.get("deletedFor") or [])
        if caller_id not in deleted_for:
            deleted_for.append(caller_id)
        updated = {**message, "deletedFor": deleted_for}

    kv.set(message_key(chat_id, message_id), updated)
    return updated


def react(
    kv: KvClient, caller_id: str, chat_id: str, message_id: str, emoji: str
) -> dict:
    """One reaction per user; a new emoji replaces the old one, an empty one removes it."""
    message = _get_message(kv, caller_id, chat_id, message_id)
    reactions = dict(message.get("reactions") or {})
    if emoji:
        reactions[caller_id] = emoji
    else:
        reactions.pop(caller_id, None)
    updated = {**message, "reactions": reactions}
    kv.set(message_key(chat_id, message_id), updated)
    return updated
