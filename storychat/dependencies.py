"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header

from storychat.auth import AuthClient, AuthUser, GoTrueAuthClient, InMemoryAuthClient
from storychat.config import get_settings
from storychat.errors import Unauthorized
from storychat.kv import InMemoryKvClient, KvClient, RedisKvClient, SqlKvClient
from storychat.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)

_kv_client: KvClient | None = None
_storage_client: StorageClient | None = None
_auth_client: AuthClient | None = None


def get_kv_client() -> KvClient:
    """
    Return a singleton key-value client so in-memory state persists across requests.
    """
    global _kv_client
    if _kv_client:
        return _kv_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _kv_client = InMemoryKvClient()
    elif settings.database_url:
        _kv_client = SqlKvClient(settings.database_url)
    elif settings.redis_url:
        _kv_client = RedisKvClient(
            url=settings.redis_url, key_prefix=settings.redis_key_prefix
        )
    else:
        _kv_client = InMemoryKvClient()
    logger.info("Key-value backend: %s", _kv_client.__class__.__name__)
    return _kv_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_endpoint:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            endpoint=settings.s3_endpoint,
            region=settings.s3_region or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.s3_public_base_url,
        )
    logger.info("Storage backend: %s", _storage_client.__class__.__name__)
    return _storage_client


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if (
        settings.use_in_memory_backends
        or not settings.auth_url
        or not settings.auth_service_key
    ):
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = GoTrueAuthClient(
            base_url=settings.auth_url,
            service_key=settings.auth_service_key,
            timeout=settings.auth_timeout_seconds,
        )
    logger.info("Identity backend: %s", _auth_client.__class__.__name__)
    return _auth_client


def reset_clients() -> None:
    """Drop the cached clients so the next request builds fresh ones."""
    global _kv_client, _storage_client, _auth_client
    _kv_client = None
    _storage_client = None
    _auth_client = None


def get_access_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization:
        raise Unauthorized()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized()
    return token.strip()


def get_current_user(
    token: str = Depends(get_access_token),
    auth: AuthClient = Depends(get_auth_client),
) -> AuthUser:
    user = auth.get_user(token)
    if not user:
        raise Unauthorized()
    return user
