"""
Identity service abstraction: a hosted GoTrue-compatible API and an in-memory double.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import requests

from storychat.records import now_iso

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Raised when the identity provider rejects a request."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class AuthUser:
    id: str
    email: str
    user_metadata: dict = field(default_factory=dict)
    created_at: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "user_metadata": self.user_metadata,
            "created_at": self.created_at,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "AuthUser":
        return cls(
            id=payload["id"],
            email=payload.get("email") or "",
            user_metadata=payload.get("user_metadata") or {},
            created_at=payload.get("created_at"),
        )


@dataclass
class AuthSession:
    access_token: str
    user: AuthUser

    def as_dict(self) -> dict:
        return {"access_token": self.access_token, "user": self.user.as_dict()}


class AuthClient(Protocol):
    """Operations the API needs from the identity service."""

    def create_user(self, email: str, password: str, name: str) -> AuthUser:
        ...

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        ...

    def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    def sign_out(self, access_token: str) -> None:
        ...


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """
    Hash password with a random salt using PBKDF2-SHA256.
    Format: "salt$hash"
    """
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), 100_000
    ).hex()
    return f"{salt}${digest}"


def verify_password(plain_password: str, stored_hash: str) -> bool:
    try:
        salt, _ = stored_hash.split("$", 1)
    except ValueError:
        return False
    return hmac.compare_digest(hash_password(plain_password, salt), stored_hash)


class InMemoryAuthClient:
    """In-process identity provider for development and tests."""

    def __init__(self):
        self.users: Dict[str, AuthUser] = {}
        self.passwords: Dict[str, str] = {}
        self.tokens: Dict[str, str] = {}

    def _find_by_email(self, email: str) -> Optional[AuthUser]:
        needle = email.strip().lower()
        for user in self.users.values():
            if user.email.lower() == needle:
                return user
        return None

    def create_user(self, email: str, password: str, name: str) -> AuthUser:
        if self._find_by_email(email):
            raise AuthError(
                "A user with this email address has already been registered", 400
            )
        if len(password) < 6:
            raise AuthError("Password should be at least 6 characters", 400)
        user = AuthUser(
            id=str(uuid.uuid4()),
            email=email.strip(),
            user_metadata={"name": name},
            created_at=now_iso(),
        )
        self.users[user.id] = user
        self.passwords[user.id] = hash_password(password)
        return user

    def issue_token(self, user_id: str) -> str:
        token = secrets.token_urlsafe(32)
        self.tokens[token] = user_id
        return token

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        user_id = self.tokens.get(access_token)
        if not user_id:
            return None
        return self.users.get(user_id)

    def sign_in(self, email: str, password: str) -> AuthSession:
        user = self._find_by_email(email)
        if not user or not verify_password(password, self.passwords[user.id]):
            raise AuthError("Invalid login credentials", 400)
        return AuthSession(access_token=self.issue_token(user.id), user=user)

    def sign_out(self, access_token: str) -> None:
        self.tokens.pop(access_token, None)


class GoTrueAuthClient:
    """
    Client for a hosted GoTrue-compatible identity REST API (e.g. Supabase Auth).
    Uses the service-role key for admin calls and as the project apikey.
    """

    def __init__(self, base_url: str, service_key: str, timeout: float = 10.0):
        if not base_url or not service_key:
            raise ValueError("auth_url and auth_service_key are required")
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self.session = requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/auth/v1{path}"

    def _headers(self, bearer: Optional[str] = None) -> dict:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {bearer or self.service_key}",
        }

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text or f"Identity service error ({response.status_code})"
        for key in ("msg", "message", "error_description", "error"):
            if payload.get(key):
                return str(payload[key])
        return f"Identity service error ({response.status_code})"

    def _raise_for_status(self, response: requests.Response) -> None:
        if response.status_code >= 400:
            message = self._error_message(response)
            logger.info("Identity service rejected request: %s", message)
            status = 400 if response.status_code < 500 else 502
            raise AuthError(message, status)

    def create_user(self, email: str, password: str, name: str) -> AuthUser:
        response = self.session.post(
            self._url("/admin/users"),
            json={
                "email": email,
                "password": password,
                "user_metadata": {"name": name},
                "email_confirm": True,
            },
            headers=self._headers(),
            timeout=self.timeout,
        )
        self._raise_for_status(response)
        payload = response.json()
        return AuthUser.from_payload(payload.get("user", payload))

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        response = self.session.get(
            self._url("/user"),
            headers=self._headers(access_token),
            timeout=self.timeout,
        )
        if response.status_code in (401, 403, 404):
            return None
        self._raise_for_status(response)
        return AuthUser.from_payload(response.json())

    def sign_in(self, email: str, password: str) -> AuthSession:
        response = self.session.post(
            self._url("/token"),
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers={"apikey": self.service_key},
            timeout=self.timeout,
        )
        self._raise_for_status(response)
        payload = response.json()
        return AuthSession(
            access_token=payload["access_token"],
            user=AuthUser.from_payload(payload["user"]),
        )

    def sign_out(self, access_token: str) -> None:
        response = self.session.post(
            self._url("/logout"),
            headers=self._headers(access_token),
            timeout=self.timeout,
        )
        if response.status_code in (401, 403):
            return
        self._raise_for_status(response)
