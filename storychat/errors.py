"""
Error types raised by the domain modules and rendered by the app.
"""

from __future__ import annotations


class StorychatError(Exception):
    """Base error carrying a client-facing message and HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(StorychatError):
    status_code = 400


class Unauthorized(StorychatError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class Forbidden(StorychatError):
    status_code = 403


class NotFound(StorychatError):
    status_code = 404
