"""
Redis-backed store for the one refresh token each user may currently use.

Keys look like ``refresh_token:<user_id>``. Writing a new token for a user
replaces the old entry, so the previous refresh token stops working even
though its signature is still valid. Deleting the entry (logout) does the same.
"""
from __future__ import annotations

import hmac
import logging
from typing import Optional

from flask import current_app
from redis import Redis

logger = logging.getLogger(__name__)


class SessionCache:
    """Thin Redis wrapper for refresh-token sessions."""

    def __init__(self, client: Redis, prefix: str = "refresh_token:"):
        self.client = client
        self.prefix = prefix

    def _key(self, user_id: str) -> str:
        return f"{self.prefix}{user_id}"

    def put(self, user_id: str, refresh_token: str, ttl_seconds: int) -> None:
        # SET with EX replaces any previous value and TTL in one atomic command
        self.client.set(self._key(user_id), refresh_token, ex=max(1, int(ttl_seconds)))

    def get(self, user_id: str) -> Optional[str]:
        value = self.client.get(self._key(user_id))
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def delete(self, user_id: str) -> None:
        self.client.delete(self._key(user_id))

    def matches(self, user_id: str, refresh_token: str) -> bool:
        """True only when ``refresh_token`` is the token currently stored for the user."""
        stored = self.get(user_id)
        if not stored or not refresh_token:
            return False
        return hmac.compare_digest(stored.encode("utf-8"), refresh_token.encode("utf-8"))

    def ttl(self, user_id: str) -> int:
        return int(self.client.ttl(self._key(user_id)))


def get_session_cache() -> SessionCache:
    return current_app.extensions["session_cache"]
