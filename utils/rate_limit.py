"""
Fixed-window rate limiting on Redis.

Each (scope, caller) pair gets a counter ``rl:<scope>:<caller>`` that expires
when its window closes. Scopes use their own key space, separate from the
refresh-token entries of SessionCache.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from flask import current_app
from redis import Redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitState:
    allowed: bool
    count: int
    limit: int
    remaining: int
    reset_in: int

    def headers(self) -> Dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_in),
        }


class FixedWindowLimiter:
    def __init__(self, client: Redis, scope: str, limit: int, window_seconds: int, prefix: str = "rl:"):
        self.client = client
        self.scope = scope
        self.limit = int(limit)
        self.window_seconds = int(window_seconds)
        self.prefix = prefix

    def _key(self, caller: str) -> str:
        return f"{self.prefix}{self.scope}:{caller}"

    def hit(self, caller: str) -> RateLimitState:
        key = self._key(caller)
        count = int(self.client.incr(key))
        if count == 1:
            # first hit opens the window
            self.client.expire(key, self.window_seconds)
            reset_in = self.window_seconds
        else:
            ttl = int(self.client.ttl(key))
            if ttl < 0:
                # counter survived without an expiry; start a new window
                self.client.expire(key, self.window_seconds)
                ttl = self.window_seconds
            reset_in = ttl
        allowed = count <= self.limit
        if not allowed:
            logger.warning("Rate limit exceeded scope=%s caller=%s count=%d", self.scope, caller, count)
        return RateLimitState(
            allowed=allowed,
            count=count,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            reset_in=reset_in,
        )

    def undo(self, caller: str) -> None:
        """Give back one hit (used for requests that should not count)."""
        key = self._key(caller)
        if int(self.client.decr(key)) <= 0:
            self.client.delete(key)

    def reset(self, caller: str) -> None:
        self.client.delete(self._key(caller))


def build_limiters(client: Redis, limits: Dict[str, tuple]) -> Dict[str, FixedWindowLimiter]:
    return {
        scope: FixedWindowLimiter(client, scope, limit, window)
        for scope, (limit, window) in limits.items()
    }


def get_limiter(scope: str) -> FixedWindowLimiter:
    return current_app.extensions["rate_limiters"][scope]
