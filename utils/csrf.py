"""
CSRF protection using the double-submit cookie pattern.

The token lives in the XSRF-TOKEN cookie (readable by scripts, SameSite=Strict)
and must be echoed back in the X-XSRF-TOKEN header on mutating requests.
Requests authenticated with a bearer token are exempt: browsers never attach
that header on their own.
"""
from __future__ import annotations

import hmac
import secrets
from typing import Mapping, Optional

from utils.results import ErrorKind, Outcome

CSRF_TOKEN_BYTES = 32
CSRF_COOKIE_NAME = "XSRF-TOKEN"
CSRF_HEADER_NAME = "X-XSRF-TOKEN"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def generate_csrf_token() -> str:
    return secrets.token_hex(CSRF_TOKEN_BYTES)


def check_csrf(
    method: str,
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
    cookie_name: str = CSRF_COOKIE_NAME,
    header_name: str = CSRF_HEADER_NAME,
) -> Outcome[None]:
    if method.upper() in SAFE_METHODS:
        return Outcome.success()
    if uses_bearer_scheme(headers.get("Authorization")):
        return Outcome.success()

    cookie_token: Optional[str] = cookies.get(cookie_name)
    header_token: Optional[str] = headers.get(header_name)
    if not cookie_token or not header_token:
        return Outcome.failure(ErrorKind.CSRF_MISSING, "CSRF token missing")
    if not hmac.compare_digest(cookie_token.encode("utf-8"), header_token.encode("utf-8")):
        return Outcome.failure(ErrorKind.CSRF_INVALID, "CSRF token mismatch")
    return Outcome.success()


def set_csrf_cookie(response, token: str, config) -> None:
    response.set_cookie(
        config.get("CSRF_COOKIE_NAME", CSRF_COOKIE_NAME),
        token,
        max_age=config.get("CSRF_COOKIE_MAX_AGE", 24 * 60 * 60),
        httponly=False,  # the client script has to read it
        secure=config.get("CSRF_COOKIE_SECURE", False),
        samesite="Strict",
    )


def uses_bearer_scheme(authorization: Optional[str]) -> bool:
    """True for any `Bearer ...` header, even with an empty token; auth rejects those later."""
    if not authorization:
        return False
    return authorization.split(" ", 1)[0] == "Bearer"
