"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT access/refresh pair creation and verification via PyJWT
- Bearer header authentication against the credential store
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Any, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError

from flask import current_app

from utils.results import ErrorKind, Outcome

logger = logging.getLogger(__name__)

ph = PasswordHasher()

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Identity:
    """The claim set carried by both tokens of a pair."""
    user_id: str
    username: str
    email: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_in: int
    refresh_expires_in: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "tokenType": "bearer",
            "expiresIn": self.access_expires_in,
        }


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    username: str
    email: str
    display_name: Optional[str] = None


class TokenIssuer:
    """
    Signs and verifies access/refresh pairs.

    Access and refresh tokens use distinct secrets and lifetimes, and every
    token gets its own jti so two tokens minted in the same second differ.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        algorithm: str = "HS256",
        issuer: str = "collab-platform-api",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.algorithm = algorithm
        self.issuer = issuer
        self.clock = clock

    @classmethod
    def from_config(cls, config) -> "TokenIssuer":
        return cls(
            access_secret=config["JWT_SECRET"],
            refresh_secret=config["JWT_REFRESH_SECRET"],
            access_ttl=config["JWT_ACCESS_TOKEN_EXPIRES"],
            refresh_ttl=config["JWT_REFRESH_TOKEN_EXPIRES"],
            algorithm=config["JWT_ALGORITHM"],
            issuer=config["JWT_ISSUER"],
        )

    @property
    def refresh_ttl_seconds(self) -> int:
        return int(self.refresh_ttl.total_seconds())

    def _encode(self, identity: Identity, token_type: str, secret: str, ttl: timedelta) -> str:
        now = self.clock()
        payload = {
            "iss": self.issuer,
            "sub": str(identity.user_id),
            "username": identity.username,
            "email": identity.email,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
            "type": token_type,
            "jti": generate_jti(),
        }
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def issue_token_pair(self, identity: Identity) -> TokenPair:
        """Sign a fresh access/refresh pair. Storing the refresh token is the caller's job."""
        return TokenPair(
            access_token=self._encode(identity, ACCESS, self.access_secret, self.access_ttl),
            refresh_token=self._encode(identity, REFRESH, self.refresh_secret, self.refresh_ttl),
            access_expires_in=int(self.access_ttl.total_seconds()),
            refresh_expires_in=self.refresh_ttl_seconds,
        )

    def _decode(self, token: str, secret: str, expected_type: str) -> Outcome[Identity]:
        """
        Decode and validate a JWT. Expired signatures are reported as
        EXPIRED_TOKEN; everything else that fails is INVALID_TOKEN.
        """
        if not token or not isinstance(token, str):
            return Outcome.failure(ErrorKind.INVALID_TOKEN, "Invalid token")
        try:
            decoded = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub", "type"]},
            )
        except jwt.ExpiredSignatureError:
            return Outcome.failure(ErrorKind.EXPIRED_TOKEN, "Token expired")
        except jwt.InvalidTokenError as exc:
            logger.debug("Token rejected: %s", exc)
            return Outcome.failure(ErrorKind.INVALID_TOKEN, "Invalid token")

        if decoded.get("type") != expected_type:
            return Outcome.failure(ErrorKind.INVALID_TOKEN, "Wrong token type")
        return Outcome.success(
            Identity(
                user_id=decoded["sub"],
                username=decoded.get("username", ""),
                email=decoded.get("email", ""),
            )
        )

    def verify_access_token(self, token: str) -> Outcome[Identity]:
        return self._decode(token, self.access_secret, ACCESS)

    def verify_refresh_token(self, token: str) -> Outcome[Identity]:
        return self._decode(token, self.refresh_secret, REFRESH)


def get_token_issuer() -> TokenIssuer:
    return current_app.extensions["token_issuer"]


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Token from an `Authorization: Bearer <token>` header, or None."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


def authenticate_bearer(authorization: Optional[str], issuer: TokenIssuer, storage, verify_user: bool = True) -> Outcome[CurrentUser]:
    """
    Resolve an Authorization header to the calling user.

    UNAUTHENTICATED when there is no bearer token, INVALID_TOKEN / EXPIRED_TOKEN
    from verification, USER_NOT_FOUND when the account behind a valid token is gone.
    """
    token = extract_bearer(authorization)
    if token is None:
        return Outcome.failure(ErrorKind.UNAUTHENTICATED, "Access token required")

    verified = issuer.verify_access_token(token)
    if not verified.ok:
        return Outcome.failure(verified.error, verified.message)
    identity = verified.value

    display_name = None
    if verify_user:
        user = storage.find_user_by_id(identity.user_id)
        if user is None:
            return Outcome.failure(ErrorKind.USER_NOT_FOUND, "User not found")
        display_name = user.display_name

    return Outcome.success(
        CurrentUser(
            user_id=identity.user_id,
            username=identity.username,
            email=identity.email,
            display_name=display_name,
        )
    )
