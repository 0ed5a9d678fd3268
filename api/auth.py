"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- GET  /auth/me

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and longer-lived refresh tokens (JWTs signed with HS256,
  one secret per token type)
- Keeps exactly one refresh token per user in Redis (utils.session_cache); logging in again
  or refreshing overwrites it, logging out deletes it
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import Blueprint, request, g

from models import get_storage
from models.user import User
from models.schemas.user import RegisterSchema, LoginSchema, RefreshSchema, UserOutSchema

from .errors import success_response
from utils.decorators import jwt_required, rate_limit
from utils.results import ApiError, ErrorKind
from utils.security import (
    Identity,
    TokenIssuer,
    get_token_issuer,
    hash_password,
    verify_password,
)
from utils.session_cache import SessionCache, get_session_cache

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
user_out_schema = UserOutSchema()


def start_session(identity: Identity, issuer: TokenIssuer, cache: SessionCache):
    """Mint a pair and make its refresh token the only valid one for the user."""
    pair = issuer.issue_token_pair(identity)
    cache.put(identity.user_id, pair.refresh_token, issuer.refresh_ttl_seconds)
    return pair


def _identity(user: User) -> Identity:
    return Identity(user_id=user.id, username=user.username, email=user.email)


@bp.post("/register")
@rate_limit("auth", skip_successful=True)
def register():
    """
    Register a new user account and return a token pair.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [username, email, password]
          properties:
            username: { type: string }
            email: { type: string }
            password: { type: string }
            displayName: { type: string }
    responses:
      201:
        description: Created
      400:
        description: Validation error
      409:
        description: User already exists
    """
    payload = request.get_json(silent=True) or {}
    data = register_schema.load(payload)

    storage = get_storage()
    if storage.find_user_by_email_or_username(data["email"], data["username"]):
        raise ApiError(ErrorKind.CONFLICT, "User with this email or username already exists")

    user = User(
        username=data["username"],
        email=data["email"],
        password_hash=hash_password(data["password"]),
        display_name=data.get("display_name") or data["username"],
    )
    storage.new(user)
    storage.save()

    pair = start_session(_identity(user), get_token_issuer(), get_session_cache())
    logger.info("New user registered: %s (%s)", user.username, user.id)

    return success_response(
        {"user": user_out_schema.dump(user), **pair.to_dict()},
        message="User registered successfully",
        status=201,
    )


@bp.post("/login")
@rate_limit("auth", skip_successful=True)
def login():
    """
    Login: return access and refresh tokens
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
    """
    payload = request.get_json(silent=True) or {}
    data = login_schema.load(payload)

    storage = get_storage()
    user = storage.find_user_by_email(data["email"])
    if not user or not verify_password(data["password"], user.password_hash):
        logger.warning("Failed login for %s", data["email"])
        raise ApiError(ErrorKind.INVALID_CREDENTIALS, "Invalid email or password")

    pair = start_session(_identity(user), get_token_issuer(), get_session_cache())

    user.last_login = datetime.now(timezone.utc)
    storage.new(user)
    storage.save()
    logger.info("User logged in: %s (%s)", user.username, user.id)

    return success_response(
        {"user": user_out_schema.dump(user), **pair.to_dict()},
        message="Login successful",
    )


@bp.post("/refresh")
@rate_limit("auth", skip_successful=True)
def refresh():
    """
    Use the refresh token to obtain a new access and refresh token (rotation).
    The presented refresh token stops working once this succeeds.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [refreshToken]
           properties:
             refreshToken: { type: string }
    responses:
      200:
        description: New token pair
      400:
        description: Refresh token is required
      401:
        description: Invalid, revoked or expired refresh token
    """
    payload = request.get_json(silent=True) or {}
    data = refresh_schema.load(payload)
    token = data["refresh_token"]

    issuer = get_token_issuer()
    cache = get_session_cache()

    identity = issuer.verify_refresh_token(token).unwrap()
    # the signature alone is not enough: it must still be the user's current token
    if not cache.matches(identity.user_id, token):
        logger.warning("Refresh with revoked or superseded token for user %s", identity.user_id)
        raise ApiError(ErrorKind.INVALID_TOKEN, "Invalid or expired refresh token")

    pair = start_session(identity, issuer, cache)
    logger.info("Token refreshed for user %s", identity.user_id)
    return success_response(pair.to_dict(), message="Token refreshed successfully")


@bp.post("/logout")
@jwt_required(verify_user=False)
def logout():
    """
    Logout: revoke the caller's refresh token
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logout successful
      401:
        description: No token provided or invalid token
    """
    user = g.current_user
    get_session_cache().delete(user.user_id)
    logger.info("User logged out: %s (%s)", user.username, user.user_id)
    return success_response(None, message="Logout successful")


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    user = get_storage().find_user_by_id(g.current_user.user_id)
    return success_response({"user": user_out_schema.dump(user)})
