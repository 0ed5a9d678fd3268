from __future__ import annotations

import logging
from functools import wraps

from flask import request, g, current_app, make_response

from models import get_storage
from utils.rate_limit import get_limiter
from utils.results import ApiError, ErrorKind
from utils.roles import authorize_project
from utils.security import authenticate_bearer, get_token_issuer

logger = logging.getLogger(__name__)


def client_key() -> str:
    return request.remote_addr or "unknown"


def jwt_required(verify_user: bool = True):
    """
    Reject the request unless it carries a valid bearer access token.
    The resolved user lands on g.current_user.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            outcome = authenticate_bearer(
                request.headers.get("Authorization"),
                get_token_issuer(),
                get_storage(),
                verify_user=verify_user,
            )
            if not outcome.ok:
                logger.warning(
                    "Authentication failed kind=%s path=%s ip=%s",
                    outcome.error.value, request.path, client_key(),
                )
                raise ApiError(outcome.error, outcome.message)
            g.current_user = outcome.value
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def optional_auth():
    """
    Same checks as jwt_required, but any failure just leaves
    g.current_user as None instead of rejecting. The failed outcome is kept
    on g.auth_error so a view that does need a user can report why.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            outcome = authenticate_bearer(
                request.headers.get("Authorization"),
                get_token_issuer(),
                get_storage(),
            )
            g.current_user = outcome.value if outcome.ok else None
            g.auth_error = None if outcome.ok else outcome
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def project_role_required(allowed_roles):
    """
    Allow access only if the caller's role on the project in the URL
    (``project_id`` view argument) is one of ``allowed_roles``.
    404 when the project does not exist, 403 when the role does not fit.
    """
    allowed = tuple(allowed_roles)

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            project_id = kwargs.get("project_id")
            if not project_id:
                raise ApiError(ErrorKind.VALIDATION_FAILED, "Project ID required")
            role = authorize_project(get_storage(), g.current_user.user_id, project_id, allowed).unwrap()
            g.project_role = role
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def rate_limit(scope: str, skip_successful: bool = False):
    """
    Count the request against the ``scope`` limiter, 429 once the window is full.
    With ``skip_successful`` only failed (>= 400) responses stay counted.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not current_app.config.get("RATELIMIT_ENABLED", True):
                return fn(*args, **kwargs)
            limiter = get_limiter(scope)
            caller = client_key()
            state = limiter.hit(caller)
            if not state.allowed:
                raise ApiError(ErrorKind.RATE_LIMITED, rate_limit_message(scope), headers=state.headers())

            response = make_response(fn(*args, **kwargs))
            if skip_successful and response.status_code < 400:
                limiter.undo(caller)
            for name, value in state.headers().items():
                response.headers.setdefault(name, value)
            return response

        return wrapper

    return decorator


RATE_LIMIT_MESSAGES = {
    "general": "Too many requests, please try again later",
    "auth": "Too many authentication attempts, please try again after a minute",
    "create": "Too many create requests, please slow down",
    "strict": "Rate limit exceeded for this operation",
}


def rate_limit_message(scope: str) -> str:
    return RATE_LIMIT_MESSAGES.get(scope, RATE_LIMIT_MESSAGES["general"])
