from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from utils.results import ApiError, ErrorKind

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.INVALID_TOKEN: 401,
    ErrorKind.EXPIRED_TOKEN: 401,
    ErrorKind.USER_NOT_FOUND: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CSRF_MISSING: 403,
    ErrorKind.CSRF_INVALID: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.RATE_LIMITED: 429,
}

DEFAULT_MESSAGES = {
    ErrorKind.UNAUTHENTICATED: "Access token required",
    ErrorKind.INVALID_CREDENTIALS: "Invalid email or password",
    ErrorKind.INVALID_TOKEN: "Invalid token",
    ErrorKind.EXPIRED_TOKEN: "Token expired",
    ErrorKind.USER_NOT_FOUND: "User not found",
    ErrorKind.FORBIDDEN: "Insufficient permissions for this project",
    ErrorKind.CSRF_MISSING: "CSRF token missing",
    ErrorKind.CSRF_INVALID: "CSRF token mismatch",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.CONFLICT: "Conflict",
    ErrorKind.VALIDATION_FAILED: "Validation failed",
    ErrorKind.RATE_LIMITED: "Too many requests, please try again later",
}


def error_response(code: str, message: str, status: int, details: dict | None = None):
    payload = {"success": False, "message": message, "code": code}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def success_response(data=None, message: str | None = None, status: int = 200):
    payload = {"success": True, "data": data}
    if message:
        payload["message"] = message
    return jsonify(payload), status


def api_error_response(err: ApiError):
    status = STATUS_BY_KIND.get(err.kind, 400)
    message = err.message or DEFAULT_MESSAGES.get(err.kind, err.kind.value)
    body, status = error_response(err.kind.code, message, status, details=err.details)
    body.headers.update(err.headers)
    return body, status


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(err: ApiError):
        return api_error_response(err)

    # 400 Bad Request (generic)
    @app.errorhandler(400)
    def bad_request(e):
        message = getattr(e, "description", "Bad request")
        return error_response("BAD_REQUEST", message, 400)

    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Route not found", 404)

    # 405 Method Not Allowed
    @app.errorhandler(405)
    def method_not_allowed(e):
        return error_response("METHOD_NOT_ALLOWED", "Method not allowed", 405)

    # Marshmallow validation errors map to 400, field-level details attached
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        return error_response("VALIDATION_ERROR", "Validation failed", 400, details=err.messages)

    # Integrity errors (unique constraints, FK violations, check constraints)
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        message = str(getattr(err, "orig", err))
        lower_msg = message.lower()
        logger.warning("Integrity error: %s", message)
        details = {"db_error": message} if current_app.debug else None
        if "unique constraint" in lower_msg or "unique violation" in lower_msg:
            return error_response("CONFLICT", "Unique constraint violated.", 409, details=details)
        if "foreign key constraint" in lower_msg or "foreign key mismatch" in lower_msg:
            return error_response("BAD_REQUEST", "Foreign key constraint failed.", 400, details=details)
        return error_response("BAD_REQUEST", "Integrity error.", 400, details=details)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response("HTTP_ERROR", err.description, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        # In dev, include exception details to speed up debugging
        details = None
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
