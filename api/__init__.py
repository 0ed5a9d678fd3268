import logging

from flask import Flask, request, g
from flasgger import Swagger
from flask_cors import CORS
from redis import Redis

from .config import get_config, validate_config
from .errors import register_error_handlers
from models.db_storage import DBStorage
from utils.csrf import check_csrf, generate_csrf_token, set_csrf_cookie
from utils.rate_limit import build_limiters
from utils.results import ApiError, ErrorKind
from utils.security import TokenIssuer
from utils.session_cache import SessionCache

logger = logging.getLogger(__name__)

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Collab Platform API",
        "version": "0.1.0",
        "description": "REST API for collaborative projects, notes and collaborators.",
    },
    "basePath": "/",  # blueprints are mounted under /api/v1
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}

# not counted by the general limiter
RATE_LIMIT_EXEMPT_ENDPOINTS = frozenset({"health.health"})


def create_app(config_name: str | None = None, *, redis_client: Redis | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.

    Clients (database engine, Redis) are built here and handed to the
    components that need them through app.extensions; pass ``redis_client``
    to use an already constructed client (tests do).
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    validate_config(app.config)

    # Cross-Origin Resource Sharing; cookies are needed for the CSRF double submit
    CORS(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization", app.config["CSRF_HEADER_NAME"]],
    )

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    init_extensions(app, redis_client=redis_client)
    register_request_guards(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .csrf import bp as csrf_bp
    from .projects import bp as projects_bp
    from .collaborators import bp as collaborators_bp
    from .notes import bp as notes_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(csrf_bp, url_prefix="/api/v1")
    app.register_blueprint(projects_bp, url_prefix="/api/v1")
    app.register_blueprint(collaborators_bp, url_prefix="/api/v1")
    app.register_blueprint(notes_bp, url_prefix="/api/v1")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # calls scoped_session.remove(), preventing connection leaks
        app.extensions["storage"].close()

    @app.route("/")
    def root():
        return {
            "name": "Collab Platform API",
            "version": "0.1.0",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
            "endpoints": {
                "auth": "/api/v1/auth",
                "projects": "/api/v1/projects",
                "collaborators": "/api/v1/collaborators",
                "notes": "/api/v1/notes",
            },
        }, 200

    return app


def init_extensions(app: Flask, redis_client: Redis | None = None) -> None:
    storage = DBStorage(app.config["DATABASE_URL"], echo=app.config.get("SQL_ECHO", False))
    storage.reload()

    if redis_client is None:
        timeout = app.config["REDIS_SOCKET_TIMEOUT"]
        redis_client = Redis.from_url(
            app.config["REDIS_URL"],
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )

    app.extensions["storage"] = storage
    app.extensions["redis"] = redis_client
    app.extensions["session_cache"] = SessionCache(redis_client)
    app.extensions["token_issuer"] = TokenIssuer.from_config(app.config)
    app.extensions["rate_limiters"] = build_limiters(redis_client, app.config["RATE_LIMITS"])


def register_request_guards(app: Flask) -> None:
    """CSRF check and the general rate limit, run before every request."""

    @app.before_request
    def general_rate_limit():
        if not app.config.get("RATELIMIT_ENABLED", True) or request.method == "OPTIONS":
            return None
        # health must answer 503 on its own when Redis is down
        if request.endpoint in RATE_LIMIT_EXEMPT_ENDPOINTS:
            return None
        limiter = app.extensions["rate_limiters"]["general"]
        state = limiter.hit(request.remote_addr or "unknown")
        if not state.allowed:
            raise ApiError(ErrorKind.RATE_LIMITED, "Too many requests, please try again later",
                           headers=state.headers())
        return None

    @app.before_request
    def csrf_guard():
        if not app.config.get("CSRF_ENABLED", True):
            return None
        outcome = check_csrf(
            request.method,
            request.headers,
            request.cookies,
            cookie_name=app.config["CSRF_COOKIE_NAME"],
            header_name=app.config["CSRF_HEADER_NAME"],
        )
        if not outcome.ok:
            logger.warning("CSRF check failed kind=%s path=%s", outcome.error.value, request.path)
            raise ApiError(outcome.error, outcome.message)
        return None

    @app.after_request
    def issue_csrf_cookie(response):
        # first contact: hand out a token cookie if the client has none yet
        if not app.config.get("CSRF_ENABLED", True) or not app.config.get("CSRF_SET_COOKIE_ON_FIRST_CONTACT"):
            return response
        name = app.config["CSRF_COOKIE_NAME"]
        if request.cookies.get(name) or g.get("csrf_cookie_set"):
            return response
        set_csrf_cookie(response, generate_csrf_token(), app.config)
        return response


def shutdown_app(app: Flask) -> None:
    """Release the database engine and the Redis connection pool."""
    app.extensions["storage"].dispose()
    redis_client = app.extensions.get("redis")
    if redis_client is not None:
        redis_client.close()
