"""
Environment-aware configuration.
Secrets, token lifetimes, Redis/DB locations, CSRF cookie settings and rate limits.
Everything can be overridden through the environment (or a .env file).
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present

DEFAULT_JWT_SECRET = "your-secret-key-change-in-production"
DEFAULT_JWT_REFRESH_SECRET = "your-refresh-secret-change-in-production"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///collab-platform.db")
    SQL_ECHO = _env_bool("SQL_ECHO", "false")

    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "5"))

    # access and refresh tokens are signed with different secrets
    JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", DEFAULT_JWT_REFRESH_SECRET)
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "collab-platform-api")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_SECONDS", "900")))
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("JWT_REFRESH_TOKEN_EXPIRES_SECONDS", "604800")))

    CSRF_ENABLED = _env_bool("CSRF_ENABLED", "true")
    CSRF_COOKIE_NAME = "XSRF-TOKEN"
    CSRF_HEADER_NAME = "X-XSRF-TOKEN"
    CSRF_COOKIE_MAX_AGE = int(timedelta(hours=24).total_seconds())
    CSRF_COOKIE_SECURE = False
    CSRF_SET_COOKIE_ON_FIRST_CONTACT = _env_bool("CSRF_SET_COOKIE_ON_FIRST_CONTACT", "true")

    RATELIMIT_ENABLED = _env_bool("RATELIMIT_ENABLED", "true")
    # scope -> (max requests, window seconds)
    RATE_LIMITS = {
        "general": (100, 60),
        "auth": (5, 60),
        "create": (20, 60),
        "strict": (10, 300),
    }


class DevelopmentConfig(BaseConfig):
    DEBUG = True


class TestingConfig(BaseConfig):
    TESTING = True
    APP_ENV = "test"
    DATABASE_URL = "sqlite:///:memory:"
    SQL_ECHO = False
    JWT_SECRET = "test-access-secret-0123456789abcdef"
    JWT_REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"
    CSRF_SET_COOKIE_ON_FIRST_CONTACT = False
    RATELIMIT_ENABLED = False


class ProductionConfig(BaseConfig):
    DEBUG = False
    APP_ENV = "prod"
    CSRF_COOKIE_SECURE = True


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


def validate_config(config) -> None:
    """Refuse to run production with the placeholder signing secrets."""
    if config.get("APP_ENV") not in ("prod", "production"):
        return
    if config.get("JWT_SECRET") == DEFAULT_JWT_SECRET or config.get("JWT_REFRESH_SECRET") == DEFAULT_JWT_REFRESH_SECRET:
        raise RuntimeError("JWT_SECRET and JWT_REFRESH_SECRET must be set in production")
    if config.get("JWT_SECRET") == config.get("JWT_REFRESH_SECRET"):
        raise RuntimeError("JWT_SECRET and JWT_REFRESH_SECRET must differ")
