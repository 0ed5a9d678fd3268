from datetime import datetime, timezone
import logging
import time

from flask import Blueprint, current_app
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

bp = Blueprint("health", __name__)
logger = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()


@bp.get("/health")
def health():
    """
    Health check (database and Redis)
    ---
    tags:
      - Health
    responses:
      200:
        description: API and its backing services are up
        schema:
          type: object
          properties:
            status:
              type: string
              example: healthy
            services:
              type: object
      503:
        description: Database or Redis unreachable
    """
    services = {}
    healthy = True
    try:
        current_app.extensions["storage"].ping()
        services["database"] = "connected"
    except SQLAlchemyError as exc:
        logger.error("Health check: database unreachable: %s", exc)
        services["database"] = "disconnected"
        healthy = False
    try:
        current_app.extensions["redis"].ping()
        services["redis"] = "connected"
    except RedisError as exc:
        logger.error("Health check: redis unreachable: %s", exc)
        services["redis"] = "disconnected"
        healthy = False

    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "services": services,
        "version": "0.1.0",
    }
    return body, 200 if healthy else 503
