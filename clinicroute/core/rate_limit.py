"""Rate limiting configuration (short/medium/long fixed windows per client)."""

import logging
import os

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from clinicroute.core.config import settings
from clinicroute.services.audit_service import get_client_ip

logger = logging.getLogger(__name__)

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = [] if IS_TESTING else settings.rate_limits


def _storage_uri() -> str:
    """Redis when configured and reachable (multi-worker), otherwise in-memory."""
    if IS_TESTING or not settings.REDIS_URL:
        return "memory://"
    try:
        import redis

        r = redis.from_url(settings.REDIS_URL, socket_connect_timeout=1)
        r.ping()
        return settings.REDIS_URL
    except Exception as e:
        logger.warning("Redis unavailable for rate limiting, using in-memory: %s", e)
        return "memory://"


def client_key(request: Request) -> str:
    """Rate-limit bucket: the client address, proxy-aware like audit entries."""
    return get_client_ip(request) or get_remote_address(request)


limiter = Limiter(
    key_func=client_key,
    storage_uri=_storage_uri(),
    default_limits=DEFAULT_LIMITS,
    enabled=not IS_TESTING,
)
