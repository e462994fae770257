from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from recipe_capture.core.config import settings


def client_key(request: Request) -> str:
    """Rate-limit key: first X-Forwarded-For hop when behind a proxy, else the peer address."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=client_key,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.RATE_LIMIT_ENABLED,
)
