"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/auth.py (to apply per-route limits with @limiter.limit()).

A single shared instance means all routes share one counter store. Separate
instances per module would each get an isolated counter and limits would
never trigger.

default_limits is the per-IP ceiling for every route (API_RATE_LIMIT),
enforced by SlowAPIMiddleware. Login carries a stricter limit of its own
(LOGIN_RATE_LIMIT), enforced by its decorator. Both are transport-level
brute-force damping on top of the per-account lockout.

The limits are callables, so slowapi reads them from settings on every
request rather than freezing the values seen at import time.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings


def api_rate_limit() -> str:
    return get_settings().api_rate_limit


def login_rate_limit() -> str:
    return get_settings().login_rate_limit


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    default_limits=[api_rate_limit],
)
