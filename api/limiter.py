"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the route modules
(to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

Two tiers:
  default_rate_limit -- every route, per client IP (Settings.default_rate_limit),
                        enforced by SlowAPIMiddleware.
  auth_rate_limit    -- stricter limit for signup/signin brute-force mitigation
                        (Settings.auth_rate_limit), applied per route.

Per-route usage: @limiter.limit() goes BELOW @router.post() so the router
registers the wrapped function, and the endpoint must take `request: Request`.

Both limit strings are read from Settings on every check, so a changed
setting takes effect without rebuilding the limiter.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()


def default_rate_limit() -> str:
    """Limit string applied to every route that has no limit of its own."""
    return _settings.default_rate_limit


def auth_rate_limit() -> str:
    """Limit string for credential endpoints, resolved from Settings."""
    return _settings.auth_rate_limit


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[default_rate_limit],
    storage_uri="memory://",
)
