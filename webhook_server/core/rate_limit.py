"""
Rate Limiting Configuration

Webhook routes are registered dynamically from the routes document, so
limits are looked up by handler id instead of being hard-coded on each
endpoint.

Design Decisions:
- Uses slowapi for rate limiting (lightweight, FastAPI-compatible)
- IP-based limiting
- The stats page is rendered on demand and kept under a lower limit
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Initialize rate limiter
# Uses IP address for rate limiting
limiter = Limiter(key_func=get_remote_address)

# Rate limit configurations per handler id
# Format: "count/period" (e.g., "10/minute" means 10 requests per minute)
RATE_LIMITS = {
    "doc-hook": "300/minute",  # one call per document view or save
    "doc-status": "30/minute",
    "doc-status-window": "30/minute",
    "health": "60/minute",
}
DEFAULT_RATE_LIMIT = "120/minute"


def rate_limit_for(handler_id: str) -> str:
    """Return the limit string applied to routes using ``handler_id``."""
    return RATE_LIMITS.get(handler_id, DEFAULT_RATE_LIMIT)
