"""Rate limiting via slowapi.

The module-level ``limiter`` is attached to the app in ``main.create_app``;
routers decorate sensitive endpoints (sign-in, scans) with tighter limits.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["120/minute"],
)

# Per-endpoint overrides
AUTH_LIMIT = "10/minute"
SCAN_LIMIT = "5/minute"
