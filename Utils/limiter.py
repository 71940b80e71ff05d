import os
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# ----------------------------
# Rate Limiter
# ----------------------------
limiter = Limiter(
    get_remote_address,
    default_limits=[
        os.getenv("LIMIT_DEFAULT_HOURLY", "200 per hour"),
        os.getenv("LIMIT_DEFAULT_SECONDLY", "10 per second")
    ],
)


def claim_limit():
    """Tighter limit for claim submissions, which are guesses at private data."""
    from flask import current_app
    return current_app.config.get("LIMIT_CLAIMS", "10 per minute")
