"""
Configuration constants for the F95 client.

Everything the client needs to know about the platform lives here: URLs,
concurrency limits, timeouts and the default request headers. Constructor
arguments on ForumClient override the limits where a caller needs to.
"""

import logging
from datetime import timedelta
from pathlib import Path

# -------------------------------------------------------
# PLATFORM URLS
# -------------------------------------------------------
BASE_URL = "https://f95zone.to"
LOGIN_URL = f"{BASE_URL}/login/login"
LOGIN_2FA_URL = f"{BASE_URL}/login/two-step"

# Domain the session cookies are scoped to
PLATFORM_DOMAIN = "f95zone.to"

# -------------------------------------------------------
# SESSION
# -------------------------------------------------------
# Cookie set by the platform once the user has authenticated
USER_COOKIE = "xf_user"

# A stored session older than this is considered expired
SESSION_TIME = timedelta(days=3)

DEFAULT_SESSION_PATH = Path("f95session.json")

# -------------------------------------------------------
# HTTP
# -------------------------------------------------------
# Above this the platform starts answering with anti-abuse pages
MAX_CONCURRENT_REQUESTS = 15
REQUEST_TIMEOUT = 30.0

DEFAULT_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
}

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging for command line use.

    The library modules only create loggers; handlers are the caller's job.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)
