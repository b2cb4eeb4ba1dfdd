"""
Utility functions for the F95 client.

This module provides helpers for hashing, URL handling and text cleanup.
None of them touch the network.
"""

import hashlib
import re
from urllib.parse import urlparse

from .config import BASE_URL
from .errors import MalformedUrlError

# http(s) URL with an optional scheme, as accepted by the platform links
_URL_REGEX = re.compile(
    r"((https|http)?:\/\/)?(www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b"
    r"([-a-zA-Z0-9()@:%_+.~#?&/=]*)"
)

_SCHEME_REGEX = re.compile(r"^(https?:)?//")

# Zero-width, bidi and control characters that leak out of post bodies
_INVISIBLE_CHARS_REGEX = re.compile(
    "[\u0000-\u0008\u000b\u000c\u000e-\u001f\u007f-\u009f"
    "\u00ad\u200b-\u200f\u2028-\u202e\u2060-\u206f\ufeff]"
)

_WHITESPACE_REGEX = re.compile(r"\s+")


def sha256_string(text: str) -> str:
    """
    Calculate the SHA256 hash of a string.

    Used to fingerprint session credentials so a stored session can be
    matched against the user trying to log in.

    Args:
        text: String to hash

    Returns:
        SHA256 hash in format "sha256:hexdigest"

    Example:
        hash_val = sha256_string("Hello, world!")
        # Returns: "sha256:315f5bdb76d078c43b8ac0064e4a0164612b1fce77c869345bfc94c75894edd3"
    """
    sha256_hash = hashlib.sha256()
    sha256_hash.update(text.encode('utf-8'))
    return f"sha256:{sha256_hash.hexdigest()}"


def is_valid_url(url: str) -> bool:
    """Check that ``url`` looks like an http(s) URL (scheme optional)."""
    if not url or not isinstance(url, str):
        return False
    return _URL_REGEX.search(url) is not None


def enforce_https(url: str) -> str:
    """
    Rewrite the scheme of ``url`` to https.

    Handles ``http://``, ``https://`` and scheme-relative ``//`` URLs; a URL
    with no scheme at all gets ``https://`` prepended.

    Raises:
        MalformedUrlError: if ``url`` is not a valid URL
    """
    if not is_valid_url(url):
        raise MalformedUrlError(url)
    if _SCHEME_REGEX.match(url):
        return _SCHEME_REGEX.sub("https://", url, count=1)
    return f"https://{url}"


def is_platform_url(url: str, base_url: str = BASE_URL) -> bool:
    """
    Check if ``url`` points to the platform host or one of its subdomains.

    Hostnames are compared, so look-alikes such as ``f95zone.to.evil.com``
    are rejected.

    Raises:
        MalformedUrlError: if ``url`` is not a valid URL
    """
    try:
        host = urlparse(enforce_https(url)).hostname or ""
    except ValueError:
        raise MalformedUrlError(url)
    platform_host = urlparse(base_url).hostname or ""
    return host == platform_host or host.endswith(f".{platform_host}")


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return _WHITESPACE_REGEX.sub(" ", text).strip()


def clean_invisible_characters(text: str) -> str:
    """Remove zero-width and control characters from ``text``."""
    if not text:
        return ""
    return _INVISIBLE_CHARS_REGEX.sub("", text)
