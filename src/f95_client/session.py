"""
Persisted platform identity.

A Session bundles everything needed to reuse a login across process
restarts: the cookie jar, the anti-forgery token synchronized with it, the
creation time and a fingerprint of the credentials it belongs to.

The cookie jar is a plain ``http.cookiejar.CookieJar``. ForumClient hands the
very same jar object to httpx, so every response writes its ``Set-Cookie``
headers straight into the session; that is why the operations below mutate
the jar in place instead of replacing it.

File format (JSON, overwritten wholesale on every save):
    {
      "token": "1700000000,abcdef...",
      "cookies": [{"name": "xf_user", "value": "...", "domain": ".f95zone.to", ...}],
      "created": "2024-01-15T10:30:00.123456+00:00",
      "hash": "sha256:..."
    }
"""

import logging
import threading
from datetime import datetime, timezone
from http.cookiejar import Cookie, CookieJar
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import orjson

from .config import PLATFORM_DOMAIN, SESSION_TIME, USER_COOKIE
from .errors import (
    CorruptDataError,
    InvalidPathError,
    NotFoundError,
    SessionError,
    StorageError,
)
from .result import Failure, Result, Success
from .utils import sha256_string

logger = logging.getLogger(__name__)

# Attributes needed to rebuild an http.cookiejar.Cookie
_COOKIE_FIELDS = (
    "version", "name", "value", "port", "port_specified", "domain",
    "domain_specified", "domain_initial_dot", "path", "path_specified",
    "secure", "expires", "discard", "comment", "comment_url", "rfc2109",
)


def cookie_to_dict(cookie: Cookie) -> Dict[str, Any]:
    """Serialize a cookie into a JSON-friendly dict."""
    data = {name: getattr(cookie, name) for name in _COOKIE_FIELDS}
    data["rest"] = dict(cookie._rest)
    return data


def cookie_from_dict(data: Dict[str, Any]) -> Cookie:
    """Rebuild a cookie serialized by cookie_to_dict()."""
    return Cookie(
        version=data.get("version", 0),
        name=data["name"],
        value=data["value"],
        port=data.get("port"),
        port_specified=data.get("port_specified", False),
        domain=data["domain"],
        domain_specified=data.get("domain_specified", False),
        domain_initial_dot=data.get("domain_initial_dot", False),
        path=data.get("path", "/"),
        path_specified=data.get("path_specified", False),
        secure=data.get("secure", False),
        expires=data.get("expires"),
        discard=data.get("discard", True),
        comment=data.get("comment"),
        comment_url=data.get("comment_url"),
        rest=data.get("rest", {}),
        rfc2109=data.get("rfc2109", False),
    )


def is_platform_cookie(cookie: Cookie) -> bool:
    """True if the cookie is scoped to the platform domain or a subdomain."""
    domain = cookie.domain.lstrip(".")
    return domain == PLATFORM_DOMAIN or domain.endswith(f".{PLATFORM_DOMAIN}")


def credentials_hash(username: str, password: str) -> str:
    return sha256_string(f"{username}%%%{password}")


class Session:
    """
    Cookie-based identity on the platform, persisted to a JSON file.

    Usage:
        session = Session("f95session.json")
        if session.load().is_failure():
            session.create(username, password, token)
        ...
        session.save()
    """

    def __init__(self, path: Union[str, Path]):
        """
        Args:
            path: File the session is saved to and loaded from

        Raises:
            InvalidPathError: if path is None or empty
        """
        if path is None or str(path).strip() == "":
            raise InvalidPathError("Invalid path for the session file")

        self.path = Path(path)
        self.cookie_jar = CookieJar()
        self._token = ""
        self._created: Optional[datetime] = None
        self._hash: Optional[str] = None
        # Guards multi-step operations on the jar; single set/extract
        # operations are already serialized by the jar's own lock
        self._lock = threading.RLock()

    @property
    def token(self) -> str:
        return self._token

    @property
    def created(self) -> Optional[datetime]:
        return self._created

    @property
    def hash(self) -> Optional[str]:
        return self._hash

    @property
    def is_mapped(self) -> bool:
        """True if the session has a backing file on disk."""
        return self.path.is_file()

    @property
    def is_expired(self) -> bool:
        """True if the session was never created or is older than SESSION_TIME."""
        if self._created is None:
            return True
        return datetime.now(timezone.utc) - self._created > SESSION_TIME

    def cookies(self, platform_only: bool = True) -> List[Cookie]:
        """Snapshot of the cookies in the jar."""
        with self._lock:
            return [c for c in self.cookie_jar if not platform_only or is_platform_cookie(c)]

    def get_cookie(self, name: str) -> Optional[Cookie]:
        """Return the platform cookie called ``name``, if any."""
        return next((c for c in self.cookies() if c.name == name), None)

    def create(self, username: str, password: str, token: str) -> None:
        """Initialize a fresh session for the given credentials."""
        with self._lock:
            self.cookie_jar.clear()
            self._token = token
            self._created = datetime.now(timezone.utc)
            self._hash = credentials_hash(username, password)

    def update_token(self, token: str) -> None:
        """Replace the anti-forgery token; cookies are not touched."""
        self._token = token

    def is_valid(self, username: str, password: str) -> bool:
        """
        Check whether this session holds an identity for the given user.

        Pure read: looks for the identity cookie and compares the credential
        fingerprint, never calls the network.
        """
        if self._hash != credentials_hash(username, password):
            return False
        return self.get_cookie(USER_COOKIE) is not None

    def delete_session_cookies(self) -> List[Cookie]:
        """
        Drop every platform cookie except the identity cookie.

        Returns:
            The removed cookies, so a failed refresh can put them back with
            restore_cookies()
        """
        with self._lock:
            stale = [
                c for c in self.cookie_jar
                if is_platform_cookie(c) and c.name != USER_COOKIE
            ]
            for cookie in stale:
                self.cookie_jar.clear(cookie.domain, cookie.path, cookie.name)
        logger.debug("Removed %d session cookies", len(stale))
        return stale

    def restore_cookies(self, cookies: List[Cookie]) -> None:
        """Put back cookies removed by delete_session_cookies()."""
        with self._lock:
            for cookie in cookies:
                self.cookie_jar.set_cookie(cookie)
        logger.debug("Restored %d session cookies", len(cookies))

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "token": self._token,
                "cookies": [cookie_to_dict(c) for c in self.cookie_jar],
                "created": self._created.isoformat() if self._created else None,
                "hash": self._hash,
            }

    def save(self) -> Result[StorageError, None]:
        """
        Write the session to ``path``.

        The record is written to a temporary sibling and renamed over the
        target, so the file on disk is always complete.
        """
        tmp = self.path.with_name(f"{self.path.name}.tmp")
        try:
            data = orjson.dumps(self.to_dict(), option=orjson.OPT_INDENT_2)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            tmp.replace(self.path)
        except (OSError, TypeError) as e:
            logger.error("Could not save session to %s: %s", self.path, e)
            return Failure(StorageError(f"Cannot save session to {self.path}: {e}", e))

        return Success(None)

    def load(self) -> Result[SessionError, None]:
        """Restore the session previously saved at ``path``."""
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError as e:
            return Failure(NotFoundError(f"No session file at {self.path}", e))
        except OSError as e:
            return Failure(StorageError(f"Cannot read session file {self.path}: {e}", e))

        try:
            data = orjson.loads(raw)
            token = data["token"]
            hash_ = data["hash"]
            created = datetime.fromisoformat(data["created"])
            cookies = [cookie_from_dict(c) for c in data["cookies"]]
            if not isinstance(token, str) or not isinstance(hash_, str):
                raise TypeError("token and hash must be strings")
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Session file %s is corrupt: %s", self.path, e)
            return Failure(CorruptDataError(f"Corrupt session file {self.path}: {e}", e))

        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)

        with self._lock:
            self.cookie_jar.clear()
            for cookie in cookies:
                self.cookie_jar.set_cookie(cookie)
            self._token = token
            self._hash = hash_
            self._created = created

        logger.info("Loaded session from %s (%d cookies)", self.path, len(cookies))
        return Success(None)

    def delete(self) -> Result[StorageError, None]:
        """Remove the session file; a missing file is not an error."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            return Failure(StorageError(f"Cannot delete session file {self.path}: {e}", e))
        return Success(None)
