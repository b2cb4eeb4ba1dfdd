"""
Rate-limited HTTP layer for the F95 platform.

ForumClient is the single context object every operation goes through. It
owns:
- One httpx.AsyncClient sharing the session's cookie jar, so cookies set by
  the platform are persisted into the session automatically
- A semaphore capping the number of requests in flight
- The knowledge of how to turn transport errors into Result failures

No method here raises for network problems and none retries on its own;
callers get a Result and decide what to do with it.
"""

import asyncio
import logging
from typing import Dict, Optional

import httpx
from bs4 import BeautifulSoup

from .config import (
    BASE_URL,
    DEFAULT_HEADERS,
    LOGIN_URL,
    MAX_CONCURRENT_REQUESTS,
    REQUEST_TIMEOUT,
)
from .errors import (
    ClientError,
    ErrorCode,
    InvalidTokenError,
    MalformedUrlError,
    NetworkError,
    UnexpectedContentTypeError,
)
from .parser import SelectorChain
from .result import Failure, Result, Success
from .session import Session
from .utils import enforce_https, is_platform_url, is_valid_url

logger = logging.getLogger(__name__)

# Hidden input of every platform form holding the anti-forgery token
TOKEN_INPUT = SelectorChain([
    'input[name="_xfToken"]',
    'html[data-csrf]',
], name="xf_token")

_ERROR_CODES = {
    "GET": ErrorCode.CANNOT_FETCH_GET_RESPONSE,
    "POST": ErrorCode.CANNOT_FETCH_POST_RESPONSE,
    "HEAD": ErrorCode.CANNOT_FETCH_HEAD_RESPONSE,
}


def extract_xf_token(html: str) -> Optional[str]:
    """Read the anti-forgery token out of a platform page."""
    soup = BeautifulSoup(html, "lxml")
    elem = TOKEN_INPUT.select_one(soup)
    if elem is None:
        return None
    return elem.get("value") or elem.get("data-csrf")


class ForumClient:
    """
    Async HTTP client bound to one platform session.

    Concurrency is bounded by a semaphore: callers past the limit wait for a
    free slot, served in arrival order. Slots are released on every exit
    path, cancellation included.

    Usage:
        session = Session("f95session.json")
        async with ForumClient(session) as client:
            result = await client.fetch_html("https://f95zone.to/threads/123/")
            if result.is_success():
                html = result.value
    """

    def __init__(
        self,
        session: Session,
        max_concurrent: int = MAX_CONCURRENT_REQUESTS,
        timeout: float = REQUEST_TIMEOUT,
        base_url: str = BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            session: Session whose cookie jar is used for every request
            max_concurrent: Maximum concurrent HTTP requests
            timeout: Seconds before a request times out
            base_url: Root URL of the platform
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.session = session
        self.max_concurrent = max_concurrent
        self.base_url = base_url
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self._in_flight = 0

        # Passing the CookieJar itself (not a copy) makes httpx read and
        # write the session's cookies directly
        self.client = httpx.AsyncClient(
            http2=True,
            timeout=timeout,
            follow_redirects=True,
            cookies=session.cookie_jar,
            headers=DEFAULT_HEADERS,
            transport=transport,
        )

    async def __aenter__(self) -> "ForumClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    @property
    def in_flight(self) -> int:
        """Number of requests currently holding a semaphore slot."""
        return self._in_flight

    @property
    def available_slots(self) -> int:
        return self.max_concurrent - self._in_flight

    def is_platform_url(self, url: str) -> bool:
        return is_platform_url(url, self.base_url)

    async def _request(
        self,
        method: str,
        url: str,
        error_code: Optional[ErrorCode] = None,
        **kwargs,
    ) -> Result[ClientError, httpx.Response]:
        """Send one request under the semaphore and wrap the outcome."""
        if not is_valid_url(url):
            return Failure(MalformedUrlError(url))

        error_code = error_code or _ERROR_CODES[method]

        async with self.semaphore:
            self._in_flight += 1
            try:
                response = await self.client.request(method, url, **kwargs)
                response.raise_for_status()
                return Success(response)

            except httpx.InvalidURL as e:
                logger.error("(%s) Cannot send request to %r: %s", method, url, e)
                return Failure(MalformedUrlError(url))
            except httpx.HTTPStatusError as e:
                message = f"({method}) HTTP {e.response.status_code} occurred while trying to fetch {url}"
                logger.error(message)
                return Failure(NetworkError(message, e, error_code, e.response.status_code))
            except httpx.RequestError as e:
                message = f'({method}) Error "{e}" occurred while trying to fetch {url}'
                logger.error(message)
                return Failure(NetworkError(message, e, error_code))
            finally:
                self._in_flight -= 1

    async def fetch_get_response(
        self,
        url: str,
        error_code: Optional[ErrorCode] = None,
    ) -> Result[ClientError, httpx.Response]:
        """Perform a GET request and return the response."""
        return await self._request("GET", url, error_code)

    async def fetch_head_response(self, url: str) -> Result[ClientError, httpx.Response]:
        """Perform a HEAD request and return the response."""
        return await self._request("HEAD", url)

    async def fetch_post_response(
        self,
        url: str,
        params: Dict[str, Optional[str]],
    ) -> Result[ClientError, httpx.Response]:
        """
        Perform a POST request with URL-encoded form parameters.

        Parameters whose value is None are not sent.
        """
        data = {k: v for k, v in params.items() if v is not None}
        return await self._request("POST", url, data=data)

    async def fetch_html(self, url: str) -> Result[ClientError, str]:
        """Get the HTML code of a page, failing if the response is not HTML."""
        try:
            secure_url = enforce_https(url)
        except MalformedUrlError as e:
            return Failure(e)

        response = await self.fetch_get_response(secure_url)
        if response.is_failure():
            return response

        content_type = response.value.headers.get("content-type", "")
        if "text/html" not in content_type:
            message = f"Expected HTML but received {content_type or 'no content type'}"
            return Failure(UnexpectedContentTypeError(message))

        return Success(response.value.text)

    async def fetch_xf_token(self) -> Result[ClientError, str]:
        """Obtain the anti-forgery token from the login page."""
        response = await self.fetch_get_response(LOGIN_URL)
        if response.is_failure():
            return response

        token = extract_xf_token(response.value.text)
        if not token:
            return Failure(InvalidTokenError("No _xfToken found in the login page"))
        return Success(token)

    async def get_url_redirect(self, url: str) -> Result[ClientError, str]:
        """Return the URL ``url`` ends up at after following redirects."""
        response = await self.fetch_head_response(url)
        return response.apply_on_success(lambda r: str(r.url))

    async def url_exists(self, url: str, check_redirect: bool = False) -> Result[ClientError, bool]:
        """
        Check if ``url`` is valid and reachable.

        Args:
            url: URL to check
            check_redirect: If True, a URL that redirects elsewhere counts
                as not existing

        Returns:
            Success(False) for malformed URLs, 4xx answers, DNS failures and
            timeouts; other network failures are returned as they are.
        """
        if not is_valid_url(url):
            return Success(False)

        response = await self.fetch_head_response(url)
        if response.is_failure():
            error = response.value
            if isinstance(error, MalformedUrlError):
                return Success(False)
            if isinstance(error, NetworkError):
                if error.status_code is not None and 400 <= error.status_code < 500:
                    return Success(False)
                if isinstance(error.cause, (httpx.ConnectError, httpx.TimeoutException)):
                    return Success(False)
            return response

        if check_redirect:
            return Success(str(response.value.url) == url)
        return Success(True)
