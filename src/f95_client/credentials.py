"""Credentials used to log in to the platform."""

import logging
from typing import TYPE_CHECKING

from .errors import ClientError
from .result import Result, Success

if TYPE_CHECKING:
    from .network import ForumClient

logger = logging.getLogger(__name__)


class Credentials:
    """
    Username/password pair plus the anti-forgery token of the login form.

    The token starts empty: call fetch_token() once before handing the
    credentials to authenticate().
    """

    def __init__(self, username: str, password: str):
        self._username = username
        self._password = password
        self._token = ""

    @property
    def username(self) -> str:
        return self._username

    @property
    def password(self) -> str:
        return self._password

    @property
    def token(self) -> str:
        """Token used in POST requests to the platform."""
        return self._token

    async def fetch_token(self, client: "ForumClient", force: bool = False) -> Result[ClientError, str]:
        """
        Fetch and cache the token used to log in.

        A cached token is returned without touching the network unless
        ``force`` is set.
        """
        if self._token and not force:
            return Success(self._token)

        result = await client.fetch_xf_token()
        if result.is_success():
            self._token = result.value
            logger.debug("Fetched login token for %s", self._username)
        return result

    def __repr__(self) -> str:
        return f"Credentials(username={self._username!r}, token={'set' if self._token else 'empty'})"
