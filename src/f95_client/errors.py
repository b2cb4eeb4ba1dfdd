"""
Error taxonomy for the F95 client.

Every error carries a stable ``ErrorCode`` so logs and callers can tell
failures apart without matching on messages. Errors are exceptions, but the
network and storage layers hand them back inside a ``Failure`` rather than
raising them; only programmer errors (empty session path, missing token
before authenticating) are raised directly.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    MALFORMED_URL = "malformed_url"
    CANNOT_FETCH_GET_RESPONSE = "cannot_fetch_get_response"
    CANNOT_FETCH_POST_RESPONSE = "cannot_fetch_post_response"
    CANNOT_FETCH_HEAD_RESPONSE = "cannot_fetch_head_response"
    CANNOT_FETCH_SESSION_TOKENS = "cannot_fetch_session_tokens"
    UNEXPECTED_HTML_RESPONSE = "unexpected_html_response"
    INVALID_TOKEN = "invalid_token"
    PREVIOUS_SESSION_NOT_EXISTENT = "previous_session_not_existent"
    INVALID_SESSION_PATH = "invalid_session_path"
    SESSION_STORAGE = "session_storage"
    SESSION_NOT_FOUND = "session_not_found"
    SESSION_CORRUPT = "session_corrupt"
    LOGIN_STATE_UNKNOWN = "login_state_unknown"
    UNEXPECTED = "unexpected"


class ClientError(Exception):
    """Base class for every error produced by the client."""

    code: ErrorCode = ErrorCode.UNEXPECTED

    def __init__(
        self,
        message: str = "",
        cause: Optional[BaseException] = None,
        code: Optional[ErrorCode] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        if code is not None:
            self.code = code

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r})"


class MalformedUrlError(ClientError, ValueError):
    code = ErrorCode.MALFORMED_URL

    def __init__(self, url: str) -> None:
        super().__init__(f"'{url}' is not a valid URL")
        self.url = url


class NetworkError(ClientError):
    """Transport-level failure; ``cause`` is the original httpx exception."""

    code = ErrorCode.CANNOT_FETCH_GET_RESPONSE

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        code: Optional[ErrorCode] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, cause, code)
        self.status_code = status_code


class UnexpectedContentTypeError(ClientError):
    code = ErrorCode.UNEXPECTED_HTML_RESPONSE


class InvalidTokenError(ClientError, ValueError):
    code = ErrorCode.INVALID_TOKEN


class NoPreviousSessionError(ClientError):
    code = ErrorCode.PREVIOUS_SESSION_NOT_EXISTENT


class InvalidPathError(ClientError, ValueError):
    code = ErrorCode.INVALID_SESSION_PATH


class SessionError(ClientError):
    """Base class for session persistence failures."""

    code = ErrorCode.SESSION_STORAGE


class StorageError(SessionError):
    code = ErrorCode.SESSION_STORAGE


class NotFoundError(SessionError):
    code = ErrorCode.SESSION_NOT_FOUND


class CorruptDataError(SessionError):
    code = ErrorCode.SESSION_CORRUPT


class LoginStateUnknownError(ClientError):
    """The platform answered with something the login flow cannot classify."""

    code = ErrorCode.LOGIN_STATE_UNKNOWN


PREVIOUS_SESSION_NOT_EXISTENT = "Cannot update the session: no previous authentication found"
