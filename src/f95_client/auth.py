"""
Login and two-factor authentication against the platform.

The flow is a small state machine:

    Unauthenticated -> TokenFetched -> CredentialsSubmitted -> one of
        Authenticated | Requires2FA | RequiresCaptcha |
        IncorrectCredentials | IncorrectCode | Unknown

authenticate() submits the credentials and classifies the page the platform
answers with; send_2fa_code() completes a login that stopped at Requires2FA.
update_session() re-synchronizes the anti-forgery token with the cookies of
a session restored from disk: without it every POST made with a stale token
is rejected as a security violation.
"""

import logging
from http.cookiejar import Cookie
from typing import List, Optional, Union

import httpx
import orjson
from bs4 import BeautifulSoup

from .config import BASE_URL, LOGIN_2FA_URL, LOGIN_URL, USER_COOKIE
from .credentials import Credentials
from .errors import (
    PREVIOUS_SESSION_NOT_EXISTENT,
    ClientError,
    ErrorCode,
    InvalidTokenError,
    LoginStateUnknownError,
    NoPreviousSessionError,
    StorageError,
)
from .models import LoginCode, LoginResult
from .network import ForumClient
from .parser import SelectorChain
from .result import Failure, Result, Success
from .session import Session
from .utils import collapse_whitespace

logger = logging.getLogger(__name__)

AUTH_SUCCESSFUL_MESSAGE = "Authentication successful"
INVALID_2FA_CODE_MESSAGE = "The two-step verification value could not be confirmed. Please try again"
INCORRECT_CREDENTIALS_MESSAGE = "Incorrect password. Please try again."
REQUIRE_CAPTCHA_MESSAGE = "You did not complete the CAPTCHA verification properly. Please try again."
# Heuristic: nothing went visibly wrong, yet the page has no logged-in user
NOT_LOGGED_IN_MESSAGE = "Successful request but user not logged in"
ALREADY_AUTHENTICATED_MESSAGE = "User already authenticated"

# The platform names the right provider at most once per code submission
MAX_PROVIDER_RETRIES = 1

_MESSAGE_CODES = {
    AUTH_SUCCESSFUL_MESSAGE: LoginCode.AUTH_SUCCESSFUL,
    INCORRECT_CREDENTIALS_MESSAGE: LoginCode.INCORRECT_CREDENTIALS,
    INVALID_2FA_CODE_MESSAGE: LoginCode.INCORRECT_2FA_CODE,
    REQUIRE_CAPTCHA_MESSAGE: LoginCode.REQUIRE_CAPTCHA,
}

LOGIN_MESSAGE_ERROR = 'div.blockMessage.blockMessage--error.blockMessage--iconic'
LOGIN_SECURITY_MESSAGE_ERROR = 'div.block-body > div.blockMessage'

CURRENT_USER_ID = SelectorChain([
    '.p-navgroup-link--user span.avatar[data-user-id]',
    'span.avatar[data-user-id]',
], name="current_user_id")

EXPECTED_2FA_PROVIDER = SelectorChain([
    'input[name="provider"]',
    '[data-provider]',
], name="expected_2fa_provider")


def message_to_code(message: str) -> LoginCode:
    """Map a platform message to a LoginCode; unknown messages give UNKNOWN_ERROR."""
    return _MESSAGE_CODES.get(message, LoginCode.UNKNOWN_ERROR)


def manage_login_response(response: httpx.Response) -> LoginResult:
    """Classify the page returned by the platform after submitting the credentials."""
    if str(response.url).startswith(LOGIN_2FA_URL):
        return LoginResult(
            False,
            LoginCode.REQUIRE_2FA,
            "Two-factor authentication is needed to continue",
        )

    soup = BeautifulSoup(response.text, "lxml")

    generic = soup.select_one(LOGIN_MESSAGE_ERROR)
    security = soup.select_one(LOGIN_SECURITY_MESSAGE_ERROR)
    generic_error = collapse_whitespace(generic.get_text()) if generic else ""
    security_error = collapse_whitespace(security.get_text()) if security else ""
    error_message = generic_error or security_error

    has_user_id = CURRENT_USER_ID.select_one(soup) is not None
    if not has_user_id and not error_message:
        error_message = NOT_LOGGED_IN_MESSAGE

    success = not error_message and has_user_id
    message = AUTH_SUCCESSFUL_MESSAGE if success else error_message
    return LoginResult(success, message_to_code(message), message)


def manage_2fa_response(response: httpx.Response) -> Union[LoginResult, str]:
    """
    Classify the JSON answer to a two-factor code submission.

    Returns:
        A LoginResult, or the name of the provider the platform expects
        when the one used was wrong

    Raises:
        LoginStateUnknownError: if the answer has an unexpected shape
    """
    try:
        data = orjson.loads(response.content)
    except orjson.JSONDecodeError as e:
        raise LoginStateUnknownError("Two-factor response is not valid JSON", e)
    if not isinstance(data, dict):
        raise LoginStateUnknownError(f"Unexpected two-factor response: {data!r}")

    # The html property exists only if the provider is wrong
    if "html" in data:
        html = data["html"] or {}
        content = html.get("content", "") if isinstance(html, dict) else str(html)
        elem = EXPECTED_2FA_PROVIDER.select_one(BeautifulSoup(content, "lxml"))
        provider = (elem.get("value") or elem.get("data-provider")) if elem else None
        if not provider:
            raise LoginStateUnknownError("Wrong two-factor provider, but no alternative was offered")
        return provider

    if data.get("status") == "ok":
        return LoginResult(True, LoginCode.AUTH_SUCCESSFUL_2FA, AUTH_SUCCESSFUL_MESSAGE)

    message = ",".join(str(e) for e in data.get("errors") or [])
    return LoginResult(False, message_to_code(message), message)


async def authenticate(
    client: ForumClient,
    credentials: Credentials,
    captcha_token: Optional[str] = None,
) -> LoginResult:
    """
    Log in to the platform with ``credentials``.

    Transport failures never escape: they are reported as an UNKNOWN_ERROR
    LoginResult.

    Args:
        client: Client bound to the session that will hold the cookies
        credentials: Credentials whose token has already been fetched
        captcha_token: reCAPTCHA token, when the platform demands one

    Raises:
        InvalidTokenError: if credentials.token is empty
    """
    logger.info("Authenticating with user %s", credentials.username)
    if not credentials.token:
        raise InvalidTokenError(f"Invalid token for auth: {credentials.token!r}")

    params = {
        "login": credentials.username,
        "url": "",
        "password": credentials.password,
        "password_confirm": "",
        "additional_security": "",
        "remember": "1",
        "_xfRedirect": f"{BASE_URL}/",
        "website_code": "",
        "_xfToken": credentials.token,
        "g-recaptcha-response": captcha_token,
    }

    response = await client.fetch_post_response(LOGIN_URL, params)
    result = response.apply_on_success(manage_login_response)

    if result.is_failure():
        message = f"Error {result.value.message} occurred while authenticating"
        logger.error(message)
        return LoginResult(False, LoginCode.UNKNOWN_ERROR, message)

    logger.info("Authentication result: %s", result.value.code.name)
    return result.value


async def send_2fa_code(
    client: ForumClient,
    code: Union[int, str],
    token: str,
    provider: str = "auto",
    trusted_device: bool = False,
) -> Result[ClientError, LoginResult]:
    """
    Send the one-time code of a login that requires two-factor authentication.

    When the platform answers that ``provider`` is wrong, the code is sent
    again once with the provider it suggests.

    Args:
        client: Client bound to the session being authenticated
        code: One-time code
        token: Anti-forgery token of the session
        provider: "auto", "totp" or "email"
        trusted_device: If True, 2FA is not asked again on this device for 30 days
    """
    params = {
        "_xfRedirect": BASE_URL,
        "_xfRequestUri": "/login/two-step?_xfRedirect=https%3A%2F%2Ff95zone.to%2F&remember=1",
        "_xfResponseType": "json",
        "_xfToken": token,
        "_xfWithData": "1",
        "code": str(code),
        "confirm": "1",
        "provider": provider,
        "remember": "1",
        "trust": "1" if trusted_device else "0",
    }

    for _ in range(MAX_PROVIDER_RETRIES + 1):
        params["provider"] = provider
        response = await client.fetch_post_response(LOGIN_2FA_URL, params)
        if response.is_failure():
            return response

        try:
            outcome = manage_2fa_response(response.value)
        except LoginStateUnknownError as e:
            logger.error("Cannot classify two-factor response: %s", e)
            return Failure(e)

        if isinstance(outcome, LoginResult):
            return Success(outcome)

        logger.info("Two-factor provider %r rejected, platform expects %r", provider, outcome)
        provider = outcome

    return Failure(LoginStateUnknownError(
        f"Two-factor provider still rejected after {MAX_PROVIDER_RETRIES} correction(s)"
    ))


async def update_session(client: ForumClient) -> Result[ClientError, None]:
    """
    Refresh the session cookies and the token that depends on them.

    Without this an _xfToken not synchronized with the xf_csrf cookie gets a
    400 Bad Request (security error) in response to any POST.
    """
    session = client.session
    if session.get_cookie(USER_COOKIE) is None:
        return Failure(NoPreviousSessionError(PREVIOUS_SESSION_NOT_EXISTENT))

    # Stale xf_session/xf_csrf go; xf_user stays and mints new ones
    logger.info("Updating session cookies...")
    stale = session.delete_session_cookies()
    response = await client.fetch_get_response(client.base_url, ErrorCode.CANNOT_FETCH_SESSION_TOKENS)
    if response.is_failure():
        _rollback_cookies(session, stale)
        return response

    logger.info("Updating _xfToken...")
    token = await client.fetch_xf_token()
    if token.is_failure():
        _rollback_cookies(session, stale)
        return token

    session.update_token(token.value)
    return Success(None)


async def login(
    client: ForumClient,
    username: str,
    password: str,
    captcha_token: Optional[str] = None,
) -> LoginResult:
    """
    Log in, reusing the client's stored session when it is still valid.

    A successful login is saved to the session file. When the result is
    REQUIRE_2FA the session already holds the token to pass to
    send_2fa_code() (see login_2fa()).
    """
    session = client.session
    if session.is_valid(username, password) and not session.is_expired:
        logger.info("Reusing stored session for %s", username)
        updated = await update_session(client)
        if updated.is_success():
            return LoginResult(True, LoginCode.ALREADY_AUTHENTICATED, ALREADY_AUTHENTICATED_MESSAGE)
        logger.warning("Could not refresh stored session, logging in again: %s", updated.value)

    session.create(username, password, "")
    credentials = Credentials(username, password)

    token = await credentials.fetch_token(client)
    if token.is_failure():
        message = f"Error {token.value.message} occurred while fetching the login token"
        logger.error(message)
        return LoginResult(False, LoginCode.UNKNOWN_ERROR, message)

    result = await authenticate(client, credentials, captcha_token)
    session.update_token(credentials.token)

    if result.success:
        _save_quietly(session.save())
    return result


async def login_2fa(
    client: ForumClient,
    code: Union[int, str],
    provider: str = "auto",
    trusted_device: bool = False,
) -> LoginResult:
    """Complete a login that returned REQUIRE_2FA and save the session."""
    result = await send_2fa_code(client, code, client.session.token, provider, trusted_device)
    if result.is_failure():
        message = f"Error {result.value.message} occurred while sending the 2FA code"
        return LoginResult(False, LoginCode.UNKNOWN_ERROR, message)

    if result.value.success:
        _save_quietly(client.session.save())
    return result.value


def logout(client: ForumClient) -> Result[StorageError, None]:
    """Forget every cookie and delete the session file."""
    client.session.cookie_jar.clear()
    client.session.update_token("")
    return client.session.delete()


def _save_quietly(saved: Result[StorageError, None]) -> None:
    # The login itself succeeded; a session that cannot be stored only
    # means the next run has to log in again
    if saved.is_failure():
        logger.warning("Could not store session: %s", saved.value)


def _rollback_cookies(session: Session, stale: List[Cookie]) -> None:
    # The old cookies still match the old token; anything minted since does not
    session.delete_session_cookies()
    session.restore_cookies(stale)
    logger.warning("Session refresh failed, previous cookies restored")
