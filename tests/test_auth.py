"""Tests for the login and two-factor flows."""

import asyncio
from urllib.parse import parse_qs

import httpx
import pytest

from f95_client.auth import (
    ALREADY_AUTHENTICATED_MESSAGE,
    INCORRECT_CREDENTIALS_MESSAGE,
    INVALID_2FA_CODE_MESSAGE,
    NOT_LOGGED_IN_MESSAGE,
    REQUIRE_CAPTCHA_MESSAGE,
    authenticate,
    login,
    login_2fa,
    logout,
    manage_login_response,
    message_to_code,
    send_2fa_code,
    update_session,
)
from f95_client.config import LOGIN_2FA_URL, LOGIN_URL
from f95_client.credentials import Credentials
from f95_client.errors import InvalidTokenError, LoginStateUnknownError, NoPreviousSessionError
from f95_client.models import LoginCode
from f95_client.session import Session, cookie_from_dict

USERNAME = "User"
PASSWORD = "Password"

LOGIN_PAGE = '<html><body><input type="hidden" name="_xfToken" value="login-token"></body></html>'
HOME_PAGE = '<html><body><input type="hidden" name="_xfToken" value="fresh-token"></body></html>'
LOGGED_IN_PAGE = (
    '<html><body><a class="p-navgroup-link p-navgroup-link--user" href="/account/">'
    '<span class="avatar avatar--xxs" data-user-id="1234"></span></a></body></html>'
)


def error_page(message):
    return (
        '<html><body><div class="blockMessage blockMessage--error blockMessage--iconic">'
        f'{message}</div></body></html>'
    )


def html_response(text, status_code=200, **kwargs):
    headers = {"content-type": "text/html; charset=utf-8"}
    headers.update(kwargs.pop("headers", {}))
    return httpx.Response(status_code, text=text, headers=headers, **kwargs)


def login_response(text, url=LOGIN_URL):
    return html_response(text, request=httpx.Request("POST", url))


def form(request):
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def add_user_cookie(session):
    session.cookie_jar.set_cookie(cookie_from_dict({"name": "xf_user", "value": "1234,abc", "domain": "f95zone.to"}))


class TestManageLoginResponse:
    def test_success(self):
        result = manage_login_response(login_response(LOGGED_IN_PAGE, "https://f95zone.to/"))
        assert result.success
        assert result.code == LoginCode.AUTH_SUCCESSFUL

    def test_incorrect_credentials(self):
        result = manage_login_response(login_response(error_page(INCORRECT_CREDENTIALS_MESSAGE)))
        assert not result.success
        assert result.code == LoginCode.INCORRECT_CREDENTIALS
        assert result.message == INCORRECT_CREDENTIALS_MESSAGE

    def test_captcha(self):
        result = manage_login_response(login_response(error_page(REQUIRE_CAPTCHA_MESSAGE)))
        assert result.code == LoginCode.REQUIRE_CAPTCHA

    def test_security_error(self):
        page = '<html><body><div class="block-body"><div class="blockMessage">Security error occurred.</div></div></body></html>'
        result = manage_login_response(login_response(page))
        assert not result.success
        assert result.code == LoginCode.UNKNOWN_ERROR
        assert result.message == "Security error occurred."

    def test_requires_2fa(self):
        response = login_response("<html></html>", f"{LOGIN_2FA_URL}?_xfRedirect=https%3A%2F%2Ff95zone.to%2F")
        result = manage_login_response(response)
        assert not result.success
        assert result.code == LoginCode.REQUIRE_2FA

    def test_no_user_and_no_error(self):
        result = manage_login_response(login_response("<html><body>Welcome</body></html>"))
        assert not result.success
        assert result.code == LoginCode.UNKNOWN_ERROR
        assert result.message == NOT_LOGGED_IN_MESSAGE

    def test_error_with_user_id(self):
        page = LOGGED_IN_PAGE.replace("</body>", f"{error_page('Something')}</body>")
        assert not manage_login_response(login_response(page)).success

    def test_message_to_code(self):
        assert message_to_code(INVALID_2FA_CODE_MESSAGE) == LoginCode.INCORRECT_2FA_CODE
        assert message_to_code("whatever") == LoginCode.UNKNOWN_ERROR


class TestAuthenticate:
    def test_empty_token_raises_before_any_request(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            return html_response(LOGGED_IN_PAGE)

        async def scenario():
            async with make_client(handler) as client:
                await authenticate(client, Credentials(USERNAME, PASSWORD))

        with pytest.raises(InvalidTokenError):
            asyncio.run(scenario())
        assert calls == []

    def test_posts_credentials(self, make_client):
        posted = []

        def handler(request):
            if request.method == "GET":
                return html_response(LOGIN_PAGE)
            posted.append(form(request))
            return html_response(LOGGED_IN_PAGE)

        async def scenario():
            async with make_client(handler) as client:
                credentials = Credentials(USERNAME, PASSWORD)
                await credentials.fetch_token(client)
                return await authenticate(client, credentials)

        result = asyncio.run(scenario())
        assert result.success
        assert result.code == LoginCode.AUTH_SUCCESSFUL
        assert posted[0]["login"] == USERNAME
        assert posted[0]["password"] == PASSWORD
        assert posted[0]["_xfToken"] == "login-token"
        assert posted[0]["remember"] == "1"
        assert "g-recaptcha-response" not in posted[0]

    def test_redirect_to_two_step(self, make_client):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(303, headers={"location": f"{LOGIN_2FA_URL}?remember=1"})
            return html_response("<html><body>Two-step verification</body></html>")

        async def scenario():
            async with make_client(handler) as client:
                credentials = Credentials(USERNAME, PASSWORD)
                credentials._token = "login-token"
                return await authenticate(client, credentials)

        assert asyncio.run(scenario()).code == LoginCode.REQUIRE_2FA

    def test_transport_failure_is_reported(self, make_client):
        def handler(request):
            raise httpx.ConnectError("connection reset")

        async def scenario():
            async with make_client(handler) as client:
                credentials = Credentials(USERNAME, PASSWORD)
                credentials._token = "login-token"
                return await authenticate(client, credentials)

        result = asyncio.run(scenario())
        assert not result.success
        assert result.code == LoginCode.UNKNOWN_ERROR
        assert "connection reset" in result.message


class TestSend2faCode:
    def run(self, make_client, answers, **kwargs):
        sent = []

        def handler(request):
            sent.append(form(request))
            return httpx.Response(200, json=answers[len(sent) - 1])

        async def scenario():
            async with make_client(handler) as client:
                return await send_2fa_code(client, 123456, "token", **kwargs)

        return asyncio.run(scenario()), sent

    def test_success(self, make_client):
        result, sent = self.run(make_client, [{"status": "ok"}])
        assert result.value.success
        assert result.value.code == LoginCode.AUTH_SUCCESSFUL_2FA
        assert sent[0]["code"] == "123456"
        assert sent[0]["provider"] == "auto"
        assert sent[0]["trust"] == "0"

    def test_trusted_device(self, make_client):
        _, sent = self.run(make_client, [{"status": "ok"}], trusted_device=True)
        assert sent[0]["trust"] == "1"

    def test_invalid_code(self, make_client):
        result, _ = self.run(make_client, [{"status": "error", "errors": [INVALID_2FA_CODE_MESSAGE]}])
        assert not result.value.success
        assert result.value.code == LoginCode.INCORRECT_2FA_CODE

    def test_wrong_provider_retried_once(self, make_client):
        wrong = {"html": {"content": '<form><input type="hidden" name="provider" value="email"></form>'}}
        result, sent = self.run(make_client, [wrong, {"status": "ok"}])
        assert result.value.code == LoginCode.AUTH_SUCCESSFUL_2FA
        assert [s["provider"] for s in sent] == ["auto", "email"]

    def test_wrong_provider_twice_gives_up(self, make_client):
        wrong = {"html": {"content": '<input name="provider" value="totp">'}}
        result, sent = self.run(make_client, [wrong, wrong])
        assert isinstance(result.value, LoginStateUnknownError)
        assert len(sent) == 2

    def test_invalid_json(self, make_client):
        def handler(request):
            return html_response("<html>not json</html>")

        async def scenario():
            async with make_client(handler) as client:
                return await send_2fa_code(client, "000000", "token")

        assert isinstance(asyncio.run(scenario()).value, LoginStateUnknownError)


class TestUpdateSession:
    def test_without_previous_session(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            return html_response(HOME_PAGE)

        async def scenario():
            async with make_client(handler) as client:
                return await update_session(client)

        result = asyncio.run(scenario())
        assert isinstance(result.value, NoPreviousSessionError)
        assert calls == []

    def test_refreshes_token_and_cookies(self, make_client, session):
        add_user_cookie(session)
        session.cookie_jar.set_cookie(cookie_from_dict({"name": "xf_csrf", "value": "stale", "domain": "f95zone.to"}))
        seen = []

        def handler(request):
            seen.append(request.headers.get("cookie", ""))
            return html_response(HOME_PAGE, headers={"set-cookie": "xf_csrf=fresh; path=/"})

        async def scenario():
            async with make_client(handler) as client:
                return await update_session(client)

        assert asyncio.run(scenario()).is_success()
        assert session.token == "fresh-token"
        assert session.get_cookie("xf_csrf").value == "fresh"
        assert session.get_cookie("xf_user") is not None
        assert "xf_user=1234,abc" in seen[0]
        assert "stale" not in seen[0]


    def test_failed_refresh_keeps_previous_state(self, make_client, session):
        add_user_cookie(session)
        for name in ("xf_session", "xf_csrf"):
            session.cookie_jar.set_cookie(cookie_from_dict({"name": name, "value": "old", "domain": "f95zone.to"}))
        session.update_token("old-token")

        def handler(request):
            raise httpx.ConnectError("connection refused")

        async def scenario():
            async with make_client(handler) as client:
                return await update_session(client)

        assert asyncio.run(scenario()).is_failure()
        assert sorted(c.name for c in session.cookies()) == ["xf_csrf", "xf_session", "xf_user"]
        assert session.get_cookie("xf_csrf").value == "old"
        assert session.token == "old-token"

    def test_failed_token_fetch_restores_cookies(self, make_client, session):
        add_user_cookie(session)
        session.cookie_jar.set_cookie(cookie_from_dict({"name": "xf_csrf", "value": "old", "domain": "f95zone.to"}))
        session.update_token("old-token")

        def handler(request):
            if request.url.path == "/login/login":
                return html_response("<html><body>no form</body></html>")
            return html_response("<html></html>", headers={"set-cookie": "xf_csrf=fresh; path=/"})

        async def scenario():
            async with make_client(handler) as client:
                return await update_session(client)

        result = asyncio.run(scenario())
        assert isinstance(result.value, InvalidTokenError)
        assert session.get_cookie("xf_csrf").value == "old"
        assert session.token == "old-token"


class TestLogin:
    def test_fresh_login_saves_session(self, make_client, session):
        def handler(request):
            if request.method == "GET":
                return html_response(LOGIN_PAGE)
            return html_response(LOGGED_IN_PAGE, headers={"set-cookie": "xf_user=1234,abc; path=/"})

        async def scenario():
            async with make_client(handler) as client:
                return await login(client, USERNAME, PASSWORD)

        result = asyncio.run(scenario())
        assert result.code == LoginCode.AUTH_SUCCESSFUL
        assert session.token == "login-token"
        assert session.is_mapped

        restored = Session(session.path)
        restored.load()
        assert restored.is_valid(USERNAME, PASSWORD)

    def test_failed_login_is_not_saved(self, make_client, session):
        def handler(request):
            if request.method == "GET":
                return html_response(LOGIN_PAGE)
            return html_response(error_page(INCORRECT_CREDENTIALS_MESSAGE))

        async def scenario():
            async with make_client(handler) as client:
                return await login(client, USERNAME, "wrong")

        result = asyncio.run(scenario())
        assert result.code == LoginCode.INCORRECT_CREDENTIALS
        assert not session.is_mapped

    def test_reuses_valid_session(self, make_client, session):
        add_user_cookie(session)
        methods = []

        def handler(request):
            methods.append(request.method)
            return html_response(HOME_PAGE)

        async def scenario():
            async with make_client(handler) as client:
                return await login(client, USERNAME, PASSWORD)

        result = asyncio.run(scenario())
        assert result.success
        assert result.code == LoginCode.ALREADY_AUTHENTICATED
        assert result.message == ALREADY_AUTHENTICATED_MESSAGE
        assert "POST" not in methods
        assert session.token == "fresh-token"

    def test_token_fetch_failure(self, make_client):
        async def scenario():
            async with make_client(lambda request: html_response("<html></html>")) as client:
                return await login(client, USERNAME, PASSWORD)

        result = asyncio.run(scenario())
        assert not result.success
        assert result.code == LoginCode.UNKNOWN_ERROR

    def test_login_2fa_saves_session(self, make_client, session):
        def handler(request):
            return httpx.Response(200, json={"status": "ok"})

        async def scenario():
            async with make_client(handler) as client:
                return await login_2fa(client, "123456")

        result = asyncio.run(scenario())
        assert result.code == LoginCode.AUTH_SUCCESSFUL_2FA
        assert session.is_mapped

    def test_logout(self, make_client, session):
        add_user_cookie(session)
        session.save()

        async def scenario():
            async with make_client(lambda request: html_response("")) as client:
                return logout(client)

        assert asyncio.run(scenario()).is_success()
        assert not session.is_mapped
        assert session.cookies() == []
        assert session.token == ""
