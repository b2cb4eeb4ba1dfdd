"""
F95 Client - Authenticated scraping client for the F95zone forum.

This package keeps a logged-in session against the platform, issues
rate-limited requests with it and parses post bodies into structured trees.

Main components:
- ForumClient: Rate-limited async HTTP layer bound to a Session
- Session: Persisted cookie-based identity
- Credentials: Username/password plus the login form token
- authenticate / send_2fa_code / update_session: Login state machine
- parse_post / parse_node: Post content parser

Usage:
    import asyncio
    from f95_client import ForumClient, Session, login

    async def main():
        session = Session("f95session.json")
        session.load()
        async with ForumClient(session) as client:
            result = await login(client, "user", "password")
            print(result.code.name, result.message)

    asyncio.run(main())
"""

from .auth import authenticate, login, login_2fa, logout, send_2fa_code, update_session
from .credentials import Credentials
from .errors import (
    ClientError,
    CorruptDataError,
    ErrorCode,
    InvalidPathError,
    InvalidTokenError,
    LoginStateUnknownError,
    MalformedUrlError,
    NetworkError,
    NoPreviousSessionError,
    NotFoundError,
    SessionError,
    StorageError,
    UnexpectedContentTypeError,
)
from .models import Link, LoginCode, LoginResult, PostElement
from .network import ForumClient
from .parser import parse_node, parse_post, parse_post_html
from .result import Failure, Result, Success
from .session import Session

__all__ = [
    'ForumClient',
    'Session',
    'Credentials',
    'authenticate',
    'send_2fa_code',
    'update_session',
    'login',
    'login_2fa',
    'logout',
    'parse_node',
    'parse_post',
    'parse_post_html',
    'LoginCode',
    'LoginResult',
    'PostElement',
    'Link',
    'Result',
    'Success',
    'Failure',
    'ErrorCode',
    'ClientError',
    'MalformedUrlError',
    'NetworkError',
    'UnexpectedContentTypeError',
    'InvalidTokenError',
    'NoPreviousSessionError',
    'InvalidPathError',
    'SessionError',
    'StorageError',
    'NotFoundError',
    'CorruptDataError',
    'LoginStateUnknownError',
]

__version__ = '1.0.0'
