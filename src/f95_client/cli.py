"""CLI interface for the F95 client."""

import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional

import click
import orjson
from tqdm import tqdm

from .auth import login as platform_login
from .auth import login_2fa, logout as platform_logout
from .config import DEFAULT_SESSION_PATH, setup_logging
from .models import LoginCode, LoginResult
from .network import ForumClient
from .parser import parse_post_html
from .session import Session


@click.group()
@click.option(
    '--session', 'session_path',
    default=str(DEFAULT_SESSION_PATH),
    show_default=True,
    help='Path of the session file'
)
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def main(ctx, session_path, verbose):
    """F95 Client - Authenticated scraping client for F95zone."""
    setup_logging(verbose)
    ctx.obj = {"session_path": Path(session_path)}


def _open_session(ctx) -> Session:
    session = Session(ctx.obj["session_path"])
    if session.is_mapped:
        loaded = session.load()
        if loaded.is_failure():
            click.echo(f"Ignoring stored session: {loaded.value.message}", err=True)
    return session


def _echo_result(result: LoginResult) -> None:
    status = "OK" if result.success else "FAILED"
    click.echo(f"[{status}] {result.code.name} ({int(result.code)}): {result.message}")


@main.command()
@click.argument('username')
@click.password_option(confirmation_prompt=False)
@click.option('--captcha-token', default=None, help='reCAPTCHA token, if the platform asks for one')
@click.option('--provider', default='auto', type=click.Choice(['auto', 'totp', 'email']),
              help='Two-factor provider')
@click.option('--trust-device', is_flag=True, help='Do not ask for 2FA on this device for 30 days')
@click.pass_context
def login(ctx, username, password, captcha_token, provider, trust_device):
    """Log in to the platform and store the session."""
    session = _open_session(ctx)
    result = asyncio.run(_login(session, username, password, captcha_token, provider, trust_device))
    _echo_result(result)
    if not result.success:
        sys.exit(1)


async def _login(
    session: Session,
    username: str,
    password: str,
    captcha_token: Optional[str],
    provider: str,
    trust_device: bool,
) -> LoginResult:
    async with ForumClient(session) as client:
        result = await platform_login(client, username, password, captcha_token)
        if result.code != LoginCode.REQUIRE_2FA:
            return result

        _echo_result(result)
        code = click.prompt("Two-factor code", type=str)
        return await login_2fa(client, code.strip(), provider, trust_device)


@main.command()
@click.pass_context
def logout(ctx):
    """Forget the stored session."""
    session = Session(ctx.obj["session_path"])
    deleted = asyncio.run(_logout(session))
    if deleted.is_failure():
        click.echo(f"Could not delete session: {deleted.value.message}", err=True)
        sys.exit(1)
    click.echo(f"Session {session.path} removed")


async def _logout(session: Session):
    async with ForumClient(session) as client:
        return platform_logout(client)


@main.command()
@click.option('--username', default=None, help='Check the session against this user')
@click.option('--password', default=None, help='Password of --username')
@click.pass_context
def status(ctx, username, password):
    """Show information about the stored session."""
    session = _open_session(ctx)
    if not session.is_mapped:
        click.echo(f"No session stored at {session.path}")
        return

    click.echo(f"Session file: {session.path}")
    click.echo(f"Created:      {session.created.isoformat() if session.created else 'unknown'}")
    click.echo(f"Expired:      {'yes' if session.is_expired else 'no'}")
    click.echo(f"Cookies:      {', '.join(sorted(c.name for c in session.cookies())) or 'none'}")
    if username is not None:
        valid = session.is_valid(username, password or "")
        click.echo(f"Valid for {username}: {'yes' if valid else 'no'}")


@main.command()
@click.argument('urls', nargs=-1, required=True)
@click.option('--output', '-o', type=click.Path(dir_okay=False), default=None,
              help='Write the JSON result here instead of stdout')
@click.option('--selector', default=None, help='CSS selector of the post body')
@click.pass_context
def parse(ctx, urls, output, selector):
    """Fetch thread pages and parse their first post into a tree."""
    session = _open_session(ctx)
    trees = asyncio.run(_parse(session, list(urls), selector))

    data = orjson.dumps(trees, option=orjson.OPT_INDENT_2)
    if output:
        Path(output).write_bytes(data)
        click.echo(f"Wrote {len(trees)} trees to {output}")
    else:
        click.echo(data.decode("utf-8"))


async def _parse(session: Session, urls: List[str], selector: Optional[str]) -> Dict[str, Optional[dict]]:
    trees: Dict[str, Optional[dict]] = {}

    async with ForumClient(session) as client:
        async def fetch_one(url: str):
            return url, await client.fetch_html(url)

        with tqdm(total=len(urls), desc="Parsing posts", file=sys.stderr) as pbar:
            for task in asyncio.as_completed([fetch_one(url) for url in urls]):
                url, result = await task
                if result.is_success():
                    trees[url] = parse_post_html(result.value, selector).to_dict()
                else:
                    click.echo(f"Failed to fetch {url}: {result.value.message}", err=True)
                    trees[url] = None
                pbar.update(1)

    return trees


if __name__ == '__main__':
    main()
