"""Configure test paths and shared fixtures."""
import sys
from pathlib import Path

import httpx
import pytest

# Add src/ to path so tests can import the package
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from f95_client.network import ForumClient  # noqa: E402
from f95_client.session import Session  # noqa: E402

USERNAME = "User"
PASSWORD = "Password"
TOKEN = "test-token"


@pytest.fixture
def session(tmp_path):
    """A freshly created session backed by a file in tmp_path."""
    s = Session(tmp_path / "session.json")
    s.create(USERNAME, PASSWORD, TOKEN)
    return s


@pytest.fixture
def make_client(session):
    """Build a ForumClient whose requests are answered by ``handler``.

    Call it from inside the coroutine under test so the semaphore belongs to
    the running loop.
    """
    def factory(handler, **kwargs):
        return ForumClient(session, transport=httpx.MockTransport(handler), **kwargs)
    return factory
