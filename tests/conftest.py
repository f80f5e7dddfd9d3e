import pytest
from typer.testing import CliRunner
from typing import Dict, List, Optional

from prlens.domain.interfaces.github import GitHubAccessor
from prlens.infrastructure.config import settings


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stands in for asyncio.sleep and records every requested delay."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeAccessor(GitHubAccessor):
    """In-memory GitHub with scripted failures.

    ``failures[name]`` is a list of exceptions raised, in order, by the next
    calls to accessor method ``name`` before it starts succeeding.
    """

    def __init__(self, repos: Optional[list] = None, pulls: Optional[Dict[str, list]] = None):
        self.user = {"login": "octocat", "name": "The Octocat"}
        self.repos = repos if repos is not None else []
        self.pulls = pulls or {}
        self.diffs: Dict[tuple, str] = {}
        self.reviews: List[dict] = []
        self.calls: Dict[str, int] = {}
        self.failures: Dict[str, list] = {}

    def _enter(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        pending = self.failures.get(name)
        if pending:
            raise pending.pop(0)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def fetch_user(self, token):
        self._enter("fetch_user")
        return dict(self.user)

    async def fetch_repositories_page(self, token, page, per_page):
        self._enter("fetch_repositories_page")
        start = (page - 1) * per_page
        return self.repos[start:start + per_page]

    async def fetch_pull_requests_page(self, token, repo, page, per_page):
        self._enter("fetch_pull_requests_page")
        items = self.pulls.get(repo, [])
        start = (page - 1) * per_page
        return items[start:start + per_page]

    async def fetch_pull_request_diff(self, token, repo, number):
        self._enter("fetch_pull_request_diff")
        return self.diffs.get((repo, number), "")

    async def create_review(self, token, repo, number, body, event="COMMENT"):
        self._enter("create_review")
        self.reviews.append({"repo": repo, "number": number, "body": body, "event": event})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def fake_accessor():
    return FakeAccessor()


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keeps tests away from the developer's config file, .env and token."""
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setattr(settings, "DEFAULT_CONFIG_FILE", tmp_path / "config.yaml")
    monkeypatch.setattr(settings, "find_dotenv_path", lambda: None)
    settings.reset_configuration()
    settings.clear_test_config()
    yield
    settings.clear_test_config()
    settings.reset_configuration()
