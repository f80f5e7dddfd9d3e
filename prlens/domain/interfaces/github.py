"""Interface for the GitHub remote resource accessor.

The orchestrator only knows that each method returns a payload or raises.
Implementations should raise errors from the taxonomy
(``prlens.domain.models.errors``); anything else is classified at the
orchestration boundary.
"""

import abc
from typing import List

from ..models.common import (
    DiffText, GitHubToken, GitHubUser, PullNumber, PullRequest, RepoSlug, Repository
)


class GitHubAccessor(abc.ABC):
    """Abstract Base Class for GitHub REST resource access."""

    @abc.abstractmethod
    async def fetch_user(self, token: GitHubToken) -> GitHubUser:
        """Fetches the profile of the token owner."""
        pass

    @abc.abstractmethod
    async def fetch_repositories_page(self, token: GitHubToken, page: int, per_page: int) -> List[Repository]:
        """Fetches one page of repositories visible to the token owner.

        Args:
            token: The access token.
            page: 1-based page index.
            per_page: Requested page size.
        """
        pass

    @abc.abstractmethod
    async def fetch_pull_requests_page(
        self, token: GitHubToken, repo: RepoSlug, page: int, per_page: int
    ) -> List[PullRequest]:
        """Fetches one page of open pull requests of a repository."""
        pass

    @abc.abstractmethod
    async def fetch_pull_request_diff(self, token: GitHubToken, repo: RepoSlug, number: PullNumber) -> DiffText:
        """Fetches the unified diff of a pull request."""
        pass

    @abc.abstractmethod
    async def create_review(
        self, token: GitHubToken, repo: RepoSlug, number: PullNumber, body: str, event: str = "COMMENT"
    ) -> None:
        """Creates a pull request review."""
        pass
