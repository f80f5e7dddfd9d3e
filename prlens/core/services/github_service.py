"""Application Service for cached, rate-limit-aware GitHub access.

Every read follows the same path: validate input, look the resource up in
the request cache, and on a miss fetch it (page by page for collections)
through the GitHub retry service before writing it back with the resource's
TTL. Errors that survive retries propagate unchanged to the caller.
"""

import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from prlens.domain.interfaces.github import GitHubAccessor
from prlens.domain.models.common import (
    CommentSeverity, CommentStatus, DiffText, GitHubToken, GitHubUser, PullNumber,
    PullRequest, RepoSlug, Repository, ReviewComment,
)
from prlens.domain.models.errors import APIError, APIReason, AuthError, AuthReason
from prlens.infrastructure.cache.cache_keys import CacheKeys, CacheTTL, cached
from prlens.infrastructure.cache.request_cache import RequestCache
from prlens.infrastructure.resilience.github_retry import GitHubRetryService

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 100

SEVERITY_MARKERS = {
    CommentSeverity.ERROR: "🚨",
    CommentSeverity.WARNING: "⚠️",
    CommentSeverity.INFO: "ℹ️",
}


async def paginate(
    fetch_page: Callable[[int, int], Awaitable[List[T]]],
    page_size: int,
    run: Optional[Callable[..., Awaitable[List[T]]]] = None,
) -> List[T]:
    """Accumulates pages until one comes back shorter than ``page_size``.

    Args:
        fetch_page: Coroutine function taking ``(page, per_page)``; pages are
            1-based.
        page_size: Requested items per page.
        run: Wraps each page call, e.g. ``retry_service.execute_with_retry``.
            Called as ``run(fetch_page, page, page_size)``.

    A final page holding exactly ``page_size`` items costs one extra, empty
    round-trip.
    """
    if page_size < 1:
        raise ValueError(f"page_size must be at least 1, got {page_size}")
    items: List[T] = []
    page = 1
    while True:
        if run is None:
            batch = await fetch_page(page, page_size)
        else:
            batch = await run(fetch_page, page, page_size)
        items.extend(batch)
        if len(batch) < page_size:
            return items
        page += 1


def format_review_body(comments: Sequence[ReviewComment]) -> str:
    """Renders accepted comments as one markdown review body, grouped by file."""
    by_file: Dict[str, List[ReviewComment]] = defaultdict(list)
    for comment in comments:
        by_file[comment.file].append(comment)

    lines = ["## Automated Code Review", ""]
    for file, file_comments in by_file.items():
        lines.extend([f"### {file}", ""])
        for index, comment in enumerate(file_comments, start=1):
            severity = CommentSeverity(comment.severity)
            lines.append(f"{index}. {SEVERITY_MARKERS[severity]} **Line {comment.line}** ({severity.value})")
            lines.extend([f"   {comment.content}", ""])
    lines.extend(["", "---", "*Generated by prlens*"])
    return "\n".join(lines)


class GitHubService:
    """Orchestrates GitHub reads and review submission."""

    def __init__(
        self,
        accessor: GitHubAccessor,
        cache: RequestCache,
        retry_service: Optional[GitHubRetryService] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        ttls: Optional[CacheTTL] = None,
    ):
        """Initializes the GitHubService.

        Args:
            accessor: Remote resource accessor.
            cache: Request cache shared by all cached resources.
            retry_service: Rate-limit-aware retry wrapper for each call.
            page_size: Items requested per page for collections.
            ttls: TTL per resource type.
        """
        if page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {page_size}")
        self.accessor = accessor
        self.cache = cache
        self.retry_service = retry_service or GitHubRetryService()
        self.page_size = page_size
        self.ttls = ttls or CacheTTL()
        self._token: Optional[GitHubToken] = None
        self._user: Optional[GitHubUser] = None

    # --- Authentication ---

    async def authenticate(self, token: str) -> GitHubUser:
        """Validates ``token`` by fetching its owner's profile.

        A token different from the current one invalidates every cached
        entry before anything is fetched.

        Raises:
            AuthError: Empty token, or the token was rejected.
            APIError: The profile could not be fetched.
        """
        if not token or not token.strip():
            raise AuthError(AuthReason.INVALID_TOKEN, "Token cannot be empty")

        token = GitHubToken(token.strip())
        if self._token is not None and token != self._token:
            logger.info("GitHub credentials changed; clearing request cache.")
            self.clear_auth()

        key = CacheKeys.user(token)
        user = self.cache.get(key)
        if user is None:
            user = await self.retry_service.execute_with_retry(
                self.accessor.fetch_user, token, endpoint_name="GET /user"
            )
            self.cache.set(key, user, self.ttls.user)

        self._token = token
        self._user = user
        logger.info(f"Authenticated as {user.get('login', '<unknown>')}")
        return user

    def get_user(self) -> Optional[GitHubUser]:
        return self._user

    def is_authenticated(self) -> bool:
        return self._token is not None and self._user is not None

    def clear_auth(self) -> None:
        """Forgets the credentials and drops every cached entry."""
        self.cache.clear()
        self._token = None
        self._user = None

    # --- Reads ---

    async def get_repositories(self) -> List[Repository]:
        """All repositories visible to the authenticated user, most recently updated first."""
        token = self._ensure_authenticated()
        return await self._fetch_repositories(token)

    async def get_pull_requests(self, repo: str) -> List[PullRequest]:
        """Open pull requests of ``repo`` ("owner/name")."""
        token = self._ensure_authenticated()
        return await self._fetch_pull_requests(token, _validate_repo(repo))

    async def get_pull_request_diff(self, repo: str, number: int) -> DiffText:
        """Unified diff of pull request ``number`` in ``repo``."""
        token = self._ensure_authenticated()
        return await self._fetch_pull_request_diff(token, _validate_repo(repo), _validate_number(number))

    @cached(lambda self, token: CacheKeys.repositories(token), ttl=lambda self: self.ttls.repositories)
    async def _fetch_repositories(self, token: GitHubToken) -> List[Repository]:
        async def fetch_page(page: int, per_page: int) -> List[Repository]:
            return await self.accessor.fetch_repositories_page(token, page, per_page)

        repos = await paginate(fetch_page, self.page_size, self._run("GET /user/repos"))
        logger.info(f"Fetched {len(repos)} repositories.")
        return repos

    @cached(lambda self, token, repo: CacheKeys.pull_requests(repo), ttl=lambda self: self.ttls.pull_requests)
    async def _fetch_pull_requests(self, token: GitHubToken, repo: RepoSlug) -> List[PullRequest]:
        async def fetch_page(page: int, per_page: int) -> List[PullRequest]:
            return await self.accessor.fetch_pull_requests_page(token, repo, page, per_page)

        pulls = await paginate(fetch_page, self.page_size, self._run(f"GET /repos/{repo}/pulls"))
        logger.info(f"Fetched {len(pulls)} open pull requests for {repo}.")
        return pulls

    @cached(
        lambda self, token, repo, number: CacheKeys.pull_request_diff(repo, number),
        ttl=lambda self: self.ttls.pull_request_diff,
    )
    async def _fetch_pull_request_diff(self, token: GitHubToken, repo: RepoSlug, number: PullNumber) -> DiffText:
        return await self.retry_service.execute_with_retry(
            self.accessor.fetch_pull_request_diff, token, repo, number,
            endpoint_name=f"GET /repos/{repo}/pulls/{number} (diff)",
        )

    # --- Writes ---

    async def post_review_comments(self, repo: str, number: int, comments: Sequence[ReviewComment]) -> int:
        """Posts the accepted comments as a single COMMENT review.

        Returns:
            The number of comments posted (0 when nothing was accepted).
        """
        token = self._ensure_authenticated()
        slug = _validate_repo(repo)
        pull = _validate_number(number)

        accepted = [c for c in comments if CommentStatus(c.status) == CommentStatus.ACCEPTED]
        if not accepted:
            logger.info(f"No accepted comments to post for {slug}#{pull}.")
            return 0

        await self.retry_service.execute_with_retry(
            self.accessor.create_review, token, slug, pull, format_review_body(accepted), "COMMENT",
            endpoint_name=f"POST /repos/{slug}/pulls/{pull}/reviews",
        )
        logger.info(f"Posted review with {len(accepted)} comments to {slug}#{pull}.")
        return len(accepted)

    # --- Invalidation ---

    def invalidate_user(self) -> None:
        if self._token is not None:
            self.cache.delete(CacheKeys.user(self._token))

    def invalidate_repositories(self) -> None:
        if self._token is not None:
            self.cache.delete(CacheKeys.repositories(self._token))

    def invalidate_pull_requests(self, repo: str) -> None:
        self.cache.delete(CacheKeys.pull_requests(repo))

    def invalidate_pull_request_diff(self, repo: str, number: int) -> None:
        self.cache.delete(CacheKeys.pull_request_diff(repo, number))

    # --- Helpers ---

    def _ensure_authenticated(self) -> GitHubToken:
        if not self.is_authenticated():
            raise AuthError(AuthReason.INVALID_TOKEN, "Not authenticated. Please provide a valid GitHub token.")
        return self._token

    def _run(self, endpoint_name: str) -> Callable[..., Awaitable[list]]:
        async def run(fetch_page, page: int, per_page: int) -> list:
            return await self.retry_service.execute_with_retry(
                fetch_page, page, per_page, endpoint_name=f"{endpoint_name} page={page}"
            )
        return run


def _validate_repo(repo: str) -> RepoSlug:
    owner, _, name = (repo or "").partition("/")
    if not owner or not name or "/" in name:
        raise APIError(APIReason.NOT_FOUND, 'Invalid repository format. Expected "owner/repo"')
    return RepoSlug(repo)


def _validate_number(number: int) -> PullNumber:
    if isinstance(number, bool) or not isinstance(number, int) or number <= 0:
        raise APIError(APIReason.NOT_FOUND, "Invalid pull request number")
    return PullNumber(number)
