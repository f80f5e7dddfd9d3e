"""GitHub REST accessor on top of httpx.

Hides the HTTP details from the orchestrator and translates transport
failures and non-success responses into the error taxonomy.
"""

import logging
from typing import Any, List, Optional

import httpx

from prlens.domain.interfaces.github import GitHubAccessor
from prlens.domain.models.common import (
    DiffText, GitHubToken, GitHubUser, PullNumber, PullRequest, RepoSlug, Repository
)
from prlens.domain.models.errors import APIError, APIReason, classify_http_status

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
JSON_MEDIA_TYPE = "application/vnd.github.v3+json"
DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
USER_AGENT = "prlens/0.3"
DEFAULT_TIMEOUT_SECONDS = 30.0


class HttpxGitHubAccessor(GitHubAccessor):
    """GitHubAccessor implementation backed by ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str = GITHUB_API_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initializes the accessor.

        Args:
            base_url: API root.
            timeout: Per-request timeout in seconds.
            client: Pre-built client (tests inject one with a MockTransport);
                the accessor only closes clients it created itself.
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": JSON_MEDIA_TYPE, "User-Agent": USER_AGENT},
        )
        logger.info(f"HttpxGitHubAccessor initialized for {base_url} (timeout={timeout}s)")

    async def __aenter__(self) -> "HttpxGitHubAccessor":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- GitHubAccessor Interface Implementation ---

    async def fetch_user(self, token: GitHubToken) -> GitHubUser:
        response = await self._request("GET", "/user", token)
        return response.json()

    async def fetch_repositories_page(self, token: GitHubToken, page: int, per_page: int) -> List[Repository]:
        response = await self._request(
            "GET", "/user/repos", token,
            params={"sort": "updated", "direction": "desc", "per_page": per_page, "page": page},
        )
        return response.json()

    async def fetch_pull_requests_page(
        self, token: GitHubToken, repo: RepoSlug, page: int, per_page: int
    ) -> List[PullRequest]:
        response = await self._request(
            "GET", f"/repos/{repo}/pulls", token,
            params={"state": "open", "sort": "updated", "direction": "desc", "per_page": per_page, "page": page},
        )
        return response.json()

    async def fetch_pull_request_diff(self, token: GitHubToken, repo: RepoSlug, number: PullNumber) -> DiffText:
        response = await self._request(
            "GET", f"/repos/{repo}/pulls/{number}", token, headers={"Accept": DIFF_MEDIA_TYPE}
        )
        return DiffText(response.text)

    async def create_review(
        self, token: GitHubToken, repo: RepoSlug, number: PullNumber, body: str, event: str = "COMMENT"
    ) -> None:
        await self._request(
            "POST", f"/repos/{repo}/pulls/{number}/reviews", token, json={"body": body, "event": event}
        )

    # --- Internals ---

    async def _request(self, method: str, path: str, token: GitHubToken, **kwargs: Any) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"}
        headers.update(kwargs.pop("headers", None) or {})
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise APIError(APIReason.NETWORK_ERROR, f"Request to {path} timed out") from e
        except httpx.TransportError as e:
            raise APIError(APIReason.NETWORK_ERROR, f"Network error occurred: {e}") from e

        if response.is_success:
            return response

        logger.debug(f"{method} {path} returned HTTP {response.status_code}")
        raise classify_http_status(response.status_code, response.headers, _error_message(response))


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase or None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.reason_phrase or None
