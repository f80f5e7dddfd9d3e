import asyncio

import pytest
import pytest_asyncio

from prlens.core.services.github_service import GitHubService, format_review_body, paginate
from prlens.domain.models.common import CommentSeverity, CommentStatus, ReviewComment
from prlens.domain.models.errors import APIError, APIReason, AuthError, AuthReason
from prlens.infrastructure.cache.cache_keys import CacheKeys, CacheTTL
from prlens.infrastructure.cache.request_cache import RequestCache
from prlens.infrastructure.resilience.github_retry import GitHubRetryPolicy, GitHubRetryService


def make_repos(count):
    return [{"id": i, "full_name": f"octocat/repo-{i}"} for i in range(count)]


@pytest.fixture
def cache(clock):
    return RequestCache(ttl=300, max_size=50, clock=clock)


@pytest.fixture
def retry_service(recording_sleep):
    return GitHubRetryService(GitHubRetryPolicy(max_retries=2, base_delay=1.0), sleep=recording_sleep)


@pytest.fixture
def accessor(fake_accessor):
    fake_accessor.repos = make_repos(250)
    fake_accessor.pulls = {"octocat/hello": [{"number": 1, "title": "Fix typo"}, {"number": 2, "title": "Add docs"}]}
    return fake_accessor


@pytest.fixture
def service(accessor, cache, retry_service):
    return GitHubService(accessor, cache, retry_service, page_size=100)


@pytest_asyncio.fixture
async def authed(service):
    await service.authenticate("ghp_first")
    return service


# --- paginate ---

@pytest.mark.asyncio
@pytest.mark.parametrize("total, expected_calls", [(0, 1), (99, 1), (100, 2), (250, 3), (300, 4)])
async def test_paginate_stops_at_first_short_page(total, expected_calls):
    items = list(range(total))
    requested = []

    async def fetch_page(page, per_page):
        requested.append(page)
        start = (page - 1) * per_page
        return items[start:start + per_page]

    assert await paginate(fetch_page, 100) == items
    assert requested == list(range(1, expected_calls + 1))


@pytest.mark.asyncio
async def test_paginate_routes_pages_through_runner():
    seen = []

    async def fetch_page(page, per_page):
        return ["x"] if page == 1 else []

    async def run(fn, page, per_page):
        seen.append((page, per_page))
        return await fn(page, per_page)

    assert await paginate(fetch_page, 1, run) == ["x"]
    assert seen == [(1, 1), (2, 1)]


@pytest.mark.asyncio
async def test_paginate_rejects_invalid_page_size():
    async def fetch_page(page, per_page):
        return []

    with pytest.raises(ValueError):
        await paginate(fetch_page, 0)


# --- authentication ---

@pytest.mark.asyncio
async def test_authenticate_returns_and_caches_user(service, accessor, cache):
    user = await service.authenticate("ghp_first")

    assert user["login"] == "octocat"
    assert service.is_authenticated()
    assert service.get_user() == user
    assert cache.get(CacheKeys.user("ghp_first")) == user

    await service.authenticate("ghp_first")
    assert accessor.calls["fetch_user"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("token", ["", "   "])
async def test_authenticate_rejects_empty_token(service, accessor, token):
    with pytest.raises(AuthError) as exc_info:
        await service.authenticate(token)
    assert exc_info.value.reason == AuthReason.INVALID_TOKEN
    assert "fetch_user" not in accessor.calls


@pytest.mark.asyncio
async def test_authenticate_propagates_rejected_token_without_retry(service, accessor):
    accessor.failures["fetch_user"] = [AuthError("invalid_token", "Bad credentials")]
    with pytest.raises(AuthError):
        await service.authenticate("ghp_bad")
    assert accessor.calls["fetch_user"] == 1
    assert not service.is_authenticated()


@pytest.mark.asyncio
async def test_token_change_clears_cache(authed, accessor, cache):
    await authed.get_repositories()
    assert cache.has(CacheKeys.repositories("ghp_first"))

    await authed.authenticate("ghp_second")

    assert not cache.has(CacheKeys.repositories("ghp_first"))
    assert not cache.has(CacheKeys.user("ghp_first"))
    await authed.get_repositories()
    assert accessor.calls["fetch_repositories_page"] == 6


@pytest.mark.asyncio
async def test_fetch_finishing_after_token_change_is_not_served_to_new_token(authed, accessor, cache):
    accessor.pulls["octocat/hello"] = [{"number": 1, "title": "Visible to the first token only"}]
    gate = asyncio.Event()
    fetch_page = accessor.fetch_pull_requests_page

    async def gated_fetch_page(*args):
        await gate.wait()
        return await fetch_page(*args)

    accessor.fetch_pull_requests_page = gated_fetch_page

    first_token_fetch = asyncio.ensure_future(authed.get_pull_requests("octocat/hello"))
    await asyncio.sleep(0)
    await authed.authenticate("ghp_second")
    gate.set()
    await first_token_fetch

    assert not cache.has(CacheKeys.pull_requests("octocat/hello"))
    await authed.get_pull_requests("octocat/hello")
    assert accessor.calls["fetch_pull_requests_page"] == 2


@pytest.mark.asyncio
async def test_clear_auth_forgets_everything(authed, cache):
    authed.clear_auth()
    assert not authed.is_authenticated()
    assert authed.get_user() is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_reads_require_authentication(service):
    with pytest.raises(AuthError) as exc_info:
        await service.get_repositories()
    assert "Not authenticated" in exc_info.value.message


# --- reads ---

@pytest.mark.asyncio
async def test_repositories_are_paginated_and_cached(authed, accessor):
    repos = await authed.get_repositories()
    assert len(repos) == 250
    assert accessor.calls["fetch_repositories_page"] == 3

    again = await authed.get_repositories()
    assert again == repos
    assert accessor.calls["fetch_repositories_page"] == 3


@pytest.mark.asyncio
async def test_cached_collection_refetched_after_ttl(authed, accessor, clock):
    await authed.get_pull_requests("octocat/hello")
    clock.advance(CacheTTL().pull_requests - 1)
    await authed.get_pull_requests("octocat/hello")
    assert accessor.calls["fetch_pull_requests_page"] == 1

    clock.advance(1)
    pulls = await authed.get_pull_requests("octocat/hello")
    assert [p["number"] for p in pulls] == [1, 2]
    assert accessor.calls["fetch_pull_requests_page"] == 2


@pytest.mark.asyncio
async def test_page_failure_is_retried_then_succeeds(authed, accessor, recording_sleep):
    accessor.failures["fetch_repositories_page"] = [APIError("server_error", "Bad Gateway", status=502)]
    repos = await authed.get_repositories()
    assert len(repos) == 250
    assert recording_sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_exhausted_page_failure_propagates_and_is_not_cached(authed, accessor, cache):
    accessor.failures["fetch_pull_requests_page"] = [APIError("network_error", "offline")] * 3
    with pytest.raises(APIError) as exc_info:
        await authed.get_pull_requests("octocat/hello")
    assert exc_info.value.reason == APIReason.NETWORK_ERROR
    assert not cache.has(CacheKeys.pull_requests("octocat/hello"))


@pytest.mark.asyncio
async def test_diff_is_cached_per_pull_request(authed, accessor):
    accessor.diffs[("octocat/hello", 1)] = "diff --git a/README.md b/README.md\n"
    assert (await authed.get_pull_request_diff("octocat/hello", 1)).startswith("diff --git")
    await authed.get_pull_request_diff("octocat/hello", 1)
    assert accessor.calls["fetch_pull_request_diff"] == 1

    assert await authed.get_pull_request_diff("octocat/hello", 2) == ""
    assert accessor.calls["fetch_pull_request_diff"] == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("repo", ["", "octocat", "/hello", "octocat/", "a/b/c"])
async def test_invalid_repository_is_rejected(authed, accessor, repo):
    with pytest.raises(APIError) as exc_info:
        await authed.get_pull_requests(repo)
    assert exc_info.value.reason == APIReason.NOT_FOUND
    assert "fetch_pull_requests_page" not in accessor.calls


@pytest.mark.asyncio
@pytest.mark.parametrize("number", [0, -3, True, "7"])
async def test_invalid_pull_number_is_rejected(authed, number):
    with pytest.raises(APIError) as exc_info:
        await authed.get_pull_request_diff("octocat/hello", number)
    assert exc_info.value.message == "Invalid pull request number"


# --- invalidation ---

@pytest.mark.asyncio
async def test_invalidation_forces_refetch(authed, accessor):
    await authed.get_repositories()
    await authed.get_pull_requests("octocat/hello")
    await authed.get_pull_request_diff("octocat/hello", 1)

    authed.invalidate_repositories()
    authed.invalidate_pull_requests("octocat/hello")
    authed.invalidate_pull_request_diff("octocat/hello", 1)
    authed.invalidate_user()

    await authed.get_repositories()
    await authed.get_pull_requests("octocat/hello")
    await authed.get_pull_request_diff("octocat/hello", 1)
    await authed.authenticate("ghp_first")

    assert accessor.calls["fetch_repositories_page"] == 6
    assert accessor.calls["fetch_pull_requests_page"] == 2
    assert accessor.calls["fetch_pull_request_diff"] == 2
    assert accessor.calls["fetch_user"] == 2


# --- review submission ---

@pytest.mark.asyncio
async def test_post_review_sends_only_accepted_comments(authed, accessor):
    comments = [
        ReviewComment("app.py", 10, "Possible None dereference", CommentSeverity.ERROR, CommentStatus.ACCEPTED),
        ReviewComment("app.py", 22, "Consider a constant", CommentSeverity.INFO, CommentStatus.REJECTED),
        ReviewComment("util.py", 3, "Unused import", CommentSeverity.WARNING, CommentStatus.ACCEPTED),
    ]

    assert await authed.post_review_comments("octocat/hello", 1, comments) == 2

    review = accessor.reviews[0]
    assert review["event"] == "COMMENT"
    assert "Possible None dereference" in review["body"]
    assert "Consider a constant" not in review["body"]
    assert "### util.py" in review["body"]


@pytest.mark.asyncio
async def test_post_review_without_accepted_comments_is_a_no_op(authed, accessor):
    comments = [ReviewComment("app.py", 1, "nit", status=CommentStatus.PENDING)]
    assert await authed.post_review_comments("octocat/hello", 1, comments) == 0
    assert accessor.reviews == []


def test_format_review_body_groups_by_file():
    body = format_review_body([
        ReviewComment("a.py", 1, "first", CommentSeverity.ERROR, CommentStatus.ACCEPTED),
        ReviewComment("a.py", 5, "second", CommentSeverity.INFO, CommentStatus.ACCEPTED),
    ])
    assert body.count("### a.py") == 1
    assert "1. 🚨 **Line 1** (error)" in body
    assert "2. ℹ️ **Line 5** (info)" in body
    assert body.endswith("*Generated by prlens*")


def test_invalid_page_size_is_rejected(accessor, cache):
    with pytest.raises(ValueError):
        GitHubService(accessor, cache, page_size=0)
