"""Cache key builders, per-resource TTLs and the ``cached`` decorator."""

import functools
import hashlib
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from prlens.domain.models.common import CacheKey

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def _fingerprint(token: str) -> str:
    """Short stable digest so raw tokens never appear in keys or logs."""
    return hashlib.sha256(token.encode()).hexdigest()[:16]


class CacheKeys:
    """Key builders for the cached GitHub resources."""

    @staticmethod
    def user(token: str) -> CacheKey:
        return CacheKey(f"user:{_fingerprint(token)}")

    @staticmethod
    def repositories(token: str) -> CacheKey:
        return CacheKey(f"repos:{_fingerprint(token)}")

    @staticmethod
    def pull_requests(repo: str) -> CacheKey:
        return CacheKey(f"prs:{repo}")

    @staticmethod
    def pull_request_diff(repo: str, number: int) -> CacheKey:
        return CacheKey(f"diff:{repo}:{number}")


@dataclass(frozen=True)
class CacheTTL:
    """Time-to-live per resource type, in seconds.

    Profiles rarely change, repository lists change occasionally, open pull
    requests and their diffs move with every push.
    """
    user: float = 60 * 60
    repositories: float = 10 * 60
    pull_requests: float = 2 * 60
    pull_request_diff: float = 60


TTLSpec = Union[float, Callable[[Any], float], None]


def cached(key_builder: Callable[..., CacheKey], ttl: TTLSpec = None) -> Callable[[F], F]:
    """Caches the result of an async method in ``self.cache``.

    Args:
        key_builder: Called with the method's arguments (including ``self``)
            to derive the cache key.
        ttl: Fixed TTL in seconds, a callable receiving ``self`` and returning
            one, or None for the cache default.
    """
    def decorator(method: F) -> F:
        @functools.wraps(method)
        async def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            key = key_builder(self, *args, **kwargs)
            effective_ttl: Optional[float] = ttl(self) if callable(ttl) else ttl
            return await self.cache.get_or_set(key, lambda: method(self, *args, **kwargs), effective_ttl)
        return wrapper  # type: ignore[return-value]
    return decorator
