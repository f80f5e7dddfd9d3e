"""Defines common Value Objects used across different domain contexts.

These objects represent simple values or concepts like cache keys, repository
slugs and review comments, ensuring consistency and type safety.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, NewType, TypedDict

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are plain values at runtime.
GitHubToken = NewType("GitHubToken", str)     # Personal access token
RepoSlug = NewType("RepoSlug", str)           # "owner/name"
PullNumber = NewType("PullNumber", int)       # Pull request number within a repo
DiffText = NewType("DiffText", str)           # Unified diff of a pull request

# === Caching Context ===
CacheKey = NewType("CacheKey", str)           # Unique key for a cache entry

# Raw GitHub payloads are passed through untouched.
GitHubUser = Dict[str, Any]
Repository = Dict[str, Any]
PullRequest = Dict[str, Any]


class CacheStats(TypedDict):
    """Snapshot of a cache store partitioned by the expiry test."""
    total_entries: int
    valid_entries: int
    expired_entries: int
    max_size: int
    default_ttl: float


# === Review Context ===

class CommentSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class CommentStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MODIFIED = "modified"


@dataclass
class ReviewComment:
    """A review comment produced by the analysis step and edited by the user."""
    file: str
    line: int
    content: str
    severity: CommentSeverity = CommentSeverity.INFO
    status: CommentStatus = CommentStatus.PENDING
    id: str = ""
