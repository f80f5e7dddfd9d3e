"""Caching Service Implementation.

Provides the in-memory TTL request cache used in front of the GitHub API,
along with the key builders and per-resource TTLs.
Bounded Context: Cache Management
"""
