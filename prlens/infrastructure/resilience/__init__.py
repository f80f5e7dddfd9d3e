"""API Resilience Implementations.

Contains the generic retry/backoff engine and the GitHub-specific,
rate-limit-aware retry policy.
Bounded Context: API Resilience
"""
