"""Domain events emitted by the cache and the retry engines."""
