"""prlens: resilient GitHub access for AI-assisted pull request review.

Layers:
    domain          Value objects, the error taxonomy, events and ports.
    core            Use cases (the GitHub fetch orchestrator, error reporting).
    infrastructure  Adapters: cache store, retry engines, httpx transport,
                    rich console, configuration and logging.
"""

__version__ = "0.3.0"
