"""AI service SDK adapters."""

from .openai_errors import call_with_llm_retry, classify_llm_exception

__all__ = ["call_with_llm_retry", "classify_llm_exception"]
