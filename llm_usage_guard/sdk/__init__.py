"""
SDK for LLM Usage Guard.

Provides the usage logger and a guarded OpenAI client.
"""

from .openai_client import GuardedOpenAI
from .usage_logger import UsageContext, UsageLogger, create_usage_logger, get_default_context

__all__ = [
    "GuardedOpenAI",
    "UsageContext",
    "UsageLogger",
    "create_usage_logger",
    "get_default_context",
]
