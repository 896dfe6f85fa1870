"""
Guarded OpenAI client wrapper.

Applies history limits and compaction before a chat completion and records
usage events around it without modifying provider behavior.
"""

from typing import Any, Dict, List, Mapping, Optional

from openai import OpenAI

from ..config.loader import HistoryLimitConfig
from ..core.compaction import CompactionOptions, compact_messages
from ..core.history import limit_history_turns, resolve_effective_history_limit
from ..core.token_counter import TokenUsage
from .usage_logger import UsageContext, create_usage_logger


def usage_from_response(response: Any) -> Optional[TokenUsage]:
    """Extract token counts from an OpenAI chat completion response."""
    usage = getattr(response, "usage", None)
    if usage is None:
        return None
    details = getattr(usage, "prompt_tokens_details", None)
    return TokenUsage(
        input=getattr(usage, "prompt_tokens", None),
        output=getattr(usage, "completion_tokens", None),
        cache_read=getattr(details, "cached_tokens", None) if details is not None else None,
    )


class GuardedOpenAI:
    """OpenAI client wrapper that trims context and logs usage.

    Provider errors are recorded as usage events and then re-raised
    unchanged.
    """

    def __init__(
        self,
        model: str,
        session_key: Optional[str] = None,
        session_id: Optional[str] = None,
        run_id: Optional[str] = None,
        history_config: Optional[HistoryLimitConfig] = None,
        compaction: Optional[CompactionOptions] = None,
        env: Optional[Mapping[str, str]] = None,
        context: Optional[UsageContext] = None,
        client: Optional[Any] = None,
    ):
        """Initialize guarded OpenAI client.

        Args:
            model: OpenAI model name (required)
            session_key: Session key used for history limits and loop tracking
            session_id: Session id (loop-tracking fallback when no key)
            run_id: Agent run identifier copied onto usage events
            history_config: Per-channel history limits
            compaction: Compaction budgets; None disables compaction
            env: Environment mapping (defaults to os.environ)
            context: Shared writer pool and loop tracker
            client: Pre-built OpenAI client (defaults to OpenAI())

        Raises:
            ValueError: If model is missing/empty
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")

        self.model = model
        self.session_key = session_key
        self.history_config = history_config
        self.compaction = compaction
        self.env = env
        self.client = client if client is not None else OpenAI()
        self.usage_logger = create_usage_logger(
            env=env,
            run_id=run_id,
            session_id=session_id,
            session_key=session_key,
            provider="openai",
            model_id=model,
            context=context,
        )

    def prepare_messages(self, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Apply the effective history limit, then compaction if configured."""
        limit = resolve_effective_history_limit(self.session_key, self.history_config, self.env)
        prepared = limit_history_turns(messages, limit)
        if self.compaction is not None:
            prepared = compact_messages(prepared, self.compaction)
        return list(prepared)

    def chat(self, messages: List[Dict[str, Any]], **kwargs: Any) -> Any:
        """Create chat completion with usage recording.

        Args:
            messages: List of message dictionaries (required)
            **kwargs: Additional OpenAI parameters

        Returns:
            OpenAI chat completion response, unchanged

        Raises:
            ValueError: If messages is empty
            OpenAI API errors: Propagated without modification
        """
        if not messages:
            raise ValueError("messages is required and cannot be empty")

        prepared = self.prepare_messages(messages)
        create = self.client.chat.completions.create
        if self.usage_logger is None:
            return create(model=self.model, messages=prepared, **kwargs)

        try:
            response = self.usage_logger.wrap(create)(model=self.model, messages=prepared, **kwargs)
        except Exception as e:
            self.usage_logger.record_usage(prepared, error=e)
            raise

        self.usage_logger.record_usage(prepared, usage_from_response(response))
        return response
