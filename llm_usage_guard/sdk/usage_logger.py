"""
Provider-agnostic LLM usage logger.

Activated by LLM_USAGE_DEBUG=1. Writes an "input" record before each wrapped
call (message counts, text size, estimated tokens) and a "usage" record after
it (provider-reported token counts or the error). A session that sends the
same call shape three times in a row gets a "loop_break" record instead of
"input".

The logger is a side channel only: it never changes arguments or results of
the wrapped call and never raises into the host.
"""

import functools
import logging
import threading
from typing import Any, Callable, Mapping, Optional, Sequence, TypeVar, Union

from ..config.settings import resolve_logger_config
from ..core.analyzer import MessageStats, analyze_messages
from ..core.content import as_message_list, get_field
from ..core.loop_detector import LoopTracker, session_label
from ..core.token_counter import TokenUsage, estimate_tokens
from ..storage.models import UsageLogEvent, UsageStage, utc_timestamp
from ..storage.writer import QueuedFileWriter, WriterPool

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class UsageContext:
    """Owns the shared writer pool and loop tracker.

    Inject a fresh context in tests to isolate state.
    """

    def __init__(
        self,
        writers: Optional[WriterPool] = None,
        loop_tracker: Optional[LoopTracker] = None,
    ):
        self.writers = writers or WriterPool()
        self.loop_tracker = loop_tracker or LoopTracker()


# Process-wide default context
_default_context: Optional[UsageContext] = None
_default_context_lock = threading.Lock()


def get_default_context() -> UsageContext:
    """Get the process-wide UsageContext, creating it on first use."""
    global _default_context
    with _default_context_lock:
        if _default_context is None:
            _default_context = UsageContext()
        return _default_context


def extract_messages(args: Sequence[Any], kwargs: Mapping[str, Any]) -> Sequence[Any]:
    """Find the outgoing message list in a call's arguments.

    Looks at a ``messages`` keyword, then a call context (``context`` keyword
    or second positional argument) holding ``messages``, then a first
    positional list. Anything else yields an empty list.
    """
    if "messages" in kwargs:
        return as_message_list(kwargs["messages"])

    context = kwargs.get("context")
    if context is None and len(args) > 1:
        context = args[1]
    if context is not None:
        found = get_field(context, "messages")
        if found is not None:
            return as_message_list(found)

    if args and isinstance(args[0], (list, tuple)):
        return args[0]
    return []


def _error_text(error: Any) -> Optional[str]:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    return None


class UsageLogger:
    """Usage logger bound to one agent run.

    Identity fields are fixed at construction and copied onto every event.
    """

    enabled = True

    def __init__(
        self,
        writer: QueuedFileWriter,
        loop_tracker: LoopTracker,
        run_id: Optional[str] = None,
        session_id: Optional[str] = None,
        session_key: Optional[str] = None,
        provider: Optional[str] = None,
        model_id: Optional[str] = None,
    ):
        self.writer = writer
        self.loop_tracker = loop_tracker
        self.run_id = run_id
        self.session_id = session_id
        self.session_key = session_key
        self.provider = provider
        self.model_id = model_id
        self.session_label = session_label(session_key, session_id)

    @property
    def file_path(self):
        return self.writer.file_path

    def _event(self, stage: UsageStage, stats: MessageStats, **extra: Any) -> UsageLogEvent:
        return UsageLogEvent(
            ts=utc_timestamp(),
            stage=stage,
            run_id=self.run_id,
            session_id=self.session_id,
            session_key=self.session_key,
            provider=self.provider,
            model_id=self.model_id,
            message_count=stats.message_count,
            total_text_chars=stats.total_text_chars,
            max_message_text_chars=stats.max_message_text_chars,
            estimated_input_tokens=estimate_tokens(stats.total_text_chars),
            **extra,
        )

    def _record(self, event: UsageLogEvent) -> None:
        try:
            line = event.to_json_line()
        except (TypeError, ValueError):
            logger.warning("Dropping unserializable %s event for session %s",
                           event.stage.value, self.session_label, exc_info=True)
            return
        self.writer.write(line)

    def record_input(self, messages: Sequence[Any]) -> None:
        """Write the pre-call event for ``messages``, flagging stuck loops."""
        try:
            stats = analyze_messages(messages)
            warning = self.loop_tracker.observe(
                self.session_label, stats.message_count, stats.total_text_chars
            )
            stage = UsageStage.LOOP_BREAK if warning else UsageStage.INPUT
            event = self._event(stage, stats, loop_warning=warning)
            self._record(event)

            if warning:
                logger.warning("[llm-usage] %s", warning)
            else:
                logger.debug(
                    "[llm-usage] input session=%s provider=%s/%s messages=%d chars=%d ~tokens=%d",
                    self.session_label, self.provider, self.model_id,
                    event.message_count, event.total_text_chars, event.estimated_input_tokens,
                )
        except Exception:
            logger.exception("Failed to record input event for session %s", self.session_label)

    def wrap(self, call_fn: F) -> F:
        """Wrap a model-call function so each call is logged first.

        The wrapped function receives the original arguments and its result
        or exception is passed through unchanged.
        """
        @functools.wraps(call_fn)
        def wrapped(*args, **kwargs):
            try:
                messages = extract_messages(args, kwargs)
            except Exception:
                logger.exception("Could not extract messages from call arguments")
                messages = []
            self.record_input(messages)
            return call_fn(*args, **kwargs)

        return wrapped  # type: ignore[return-value]

    def record_usage(
        self,
        messages: Any,
        usage: Union[TokenUsage, Mapping[str, Any], None] = None,
        error: Any = None,
    ) -> None:
        """Write the post-call event with provider token counts or the error.

        Args:
            messages: Messages that were sent (malformed values count as empty)
            usage: TokenUsage or a mapping with input/output/cacheRead/cacheWrite
            error: Exception or string describing a failed call
        """
        try:
            if isinstance(usage, Mapping):
                usage = TokenUsage.from_mapping(usage)
            elif not isinstance(usage, TokenUsage):
                usage = TokenUsage()

            event = self._event(
                UsageStage.USAGE,
                analyze_messages(messages),
                input_tokens=usage.input,
                output_tokens=usage.output,
                cache_read_tokens=usage.cache_read,
                cache_write_tokens=usage.cache_write,
                error=_error_text(error),
            )
            self._record(event)

            if usage.input or usage.output:
                logger.info(
                    "[llm-usage] usage session=%s provider=%s/%s input=%s output=%s cache_read=%s",
                    self.session_label, self.provider, self.model_id,
                    usage.input, usage.output, usage.cache_read,
                )
        except Exception:
            logger.exception("Failed to record usage event for session %s", self.session_label)


def create_usage_logger(
    env: Optional[Mapping[str, str]] = None,
    run_id: Optional[str] = None,
    session_id: Optional[str] = None,
    session_key: Optional[str] = None,
    provider: Optional[str] = None,
    model_id: Optional[str] = None,
    context: Optional[UsageContext] = None,
) -> Optional[UsageLogger]:
    """Create a usage logger for one agent run.

    Args:
        env: Environment mapping (defaults to os.environ)
        run_id, session_id, session_key, provider, model_id: Identity fields
        context: Shared writer pool and loop tracker (defaults to the process context)

    Returns:
        A UsageLogger, or None when LLM_USAGE_DEBUG is not enabled
    """
    config = resolve_logger_config(env)
    if not config.enabled:
        return None

    ctx = context or get_default_context()
    usage_logger = UsageLogger(
        writer=ctx.writers.get(config.file_path),
        loop_tracker=ctx.loop_tracker,
        run_id=run_id,
        session_id=session_id,
        session_key=session_key,
        provider=provider,
        model_id=model_id,
    )
    logger.info("[llm-usage] logger enabled file=%s session=%s",
                usage_logger.file_path, usage_logger.session_label)
    return usage_logger
