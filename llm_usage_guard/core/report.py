"""
Usage log aggregation.

Builds the summary, loop and top-N views shown by the CLI. Read-only and
deterministic for a given list of events.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..storage.models import UsageLogEvent, UsageStage
from .pricing import estimate_input_cost


@dataclass(frozen=True)
class InputTotals:
    """Aggregates over input-stage events."""
    total_calls: int
    total_estimated_input_tokens: int
    total_chars: int
    avg_messages_per_call: int
    max_single_call_chars: int
    max_single_call_est_tokens: int


@dataclass(frozen=True)
class UsageTotals:
    """Aggregates over provider-reported usage events."""
    total_usage_events: int
    total_input_tokens: int
    total_output_tokens: int
    total_cache_read_tokens: int


@dataclass
class UsageSummary:
    """Complete summary of a usage log."""
    inputs: InputTotals
    usage: UsageTotals
    loop_breaks: List[UsageLogEvent] = field(default_factory=list)
    top_inputs: List[UsageLogEvent] = field(default_factory=list)
    estimated_input_cost: float = 0.0


def _events_for(events: List[UsageLogEvent], stage: UsageStage) -> List[UsageLogEvent]:
    return [e for e in events if e.stage == stage]


def compute_input_totals(events: List[UsageLogEvent]) -> InputTotals:
    inputs = _events_for(events, UsageStage.INPUT)
    chars = [e.total_text_chars or 0 for e in inputs]
    tokens = [e.estimated_input_tokens or 0 for e in inputs]
    messages = sum(e.message_count or 0 for e in inputs)
    return InputTotals(
        total_calls=len(inputs),
        total_estimated_input_tokens=sum(tokens),
        total_chars=sum(chars),
        avg_messages_per_call=messages // max(1, len(inputs)),
        max_single_call_chars=max(chars, default=0),
        max_single_call_est_tokens=max(tokens, default=0),
    )


def compute_usage_totals(events: List[UsageLogEvent]) -> UsageTotals:
    usage = _events_for(events, UsageStage.USAGE)
    return UsageTotals(
        total_usage_events=len(usage),
        total_input_tokens=sum(e.input_tokens or 0 for e in usage),
        total_output_tokens=sum(e.output_tokens or 0 for e in usage),
        total_cache_read_tokens=sum(e.cache_read_tokens or 0 for e in usage),
    )


def loop_break_events(events: List[UsageLogEvent]) -> List[UsageLogEvent]:
    return _events_for(events, UsageStage.LOOP_BREAK)


def top_input_events(events: List[UsageLogEvent], limit: int = 10) -> List[UsageLogEvent]:
    """Largest input calls by estimated input tokens, biggest first.

    Ties keep log order.
    """
    if limit <= 0:
        return []
    inputs = _events_for(events, UsageStage.INPUT)
    ranked = sorted(inputs, key=lambda e: e.estimated_input_tokens or 0, reverse=True)
    return ranked[:limit]


def summarize(events: List[UsageLogEvent], top: int = 5) -> UsageSummary:
    """Summarize a usage log.

    The cost estimate prices each input call's estimated tokens at its
    model's input rate.
    """
    tokens_by_model: Dict[Optional[str], int] = {}
    for event in _events_for(events, UsageStage.INPUT):
        tokens_by_model[event.model_id] = (
            tokens_by_model.get(event.model_id, 0) + (event.estimated_input_tokens or 0)
        )
    cost = sum(estimate_input_cost(tokens, model) for model, tokens in tokens_by_model.items())
    return UsageSummary(
        inputs=compute_input_totals(events),
        usage=compute_usage_totals(events),
        loop_breaks=loop_break_events(events),
        top_inputs=top_input_events(events, top),
        estimated_input_cost=round(cost, 2),
    )
