"""
Usage log reading.

Parses the NDJSON usage log, skipping malformed lines.
"""

import json
import logging
from collections import deque
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .models import UsageLogEvent, UsageStage

logger = logging.getLogger(__name__)


def iter_usage_events(path: Union[str, Path]) -> Iterator[UsageLogEvent]:
    """Yield events from the log in file order.

    Lines that are not JSON objects or lack a valid stage are skipped.

    Raises:
        FileNotFoundError: If the log file doesn't exist
    """
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
                if not isinstance(data, dict):
                    raise ValueError("not a JSON object")
                yield UsageLogEvent.from_dict(data)
            except (ValueError, TypeError) as e:
                logger.debug("Skipping malformed line %d in %s: %s", line_number, path, e)


def load_usage_events(
    path: Union[str, Path],
    stage: Optional[UsageStage] = None,
) -> List[UsageLogEvent]:
    """Load all events, optionally filtered to one stage."""
    events = iter_usage_events(path)
    if stage is None:
        return list(events)
    return [e for e in events if e.stage == stage]


def tail_lines(path: Union[str, Path], count: int) -> List[str]:
    """Return the last ``count`` raw lines of the log."""
    if count <= 0:
        return []
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        return [line.rstrip("\n") for line in deque(f, maxlen=count)]


def count_lines(path: Union[str, Path]) -> int:
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        return sum(1 for _ in f)
