"""
Queued append-only file writer.

Callers enqueue lines and return immediately; one consumer thread per file
drains the queue in order. All writers for a path come from a WriterPool so
no two handles ever append to the same file independently.
"""

import logging
import queue
import threading
import time
from pathlib import Path
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)


def canonical_path(path: Union[str, Path]) -> Path:
    return Path(path).expanduser().resolve()


class QueuedFileWriter:
    """Serializing, non-blocking appender for one file.

    Failed writes are logged and the line is dropped; nothing is raised to
    the caller of write().
    """

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = canonical_path(file_path)
        self._queue: "queue.Queue[str]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._start_lock = threading.Lock()
        self._dir_ready = False

    def write(self, line: str) -> None:
        """Enqueue ``line`` (already newline-terminated) for appending."""
        self._ensure_started()
        self._queue.put(line)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until every queued line has been handled.

        Returns:
            True when the queue drained, False on timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                if deadline is None:
                    self._queue.all_tasks_done.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    @property
    def pending(self) -> int:
        return self._queue.unfinished_tasks

    def _ensure_started(self) -> None:
        if self._thread is not None:
            return
        with self._start_lock:
            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._drain,
                    name=f"usage-writer:{self.file_path.name}",
                    daemon=True,
                )
                self._thread.start()

    def _drain(self) -> None:
        while True:
            line = self._queue.get()
            try:
                self._append(line)
            except Exception:
                logger.exception("Dropping usage log line for %s", self.file_path)
            finally:
                self._queue.task_done()

    def _append(self, line: str) -> None:
        if not self._dir_ready:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            self._dir_ready = True
        with open(self.file_path, 'a', encoding='utf-8') as f:
            f.write(line)


class WriterPool:
    """Registry of one QueuedFileWriter per canonical path."""

    def __init__(self):
        self._writers: Dict[Path, QueuedFileWriter] = {}
        self._lock = threading.Lock()

    def get(self, file_path: Union[str, Path]) -> QueuedFileWriter:
        key = canonical_path(file_path)
        with self._lock:
            writer = self._writers.get(key)
            if writer is None:
                writer = QueuedFileWriter(key)
                self._writers[key] = writer
            return writer

    def flush_all(self, timeout: Optional[float] = None) -> bool:
        with self._lock:
            writers = list(self._writers.values())
        return all(w.flush(timeout) for w in writers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._writers)
