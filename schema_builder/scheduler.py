"""
Deferred task queue used to coalesce recomputations.

Several changes in one update cycle schedule the same notification under the
same key; only the latest arguments survive and the callback runs once when
the queue is drained.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from .error_handler import ErrorHandler, ErrorType

logger = logging.getLogger(__name__)


@dataclass
class _Task:
    callback: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)


class DeferredQueue:
    """Keyed queue of deferred callbacks, latest scheduling wins."""

    def __init__(self, on_error: Optional[Callable[[Dict[str, Any]], None]] = None):
        self._tasks: Dict[str, _Task] = {}
        self.on_error = on_error

    def schedule(self, key: str, callback: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """
        Schedule `callback(*args, **kwargs)` for the next drain.

        A task already pending under `key` is replaced; it keeps its original
        position in the run order.
        """
        if key in self._tasks:
            logger.debug(f"Coalescing deferred task '{key}'")
        self._tasks[key] = _Task(callback, args, kwargs)

    def cancel(self, key: str) -> bool:
        """Drop a pending task. Returns True if one was pending."""
        return self._tasks.pop(key, None) is not None

    def clear(self) -> None:
        self._tasks.clear()

    @property
    def pending(self) -> List[str]:
        return list(self._tasks)

    def drain(self) -> int:
        """
        Run every pending task once, in scheduling order.

        Tasks scheduled by a running task wait for the next drain. A failing
        task is recorded as a callback error and the record is passed to
        `on_error`; the other tasks still run.

        Returns:
            Number of tasks run
        """
        tasks, self._tasks = self._tasks, {}
        for key, task in tasks.items():
            try:
                task.callback(*task.args, **task.kwargs)
            except Exception as e:
                record = ErrorHandler.handle_error(e, f"deferred task '{key}'", ErrorType.CALLBACK)
                if self.on_error is not None:
                    self.on_error(record)
        return len(tasks)

    def __len__(self) -> int:
        return len(self._tasks)
