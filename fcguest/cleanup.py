"""Per task/exec registry of cleanup callbacks that are unwound in reverse order."""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Callable


class CleanupError(Exception):
    """Raised when one or more cleanup callbacks fail.

    The individual failures are kept in ``errors`` in the order the
    callbacks ran.
    """

    def __init__(self, errors: list[Exception]) -> None:
        self.errors = list(errors)
        count = len(self.errors)
        noun = "error" if count == 1 else "errors"
        details = "; ".join(str(err) for err in self.errors)
        super().__init__(f"{count} {noun} occurred during cleanup: {details}")


class CleanupRegistry:
    """Holds cleanup callbacks keyed by task/exec identifier.

    Callbacks for one identifier run in the reverse order of registration,
    so changes are unwound the way they were made.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cleanups: defaultdict[str, list[Callable[[], object]]] = defaultdict(list)

    def add(self, task_exec_id: str, cleanup: Callable[[], object]) -> None:
        """Register ``cleanup`` to run when ``task_exec_id`` is cleaned up."""
        with self._lock:
            self._cleanups[task_exec_id].append(cleanup)

    def run(self, task_exec_id: str) -> None:
        """Run and forget every cleanup registered for ``task_exec_id``.

        Every callback runs even if an earlier one fails; failures are
        collected and raised together as a CleanupError.
        """
        with self._lock:
            cleanups = self._cleanups.pop(task_exec_id, [])

        errors: list[Exception] = []
        for cleanup in reversed(cleanups):
            try:
                cleanup()
            except Exception as exc:  # noqa: BLE001 - every failure is reported
                errors.append(exc)

        if errors:
            raise CleanupError(errors)