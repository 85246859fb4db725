"""Cancellation of running evaluations. A Context can be cancelled from another thread (or a signal handler) and may
carry a deadline; the evaluator polls err() at function calls and loop iterations.
"""

import threading
import time

CANCELLED = "context canceled"
DEADLINE_EXCEEDED = "context deadline exceeded"


class Context:

    def __init__(self, timeout=None):
        self._cancelled = threading.Event()
        self.deadline = time.monotonic() + timeout if timeout else None

    def cancel(self):
        self._cancelled.set()

    def err(self):
        """Returns why the evaluation must stop, or None."""
        if self._cancelled.is_set():
            return CANCELLED
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return DEADLINE_EXCEEDED
        return None


BACKGROUND = Context()
