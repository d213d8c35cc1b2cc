"""Small scheduling primitives: apply-only-if-latest and quiet-period debounce.

Neither knows anything about detection. LiveDetection combines them: every
text change restarts the Debouncer, every dispatch takes a number from the
SequenceGate, and a completion is applied only if its number is still the
latest one issued.
"""

import asyncio
import itertools
from typing import Callable


class SequenceGate:
    """Monotonic request counter with compare-on-completion.

    Example:
        gate = SequenceGate()
        seq = gate.issue()
        ...                       # work completes later
        if gate.is_latest(seq):
            apply(result)
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest = 0

    def issue(self) -> int:
        self._latest = next(self._counter)
        return self._latest

    @property
    def latest(self) -> int:
        """Most recently issued sequence number, 0 before the first issue."""
        return self._latest

    def is_latest(self, sequence: int) -> bool:
        return sequence == self._latest


class Debouncer:
    """Run a callback once a quiet period has passed since the last trigger.

    Each trigger() cancels the pending call and schedules a new one, so a burst
    of triggers yields exactly one call, quiet_period seconds after the last.
    Must be used from the event loop thread.
    """

    def __init__(self, quiet_period: float, callback: Callable[[], None]):
        self.quiet_period = quiet_period
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None

    def trigger(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.quiet_period, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def flush(self) -> None:
        """Run a pending call now instead of waiting out the quiet period."""
        if self._handle is not None:
            self.cancel()
            self._callback()

    def _fire(self) -> None:
        self._handle = None
        self._callback()
