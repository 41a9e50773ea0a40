"""
Query debouncer.

Raw keystrokes arrive far faster than it makes sense to re-run the pipeline.
Debouncer holds the latest value and only hands it to the callback once the
input has been quiet for `delay` seconds:

    push("r")  push("ra")  push("rag")  ...300 ms...  → callback("rag")

Runs on the asyncio event loop (loop.call_later); must be used from inside a
running loop.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from discovery.config import DEBOUNCE_SECONDS

log = logging.getLogger(__name__)


class Debouncer:
    def __init__(self, callback: Callable[[Any], None], delay: float = DEBOUNCE_SECONDS):
        self.callback = callback
        self.delay    = delay
        self._handle: asyncio.TimerHandle | None = None
        self._value: Any = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def push(self, value: Any) -> None:
        """Record a new value and restart the quiet-period timer."""
        if self._closed:
            return
        self._cancel_timer()
        self._value = value
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def flush(self) -> None:
        """Emit the pending value now (Enter key, chip click)."""
        if self._closed or self._handle is None:
            return
        self._cancel_timer()
        self._fire()

    def cancel(self) -> None:
        """Drop the pending value without emitting it."""
        self._cancel_timer()
        self._value = None

    def close(self) -> None:
        """Cancel any pending emission; later pushes are ignored."""
        self._cancel_timer()
        self._closed = True

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        value, self._value = self._value, None
        log.debug("debounce emit %r", value)
        self.callback(value)
