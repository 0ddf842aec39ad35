"""Echo suppression between applied remote changes and captured local events."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger("watchsync.suppressor")


class EchoSuppressor:
    """Short-lived guard that marks native player changes as engine-made.

    Native players do not say who triggered a ``play``/``pause``/``seeked``
    event, so the guard is a time window: while it is armed, observed events
    are treated as echoes of the engine's own mutation and dropped.

    The guard always expires on its own after *window* seconds, so a missed
    ``mark_local_change_end()`` can never blind the engine to user changes.

    **Concurrency note:** all callers run on the same event loop and no state
    change awaits, so no locking is needed.
    """

    def __init__(
        self,
        window: float = 0.1,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window <= 0:
            raise ValueError("suppression window must be positive")
        self._window = window
        self._clock = clock
        self._deadline: float | None = None

    @property
    def window(self) -> float:
        return self._window

    def mark_local_change_start(self) -> None:
        """Arm the guard right before the engine mutates the player.

        Re-arming while armed restarts the window.
        """
        self._deadline = self._clock() + self._window

    def mark_local_change_end(self) -> None:
        """Clear the guard early."""
        self._deadline = None

    def is_suppressed(self) -> bool:
        if self._deadline is None:
            return False
        if self._clock() >= self._deadline:
            self._deadline = None
            return False
        return True
