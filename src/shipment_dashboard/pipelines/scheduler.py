from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional, Set

DEFAULT_REFRESH_INTERVAL = 30.0


@dataclass(frozen=True)
class RefreshTicket:
    """Handle for one issued refresh; stale tickets have their results discarded."""
    key: Hashable
    generation: int


class RefreshScheduler:
    """
    Re-issues a view's request on a fixed interval while the view is active.

    Single-threaded: the owner drives it by calling tick() from its loop (or
    run_forever()). Rules:
    - at most one refresh in flight per key; a second begin() for the same key
      is a no-op, not queued
    - trigger() and change_key() refresh immediately and reset the timer
    - last request wins: a result arriving for a superseded key or after
      stop() is dropped
    - after stop() nothing fires until start() is called again

    `fetch(key)` does the work synchronously; `on_result(key, result)` and
    `on_error(key, exc)` receive accepted outcomes.
    """

    def __init__(
        self,
        fetch: Callable[[Hashable], Any],
        *,
        interval: float = DEFAULT_REFRESH_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        on_result: Optional[Callable[[Hashable, Any], None]] = None,
        on_error: Optional[Callable[[Hashable, Exception], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.fetch = fetch
        self.interval = float(interval)
        self.clock = clock
        self.on_result = on_result
        self.on_error = on_error
        self.logger = logger or logging.getLogger("shipment_dashboard.pipelines.scheduler")

        self.key: Optional[Hashable] = None
        self.running = False
        self.auto_refresh = True
        self.last_result: Any = None
        self.last_error: Optional[Exception] = None

        self._next_due: Optional[float] = None   # the only timer handle
        self._generation = 0
        self._in_flight: Set[Hashable] = set()

    # --- lifecycle -------------------------------------------------------

    def start(self, key: Hashable, *, immediate: bool = True) -> None:
        self.key = key
        self.running = True
        if immediate:
            self.trigger()
        else:
            self._reset_timer()

    def stop(self) -> None:
        """Tear down: release the timer and orphan anything still in flight."""
        self.running = False
        self._next_due = None
        self._generation += 1
        self._in_flight.clear()

    def set_auto_refresh(self, enabled: bool) -> None:
        self.auto_refresh = bool(enabled)
        if self.auto_refresh:
            self._reset_timer()
        else:
            self._next_due = None

    def change_key(self, key: Hashable) -> None:
        """Page/filter change: supersede the old request and refresh now."""
        self.key = key
        self._generation += 1
        if self.running:
            self.trigger()

    # --- timer -----------------------------------------------------------

    def _reset_timer(self) -> None:
        if self.running and self.auto_refresh:
            self._next_due = self.clock() + self.interval
        else:
            self._next_due = None

    @property
    def next_due(self) -> Optional[float]:
        return self._next_due

    def due(self) -> bool:
        return (
            self.running
            and self.auto_refresh
            and self._next_due is not None
            and self.clock() >= self._next_due
        )

    def tick(self) -> bool:
        """Fire the periodic refresh if it is due. Returns True when a fetch ran."""
        if not self.due():
            return False
        self._reset_timer()
        return self._run()

    def trigger(self) -> bool:
        """Manual refresh: always resets the timer, fetches unless already in flight."""
        if not self.running:
            return False
        self._reset_timer()
        return self._run()

    # --- in-flight bookkeeping -------------------------------------------

    def in_flight(self, key: Hashable) -> bool:
        return key in self._in_flight

    def begin(self, key: Hashable) -> Optional[RefreshTicket]:
        if not self.running:
            return None
        if key in self._in_flight:
            self.logger.debug("Refresh for %r already in flight; skipping", key)
            return None
        self._generation += 1
        self._in_flight.add(key)
        return RefreshTicket(key=key, generation=self._generation)

    def _current(self, ticket: RefreshTicket) -> bool:
        return self.running and ticket.key == self.key and ticket.generation == self._generation

    def finish(self, ticket: RefreshTicket, result: Any) -> bool:
        """Deliver a result; False when the ticket was superseded."""
        self._in_flight.discard(ticket.key)
        if not self._current(ticket):
            self.logger.debug("Discarding stale refresh result for %r", ticket.key)
            return False
        self.last_result = result
        self.last_error = None
        if self.on_result is not None:
            self.on_result(ticket.key, result)
        return True

    def fail(self, ticket: RefreshTicket, exc: Exception) -> bool:
        self._in_flight.discard(ticket.key)
        if not self._current(ticket):
            return False
        # previous result stays visible; the error is reported alongside
        self.last_error = exc
        self.logger.warning("Refresh for %r failed: %s", ticket.key, exc)
        if self.on_error is not None:
            self.on_error(ticket.key, exc)
        return True

    def _run(self) -> bool:
        ticket = self.begin(self.key)
        if ticket is None:
            return False
        try:
            result = self.fetch(ticket.key)
        except Exception as exc:
            self.fail(ticket, exc)
            return True
        self.finish(ticket, result)
        return True

    # --- driver ----------------------------------------------------------

    def run_forever(
        self,
        *,
        sleep: Callable[[float], None] = time.sleep,
        until: Optional[Callable[[], bool]] = None,
        poll: float = 1.0,
    ) -> None:
        """Blocking loop for CLI use; exits when stopped or `until()` is true."""
        while self.running and not (until is not None and until()):
            self.tick()
            sleep(poll)
