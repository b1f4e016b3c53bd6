"""Deadline-bounded waiting on protocol commands and events.

The sync Playwright client only dispatches CDP events while one of its own
blocking calls is running, so every wait here yields through a *pump*
callable (normally ``page.wait_for_timeout``) instead of ``time.sleep()``.
"""
import logging
import time
from typing import Any, Callable

from .errors import WaitTimeoutError

log = logging.getLogger(__name__)

Pump = Callable[[float], None]


class Deadline:
    """Millisecond deadline measured on the monotonic clock."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        self._end = time.monotonic() + timeout / 1000.0

    def remaining(self) -> float:
        """Milliseconds left, never negative."""
        return max(0.0, (self._end - time.monotonic()) * 1000.0)

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._end


def wait_finish(
    timeout: float,
    fn: Callable[[Deadline], Any],
    *,
    error_cls: type[WaitTimeoutError] = WaitTimeoutError,
    message: str = "",
) -> Any:
    """Run ``fn(deadline)`` and fail with *error_cls* if it overruns *timeout* ms.

    This does not interrupt *fn*: it must bound its own blocking work, e.g. by
    pumping with ``deadline.remaining()`` or by enforcing the deadline inside
    the page. A :class:`WaitTimeoutError` raised by *fn* itself is re-raised
    as *error_cls*, and a call that completes after the deadline still counts
    as a timeout. Other exceptions propagate.
    """
    deadline = Deadline(timeout)
    message = message or f"operation did not finish within {timeout}ms"
    try:
        result = fn(deadline)
    except WaitTimeoutError as e:
        if isinstance(e, error_cls):
            raise
        raise error_cls(message) from e
    if deadline.expired:
        raise error_cls(message)
    return result


def wait_until(
    condition: Callable[[], Any],
    pump: Pump,
    timeout: float,
    *,
    poll_interval: float = 100,
) -> Any:
    """Poll *condition* until it returns a truthy value.

    Between ticks the client's event loop runs for at most *poll_interval* ms,
    capped to the remaining time. Returns the truthy value or raises
    :class:`WaitTimeoutError`.
    """
    deadline = Deadline(timeout)
    while True:
        value = condition()
        if value:
            return value
        remaining = deadline.remaining()
        if remaining <= 0:
            raise WaitTimeoutError(f"condition not met within {timeout}ms")
        pump(min(poll_interval, max(remaining, 1)))


class EventWaiter:
    """Wait for one protocol event, armed before the command that triggers it.

    Usage::

        with EventWaiter(client, "Page.loadEventFired") as load:
            client.send("Page.navigate", {"url": url})
            load.wait(page.wait_for_timeout, 30000)

    Arming first matters: the sync client dispatches events that arrive while
    ``send()`` is blocking, so a listener registered afterwards can miss them.
    """

    def __init__(self, client: Any, event: str,
                 predicate: Callable[[dict], bool] | None = None):
        self._client = client
        self._event = event
        self._predicate = predicate
        self._captured: list[dict] = []
        self._armed = False

    def __enter__(self):
        self.arm()
        return self

    def __exit__(self, *exc):
        self.disarm()

    def arm(self):
        if self._armed:
            return
        self._client.on(self._event, self._on_event)
        self._armed = True

    def disarm(self):
        if not self._armed:
            return
        try:
            self._client.remove_listener(self._event, self._on_event)
        except Exception as e:
            log.debug("EventWaiter: failed to remove %s listener: %s", self._event, e)
        self._armed = False

    @property
    def fired(self) -> bool:
        return bool(self._captured)

    def _on_event(self, payload):
        try:
            if self._predicate is None or self._predicate(payload or {}):
                self._captured.append(payload or {})
        except Exception as e:
            log.debug("EventWaiter: predicate error on %s: %s", self._event, e)

    def wait(self, pump: Pump, timeout: float, *, poll_interval: float = 100) -> dict:
        """Return the first matching payload or raise :class:`WaitTimeoutError`."""
        try:
            wait_until(lambda: self._captured, pump, timeout, poll_interval=poll_interval)
        except WaitTimeoutError:
            raise WaitTimeoutError(f"{self._event} not received within {timeout}ms") from None
        return self._captured[0]
