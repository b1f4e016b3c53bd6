"""DOM and script operations on the session's current document.

:class:`Document` is the base of :class:`~cdp_kit.session.Session`; it only
relies on ``self.client`` (a CDP session), ``self.page`` (used as the event
pump) and ``self.options``, plus ``_check_start()`` which lazily connects.
"""
import json
import logging
from typing import Any

from .engine.errors import (
    EvaluateError,
    EvaluateTimeoutError,
    InvalidArgumentError,
    SelectorNotFoundError,
    WaitTimeoutError,
)
from .engine.scripts import (
    EVALUATE_TIMEOUT_MARKER,
    build_call_expression,
    build_deadline_expression,
    is_function_source,
)
from .engine.waiter import EventWaiter, wait_finish, wait_until

log = logging.getLogger(__name__)

_RECT_FN = """
(selector) => {
  const el = document.querySelector(selector)
  if (!el) return null
  const r = el.getBoundingClientRect()
  return {left: r.left, top: r.top, width: r.width, height: r.height}
}
"""

_RECT_ALL_FN = """
(selector) => Array.from(document.querySelectorAll(selector)).map(el => {
  const r = el.getBoundingClientRect()
  return {left: r.left, top: r.top, width: r.width, height: r.height}
})
"""

_VISIBLE_FN = """
(selector) => {
  const el = document.querySelector(selector)
  if (!el) return false
  const style = window.getComputedStyle(el)
  if (style.visibility === 'hidden' || style.display === 'none') return false
  return el.getClientRects().length > 0
}
"""

_SCREEN_INFO_FN = """
() => ({
  devicePixelRatio: window.devicePixelRatio,
  width: window.innerWidth,
  height: window.innerHeight,
  scrollX: window.scrollX,
  scrollY: window.scrollY,
})
"""


def _is_deadline_rejection(details: dict) -> bool:
    return (details.get("exception") or {}).get("value") == EVALUATE_TIMEOUT_MARKER


def _exception_message(details: dict) -> str:
    exception = details.get("exception") or {}
    return exception.get("description") or details.get("text") or "script evaluation failed"


class Document:
    client: Any = None
    page: Any = None

    def _check_start(self, starting_url: str | None = None) -> None:
        raise NotImplementedError

    # ── Script evaluation ───────────────────────────────────────────────────

    def evaluate(self, expr: str, *args: Any, timeout: float | None = None) -> Any:
        """Evaluate JS in the page and return its JSON-serializable result.

        *expr* is either a function expression (called with *args*) or a
        function body such as ``"return location.href"``. Promises are
        awaited.

        Raises :class:`EvaluateError` if the script throws and
        :class:`EvaluateTimeoutError` if it overruns *timeout* ms (defaults
        to the ``evaluate_timeout`` option).
        """
        self._check_start()
        if timeout is None:
            timeout = self.options.evaluate_timeout
        params = {
            "expression": build_deadline_expression(build_call_expression(expr, args), timeout),
            "returnByValue": True,
            "awaitPromise": True,
            "timeout": timeout,
        }
        result = wait_finish(
            timeout,
            lambda _deadline: self.client.send("Runtime.evaluate", params),
            error_cls=EvaluateTimeoutError,
            message=f"evaluate() timeout ({timeout}ms)",
        )
        details = result.get("exceptionDetails")
        if details and _is_deadline_rejection(details):
            raise EvaluateTimeoutError(f"evaluate() timeout ({timeout}ms)")
        if details:
            raise EvaluateError(_exception_message(details))
        return result.get("result", {}).get("value")

    # ── Waiting ─────────────────────────────────────────────────────────────

    def _pump(self, ms: float) -> None:
        self.page.wait_for_timeout(ms)

    def sleep(self, ms: float) -> None:
        """Block for *ms* while still dispatching protocol events."""
        self._check_start()
        self._pump(ms)

    def wait(self, condition, *args: Any) -> Any:
        """Wait on a number of ms, a JS predicate, or a CSS selector."""
        if isinstance(condition, (int, float)) and not isinstance(condition, bool):
            return self.sleep(condition)
        if isinstance(condition, str):
            if is_function_source(condition):
                return self.wait_function(condition, *args)
            return self.wait_for_selector(condition)
        raise InvalidArgumentError("wait() accepts milliseconds, a selector, or a function source")

    def wait_function(self, func: str, *args: Any, timeout: float | None = None) -> Any:
        """Poll a JS function until it returns something truthy."""
        self._check_start()
        if timeout is None:
            timeout = self.options.wait_timeout
        return wait_until(
            lambda: self.evaluate(func, *args),
            self._pump,
            timeout,
            poll_interval=self.options.wait_function_polling_interval,
        )

    def wait_for_selector(self, selector: str, timeout: float | None = None) -> None:
        self._check_start()
        if timeout is None:
            timeout = self.options.wait_timeout
        try:
            wait_until(
                lambda: self.exists(selector),
                self._pump,
                timeout,
                poll_interval=self.options.wait_function_polling_interval,
            )
        except WaitTimeoutError:
            raise WaitTimeoutError(f"wait() timeout: selector={selector}") from None

    # ── Queries ─────────────────────────────────────────────────────────────

    def exists(self, selector: str) -> bool:
        return bool(self.evaluate("(s) => document.querySelector(s) !== null", selector))

    def visible(self, selector: str) -> bool:
        return bool(self.evaluate(_VISIBLE_FN, selector))

    def get_bounding_client_rect(self, selector: str) -> dict | None:
        """``{left, top, width, height}`` of the first match, or None."""
        return self.evaluate(_RECT_FN, selector)

    rect = get_bounding_client_rect

    def rect_all(self, selector: str) -> list[dict]:
        return self.evaluate(_RECT_ALL_FN, selector) or []

    def screen_info(self) -> dict:
        return self.evaluate(_SCREEN_INFO_FN) or {}

    # ── Interaction ─────────────────────────────────────────────────────────

    def _on_element(self, selector: str, body: str, *args: Any) -> Any:
        """Run *body* with ``el`` bound to the first match; raise if nothing matches."""
        func = (
            "(selector, ...args) => {"
            " const el = document.querySelector(selector);"
            " if (!el) return {found: false};"
            f" return {{found: true, value: (function () {{ {body} }})()}} }}"
        )
        result = self.evaluate(func, selector, *args) or {}
        if not result.get("found"):
            raise SelectorNotFoundError(selector)
        return result.get("value")

    def click(self, selector: str, wait_load_event: bool = False) -> None:
        self._check_start()
        if not wait_load_event:
            self._on_element(selector, "el.click()")
            return
        timeout = self.options.load_timeout
        with EventWaiter(self.client, "Page.loadEventFired") as load:
            self._on_element(selector, "el.click()")
            load.wait(self._pump, timeout)

    def insert(self, selector: str, value: str) -> None:
        """Set an input's value directly, firing ``input`` and ``change``."""
        self._on_element(
            selector,
            f"el.value = {json.dumps(value)};"
            " el.dispatchEvent(new Event('input', {bubbles: true}));"
            " el.dispatchEvent(new Event('change', {bubbles: true}))",
        )

    def type(self, selector: str, text: str) -> None:
        """Focus *selector* and type *text* one key event at a time."""
        self._on_element(selector, "el.focus()")
        for ch in text:
            self.client.send("Input.dispatchKeyEvent", {"type": "char", "text": ch})
            if self.options.type_interval:
                self._pump(self.options.type_interval)

    def check(self, selector: str) -> None:
        self._set_checked(selector, True)

    def uncheck(self, selector: str) -> None:
        self._set_checked(selector, False)

    def _set_checked(self, selector: str, checked: bool) -> None:
        self._on_element(
            selector,
            f"el.checked = {json.dumps(checked)};"
            " el.dispatchEvent(new Event('change', {bubbles: true}))",
        )

    def select(self, selector: str, value: str) -> None:
        self._on_element(
            selector,
            f"el.value = {json.dumps(value)};"
            " el.dispatchEvent(new Event('change', {bubbles: true}))",
        )

    def scroll(self, x: float, y: float) -> None:
        """Scroll relative to the current position."""
        self.evaluate("(x, y) => window.scrollBy(x, y)", x, y)

    def scroll_to(self, x: float, y: float) -> None:
        self.evaluate("(x, y) => window.scrollTo(x, y)", x, y)
